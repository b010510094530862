"""
Shared fixtures: an in-memory workflow (store, audit log, vendors, schedule,
mock notifications) around a fixed clock.
"""
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from services.audit_log import InMemoryAuditLog
from services.authz import Actor
from services.dispatcher import PostTransitionDispatcher
from services.document_model import Document
from services.document_store import InMemoryDocumentStore
from services.notification_service import NotificationService, EmailProvider
from services.reminders import InMemoryScheduleStore
from services.vendor_directory import InMemoryVendorDirectory
from services.workflow_config import WorkflowConfig
from services.workflow_engine import WorkflowEngine

# Monday
NOW = datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)
TODAY = NOW.date()

APPROVED_VENDOR = "Acme Supplies"


def make_doc(number="PR-1001", kind="PR", status="Submitted", **overrides) -> Document:
    """A document with every intake field populated."""
    values = dict(
        number=number,
        kind=kind,
        status=status,
        amount=Decimal("1200.00"),
        currency="USD",
        vendor=APPROVED_VENDOR,
        requester="requester@example.com",
        approver_ref="approver@example.com",
        description="Replacement pump seals",
        submitted_at=datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc),
        deadline=date(2026, 12, 1),
    )
    values.update(overrides)
    return Document(**values)


def make_ordered_fields(**overrides) -> dict:
    values = dict(
        proof_of_purchase_link="https://files.example.com/pop/1001.pdf",
        payment_date=date(2026, 10, 15),
        expected_landing_date=date(2026, 12, 15),
    )
    values.update(overrides)
    return values


@pytest.fixture
def config():
    return WorkflowConfig(procurement_distribution=("procurement@example.com",))


@pytest.fixture
def buyer():
    return Actor(username="buyer", roles=("procurement",), email="buyer@example.com")


@pytest.fixture
def viewer():
    return Actor(username="viewer", roles=("viewer",))


@pytest.fixture
def workflow(config):
    store = InMemoryDocumentStore()
    audit = InMemoryAuditLog()
    vendors = InMemoryVendorDirectory([APPROVED_VENDOR])
    schedule = InMemoryScheduleStore()
    notifications = NotificationService(provider=EmailProvider.MOCK)
    dispatcher = PostTransitionDispatcher(store, notifications, vendors, schedule, config)
    engine = WorkflowEngine(store, audit, vendors, dispatcher, config=config, clock=lambda: NOW)
    return SimpleNamespace(
        store=store,
        audit=audit,
        vendors=vendors,
        schedule=schedule,
        notifications=notifications,
        dispatcher=dispatcher,
        engine=engine,
        config=config,
    )
