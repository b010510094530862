"""
Procurement Workflow Hub - Auto-Cancellation Sweep

Cancels ordered documents whose goods never arrived. For every Ordered /
PO Ordered document without goods landed, the sweep counts business days
past the expected landing date:

- at CANCELLATION_WARNING_DAYS a warning is sent once (no transition)
- at AUTO_CANCEL_DAYS the document moves to Canceled through the normal
  request_transition entry point, with validation skipped and the system
  actor as the author
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from services.authz import system_actor
from services.business_days import business_days_between
from services.document_model import Document
from services.notification_service import TemplateKey
from services.reminders import EntryType
from services.transition_table import DocStatus, ORDERED_STATUSES
from services.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)


def cancellation_note(days_overdue: int, expected_landing: date) -> str:
    return (
        f"Auto-canceled: {days_overdue} business days overdue past expected landing date "
        f"{expected_landing.isoformat()}"
    )


@dataclass
class AutoCancellationResult:
    checked: int = 0
    warned: int = 0
    canceled: List[str] = field(default_factory=list)
    skipped: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "warned": self.warned,
            "canceled": self.canceled,
            "skipped": self.skipped,
            "errors": self.errors[:100],
        }


class AutoCancellationSweep:

    def __init__(self, engine, schedule, notifications, config: WorkflowConfig):
        self.engine = engine
        self.store = engine.store
        self.schedule = schedule
        self.notifications = notifications
        self.config = config
        self.actor = system_actor(config)

    async def run(self, today: Optional[date] = None) -> AutoCancellationResult:
        today = today or datetime.now(timezone.utc).date()
        result = AutoCancellationResult()

        documents = await self.store.find_by_status(None, list(ORDERED_STATUSES))
        for doc in documents:
            result.checked += 1
            try:
                await self._process(doc, today, result)
            except Exception as e:
                logger.error("Auto-cancellation check failed for %s: %s", doc.number, e)
                result.errors.append({"doc_number": doc.number, "error": str(e)})

        logger.info(
            "Auto-cancellation sweep complete: checked=%d, warned=%d, canceled=%d, errors=%d",
            result.checked, result.warned, len(result.canceled), len(result.errors)
        )
        return result

    async def _process(self, doc: Document, today: date, result: AutoCancellationResult):
        if doc.goods_landed or doc.expected_landing_date is None:
            result.skipped += 1
            return

        days_overdue = business_days_between(doc.expected_landing_date, today)

        if days_overdue >= self.config.auto_cancel_days:
            await self._cancel(doc, days_overdue, result)
        elif days_overdue >= self.config.cancellation_warning_days:
            await self._warn(doc, days_overdue, result)
        else:
            result.skipped += 1

    async def _cancel(self, doc: Document, days_overdue: int, result: AutoCancellationResult):
        # Re-read: the listing may be stale and a canceled document must not be re-canceled
        found = await self.store.find_by_number(doc.number)
        if found is None or found[0].status not in ORDERED_STATUSES:
            result.skipped += 1
            return

        outcome = await self.engine.request_transition(
            doc.number,
            DocStatus.CANCELED.value,
            cancellation_note(days_overdue, doc.expected_landing_date),
            self.actor,
            skip_validation=True,
        )
        if outcome.success:
            result.canceled.append(doc.number)
            logger.info("Auto-canceled %s (%d business days overdue)", doc.number, days_overdue)
        else:
            result.errors.append({"doc_number": doc.number, "error": outcome.error.message})

    async def _warn(self, doc: Document, days_overdue: int, result: AutoCancellationResult):
        if await self.schedule.get(doc.number, EntryType.CANCELLATION_WARNING) is not None:
            return

        delivered = await self.notifications.send(
            TemplateKey.CANCELLATION_WARNING.value,
            {
                "doc_number": doc.number,
                "kind": doc.kind,
                "vendor": doc.vendor,
                "days_overdue": days_overdue,
                "days_remaining": self.config.auto_cancel_days - days_overdue,
                "auto_cancel_days": self.config.auto_cancel_days,
                "expected_landing_date": doc.expected_landing_date.isoformat(),
            },
            list(self.config.procurement_distribution) + [doc.requester, doc.approver_ref],
        )
        if not delivered:
            logger.warning("Cancellation warning for %s not delivered; will retry", doc.number)
            return

        await self.schedule.upsert(doc.number, EntryType.CANCELLATION_WARNING, {
            "days_overdue": days_overdue,
            "sent_at": datetime.now(timezone.utc),
        })
        result.warned += 1
