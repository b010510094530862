"""
Unit tests for configuration, the MongoDB adapters, the vendor directory,
authorization and the transition lock.
"""
import asyncio
import pytest
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from pymongo.errors import PyMongoError

from conftest import make_doc, NOW
from services.authz import Actor, RoleAuthorizer, system_actor
from services.document_store import MongoDocumentStore
from services.transition_lock import TransitionLock
from services.vendor_directory import InMemoryVendorDirectory, MongoVendorDirectory, normalize_vendor
from services.workflow_config import LockScope, WorkflowConfig
from services.workflow_errors import LockTimeoutError, PersistenceFailureError


def mock_db(collection):
    db = MagicMock()
    db.__getitem__.return_value = collection
    return db


class TestWorkflowConfig:

    def test_defaults(self):
        config = WorkflowConfig()
        assert config.lock_scope == LockScope.DOCUMENT
        assert config.quotes_threshold == Decimal("5000")
        assert config.auto_cancel_days == 40

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TRANSITION_LOCK_SCOPE", "GLOBAL")
        monkeypatch.setenv("TRANSITION_LOCK_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("PROCUREMENT_DISTRIBUTION", "a@example.com, b@example.com,")
        monkeypatch.setenv("QUOTES_THRESHOLD", "2500")
        monkeypatch.setenv("SWEEPS_ENABLED", "false")

        config = WorkflowConfig.from_env()

        assert config.lock_scope == "global"
        assert config.lock_timeout_seconds == 2.5
        assert config.procurement_distribution == ("a@example.com", "b@example.com")
        assert config.quotes_threshold == Decimal("2500")
        assert config.sweeps_enabled is False

    def test_invalid_lock_scope(self, monkeypatch):
        monkeypatch.setenv("TRANSITION_LOCK_SCOPE", "table")
        with pytest.raises(ValueError):
            WorkflowConfig.from_env()


class TestAuthorization:

    def test_has_role(self):
        authz = RoleAuthorizer()
        assert authz.has_role(Actor("buyer", ("procurement",)), "procurement")
        assert not authz.has_role(Actor("viewer", ("viewer",)), "procurement")
        assert not authz.has_role(None, "procurement")

    def test_system_actor_can_transition(self):
        actor = system_actor(WorkflowConfig())
        assert actor.username == "system"
        assert RoleAuthorizer().has_role(actor, "procurement")


@pytest.mark.asyncio
class TestVendorDirectory:

    async def test_normalization(self):
        assert normalize_vendor("  Acme   Supplies ") == "acme supplies"
        vendors = InMemoryVendorDirectory(["Acme Supplies"])
        assert await vendors.is_approved("ACME supplies")
        assert not await vendors.is_approved("Other")
        assert not await vendors.is_approved(None)

    async def test_mongo_lookup(self):
        collection = MagicMock()
        collection.find_one = AsyncMock(return_value={"name_normalized": "acme supplies"})
        vendors = MongoVendorDirectory(mock_db(collection))

        assert await vendors.is_approved("Acme Supplies")
        query = collection.find_one.call_args[0][0]
        assert query["name_normalized"] == "acme supplies"

    async def test_mongo_blank_vendor_skips_lookup(self):
        collection = MagicMock()
        collection.find_one = AsyncMock()
        vendors = MongoVendorDirectory(mock_db(collection))
        assert not await vendors.is_approved("  ")
        collection.find_one.assert_not_called()


@pytest.mark.asyncio
class TestMongoDocumentStore:

    async def test_find_by_number(self):
        collection = MagicMock()
        row = dict(make_doc().to_row(), _id="oid-1", legacy_code="X9")
        collection.find_one = AsyncMock(return_value=row)
        store = MongoDocumentStore(mock_db(collection))

        doc, ref = await store.find_by_number("PR-1001")

        assert ref == "oid-1"
        assert doc.status == "Submitted"
        assert doc.extra == {"legacy_code": "X9"}

    async def test_find_by_number_wraps_driver_errors(self):
        collection = MagicMock()
        collection.find_one = AsyncMock(side_effect=PyMongoError("connection refused"))
        store = MongoDocumentStore(mock_db(collection))

        with pytest.raises(PersistenceFailureError) as exc:
            await store.find_by_number("PR-1001")
        assert "connection refused" in exc.value.message

    async def test_find_by_status_wraps_driver_errors(self):
        collection = MagicMock()
        collection.find.return_value.to_list = AsyncMock(side_effect=PyMongoError("cursor killed"))
        store = MongoDocumentStore(mock_db(collection))
        with pytest.raises(PersistenceFailureError):
            await store.find_by_status("PR", ["In Queue"])

    async def test_commit_transition_sets_only_given_columns(self):
        """The write is guarded by the expected status and leaves other columns alone."""
        collection = MagicMock()
        collection.update_one = AsyncMock(return_value=SimpleNamespace(matched_count=1))
        store = MongoDocumentStore(mock_db(collection))

        await store.commit_transition("oid-1", "PR-1001", "Submitted", {
            "status": "In Queue", "last_modified": NOW, "last_modified_by": "buyer",
        })

        collection.update_one.assert_awaited_once_with(
            {"_id": "oid-1", "status": "Submitted"},
            {"$set": {
                "status": "In Queue",
                "last_modified": "2026-10-19T14:30:00+00:00",
                "last_modified_by": "buyer",
            }},
        )

    async def test_commit_transition_wraps_driver_errors(self):
        collection = MagicMock()
        collection.update_one = AsyncMock(side_effect=PyMongoError("primary stepped down"))
        store = MongoDocumentStore(mock_db(collection))

        with pytest.raises(PersistenceFailureError) as exc:
            await store.commit_transition("oid-1", "PR-1001", "Submitted", {"status": "In Queue"})
        assert "primary stepped down" in exc.value.message

    async def test_commit_transition_status_conflict(self):
        """No row with both the id and the expected status means it changed underneath."""
        collection = MagicMock()
        collection.update_one = AsyncMock(return_value=SimpleNamespace(matched_count=0))
        store = MongoDocumentStore(mock_db(collection))
        with pytest.raises(PersistenceFailureError) as exc:
            await store.commit_transition("oid-1", "PR-1001", "Submitted", {"status": "In Queue"})
        assert "no longer 'Submitted'" in exc.value.message

    async def test_update_fields_sets_only_given_columns(self):
        collection = MagicMock()
        collection.update_one = AsyncMock()
        store = MongoDocumentStore(mock_db(collection))

        await store.update_fields("PR-1001", {"shipped": False, "completion_pct": 40})

        collection.update_one.assert_awaited_once_with(
            {"number": "PR-1001"}, {"$set": {"shipped": "N", "completion_pct": 40}}
        )


@pytest.mark.asyncio
class TestTransitionLock:

    async def test_document_scope_keys_per_document(self):
        lock = TransitionLock(timeout_seconds=0.05)
        async with lock.hold("PR-1"):
            assert lock.locked("PR-1")
            assert not lock.locked("PR-2")
            async with lock.hold("PR-2"):
                pass
        assert not lock.locked("PR-1")

    async def test_global_scope_blocks_other_documents(self):
        lock = TransitionLock(timeout_seconds=0.05, scope=LockScope.GLOBAL)
        async with lock.hold("PR-1"):
            assert lock.locked("PR-2")
            with pytest.raises(LockTimeoutError):
                async with lock.hold("PR-2"):
                    pass

    async def test_waiter_proceeds_after_release(self):
        lock = TransitionLock(timeout_seconds=1)
        order = []

        async def worker(name):
            async with lock.hold("PR-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    async def test_timed_out_waiter_does_not_keep_lock(self):
        lock = TransitionLock(timeout_seconds=0.02)
        async with lock.hold("PR-1"):
            with pytest.raises(LockTimeoutError):
                async with lock.hold("PR-1"):
                    pass
        await asyncio.sleep(0)
        assert not lock.locked("PR-1")
        async with lock.hold("PR-1"):
            assert lock.locked("PR-1")

    async def test_cancel_after_release_leaves_lock_free(self):
        """A waiter cancelled just as the lock is handed to it gives the lock back."""
        lock = TransitionLock(timeout_seconds=1)

        async def waiter():
            async with lock.hold("PR-1"):
                pass

        async with lock.hold("PR-1"):
            task = asyncio.ensure_future(waiter())
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.sleep(0)
        assert not lock.locked("PR-1")
        async with lock.hold("PR-1"):
            pass
