"""
Procurement Workflow Hub - Delivery Reminders

Escalating reminders for ordered documents that are still waiting on
delivery. Each document's reminders target its blocking item, the first
unmet delivery precondition in this order:

    shipping -> customs -> delivery

Reminder intervals start at REMINDER_INITIAL_DAYS and halve after every
reminder down to REMINDER_FLOOR_DAYS (5 -> 2.5 -> 1.25 -> 1 -> 1 ...).
Intervals are exact fractional days. When the blocking item changes, the
schedule restarts from the initial interval.

Schedule entries are also used by the auto-cancellation sweep to remember
which documents already received a cancellation warning; clearing a
document's schedule removes both.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from services.document_model import Document
from services.notification_service import TemplateKey
from services.transition_table import ORDERED_STATUSES
from services.workflow_config import WorkflowConfig

logger = logging.getLogger(__name__)

COLLECTION_NAME = "reminder_schedule"


class BlockingItem(str, Enum):
    SHIPPING = "shipping"
    CUSTOMS = "customs"
    DELIVERY = "delivery"


class EntryType(str, Enum):
    REMINDER = "reminder"
    CANCELLATION_WARNING = "cancellation_warning"


def blocking_item(doc: Document) -> Optional[BlockingItem]:
    """First unmet delivery precondition, or None when goods have landed."""
    if not doc.shipped:
        return BlockingItem.SHIPPING
    if doc.customs_required and not doc.customs_cleared:
        return BlockingItem.CUSTOMS
    if not doc.goods_landed:
        return BlockingItem.DELIVERY
    return None


def next_interval(current_days: float, floor_days: float) -> float:
    return max(floor_days, current_days / 2)


def reminder_intervals(initial_days: float, floor_days: float, count: int) -> List[float]:
    """The first `count` reminder intervals, in days."""
    intervals = []
    current = initial_days
    for _ in range(count):
        intervals.append(current)
        current = next_interval(current, floor_days)
    return intervals


# =============================================================================
# SCHEDULE STORE
# =============================================================================

class MongoScheduleStore:

    def __init__(self, db, collection_name: str = COLLECTION_NAME):
        self.collection = db[collection_name]

    async def create_indexes(self):
        await self.collection.create_index([("doc_number", 1), ("entry_type", 1)], unique=True)

    async def get(self, doc_number: str, entry_type: EntryType) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one(
            {"doc_number": doc_number, "entry_type": entry_type.value},
            {"_id": 0}
        )

    async def upsert(self, doc_number: str, entry_type: EntryType, data: Dict[str, Any]) -> None:
        await self.collection.update_one(
            {"doc_number": doc_number, "entry_type": entry_type.value},
            {"$set": dict(data, doc_number=doc_number, entry_type=entry_type.value)},
            upsert=True
        )

    async def delete(self, doc_number: str, entry_type: EntryType) -> None:
        await self.collection.delete_one({"doc_number": doc_number, "entry_type": entry_type.value})

    async def clear(self, doc_number: str) -> int:
        result = await self.collection.delete_many({"doc_number": doc_number})
        return result.deleted_count


class InMemoryScheduleStore:

    def __init__(self):
        self.entries: Dict[tuple, Dict[str, Any]] = {}

    async def get(self, doc_number: str, entry_type: EntryType) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        entry = self.entries.get((doc_number, entry_type.value))
        return dict(entry) if entry is not None else None

    async def upsert(self, doc_number: str, entry_type: EntryType, data: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        key = (doc_number, entry_type.value)
        current = self.entries.get(key, {})
        current.update(data, doc_number=doc_number, entry_type=entry_type.value)
        self.entries[key] = current

    async def delete(self, doc_number: str, entry_type: EntryType) -> None:
        await asyncio.sleep(0)
        self.entries.pop((doc_number, entry_type.value), None)

    async def clear(self, doc_number: str) -> int:
        await asyncio.sleep(0)
        keys = [key for key in self.entries if key[0] == doc_number]
        for key in keys:
            del self.entries[key]
        return len(keys)


# =============================================================================
# REMINDER SWEEP
# =============================================================================

@dataclass
class ReminderSweepResult:
    checked: int = 0
    scheduled: int = 0
    sent: int = 0
    cleared: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "scheduled": self.scheduled,
            "sent": self.sent,
            "cleared": self.cleared,
            "errors": self.errors[:100],
        }


class ReminderSweep:

    def __init__(self, store, schedule, notifications, config: WorkflowConfig):
        self.store = store
        self.schedule = schedule
        self.notifications = notifications
        self.config = config

    async def run(self, now: Optional[datetime] = None) -> ReminderSweepResult:
        now = now or datetime.now(timezone.utc)
        result = ReminderSweepResult()

        documents = await self.store.find_by_status(None, list(ORDERED_STATUSES))
        for doc in documents:
            result.checked += 1
            try:
                await self._process(doc, now, result)
            except Exception as e:
                logger.error("Reminder processing failed for %s: %s", doc.number, e)
                result.errors.append({"doc_number": doc.number, "error": str(e)})

        logger.info(
            "Reminder sweep complete: checked=%d, sent=%d, scheduled=%d, cleared=%d, errors=%d",
            result.checked, result.sent, result.scheduled, result.cleared, len(result.errors)
        )
        return result

    async def _process(self, doc: Document, now: datetime, result: ReminderSweepResult):
        item = blocking_item(doc)
        entry = await self.schedule.get(doc.number, EntryType.REMINDER)

        if item is None:
            if entry is not None:
                await self.schedule.delete(doc.number, EntryType.REMINDER)
                result.cleared += 1
            return

        if entry is None or entry.get("blocking_item") != item.value:
            anchor = now if entry is not None else self._ordered_at(doc, now)
            entry = {
                "blocking_item": item.value,
                "reminder_count": 0,
                "interval_days": self.config.reminder_initial_days,
                "next_reminder_at": anchor + timedelta(days=self.config.reminder_initial_days),
                "last_sent_at": None,
            }
            await self.schedule.upsert(doc.number, EntryType.REMINDER, entry)
            result.scheduled += 1
            logger.info(
                "Reminder scheduled: doc=%s, blocking=%s, due=%s",
                doc.number, item.value, entry["next_reminder_at"].isoformat()
            )

        due = _as_datetime(entry["next_reminder_at"])
        if now < due:
            return

        reminder_number = entry["reminder_count"] + 1
        delivered = await self.notifications.send(
            TemplateKey.DELIVERY_REMINDER.value,
            {
                "doc_number": doc.number,
                "kind": doc.kind,
                "vendor": doc.vendor,
                "blocking_item": item.value,
                "reminder_number": reminder_number,
                "expected_landing_date": doc.expected_landing_date.isoformat() if doc.expected_landing_date else "",
            },
            list(self.config.procurement_distribution) + [doc.requester, doc.approver_ref],
        )
        if not delivered:
            # Schedule stays due; the next sweep retries
            logger.warning("Reminder #%d for %s not delivered", reminder_number, doc.number)
            return

        interval = next_interval(entry["interval_days"], self.config.reminder_floor_days)
        await self.schedule.upsert(doc.number, EntryType.REMINDER, {
            "reminder_count": reminder_number,
            "interval_days": interval,
            "next_reminder_at": now + timedelta(days=interval),
            "last_sent_at": now,
        })
        result.sent += 1

    @staticmethod
    def _ordered_at(doc: Document, now: datetime) -> datetime:
        if doc.ordered_date is None:
            return now
        return datetime.combine(doc.ordered_date, time.min, tzinfo=timezone.utc)


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromisoformat(value)
