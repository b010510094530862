"""
Procurement Workflow Hub - Post-Transition Dispatcher

Side effects that follow a committed status change, run in a fixed order
outside the transition lock:

1. Queue position recompute (entered or left In Queue)
2. PO creation (PR moved to PR Ready)
3. Delivery-tracking initialization (moved to Ordered / PO Ordered)
4. Reminder schedule clearing (moved to a terminal status)
5. Status-change notification
6. Completion percentage and days-open recompute

Every effect is isolated: a failure is logged and the next effect still
runs. Delivery-tracking initialization is load-bearing (the sweeps depend
on its flags), so its failure is also reported back to the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from services.business_days import business_days_between
from services.completion import CompletionCalculator
from services.document_model import Document
from services.notification_service import TemplateKey
from services.queue_position import QueuePositionCalculator
from services.transition_table import (
    DocKind, DocStatus, ORDERED_STATUSES, TERMINAL_STATUSES,
)
from services.workflow_config import WorkflowConfig
from services.workflow_errors import ErrorKind

logger = logging.getLogger(__name__)


@dataclass
class TransitionContext:
    """What the dispatcher knows about the committed transition."""
    doc: Document
    old_status: str
    new_status: str
    actor: str
    notes: Optional[str]
    timestamp: datetime


@dataclass
class SideEffect:
    name: str
    applies: Callable[[TransitionContext], bool]
    run: Callable[[TransitionContext], Awaitable[None]]
    load_bearing: bool = False


@dataclass
class DispatchReport:
    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)

    @property
    def warnings(self) -> List[str]:
        """Messages for load-bearing failures the caller must see."""
        return [f["message"] for f in self.failed if f["load_bearing"]]


def po_number_for(pr_number: str) -> str:
    """PO number paired with a PR number: PR-1001 -> PO-1001."""
    if pr_number.upper().startswith("PR"):
        return "PO" + pr_number[2:]
    return f"PO-{pr_number}"


class PostTransitionDispatcher:

    def __init__(
        self,
        store,
        notifications,
        vendors,
        schedule,
        config: WorkflowConfig,
        queue_calculator: QueuePositionCalculator = None,
        completion_calculator: CompletionCalculator = None,
    ):
        self.store = store
        self.notifications = notifications
        self.vendors = vendors
        self.schedule = schedule
        self.config = config
        self.queue_calculator = queue_calculator or QueuePositionCalculator()
        self.completion_calculator = completion_calculator or CompletionCalculator(config)

        self.effects: List[SideEffect] = [
            SideEffect("queue_recompute", self._touches_queue, self.recompute_queue),
            SideEffect("po_creation", self._pr_ready, self.create_po),
            SideEffect("delivery_tracking", self._entered_ordered, self.init_delivery_tracking,
                       load_bearing=True),
            SideEffect("reminder_clearing", self._entered_terminal, self.clear_reminders),
            SideEffect("notification", lambda ctx: True, self.notify),
            SideEffect("completion_recompute", lambda ctx: True, self.recompute_completion),
        ]

    async def dispatch(self, ctx: TransitionContext) -> DispatchReport:
        report = DispatchReport()
        for effect in self.effects:
            if not effect.applies(ctx):
                report.skipped.append(effect.name)
                continue
            try:
                await effect.run(ctx)
                report.completed.append(effect.name)
            except Exception as e:
                message = f"{effect.name} failed for {ctx.doc.number}: {e}"
                report.failed.append({
                    "effect": effect.name,
                    "message": message,
                    "load_bearing": effect.load_bearing,
                })
                if effect.load_bearing:
                    logger.error(message)
                else:
                    logger.warning("%s (%s)", message, ErrorKind.NON_CRITICAL_SIDE_EFFECT_FAILURE.value)
        return report

    # ---------------------------------------------------------------- predicates

    @staticmethod
    def _touches_queue(ctx: TransitionContext) -> bool:
        return DocStatus.IN_QUEUE.value in (ctx.old_status, ctx.new_status)

    @staticmethod
    def _pr_ready(ctx: TransitionContext) -> bool:
        return ctx.doc.kind == DocKind.PR.value and ctx.new_status == DocStatus.PR_READY.value

    @staticmethod
    def _entered_ordered(ctx: TransitionContext) -> bool:
        return ctx.new_status in ORDERED_STATUSES

    @staticmethod
    def _entered_terminal(ctx: TransitionContext) -> bool:
        return ctx.new_status in TERMINAL_STATUSES

    # ---------------------------------------------------------------- effects

    async def recompute_queue(self, ctx: TransitionContext):
        await self.queue_calculator.recompute(self.store, ctx.doc.kind)

    async def create_po(self, ctx: TransitionContext):
        pr = ctx.doc
        po_number = pr.linked_po_number or po_number_for(pr.number)

        if await self.store.find_by_number(po_number) is not None:
            logger.info("PO %s already exists for %s; not creating another", po_number, pr.number)
        else:
            po = Document(
                number=po_number,
                kind=DocKind.PO.value,
                status=DocStatus.SUBMITTED.value,
                amount=pr.amount,
                currency=pr.currency,
                vendor=pr.vendor,
                approver_ref=pr.approver_ref,
                requester=pr.requester,
                description=pr.description,
                submitted_at=ctx.timestamp,
                deadline=pr.deadline,
                quotes_link=pr.quotes_link,
                quotes_date=pr.quotes_date,
                adjudication_notes=pr.adjudication_notes,
                adjudication_date=pr.adjudication_date,
                urgent=pr.urgent,
                customs_required=pr.customs_required,
                linked_pr_number=pr.number,
                last_modified=ctx.timestamp,
                last_modified_by=ctx.actor,
            )
            await self.store.append_row(DocKind.PO.value, po)
            logger.info("PO %s created from %s", po_number, pr.number)

        if pr.linked_po_number != po_number:
            await self.store.update_fields(pr.number, {"linked_po_number": po_number})

    async def init_delivery_tracking(self, ctx: TransitionContext):
        doc = ctx.doc
        values = {
            "shipped": False,
            "goods_landed": False,
            "ordered_date": ctx.timestamp.date(),
        }
        if doc.customs_required:
            values["customs_cleared"] = False
        await self.store.update_fields(doc.number, values)
        logger.info("Delivery tracking initialized for %s (customs_required=%s)",
                    doc.number, bool(doc.customs_required))

    async def clear_reminders(self, ctx: TransitionContext):
        removed = await self.schedule.clear(ctx.doc.number)
        if removed:
            logger.info("Cleared %d reminder entries for %s", removed, ctx.doc.number)

    async def notify(self, ctx: TransitionContext):
        doc = ctx.doc
        recipients = list(self.config.procurement_distribution) + [doc.requester, doc.approver_ref]
        delivered = await self.notifications.send(
            TemplateKey.STATUS_CHANGE.value,
            {
                "doc_number": doc.number,
                "kind": doc.kind,
                "old_status": ctx.old_status,
                "new_status": ctx.new_status,
                "actor": ctx.actor,
                "notes": ctx.notes or "",
                "vendor": doc.vendor or "",
                "amount": doc.amount if doc.amount is not None else "",
                "currency": doc.currency,
                "timestamp": ctx.timestamp.isoformat(),
            },
            recipients,
        )
        if not delivered:
            logger.warning("Status change notification for %s was not delivered", doc.number)

    async def recompute_completion(self, ctx: TransitionContext):
        found = await self.store.find_by_number(ctx.doc.number)
        if found is None:
            return
        doc, _ = found
        vendor_approved = await self.vendors.is_approved(doc.vendor)
        values = {"completion_pct": self.completion_calculator.compute(doc, vendor_approved)}
        if doc.submitted_at is not None:
            values["days_open"] = business_days_between(doc.submitted_at, ctx.timestamp)
        await self.store.update_fields(doc.number, values)
