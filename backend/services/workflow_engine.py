"""
Procurement Workflow Hub - Workflow Engine

Status workflow for purchase requisitions (PR) and purchase orders (PO).
`request_transition` is the only way a document's status changes:

    authorize -> lock -> load -> validate -> commit row -> audit -> unlock
    -> post-transition side effects

Everything before the row write is pure validation and leaves the document
untouched. The row write is the single commit point. Everything after it is
best-effort and never turns a committed transition into a failure.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from services.authz import Actor, RoleAuthorizer
from services.dispatcher import PostTransitionDispatcher, TransitionContext
from services.document_model import TRANSITION_COLUMNS, Document, StatusChangeRecord
from services.transition_lock import TransitionLock
from services.transition_table import DocStatus
from services.validators import BusinessRuleValidator, RequiredFieldValidator
from services.workflow_config import WorkflowConfig
from services.workflow_errors import (
    DocumentNotFoundError, InvalidTransitionError, MissingFieldsError,
    PersistenceFailureError, UnauthorizedError, WorkflowError,
)

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    """Outcome of request_transition: success with the new status, or a typed failure."""
    success: bool
    doc_number: str
    status: Optional[str] = None
    previous_status: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[WorkflowError] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.error_kind.value if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            result = self.error.to_dict()
            result["docNumber"] = self.doc_number
            return result
        return {
            "success": True,
            "docNumber": self.doc_number,
            "status": self.status,
            "previousStatus": self.previous_status,
            "timestamp": self.timestamp,
            "warnings": self.warnings,
        }


def merge_notes(existing: Optional[str], notes: Optional[str], actor: str, timestamp: datetime) -> Optional[str]:
    """Append a timestamped note; prior notes are never overwritten."""
    if not notes or not notes.strip():
        return existing
    entry = f"[{timestamp.strftime('%Y-%m-%d %H:%M')} UTC] {actor}: {notes.strip()}"
    if existing and existing.strip():
        return f"{existing}\n{entry}"
    return entry


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowEngine:
    """
    Facade composing the transition table, validators, store, lock, audit log
    and post-transition dispatcher. All collaborators are injected.
    """

    def __init__(
        self,
        store,
        audit_log,
        vendors,
        dispatcher: PostTransitionDispatcher,
        config: WorkflowConfig = None,
        authz: RoleAuthorizer = None,
        lock: TransitionLock = None,
        clock: Callable[[], datetime] = None,
    ):
        self.config = config or WorkflowConfig()
        self.store = store
        self.audit_log = audit_log
        self.vendors = vendors
        self.dispatcher = dispatcher
        self.authz = authz or RoleAuthorizer()
        self.lock = lock or TransitionLock(
            timeout_seconds=self.config.lock_timeout_seconds,
            scope=self.config.lock_scope,
        )
        self.clock = clock or _utcnow
        self.transition_table = self.config.transition_table
        self.required_fields = RequiredFieldValidator(self.config)
        self.business_rules = BusinessRuleValidator(self.config)

    async def request_transition(
        self,
        doc_number: str,
        new_status: str,
        notes: Optional[str],
        actor: Actor,
        skip_validation: bool = False,
    ) -> TransitionResult:
        """
        Validate and apply a status change.

        Args:
            doc_number: Document number (PR-... / PO-...)
            new_status: Target status
            notes: Optional note appended to the document's notes
            actor: Authenticated caller; must hold the procurement role
            skip_validation: Only for scheduled callers (auto-cancellation)

        Returns:
            TransitionResult; failures carry a WorkflowError with its ErrorKind
        """
        new_status = new_status.value if isinstance(new_status, DocStatus) else new_status
        try:
            context = await self._apply(doc_number, new_status, notes, actor, skip_validation)
        except WorkflowError as e:
            logger.warning(
                "Transition rejected: doc=%s, target=%s, actor=%s, kind=%s, reason=%s",
                doc_number, new_status, getattr(actor, "username", None), e.error_kind.value, e.message
            )
            return TransitionResult(success=False, doc_number=doc_number, error=e)

        # Outside the lock: slow I/O here must not block other transitions
        report = await self.dispatcher.dispatch(context)

        return TransitionResult(
            success=True,
            doc_number=doc_number,
            status=context.new_status,
            previous_status=context.old_status,
            timestamp=context.timestamp.isoformat(),
            warnings=report.warnings,
        )

    async def _apply(
        self,
        doc_number: str,
        new_status: str,
        notes: Optional[str],
        actor: Actor,
        skip_validation: bool,
    ) -> TransitionContext:
        if not self.authz.has_role(actor, self.config.procurement_role):
            raise UnauthorizedError(
                f"User '{getattr(actor, 'username', None)}' lacks the "
                f"'{self.config.procurement_role}' role required to change status"
            )

        async with self.lock.hold(doc_number):
            doc, row_ref = await self._load(doc_number)

            # Kind comes from the stored row, never from the number format
            kind = doc.kind
            current_status = doc.status
            now = self.clock()

            # Scheduled callers may skip the gates, never the status vocabulary
            if new_status not in self.transition_table.statuses(kind):
                raise InvalidTransitionError(
                    kind, current_status, new_status, self.transition_table.allowed(kind, current_status)
                )

            if not skip_validation:
                await self._validate(doc, kind, current_status, new_status, now)

            record = StatusChangeRecord(
                timestamp=now,
                actor=actor.username,
                doc_number=doc.number,
                old_status=current_status,
                new_status=new_status,
                notes=notes,
            )

            doc.status = new_status
            doc.notes = merge_notes(doc.notes, notes, actor.username, now)
            doc.last_modified = now
            doc.last_modified_by = actor.username
            values = {name: getattr(doc, name) for name in TRANSITION_COLUMNS}
            if current_status == DocStatus.IN_QUEUE.value:
                doc.queue_position = None
                values["queue_position"] = None

            try:
                await self.store.commit_transition(row_ref, doc.number, current_status, values)
            except PersistenceFailureError:
                logger.error("Persistence failure: doc=%s, %s -> %s", doc_number, current_status, new_status)
                raise
            except Exception as e:
                logger.error("Persistence failure: doc=%s, %s -> %s: %s",
                             doc_number, current_status, new_status, e)
                raise PersistenceFailureError(f"Failed to save {doc_number}: {e}", cause=e)

            logger.info(
                "Workflow transition: doc=%s, kind=%s, %s -> %s (actor=%s, skip_validation=%s)",
                doc_number, kind, current_status, new_status, actor.username, skip_validation
            )

            try:
                await self.audit_log.append(record)
            except Exception as e:
                # Transition is already committed
                logger.warning("Audit log append failed for %s: %s", doc_number, e)

        return TransitionContext(
            doc=doc,
            old_status=current_status,
            new_status=new_status,
            actor=actor.username,
            notes=notes,
            timestamp=now,
        )

    async def _validate(self, doc: Document, kind: str, current_status: str, new_status: str, now: datetime):
        allowed = self.transition_table.allowed(kind, current_status)
        if new_status not in allowed:
            raise InvalidTransitionError(kind, current_status, new_status, allowed)

        try:
            vendor_approved = await self.vendors.is_approved(doc.vendor)
        except Exception as e:
            logger.error("Vendor lookup failed for %s: %s", doc.number, e)
            raise PersistenceFailureError(f"Vendor lookup failed for {doc.number}: {e}", cause=e)

        missing = self.required_fields.validate(doc, new_status, vendor_approved)
        if missing:
            raise MissingFieldsError(new_status, missing)

        violation = self.business_rules.validate(doc, new_status, vendor_approved, today=now.date())
        if violation is not None:
            raise violation

    async def _load(self, doc_number: str):
        """Read (doc, row_ref); read errors and unreadable rows become PersistenceFailureError."""
        try:
            found = await self.store.find_by_number(doc_number)
        except PersistenceFailureError:
            raise
        except Exception as e:
            logger.error("Failed to load %s: %s", doc_number, e)
            raise PersistenceFailureError(f"Failed to load {doc_number}: {e}", cause=e)
        if found is None:
            raise DocumentNotFoundError(doc_number)
        return found

    async def allowed_transitions(self, doc_number: str) -> FrozenSet[str]:
        doc, _ = await self._load(doc_number)
        return self.transition_table.allowed(doc.kind, doc.status)
