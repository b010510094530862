"""
Procurement Workflow Hub - Workflows Router

Status transitions, transition history, the In Queue listing and manual
triggers for the scheduled sweeps.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from typing import Optional
from pydantic import BaseModel
import logging

from routes.auth import get_current_actor
from services.authz import Actor
from services.transition_table import DocKind, DocStatus
from services.workflow_errors import ErrorKind, WorkflowError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["workflows"])

# Workflow engine and sweeps - set by main app
workflow_engine = None
audit_log = None
auto_cancellation_sweep = None
reminder_sweep = None


def set_dependencies(engine, audit, auto_cancel=None, reminders=None):
    global workflow_engine, audit_log, auto_cancellation_sweep, reminder_sweep
    workflow_engine = engine
    audit_log = audit
    auto_cancellation_sweep = auto_cancel
    reminder_sweep = reminders


ERROR_STATUS_CODES = {
    ErrorKind.UNAUTHORIZED.value: 403,
    ErrorKind.NOT_FOUND.value: 404,
    ErrorKind.LOCK_TIMEOUT.value: 423,
    ErrorKind.INVALID_TRANSITION.value: 409,
    ErrorKind.MISSING_FIELDS.value: 422,
    ErrorKind.BUSINESS_RULE_VIOLATION.value: 422,
    ErrorKind.PERSISTENCE_FAILURE.value: 500,
}


# ==================== MODELS ====================

class TransitionRequest(BaseModel):
    new_status: str
    notes: Optional[str] = None


# ==================== TRANSITIONS ====================

@router.post("/{doc_number}/transition")
async def transition_document(
    doc_number: str,
    request: TransitionRequest,
    actor: Actor = Depends(get_current_actor)
):
    """
    Move a PR/PO to a new status.

    Returns {success, status, timestamp} or {success: false, errorKind, message}.
    """
    result = await workflow_engine.request_transition(
        doc_number, request.new_status, request.notes, actor
    )
    if result.success:
        return result.to_dict()
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(result.error_kind, 400),
        content=result.to_dict()
    )


@router.get("/{doc_number}/allowed")
async def get_allowed_transitions(doc_number: str):
    """Statuses the document may move to next."""
    try:
        allowed = await workflow_engine.allowed_transitions(doc_number)
    except WorkflowError as e:
        raise HTTPException(status_code=ERROR_STATUS_CODES.get(e.error_kind.value, 400), detail=e.message)
    return {"doc_number": doc_number, "allowed": sorted(allowed)}


@router.get("/{doc_number}/history")
async def get_workflow_history(doc_number: str, limit: int = Query(200)):
    """Audit trail of status changes for a document."""
    history = await audit_log.find_by_document(doc_number, limit=limit)
    return {"doc_number": doc_number, "history": history}


# ==================== QUEUE ====================

@router.get("/queue")
async def get_queue(kind: DocKind = Query(DocKind.PR)):
    """In Queue documents of one kind, in queue order."""
    docs = await workflow_engine.store.find_by_status(kind.value, [DocStatus.IN_QUEUE.value])
    docs.sort(key=lambda d: (d.queue_position is None, d.queue_position or 0))
    return {
        "kind": kind.value,
        "total": len(docs),
        "documents": [
            {
                "number": d.number,
                "queue_position": d.queue_position,
                "urgent": bool(d.urgent),
                "vendor": d.vendor,
                "amount": str(d.amount) if d.amount is not None else None,
                "submitted_at": d.submitted_at.isoformat() if d.submitted_at else None,
            }
            for d in docs
        ]
    }


# ==================== SWEEPS ====================

def _require_procurement(actor: Actor):
    role = workflow_engine.config.procurement_role
    if not workflow_engine.authz.has_role(actor, role):
        raise HTTPException(status_code=403, detail=f"'{role}' role required")


@router.post("/sweeps/auto-cancel")
async def run_auto_cancellation(actor: Actor = Depends(get_current_actor)):
    """Run the auto-cancellation sweep now."""
    _require_procurement(actor)
    if auto_cancellation_sweep is None:
        raise HTTPException(status_code=503, detail="Auto-cancellation sweep not configured")
    logger.info("Auto-cancellation sweep triggered manually by %s", actor.username)
    result = await auto_cancellation_sweep.run()
    return result.to_dict()


@router.post("/sweeps/reminders")
async def run_reminders(actor: Actor = Depends(get_current_actor)):
    """Run the reminder escalation sweep now."""
    _require_procurement(actor)
    if reminder_sweep is None:
        raise HTTPException(status_code=503, detail="Reminder sweep not configured")
    logger.info("Reminder sweep triggered manually by %s", actor.username)
    result = await reminder_sweep.run()
    return result.to_dict()
