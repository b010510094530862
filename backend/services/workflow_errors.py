"""
Procurement Workflow Hub - Workflow Errors

Typed failures raised inside the workflow engine. Every error carries an
ErrorKind so callers can render a precise message instead of a generic one.
"""

from enum import Enum
from typing import Dict, Any, List, Optional, Iterable


class ErrorKind(str, Enum):
    """Failure categories returned to callers of request_transition."""
    UNAUTHORIZED = "Unauthorized"
    NOT_FOUND = "NotFound"
    LOCK_TIMEOUT = "LockTimeout"
    INVALID_TRANSITION = "InvalidTransition"
    MISSING_FIELDS = "MissingFields"
    BUSINESS_RULE_VIOLATION = "BusinessRuleViolation"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    # Logged only, never returned as the operation's failure
    NON_CRITICAL_SIDE_EFFECT_FAILURE = "NonCriticalSideEffectFailure"


class WorkflowError(Exception):
    """Base class for all workflow failures."""

    error_kind: ErrorKind = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": False,
            "errorKind": self.error_kind.value,
            "message": self.message,
        }
        result.update(self.details())
        return result


class UnauthorizedError(WorkflowError):
    error_kind = ErrorKind.UNAUTHORIZED


class DocumentNotFoundError(WorkflowError):
    error_kind = ErrorKind.NOT_FOUND

    def __init__(self, doc_number: str):
        super().__init__(f"Document '{doc_number}' not found")
        self.doc_number = doc_number


class LockTimeoutError(WorkflowError):
    error_kind = ErrorKind.LOCK_TIMEOUT

    def __init__(self, key: str, timeout_seconds: float):
        super().__init__(
            f"Timed out after {timeout_seconds:g}s waiting for the workflow lock on '{key}'. "
            f"Please retry."
        )
        self.key = key
        self.timeout_seconds = timeout_seconds


class InvalidTransitionError(WorkflowError):
    error_kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, kind: str, current_status: str, new_status: str, allowed: Iterable[str]):
        self.allowed = sorted(allowed)
        if not self.allowed and current_status is not None:
            message = (
                f"Cannot move {kind} from '{current_status}' to '{new_status}': "
                f"'{current_status}' has no further transitions"
            )
        else:
            message = (
                f"Cannot move {kind} from '{current_status}' to '{new_status}'. "
                f"Allowed: {self.allowed}"
            )
        super().__init__(message)
        self.kind = kind
        self.current_status = current_status
        self.new_status = new_status

    def details(self) -> Dict[str, Any]:
        return {"allowed": self.allowed}


class MissingFieldsError(WorkflowError):
    error_kind = ErrorKind.MISSING_FIELDS

    def __init__(self, target_status: str, missing_fields: List[str]):
        super().__init__(
            f"Cannot move to '{target_status}'; missing required fields: {', '.join(missing_fields)}"
        )
        self.target_status = target_status
        self.missing_fields = list(missing_fields)

    def details(self) -> Dict[str, Any]:
        return {"missingFields": self.missing_fields}


class BusinessRuleViolation(WorkflowError):
    """A threshold or date-bound rule that blocks a transition."""
    error_kind = ErrorKind.BUSINESS_RULE_VIOLATION

    def __init__(self, rule: str, message: str):
        super().__init__(message)
        self.rule = rule

    def details(self) -> Dict[str, Any]:
        return {"rule": self.rule}


class PersistenceFailureError(WorkflowError):
    error_kind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
