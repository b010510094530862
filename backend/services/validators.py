"""
Procurement Workflow Hub - Transition Validators

Two independent gates run before a status change is committed:

- RequiredFieldValidator: per-target-status field presence, including the
  conditional quote and adjudication requirements driven by amount and
  vendor approval.
- BusinessRuleValidator: threshold and date-bound rules that are not plain
  field presence checks.

The quote rules deliberately overlap; each layer rejects on its own.
Both validators are pure: the engine looks up vendor approval once and
passes the result in.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from services.document_model import Document, is_blank
from services.transition_table import DocKind, DocStatus
from services.workflow_config import WorkflowConfig
from services.workflow_errors import BusinessRuleViolation


# =============================================================================
# FIELD REQUIREMENTS
# =============================================================================

INTAKE_FIELDS: Tuple[str, ...] = ("requester", "description", "amount", "vendor", "deadline")

ORDER_FIELDS: Tuple[str, ...] = ("proof_of_purchase_link", "payment_date", "expected_landing_date")

QUOTE_FIELDS: Tuple[str, ...] = ("quotes_link", "quotes_date")

ADJUDICATION_FIELDS: Tuple[str, ...] = ("adjudication_notes", "adjudication_date")

# Format: {kind: {target_status: required fields}}
STATUS_REQUIREMENTS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    DocKind.PR.value: {
        DocStatus.IN_QUEUE.value: INTAKE_FIELDS,
        DocStatus.PR_READY.value: ("approver_ref",),
        DocStatus.ORDERED.value: ORDER_FIELDS,
        DocStatus.COMPLETED.value: ("landed_date",),
    },
    DocKind.PO.value: {
        DocStatus.IN_QUEUE.value: INTAKE_FIELDS,
        DocStatus.PO_APPROVED.value: ("approver_ref", "po_approved_date"),
        DocStatus.PO_ORDERED.value: ORDER_FIELDS,
        DocStatus.COMPLETED.value: ("landed_date",),
    },
}

# Main path per kind, in order. Used to decide which stages a document has reached.
MAIN_PATH: Dict[str, Tuple[str, ...]] = {
    DocKind.PR.value: (
        DocStatus.SUBMITTED.value,
        DocStatus.IN_QUEUE.value,
        DocStatus.PR_READY.value,
        DocStatus.ORDERED.value,
        DocStatus.COMPLETED.value,
    ),
    DocKind.PO.value: (
        DocStatus.SUBMITTED.value,
        DocStatus.IN_QUEUE.value,
        DocStatus.PO_APPROVED.value,
        DocStatus.PO_ORDERED.value,
        DocStatus.COMPLETED.value,
    ),
}

# First stage from which quote/adjudication evidence is required
APPROVAL_STAGE: Dict[str, str] = {
    DocKind.PR.value: DocStatus.PR_READY.value,
    DocKind.PO.value: DocStatus.PO_APPROVED.value,
}


def quotes_required(amount: Optional[Decimal], vendor_approved: bool, config: WorkflowConfig) -> bool:
    """Quotes are needed above the quote threshold for unapproved vendors, and always above adjudication."""
    if amount is None:
        return False
    if amount > config.adjudication_threshold:
        return True
    return amount > config.quotes_threshold and not vendor_approved


def adjudication_required(amount: Optional[Decimal], config: WorkflowConfig) -> bool:
    return amount is not None and amount > config.adjudication_threshold


def is_gated_stage(kind: str, status: str) -> bool:
    """True when status is at or past the approval stage on the kind's main path."""
    path = MAIN_PATH.get(kind, ())
    approval = APPROVAL_STAGE.get(kind)
    if status not in path or approval not in path:
        return False
    return path.index(status) >= path.index(approval)


def conditional_fields(doc: Document, vendor_approved: bool, config: WorkflowConfig) -> List[str]:
    required = []
    if quotes_required(doc.amount, vendor_approved, config):
        required.extend(QUOTE_FIELDS)
    if adjudication_required(doc.amount, config):
        required.extend(ADJUDICATION_FIELDS)
    return required


class RequiredFieldValidator:
    """Checks that the fields a target status depends on are populated."""

    def __init__(self, config: WorkflowConfig):
        self.config = config

    def required_fields(self, doc: Document, target_status: str, vendor_approved: bool) -> List[str]:
        required = list(STATUS_REQUIREMENTS.get(doc.kind, {}).get(target_status, ()))
        if is_gated_stage(doc.kind, target_status):
            for name in conditional_fields(doc, vendor_approved, self.config):
                if name not in required:
                    required.append(name)
        return required

    def validate(self, doc: Document, target_status: str, vendor_approved: bool) -> List[str]:
        """
        Return every missing field name for the target status.

        An empty list means validation passed.
        """
        return [
            name for name in self.required_fields(doc, target_status, vendor_approved)
            if is_blank(doc.get(name))
        ]


class BusinessRuleValidator:
    """Amount-threshold and date-bound rules gating specific transitions."""

    def __init__(self, config: WorkflowConfig):
        self.config = config

    def validate(
        self,
        doc: Document,
        target_status: str,
        vendor_approved: bool,
        today: Optional[date] = None
    ) -> Optional[BusinessRuleViolation]:
        """Return the first violated rule, or None."""
        today = today or date.today()

        if target_status == DocStatus.PR_READY.value:
            return self._check_quotes(doc, vendor_approved)

        if target_status in (DocStatus.ORDERED.value, DocStatus.PO_ORDERED.value):
            return self._check_landing_date(doc, today)

        return None

    def _check_quotes(self, doc: Document, vendor_approved: bool) -> Optional[BusinessRuleViolation]:
        amount = doc.amount
        if amount is None:
            return None

        if amount > self.config.adjudication_threshold:
            if is_blank(doc.quotes_link) or is_blank(doc.adjudication_notes):
                return BusinessRuleViolation(
                    "adjudication_required",
                    f"Amount {amount} {doc.currency} exceeds {self.config.adjudication_threshold}: "
                    f"quotes and adjudication notes are required"
                )
            return None

        if amount > self.config.quotes_threshold and not vendor_approved and is_blank(doc.quotes_link):
            return BusinessRuleViolation(
                "quotes_required",
                f"Amount {amount} {doc.currency} exceeds {self.config.quotes_threshold} "
                f"and vendor '{doc.vendor}' is not pre-approved: quotes are required"
            )
        return None

    def _check_landing_date(self, doc: Document, today: date) -> Optional[BusinessRuleViolation]:
        landing = doc.expected_landing_date
        if landing is None:
            return BusinessRuleViolation(
                "landing_date_required",
                "Expected landing date is required before ordering"
            )

        latest = today + relativedelta(months=self.config.max_landing_months)
        if landing > latest:
            return BusinessRuleViolation(
                "landing_date_too_far",
                f"Expected landing date {landing.isoformat()} is more than "
                f"{self.config.max_landing_months} months ahead (latest allowed {latest.isoformat()})"
            )
        return None
