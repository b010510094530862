"""
Procurement Workflow Hub - Document Model

Typed representation of a PR/PO record. The backing store keeps one flat row
per document with named columns; Document.from_row / to_row convert between
the two. Columns the model does not know about (line-item blobs, intake
metadata) are carried through untouched in `extra`.
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from dateutil import parser as date_parser


DATE_FIELDS = frozenset({
    "deadline",
    "po_approved_date",
    "payment_date",
    "ordered_date",
    "expected_landing_date",
    "landed_date",
    "customs_submission_date",
    "quotes_date",
    "adjudication_date",
})

DATETIME_FIELDS = frozenset({
    "submitted_at",
    "last_modified",
})

FLAG_FIELDS = frozenset({
    "urgent",
    "customs_required",
    "shipped",
    "customs_cleared",
    "goods_landed",
})

INT_FIELDS = frozenset({
    "days_open",
    "completion_pct",
    "queue_position",
})

# Columns every status transition writes. queue_position is written only when
# leaving In Queue; the queue recompute owns it otherwise.
TRANSITION_COLUMNS = (
    "status",
    "notes",
    "last_modified",
    "last_modified_by",
)


@dataclass
class Document:
    """A purchase requisition or purchase order record."""
    number: str
    kind: str
    status: str

    amount: Optional[Decimal] = None
    currency: str = "USD"
    vendor: Optional[str] = None
    approver_ref: Optional[str] = None
    requester: Optional[str] = None
    description: Optional[str] = None

    # Dates
    submitted_at: Optional[datetime] = None
    deadline: Optional[date] = None
    po_approved_date: Optional[date] = None
    payment_date: Optional[date] = None
    ordered_date: Optional[date] = None
    expected_landing_date: Optional[date] = None
    landed_date: Optional[date] = None
    customs_submission_date: Optional[date] = None
    quotes_date: Optional[date] = None
    adjudication_date: Optional[date] = None

    # Y/N flags; None means the flag has not been set yet
    urgent: Optional[bool] = None
    customs_required: Optional[bool] = None
    shipped: Optional[bool] = None
    customs_cleared: Optional[bool] = None
    goods_landed: Optional[bool] = None

    # Free text and links
    notes: Optional[str] = None
    proof_of_purchase_link: Optional[str] = None
    quotes_link: Optional[str] = None
    adjudication_notes: Optional[str] = None

    linked_pr_number: Optional[str] = None
    linked_po_number: Optional[str] = None

    # Tracking (derived, written by the workflow only)
    days_open: Optional[int] = None
    completion_pct: Optional[int] = None
    queue_position: Optional[int] = None

    last_modified: Optional[datetime] = None
    last_modified_by: Optional[str] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def column_names(cls) -> list:
        return [f.name for f in fields(cls) if f.name != "extra"]

    def get(self, name: str) -> Any:
        """Read a column by name."""
        if name in self.extra:
            return self.extra[name]
        return getattr(self, name, None)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Document":
        known = set(cls.column_names())
        values = {}
        extra = {}
        for key, raw in row.items():
            if key == "_id":
                continue
            if key not in known:
                extra[key] = raw
                continue
            values[key] = _decode(key, raw)
        return cls(extra=extra, **values)

    def to_row(self) -> Dict[str, Any]:
        row = dict(self.extra)
        for name in self.column_names():
            row[name] = _encode(name, getattr(self, name))
        return row


def _decode(name: str, raw: Any) -> Any:
    if raw is None or raw == "":
        return None
    if name == "amount":
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {raw!r}")
    if name in DATE_FIELDS:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        return date_parser.parse(str(raw)).date()
    if name in DATETIME_FIELDS:
        value = raw if isinstance(raw, datetime) else date_parser.parse(str(raw))
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value
    if name in FLAG_FIELDS:
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().upper() in ("Y", "YES", "TRUE", "1")
    if name in INT_FIELDS:
        return int(raw)
    return raw


def _encode(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name == "amount":
        return str(value)
    if name in DATE_FIELDS or name in DATETIME_FIELDS:
        return value.isoformat()
    if name in FLAG_FIELDS:
        return "Y" if value else "N"
    return value


def encode_columns(values: Dict[str, Any]) -> Dict[str, Any]:
    """Encode typed column values the way to_row stores them."""
    return {name: _encode(name, value) for name, value in values.items()}


def is_blank(value: Any) -> bool:
    """A field is missing when absent or, for strings, blank after trimming."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


# =============================================================================
# STATUS CHANGE RECORD
# =============================================================================

@dataclass(frozen=True)
class StatusChangeRecord:
    """Immutable audit entry for one accepted status change."""
    timestamp: datetime
    actor: str
    doc_number: str
    old_status: Optional[str]
    new_status: str
    notes: Optional[str] = None
    action: str = "Status Change"

    @property
    def detail(self) -> str:
        return f"{self.doc_number}: {self.old_status} -> {self.new_status}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
            "action": self.action,
            "doc_number": self.doc_number,
            "detail": self.detail,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "notes": self.notes,
        }
