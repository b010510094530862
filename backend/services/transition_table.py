"""
Procurement Workflow Hub - Transition Tables

Static maps of allowed next statuses for purchase requisitions (PR) and
purchase orders (PO). The two vocabularies differ, so each kind has its own
table. Lookups are pure: an unknown status yields an empty set and the
transition is then rejected.
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Iterable


# =============================================================================
# DOCUMENT KINDS & STATUSES
# =============================================================================

class DocKind(str, Enum):
    """Document kinds governed by the workflow."""
    PR = "PR"   # Purchase requisition
    PO = "PO"   # Purchase order


class DocStatus(str, Enum):
    """
    Status values. Shared names across kinds where the meaning matches;
    not every status applies to every kind.
    """
    # Intake (both kinds)
    SUBMITTED = "Submitted"
    IN_QUEUE = "In Queue"
    REVISION_REQUIRED = "Revision Required"

    # PR approval and ordering
    PR_READY = "PR Ready"
    ORDERED = "Ordered"

    # PO approval and ordering
    PO_APPROVED = "PO Approved"
    PO_ORDERED = "PO Ordered"

    # Terminal (both kinds)
    COMPLETED = "Completed"
    REJECTED = "Rejected"
    CANCELED = "Canceled"


TERMINAL_STATUSES: FrozenSet[str] = frozenset({
    DocStatus.COMPLETED.value,
    DocStatus.REJECTED.value,
    DocStatus.CANCELED.value,
})

# Statuses that mean goods have been ordered and delivery is being tracked
ORDERED_STATUSES: FrozenSet[str] = frozenset({
    DocStatus.ORDERED.value,
    DocStatus.PO_ORDERED.value,
})


def _with_cancellation(table: Dict[str, Iterable[str]]) -> Mapping[str, FrozenSet[str]]:
    """Freeze a table, letting every non-terminal status move to Canceled."""
    frozen = {}
    for status, targets in table.items():
        allowed = set(targets)
        if status not in TERMINAL_STATUSES:
            allowed.add(DocStatus.CANCELED.value)
        frozen[status] = frozenset(allowed)
    return MappingProxyType(frozen)


# Format: {current_status: {allowed next statuses}}
PR_TRANSITIONS = _with_cancellation({
    DocStatus.SUBMITTED.value: [
        DocStatus.IN_QUEUE.value,
        DocStatus.REVISION_REQUIRED.value,
        DocStatus.REJECTED.value,
    ],
    DocStatus.IN_QUEUE.value: [
        DocStatus.PR_READY.value,
        DocStatus.REVISION_REQUIRED.value,
        DocStatus.REJECTED.value,
    ],
    DocStatus.REVISION_REQUIRED.value: [
        DocStatus.SUBMITTED.value,
        DocStatus.IN_QUEUE.value,
    ],
    DocStatus.PR_READY.value: [
        DocStatus.ORDERED.value,
    ],
    DocStatus.ORDERED.value: [
        DocStatus.COMPLETED.value,
    ],
    DocStatus.COMPLETED.value: [],
    DocStatus.REJECTED.value: [],
    DocStatus.CANCELED.value: [],
})

PO_TRANSITIONS = _with_cancellation({
    DocStatus.SUBMITTED.value: [
        DocStatus.IN_QUEUE.value,
        DocStatus.REVISION_REQUIRED.value,
        DocStatus.REJECTED.value,
    ],
    DocStatus.IN_QUEUE.value: [
        DocStatus.PO_APPROVED.value,
        DocStatus.REVISION_REQUIRED.value,
        DocStatus.REJECTED.value,
    ],
    DocStatus.REVISION_REQUIRED.value: [
        DocStatus.SUBMITTED.value,
        DocStatus.IN_QUEUE.value,
    ],
    DocStatus.PO_APPROVED.value: [
        DocStatus.PO_ORDERED.value,
    ],
    DocStatus.PO_ORDERED.value: [
        DocStatus.COMPLETED.value,
    ],
    DocStatus.COMPLETED.value: [],
    DocStatus.REJECTED.value: [],
    DocStatus.CANCELED.value: [],
})


class TransitionTable:
    """Allowed-next-status lookup, one table per document kind."""

    def __init__(self, tables: Mapping[str, Mapping[str, FrozenSet[str]]] = None):
        if tables is None:
            tables = {
                DocKind.PR.value: PR_TRANSITIONS,
                DocKind.PO.value: PO_TRANSITIONS,
            }
        self._tables = MappingProxyType({
            _key(kind): MappingProxyType({s: frozenset(t) for s, t in table.items()})
            for kind, table in tables.items()
        })

    def allowed(self, kind, current_status) -> FrozenSet[str]:
        """Next statuses allowed from current_status; empty for unknown input."""
        table = self._tables.get(_key(kind))
        if table is None:
            return frozenset()
        return table.get(_key(current_status), frozenset())

    def can_transition(self, kind, current_status, new_status) -> bool:
        return _key(new_status) in self.allowed(kind, current_status)

    def statuses(self, kind) -> FrozenSet[str]:
        """All statuses known for a kind (the table's key set)."""
        table = self._tables.get(_key(kind))
        return frozenset(table.keys()) if table is not None else frozenset()

    def kinds(self) -> FrozenSet[str]:
        return frozenset(self._tables.keys())


def _key(value) -> str:
    return value.value if isinstance(value, Enum) else value
