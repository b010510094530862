"""
Procurement Workflow Hub - Workflow Configuration

Thresholds, distribution lists, lock behavior and sweep schedules for the
workflow engine. Values come from environment variables (see from_env) and
are frozen into a WorkflowConfig that is passed to the engine and its
collaborators at construction time, so tests can run with alternate tables
and thresholds.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Tuple

from services.transition_table import TransitionTable


class LockScope:
    GLOBAL = "global"       # one lock for all documents
    DOCUMENT = "document"   # one lock per document number


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


def _env_list(name: str, default: str) -> Tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class WorkflowConfig:
    transition_table: TransitionTable = field(default_factory=TransitionTable)

    # Role an actor needs to move documents
    procurement_role: str = "procurement"
    system_actor: str = "system"

    # Notifications always go to this list plus requester and approver
    procurement_distribution: Tuple[str, ...] = ("procurement@example.com",)

    # Lock
    lock_timeout_seconds: float = 30.0
    lock_scope: str = LockScope.DOCUMENT

    # Amount thresholds
    quotes_threshold: Decimal = Decimal("5000")
    adjudication_threshold: Decimal = Decimal("50000")

    # Expected landing may be at most this many calendar months ahead
    max_landing_months: int = 6

    # Auto-cancellation (business days past expected landing)
    cancellation_warning_days: int = 30
    auto_cancel_days: int = 40

    # Reminder escalation (days; fractional intervals are kept exact)
    reminder_initial_days: float = 5.0
    reminder_floor_days: float = 1.0

    # Background sweeps
    sweeps_enabled: bool = True
    sweep_interval_minutes: int = 60

    @classmethod
    def from_env(cls) -> "WorkflowConfig":
        """Build a config from environment variables, falling back to defaults."""
        scope = os.environ.get("TRANSITION_LOCK_SCOPE", LockScope.DOCUMENT).lower()
        if scope not in (LockScope.GLOBAL, LockScope.DOCUMENT):
            raise ValueError(f"Invalid TRANSITION_LOCK_SCOPE: {scope}")

        return cls(
            procurement_role=os.environ.get("PROCUREMENT_ROLE", "procurement"),
            procurement_distribution=_env_list(
                "PROCUREMENT_DISTRIBUTION", "procurement@example.com"
            ),
            lock_timeout_seconds=float(os.environ.get("TRANSITION_LOCK_TIMEOUT_SECONDS", "30")),
            lock_scope=scope,
            quotes_threshold=Decimal(os.environ.get("QUOTES_THRESHOLD", "5000")),
            adjudication_threshold=Decimal(os.environ.get("ADJUDICATION_THRESHOLD", "50000")),
            max_landing_months=int(os.environ.get("MAX_LANDING_MONTHS", "6")),
            cancellation_warning_days=int(os.environ.get("CANCELLATION_WARNING_DAYS", "30")),
            auto_cancel_days=int(os.environ.get("AUTO_CANCEL_DAYS", "40")),
            reminder_initial_days=float(os.environ.get("REMINDER_INITIAL_DAYS", "5")),
            reminder_floor_days=float(os.environ.get("REMINDER_FLOOR_DAYS", "1")),
            sweeps_enabled=_env_bool("SWEEPS_ENABLED", "true"),
            sweep_interval_minutes=int(os.environ.get("SWEEP_INTERVAL_MINUTES", "60")),
        )
