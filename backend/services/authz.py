"""
Procurement Workflow Hub - Authorization

Callers hand the engine an already-authenticated Actor. The engine only
re-checks role-level write permission through `has_role`.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class Actor:
    username: str
    roles: Tuple[str, ...] = field(default_factory=tuple)
    email: Optional[str] = None
    display_name: Optional[str] = None


class RoleAuthorizer:

    def has_role(self, actor: Optional[Actor], role: str) -> bool:
        if actor is None:
            return False
        return role in actor.roles


def system_actor(config) -> Actor:
    """Actor used by scheduled sweeps."""
    return Actor(
        username=config.system_actor,
        roles=(config.procurement_role,),
        display_name="Workflow Scheduler",
    )
