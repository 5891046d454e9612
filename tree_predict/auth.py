"""Authorization gate: decides whether a caller may manage predictions for a tree."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Protocol

ADMIN_SYSTEM_ROLES = frozenset({"Developer", "SuperAdmin", "Admin"})


@dataclass(frozen=True)
class UserContext:
    user_id: str
    system_role: Optional[str] = None
    tree_role: Optional[str] = None
    tree_id: Optional[str] = None


class AuthorizationGate(Protocol):
    def has_admin_access(self, user: UserContext, tree_id: Optional[str] = None) -> bool: ...


@dataclass
class RoleAuthorizationGate:
    """
    Grants access to admin system roles, and optionally to users holding one
    of `tree_admin_roles` on the tree being accessed.
    """
    system_roles: FrozenSet[str] = ADMIN_SYSTEM_ROLES
    tree_admin_roles: FrozenSet[str] = field(default_factory=frozenset)

    def has_admin_access(self, user: UserContext, tree_id: Optional[str] = None) -> bool:
        if user is None:
            return False
        if user.system_role in self.system_roles:
            return True
        if self.tree_admin_roles and user.tree_role in self.tree_admin_roles:
            return tree_id is None or user.tree_id == tree_id
        return False
