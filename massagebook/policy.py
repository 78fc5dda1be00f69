"""Role and ownership decisions.

Every function here is pure: callers look up the resource, work out whether
the caller owns it, and ask for a decision. Turning a decision into an HTTP
failure is the caller's job.
"""
from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    STAFF = "staff"

    @classmethod
    def parse(cls, value: str) -> "Role":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"unknown role: {value!r}") from None


class Decision(Enum):
    ALLOW = "allow"
    DENY = "deny"
    NO_OWNER = "no_owner"


SHOP_POLICY_ADMIN = "admin"
SHOP_POLICY_AUTHENTICATED = "authenticated"


def decide_mutation(role: Role, is_owner: bool, has_owner: bool = True) -> Decision:
    """Decide whether a caller may update or delete an owned resource."""
    if role is Role.ADMIN:
        return Decision.ALLOW
    if not has_owner:
        return Decision.NO_OWNER
    if is_owner:
        return Decision.ALLOW
    return Decision.DENY


def can_view_all_appointments(role: Role) -> bool:
    return role in (Role.ADMIN, Role.STAFF)


def can_view_appointment(role: Role, is_owner: bool) -> bool:
    return is_owner or can_view_all_appointments(role)


def decide_shop_creation(role: Role, policy: str) -> Decision:
    """Shop creation is either admin-only or open to any signed-in user."""
    if policy == SHOP_POLICY_AUTHENTICATED:
        return Decision.ALLOW
    if policy != SHOP_POLICY_ADMIN:
        raise ValueError(f"unknown shop creation policy: {policy!r}")
    return Decision.ALLOW if role is Role.ADMIN else Decision.DENY
