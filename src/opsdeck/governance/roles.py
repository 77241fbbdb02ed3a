"""Role hierarchy and the static role -> permission table.

Roles are strictly ordered; a role holds every permission of the roles
below it. Both checks are plain lookups with no state: has_role compares
positions in the hierarchy, can_perform_action is a containment test.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Organization membership roles, lowest to highest."""

    VIEWER = "viewer"
    MEMBER = "member"
    OPERATOR = "operator"
    ADMIN = "admin"
    OWNER = "owner"


ROLE_HIERARCHY: tuple[Role, ...] = (
    Role.VIEWER,
    Role.MEMBER,
    Role.OPERATOR,
    Role.ADMIN,
    Role.OWNER,
)

# Permissions introduced at each level; higher roles inherit the rows above.
_ROLE_GRANTS: dict[Role, frozenset[str]] = {
    Role.VIEWER: frozenset({"view_data", "view_logs"}),
    Role.MEMBER: frozenset({
        "run_playbook",
        "send_notification",
        "update_watchlist",
        "draft_outreach",
        "scan_pricing",
        "score_pitch",
    }),
    Role.OPERATOR: frozenset({
        "approve_discount",
        "update_price",
        "export_data",
        "small_trade",
        "run_backtest",
        "paper_trade",
    }),
    Role.ADMIN: frozenset({
        "modify_strategy",
        "modify_playbook",
        "large_trade",
        "manage_pricing_policy",
        "modify_risk_limits",
        "enable_live_trading",
        "add_api_keys",
    }),
    Role.OWNER: frozenset({"manage_users", "disable_circuit_breakers"}),
}


def _parse_role(role: str | Role) -> Role | None:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def role_level(role: str | Role) -> int:
    """Position of a role in the hierarchy, -1 for unknown roles."""
    parsed = _parse_role(role)
    if parsed is None:
        return -1
    return ROLE_HIERARCHY.index(parsed)


def has_role(user_role: str | Role, required_role: str | Role) -> bool:
    """True if ``user_role`` is at or above ``required_role``.

    Unknown roles on either side never match.
    """
    user_level = role_level(user_role)
    required_level = role_level(required_role)
    if user_level < 0 or required_level < 0:
        return False
    return user_level >= required_level


def get_permissions(role: str | Role) -> frozenset[str]:
    """All permissions held by a role, inherited ones included."""
    level = role_level(role)
    if level < 0:
        return frozenset()
    granted: set[str] = set()
    for r in ROLE_HIERARCHY[: level + 1]:
        granted |= _ROLE_GRANTS[r]
    return frozenset(granted)


def can_perform_action(role: str | Role, action: str) -> bool:
    return action in get_permissions(role)


def minimum_role_for(action: str) -> Role | None:
    """Lowest role that can perform ``action``, or None if no role can."""
    for r in ROLE_HIERARCHY:
        if action in _ROLE_GRANTS[r]:
            return r
    return None
