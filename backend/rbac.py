# rbac.py — Role hierarchy, permission matrix and access decisions
# Two independent checks make up an access decision:
# - role hierarchy: "at least role X" (owner=3 > admin=2 > viewer=1)
# - permission set: every required permission held by the caller's role
# Organization scope is the last stage and lives in scoping.py, since it
# needs the target record.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from errors import Forbidden, Unauthorized
from models import UserRole

logger = logging.getLogger("taskscope.rbac")


class Permission(str, Enum):
    CREATE_TASK = "create:task"
    READ_TASK = "read:task"
    UPDATE_TASK = "update:task"
    DELETE_TASK = "delete:task"
    READ_AUDIT_LOG = "read:audit-log"


# ============================================================
# ROLE HIERARCHY & PERMISSIONS
# ============================================================

ROLE_HIERARCHY = {
    UserRole.OWNER: 3,
    UserRole.ADMIN: 2,
    UserRole.VIEWER: 1,
}

# Owner and admin hold the same permissions; only the hierarchy tells them apart
ROLE_PERMISSIONS = {
    UserRole.OWNER: frozenset({
        Permission.CREATE_TASK,
        Permission.READ_TASK,
        Permission.UPDATE_TASK,
        Permission.DELETE_TASK,
        Permission.READ_AUDIT_LOG,
    }),
    UserRole.ADMIN: frozenset({
        Permission.CREATE_TASK,
        Permission.READ_TASK,
        Permission.UPDATE_TASK,
        Permission.DELETE_TASK,
        Permission.READ_AUDIT_LOG,
    }),
    UserRole.VIEWER: frozenset({Permission.READ_TASK}),
}


def _as_role(role) -> Optional[UserRole]:
    try:
        return UserRole(role)
    except ValueError:
        return None


def get_role_permissions(role) -> FrozenSet[Permission]:
    """Permission set for a role; unknown roles hold nothing"""
    return ROLE_PERMISSIONS.get(_as_role(role), frozenset())


def get_role_level(role) -> int:
    return ROLE_HIERARCHY.get(_as_role(role), 0)


def permission_names(role) -> List[str]:
    return sorted(p.value for p in get_role_permissions(role))


def authorize(role, required_permissions: Iterable[Permission]) -> bool:
    """True iff the role holds every required permission. Nothing required means allow."""
    return set(required_permissions).issubset(get_role_permissions(role))


def authorize_role(role, acceptable_roles: Iterable[UserRole]) -> bool:
    """True iff the role's level reaches the highest level among acceptable_roles"""
    levels = [get_role_level(r) for r in acceptable_roles]
    if not levels:
        return True
    return get_role_level(role) >= max(levels)


# ============================================================
# PER-OPERATION REQUIREMENTS
# ============================================================

@dataclass(frozen=True)
class AccessRequirement:
    roles: FrozenSet[UserRole] = frozenset()
    permissions: FrozenSet[Permission] = frozenset()


OPERATION_REQUIREMENTS = {
    "create": AccessRequirement(permissions=frozenset({Permission.CREATE_TASK})),
    "list": AccessRequirement(permissions=frozenset({Permission.READ_TASK})),
    "read": AccessRequirement(permissions=frozenset({Permission.READ_TASK})),
    "update": AccessRequirement(permissions=frozenset({Permission.UPDATE_TASK})),
    "delete": AccessRequirement(permissions=frozenset({Permission.DELETE_TASK})),
    "audit_log": AccessRequirement(
        roles=frozenset({UserRole.ADMIN}),
        permissions=frozenset({Permission.READ_AUDIT_LOG}),
    ),
}


def check_access(user, requirement: AccessRequirement) -> None:
    """Run identity -> role -> permission checks, raising at the first failure.

    ``user`` is anything with ``id`` and ``role`` attributes (normally
    ``auth.CurrentUser``); ``None`` means the caller is unauthenticated.
    """
    if user is None:
        raise Unauthorized("Authentication required")

    if not authorize_role(user.role, requirement.roles):
        logger.warning(f"Role check failed for user {user.id} (role={user.role})")
        raise Forbidden("Insufficient role level")

    if not authorize(user.role, requirement.permissions):
        missing = sorted(p.value for p in requirement.permissions - get_role_permissions(user.role))
        logger.warning(f"Permission check failed for user {user.id}: missing {missing}")
        raise Forbidden(f"Missing required permission: {', '.join(missing)}")


def check_operation(user, operation: str) -> None:
    check_access(user, OPERATION_REQUIREMENTS[operation])
