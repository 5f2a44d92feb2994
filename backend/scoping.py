# scoping.py — Organization scope resolution
#
# Only one hop of the organization tree is ever consulted: the caller's
# direct parent and, for single-task reads, direct children.
#
#   read_scope       viewer: own org
#                    owner/admin: own org + parent
#   can_access_task  own org for everyone; owner/admin also parent and
#                    direct children (wider than read_scope)
#   can_modify_task  owner/admin, own org only

from typing import Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from models import Organization, Task, UserRole


def _is_viewer(user) -> bool:
    return UserRole(user.role) == UserRole.VIEWER


async def get_user_organization(user, db: AsyncSession) -> Optional[Organization]:
    return await db.get(Organization, user.organization_id)


async def read_scope(user, db: AsyncSession) -> Optional[Set[str]]:
    """Organization ids the caller may list tasks from.

    Returns None when the caller's organization record does not exist.
    """
    org = await get_user_organization(user, db)
    if org is None:
        return None

    scope = {org.id}
    if not _is_viewer(user) and org.parent_id:
        scope.add(org.parent_id)
    return scope


async def can_access_task(task: Task, user, db: AsyncSession) -> bool:
    if task.organization_id == user.organization_id:
        return True

    user_org = await get_user_organization(user, db)
    if user_org is None:
        return False

    if _is_viewer(user):
        return False

    # Read-up into the parent organization
    if user_org.parent_id and task.organization_id == user_org.parent_id:
        return True

    # Read-down into a direct child organization
    task_org = await db.get(Organization, task.organization_id)
    if task_org is not None and task_org.parent_id == user.organization_id:
        return True

    return False


def can_modify_task(task: Task, user) -> bool:
    if _is_viewer(user):
        return False
    return task.organization_id == user.organization_id
