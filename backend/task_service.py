# task_service.py — Task authorization core
#
# Every operation takes the caller explicitly and runs the same ordered
# pipeline before touching data:
#   identity -> role -> permission   (rbac.check_operation)
#   -> organization scope            (scoping)
# Mutations and audit-log reads append one audit entry after the primary
# change has committed.

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from audit import AuditService
from errors import Forbidden, InvalidReference, NotFound
from models import AuditAction, AuditLog, Task, TaskStatus, User, UserRole
from rbac import check_operation
from schemas import TaskCreate, TaskUpdate
from scoping import can_access_task, can_modify_task, get_user_organization, read_scope

logger = logging.getLogger("taskscope.tasks")

AUDIT_LOG_LIMIT = 100
NON_NULLABLE_FIELDS = {"title", "description", "status", "category"}


async def _ensure_user_exists(user_id: str, db: AsyncSession) -> None:
    if await db.get(User, user_id) is None:
        raise InvalidReference("Assigned user does not exist")


class TaskService:

    @staticmethod
    async def create(data: TaskCreate, user, db: AsyncSession) -> Task:
        check_operation(user, "create")

        org = await get_user_organization(user, db)
        if org is None:
            raise Forbidden("Organization not found")

        if data.assigned_to_id:
            await _ensure_user_exists(data.assigned_to_id, db)

        # Ownership always comes from the caller, never from the request
        task = Task(
            title=data.title,
            description=data.description,
            status=data.status or TaskStatus.TODO,
            category=data.category,
            organization_id=user.organization_id,
            created_by_id=user.id,
            assigned_to_id=data.assigned_to_id,
        )
        db.add(task)
        await db.commit()
        await db.refresh(task)

        await AuditService.log_action(
            db, user.id, AuditAction.CREATE_TASK, "task", task.id,
            {"title": task.title, "category": task.category.value},
        )
        return task

    @staticmethod
    async def find_all(user, db: AsyncSession) -> List[Task]:
        check_operation(user, "list")

        scope = await read_scope(user, db)
        if scope is None:
            return []

        stmt = (
            select(Task)
            .where(Task.organization_id.in_(scope))
            .order_by(Task.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def _get_accessible_task(task_id: str, user, db: AsyncSession) -> Task:
        task = await db.get(Task, task_id)
        if task is None:
            raise NotFound("Task not found")

        if not await can_access_task(task, user, db):
            logger.warning(f"User {user.id} denied access to task {task_id}")
            raise Forbidden("Access denied")
        return task

    @staticmethod
    async def find_one(task_id: str, user, db: AsyncSession) -> Task:
        check_operation(user, "read")
        return await TaskService._get_accessible_task(task_id, user, db)

    @staticmethod
    async def update(task_id: str, data: TaskUpdate, user, db: AsyncSession) -> Task:
        check_operation(user, "update")
        task = await TaskService._get_accessible_task(task_id, user, db)

        if not can_modify_task(task, user):
            logger.warning(f"User {user.id} denied update of task {task_id}")
            raise Forbidden("Cannot modify this task")

        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field not in NON_NULLABLE_FIELDS
        }
        if changes.get("assigned_to_id"):
            await _ensure_user_exists(changes["assigned_to_id"], db)

        for field, value in changes.items():
            setattr(task, field, value)
        await db.commit()
        await db.refresh(task)

        # Record only what was written, under the wire field names
        details = TaskUpdate(**changes).model_dump(mode="json", by_alias=True, exclude_unset=True)
        await AuditService.log_action(db, user.id, AuditAction.UPDATE_TASK, "task", task.id, details)
        return task

    @staticmethod
    async def remove(task_id: str, user, db: AsyncSession) -> None:
        check_operation(user, "delete")
        task = await TaskService._get_accessible_task(task_id, user, db)

        if not can_modify_task(task, user):
            logger.warning(f"User {user.id} denied delete of task {task_id}")
            raise Forbidden("Cannot delete this task")

        title = task.title
        await db.delete(task)
        await db.commit()

        await AuditService.log_action(db, user.id, AuditAction.DELETE_TASK, "task", task_id, {"title": title})

    @staticmethod
    async def get_audit_logs(user, db: AsyncSession) -> List[AuditLog]:
        check_operation(user, "audit_log")
        if UserRole(user.role) not in (UserRole.OWNER, UserRole.ADMIN):
            raise Forbidden("Only Owner/Admin can view audit logs")

        org = await get_user_organization(user, db)
        if org is None:
            return []

        org_ids = {org.id}
        if org.parent_id:
            org_ids.add(org.parent_id)

        user_result = await db.execute(select(User.id).where(User.organization_id.in_(org_ids)))
        scoped_user_ids = list(user_result.scalars().all())

        stmt = (
            select(AuditLog)
            .options(selectinload(AuditLog.user))
            .order_by(AuditLog.created_at.desc())
            .limit(AUDIT_LOG_LIMIT)
        )
        # An empty scope applies no actor filter at all (kept as-built)
        if scoped_user_ids:
            stmt = stmt.where(AuditLog.user_id.in_(scoped_user_ids))

        result = await db.execute(stmt)
        logs = list(result.scalars().all())

        await AuditService.log_action(
            db, user.id, AuditAction.READ_AUDIT_LOG, "audit_log", "all", {"returned": len(logs)},
        )
        return logs
