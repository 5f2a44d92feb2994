# routers/tasks.py — Task endpoints and the scoped audit-log view
# Thin HTTP wrapper: authorization decisions live in task_service.
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, CurrentUser
from database import get_db_session
from schemas import (
    TaskCreate, TaskUpdate, TaskOut, AuditLogOut, task_to_out, audit_log_to_out,
)
from task_service import TaskService

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
    data: TaskCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a task in the caller's organization"""
    task = await TaskService.create(data, user, db)
    return task_to_out(task)


@router.get("", response_model=List[TaskOut])
async def list_tasks(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List tasks visible to the caller, newest first"""
    tasks = await TaskService.find_all(user, db)
    return [task_to_out(t) for t in tasks]


# Declared before /{task_id} so "audit-log" is not taken for a task id
@router.get("/audit-log", response_model=List[AuditLogOut])
async def get_audit_logs(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Most recent audit entries within the caller's organization scope"""
    logs = await TaskService.get_audit_logs(user, db)
    return [audit_log_to_out(entry) for entry in logs]


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    task_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    task = await TaskService.find_one(task_id, user, db)
    return task_to_out(task)


@router.put("/{task_id}", response_model=TaskOut)
@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Partially update a task; only fields present in the body change"""
    task = await TaskService.update(task_id, data, user, db)
    return task_to_out(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await TaskService.remove(task_id, user, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
