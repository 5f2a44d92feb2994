# schemas.py — Request/response models for tasks and audit entries
# Wire format is camelCase (organizationId, createdById, ...); request
# bodies also accept the snake_case field names. Unknown keys, including
# client-supplied organizationId/createdById, are ignored.
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models import TaskStatus, TaskCategory


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    status: Optional[TaskStatus] = None
    category: TaskCategory
    assigned_to_id: Optional[str] = None


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, min_length=1)
    status: Optional[TaskStatus] = None
    category: Optional[TaskCategory] = None
    assigned_to_id: Optional[str] = None


class TaskOut(CamelModel):
    id: str
    title: str
    description: str
    status: TaskStatus
    category: TaskCategory
    organization_id: str
    created_by_id: str
    assigned_to_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuditActorOut(CamelModel):
    id: str
    email: str
    role: str
    organization_id: str


class AuditLogOut(CamelModel):
    id: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    user_id: str
    details: Optional[str] = None
    created_at: Optional[datetime] = None
    user: Optional[AuditActorOut] = None


def task_to_out(task) -> TaskOut:
    return TaskOut(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        category=task.category,
        organization_id=task.organization_id,
        created_by_id=task.created_by_id,
        assigned_to_id=task.assigned_to_id,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def audit_log_to_out(entry) -> AuditLogOut:
    actor = None
    if entry.user is not None:
        actor = AuditActorOut(
            id=entry.user.id,
            email=entry.user.email,
            role=entry.user.role.value if hasattr(entry.user.role, "value") else str(entry.user.role),
            organization_id=entry.user.organization_id,
        )
    return AuditLogOut(
        id=entry.id,
        action=entry.action,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        user_id=entry.user_id,
        details=entry.details,
        created_at=entry.created_at,
        user=actor,
    )
