# tests/test_tasks.py — Task router tests
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from models import AuditLog
from tests.conftest import get_auth_headers


async def _create(client, user, **overrides):
    body = {"title": "T", "description": "D", "category": "work"}
    body.update(overrides)
    return await client.post("/api/tasks", json=body, headers=get_auth_headers(user))


@pytest.mark.asyncio
async def test_create_task(client: AsyncClient, owner_user, test_org, db_session):
    """Owner creates a task; ownership comes from the token, not the body"""
    resp = await _create(client, owner_user, organizationId="elsewhere", createdById="someone")
    assert resp.status_code == 201
    data = resp.json()
    assert data["title"] == "T"
    assert data["status"] == "todo"
    assert data["category"] == "work"
    assert data["organizationId"] == test_org.id
    assert data["createdById"] == owner_user.id
    assert data["assignedToId"] is None
    assert "createdAt" in data and "updatedAt" in data

    result = await db_session.execute(select(AuditLog).where(AuditLog.resource_id == data["id"]))
    entries = result.scalars().all()
    assert [e.action for e in entries] == ["CREATE_TASK"]


@pytest.mark.asyncio
async def test_create_task_validation(client: AsyncClient, owner_user):
    resp = await _create(client, owner_user, category="chores")
    assert resp.status_code == 422

    resp = await client.post(
        "/api/tasks", json={"title": "No category", "description": "D"},
        headers=get_auth_headers(owner_user),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_viewer_cannot_create(client: AsyncClient, viewer_user):
    resp = await _create(client, viewer_user)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient):
    resp = await client.get("/api/tasks")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_list_tasks(client: AsyncClient, owner_user, viewer_user):
    await _create(client, owner_user, title="Task 1")
    await _create(client, owner_user, title="Task 2")

    resp = await client.get("/api/tasks", headers=get_auth_headers(viewer_user))
    assert resp.status_code == 200
    data = resp.json()
    assert isinstance(data, list)
    assert [t["title"] for t in data] == ["Task 2", "Task 1"]


@pytest.mark.asyncio
async def test_get_task(client: AsyncClient, owner_user, viewer_user, other_admin):
    task_id = (await _create(client, owner_user)).json()["id"]

    resp = await client.get(f"/api/tasks/{task_id}", headers=get_auth_headers(viewer_user))
    assert resp.status_code == 200
    assert resp.json()["id"] == task_id

    resp = await client.get(f"/api/tasks/{task_id}", headers=get_auth_headers(other_admin))
    assert resp.status_code == 403

    resp = await client.get("/api/tasks/does-not-exist", headers=get_auth_headers(viewer_user))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_task(client: AsyncClient, owner_user, admin_user, viewer_user):
    task_id = (await _create(client, owner_user)).json()["id"]

    resp = await client.put(
        f"/api/tasks/{task_id}", json={"status": "in_progress"},
        headers=get_auth_headers(admin_user),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "in_progress"
    assert data["title"] == "T"

    resp = await client.patch(
        f"/api/tasks/{task_id}", json={"title": "Renamed"},
        headers=get_auth_headers(admin_user),
    )
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["status"] == "in_progress"

    resp = await client.put(
        f"/api/tasks/{task_id}", json={"status": "done"},
        headers=get_auth_headers(viewer_user),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_parent_admin_reads_down_but_cannot_write_down(client: AsyncClient, owner_user, parent_admin):
    task_id = (await _create(client, owner_user)).json()["id"]
    headers = get_auth_headers(parent_admin)

    resp = await client.get(f"/api/tasks/{task_id}", headers=headers)
    assert resp.status_code == 200

    listed = await client.get("/api/tasks", headers=headers)
    assert task_id not in {t["id"] for t in listed.json()}

    resp = await client.put(f"/api/tasks/{task_id}", json={"title": "X"}, headers=headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_task(client: AsyncClient, owner_user, admin_user, viewer_user, db_session):
    task_id = (await _create(client, owner_user)).json()["id"]

    resp = await client.delete(f"/api/tasks/{task_id}", headers=get_auth_headers(viewer_user))
    assert resp.status_code == 403

    resp = await client.delete(f"/api/tasks/{task_id}", headers=get_auth_headers(admin_user))
    assert resp.status_code == 204

    resp = await client.get(f"/api/tasks/{task_id}", headers=get_auth_headers(admin_user))
    assert resp.status_code == 404

    result = await db_session.execute(select(AuditLog.action).where(AuditLog.resource_id == task_id))
    assert sorted(result.scalars().all()) == ["CREATE_TASK", "DELETE_TASK"]


@pytest.mark.asyncio
async def test_audit_log_endpoint(client: AsyncClient, owner_user, admin_user, viewer_user):
    await _create(client, owner_user)

    resp = await client.get("/api/tasks/audit-log", headers=get_auth_headers(viewer_user))
    assert resp.status_code == 403

    resp = await client.get("/api/tasks/audit-log", headers=get_auth_headers(admin_user))
    assert resp.status_code == 200
    data = resp.json()
    assert len(data) == 1
    entry = data[0]
    assert entry["action"] == "CREATE_TASK"
    assert entry["resourceType"] == "task"
    assert entry["userId"] == owner_user.id
    assert entry["user"]["email"] == "owner@taskscope.io"
    assert "passwordHash" not in entry["user"]

    # The previous read is now part of the trail
    resp = await client.get("/api/tasks/audit-log", headers=get_auth_headers(owner_user))
    assert resp.json()[0]["action"] == "READ_AUDIT_LOG"


@pytest.mark.asyncio
async def test_error_body_carries_request_id(client: AsyncClient, viewer_user):
    resp = await client.post(
        "/api/tasks",
        json={"title": "T", "description": "D", "category": "work"},
        headers={**get_auth_headers(viewer_user), "X-Request-ID": "req-123"},
    )
    assert resp.status_code == 403
    assert resp.json()["request_id"] == "req-123"
    assert resp.headers["X-Request-ID"] == "req-123"
