# tests/conftest.py — Shared test fixtures
#
# Organization layout used across the suite:
#
#   parent_org            other_org
#   └── test_org
#       └── child_org
import os
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"

import auth as auth_module
from models import Base, User, Organization, UserRole
from auth import AuthService, CurrentUser
from database import get_db_session
from main import app

TEST_PASSWORD = "TestPassword123!"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_login_attempts():
    auth_module._login_attempts.clear()
    yield
    auth_module._login_attempts.clear()


# ============================================================
# ORGANIZATIONS
# ============================================================

async def _make_org(db_session, name, parent=None):
    org = Organization(id=str(uuid.uuid4()), name=name, parent_id=parent.id if parent else None)
    db_session.add(org)
    await db_session.commit()
    await db_session.refresh(org)
    return org


@pytest_asyncio.fixture
async def parent_org(db_session):
    return await _make_org(db_session, "Parent Organization")


@pytest_asyncio.fixture
async def test_org(db_session, parent_org):
    """The organization most test users belong to; a child of parent_org"""
    return await _make_org(db_session, "Test Organization", parent=parent_org)


@pytest_asyncio.fixture
async def child_org(db_session, test_org):
    return await _make_org(db_session, "Child Organization", parent=test_org)


@pytest_asyncio.fixture
async def other_org(db_session):
    """An unrelated root organization"""
    return await _make_org(db_session, "Other Organization")


# ============================================================
# USERS
# ============================================================

async def make_user(db_session, email, role, org, password=TEST_PASSWORD):
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        password_hash=AuthService.hash_password(password),
        role=role,
        organization_id=org.id,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def owner_user(db_session, test_org):
    return await make_user(db_session, "owner@taskscope.io", UserRole.OWNER, test_org)


@pytest_asyncio.fixture
async def admin_user(db_session, test_org):
    return await make_user(db_session, "admin@taskscope.io", UserRole.ADMIN, test_org)


@pytest_asyncio.fixture
async def viewer_user(db_session, test_org):
    return await make_user(db_session, "viewer@taskscope.io", UserRole.VIEWER, test_org)


@pytest_asyncio.fixture
async def parent_admin(db_session, parent_org):
    return await make_user(db_session, "parent-admin@taskscope.io", UserRole.ADMIN, parent_org)


@pytest_asyncio.fixture
async def parent_viewer(db_session, parent_org):
    return await make_user(db_session, "parent-viewer@taskscope.io", UserRole.VIEWER, parent_org)


@pytest_asyncio.fixture
async def child_admin(db_session, child_org):
    return await make_user(db_session, "child-admin@taskscope.io", UserRole.ADMIN, child_org)


@pytest_asyncio.fixture
async def other_admin(db_session, other_org):
    return await make_user(db_session, "other-admin@taskscope.io", UserRole.ADMIN, other_org)


def as_current(user: User) -> CurrentUser:
    """The pre-verified identity the boundary would hand to the core"""
    return AuthService.to_current_user(user)


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_access_token(AuthService.build_claims(user))
    return {"Authorization": f"Bearer {token}"}
