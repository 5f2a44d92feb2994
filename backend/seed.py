#!/usr/bin/env python3
"""
TaskScope — Demo data seeder

Organizations are created out of band; this seeds a small hierarchy and
one user per role so the API can be exercised right away.

    Acme Corp (root)
    └── Acme Engineering (child)

Users (password "password123"):
    owner@acme.io   owner   Acme Corp
    admin@acme.io   admin   Acme Engineering
    viewer@acme.io  viewer  Acme Engineering

Usage:
    python seed.py
"""

import asyncio
import logging
from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import AuthService
from models import Organization, User, UserRole

logger = logging.getLogger("taskscope.seed")

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    ("owner@acme.io", UserRole.OWNER, "root"),
    ("admin@acme.io", UserRole.ADMIN, "child"),
    ("viewer@acme.io", UserRole.VIEWER, "child"),
]


async def _get_or_create_org(db: AsyncSession, name: str, parent_id=None) -> Organization:
    result = await db.execute(select(Organization).where(Organization.name == name))
    org = result.scalar_one_or_none()
    if org is None:
        org = Organization(name=name, parent_id=parent_id)
        db.add(org)
        await db.flush()
        logger.info(f"Created organization {name} ({org.id})")
    return org


async def seed_demo_data(db: AsyncSession) -> Dict[str, object]:
    """Create the demo hierarchy and users; safe to run repeatedly"""
    root = await _get_or_create_org(db, "Acme Corp")
    child = await _get_or_create_org(db, "Acme Engineering", parent_id=root.id)
    orgs = {"root": root, "child": child}

    users = {}
    for email, role, org_key in DEMO_USERS:
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(
                email=email,
                password_hash=AuthService.hash_password(DEMO_PASSWORD),
                role=role,
                organization_id=orgs[org_key].id,
            )
            db.add(user)
            logger.info(f"Created {role.value} user {email}")
        users[role.value] = user

    await db.commit()
    return {"organizations": orgs, "users": users}


async def main():
    from database import init_db, close_db, get_db_context

    await init_db()
    async with get_db_context() as db:
        await seed_demo_data(db)
    await close_db()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s %(message)s")
    asyncio.run(main())
