"""
Database seeding script for the first admin account.

Admins cannot sign up through the API, so the first one is created here.
Run this script after the database is set up:

    ADMIN_EMAIL=admin@ryde.app ADMIN_PASSWORD=... python -m ryde.seed_admin
"""

import asyncio
import os
import sys

from sqlalchemy import select

from ryde.app.db.session import AsyncSessionLocal, Base, engine
from ryde.app.models.user import User
from ryde.app.models.enums import UserRole
from ryde.app.core.security import get_password_hash


async def seed_admin(email: str, password: str) -> bool:
    """
    Create a verified ADMIN user unless one with this email exists.

    Returns:
        True if a user was created
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            print(f"ℹ️  {email} already exists, skipping seeding")
            return False

        db.add(User(
            firstname="Ryde",
            lastname="Admin",
            email=email,
            password=get_password_hash(password),
            role=UserRole.ADMIN,
            is_verified=True,
        ))
        await db.commit()
        print(f"✅ ADMIN user created: {email}")
        return True


async def main():
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        print("❌ ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        sys.exit(1)
    try:
        await seed_admin(email, password)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
