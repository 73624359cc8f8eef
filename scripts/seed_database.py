"""
Seed script for the platform RBAC catalogue.
Creates the platform roles and permissions that are missing, and optionally
grants the platform super_admin role to an existing or new user.
"""
import asyncio
import argparse
from typing import Optional
from sqlalchemy import select, and_

from app.database import AsyncSessionLocal, async_engine
from app.models import Role, User, UserRoleAssignment
from app.services.role_catalog import seed_platform_rbac, PLATFORM_SUPER_ADMIN


async def grant_super_admin(db, user_id: str, email: Optional[str]) -> bool:
    """Give a user the platform super_admin role. Returns False if it was already held."""
    user = await db.get(User, user_id)
    if user is None:
        if not email:
            raise SystemExit(f"User {user_id} does not exist; pass --email to create it")
        user = User(id=user_id, email=email)
        db.add(user)
        await db.flush()
        print(f"Created user {email} (ID: {user_id})")

    role = (await db.execute(
        select(Role).where(and_(Role.name == PLATFORM_SUPER_ADMIN, Role.organization_id.is_(None)))
    )).scalar_one()

    existing = (await db.execute(
        select(UserRoleAssignment).where(
            and_(UserRoleAssignment.user_id == user_id, UserRoleAssignment.role_id == role.id)
        )
    )).scalar_one_or_none()
    if existing:
        return False

    db.add(UserRoleAssignment(user_id=user_id, role_id=role.id, assigned_by="seed"))
    return True


async def main(super_admin: Optional[str], email: Optional[str]):
    async with AsyncSessionLocal() as db:
        created = await seed_platform_rbac(db)
        if created:
            print(f"Created platform roles: {', '.join(created)}")
        else:
            print("Platform roles already present")

        if super_admin:
            if await grant_super_admin(db, super_admin, email):
                print(f"Granted {PLATFORM_SUPER_ADMIN} to {super_admin}")
            else:
                print(f"{super_admin} already holds {PLATFORM_SUPER_ADMIN}")

        await db.commit()

    await async_engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the platform roles and permissions")
    parser.add_argument("--super-admin", help="User id to grant the platform super_admin role")
    parser.add_argument("--email", help="Email used when the super admin user has to be created")
    args = parser.parse_args()

    asyncio.run(main(args.super_admin, args.email))
