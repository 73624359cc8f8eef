"""
Backfill organization role assignments from legacy membership roles.
Memberships that already hold an organization role are left untouched.
"""
import asyncio
import argparse
from typing import Optional

from app.database import AsyncSessionLocal, async_engine
from app.services.role_migration import migrate_legacy_memberships


async def main(organization_id: Optional[str], dry_run: bool):
    async with AsyncSessionLocal() as db:
        stats = await migrate_legacy_memberships(db, organization_id=organization_id, dry_run=dry_run)

    await async_engine.dispose()

    prefix = "[dry run] " if dry_run else ""
    print(
        f"{prefix}{stats['memberships']} memberships: {stats['migrated']} migrated, "
        f"{stats['skipped']} already assigned, {stats['unmapped']} unmapped"
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Migrate legacy membership roles to organization roles")
    parser.add_argument("--organization", help="Only migrate memberships of this organization id")
    parser.add_argument("--dry-run", action="store_true", help="Report what would change without writing")
    args = parser.parse_args()

    asyncio.run(main(args.organization, args.dry_run))
