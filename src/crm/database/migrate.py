#!/usr/bin/env python3
"""
Database Migration Runner

Usage:
    python -m src.crm.database.migrate              # Run all pending migrations
    python -m src.crm.database.migrate --status     # Show migration status

Environment:
    DATABASE_BACKEND - sqlite (default) or postgresql
    SQLITE_PATH      - SQLite file path
    DATABASE_URL     - PostgreSQL connection string
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Set, Tuple

from .adapter import DatabaseAdapter

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def migration_files() -> List[Tuple[str, Path]]:
    """(version, path) for every migration, in order."""
    files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    return [(f.stem.split("_")[0], f) for f in files if "rollback" not in f.name.lower()]


async def ensure_migrations_table(db: DatabaseAdapter) -> None:
    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
        """
    )


async def get_applied_migrations(db: DatabaseAdapter) -> Set[str]:
    """Get set of already-applied migration versions."""
    rows = await db.fetch("SELECT version FROM schema_migrations")
    return {row["version"] for row in rows}


async def apply_migrations(db: DatabaseAdapter) -> List[str]:
    """Apply pending migrations; returns the versions that ran."""
    await ensure_migrations_table(db)
    applied = await get_applied_migrations(db)

    ran = []
    for version, path in migration_files():
        if version in applied:
            continue
        logger.info(f"Running migration {version} ({path.name})")
        await db.execute_script(path.read_text())
        await db.execute(
            "INSERT INTO schema_migrations (version, applied_at) VALUES ($1, $2)",
            version,
            datetime.now(timezone.utc).isoformat(),
        )
        ran.append(version)

    if ran:
        logger.info(f"Applied {len(ran)} migration(s): {', '.join(ran)}")
    return ran


async def migration_status(db: DatabaseAdapter) -> List[Tuple[str, str, bool]]:
    """(version, name, applied) for every known migration."""
    await ensure_migrations_table(db)
    applied = await get_applied_migrations(db)
    return [(version, path.stem, version in applied) for version, path in migration_files()]


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="RoofCRM Database Migration Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src.crm.database.migrate              # Run pending migrations
  python -m src.crm.database.migrate --status     # Show status
        """
    )
    parser.add_argument("--status", action="store_true", help="Show migration status")
    args = parser.parse_args()

    db = DatabaseAdapter()
    await db.connect()
    try:
        print(f"Database: {db.config}")
        print(f"Migrations: {MIGRATIONS_DIR}\n")

        if args.status:
            for version, name, is_applied in await migration_status(db):
                print(f"  {version}: {name} [{'applied' if is_applied else 'pending'}]")
            return

        ran = await apply_migrations(db)
        if not ran:
            print("No pending migrations. Database is up to date.")
        else:
            print(f"Applied: {', '.join(ran)}")
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
