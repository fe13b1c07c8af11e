"""
Database access for RoofCRM.

Usage:
    from src.crm.database import DatabaseAdapter

    db = DatabaseAdapter()
    await db.connect()
    rows = await db.fetch("SELECT * FROM deals WHERE status = $1", status)
"""

from .adapter import (
    DatabaseAdapter,
    DatabaseBackend,
    DatabaseConfig,
    Session,
)
from .migrate import apply_migrations, migration_status

__all__ = [
    "DatabaseAdapter",
    "DatabaseBackend",
    "DatabaseConfig",
    "Session",
    "apply_migrations",
    "migration_status",
]
