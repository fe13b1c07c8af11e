"""
Deal record stores.

- InMemoryDealStore (default, development and tests)
- SqlDealStore (DEAL_STORE_BACKEND=sql; SQLite or PostgreSQL)
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..database.adapter import DatabaseAdapter, DatabaseConfig
from .base import DealEvent, DealEventType, DealRecordStore
from .memory import InMemoryDealStore
from .sql import SqlDealStore

logger = logging.getLogger(__name__)

__all__ = [
    "DealEvent",
    "DealEventType",
    "DealRecordStore",
    "InMemoryDealStore",
    "SqlDealStore",
    "create_deal_store",
]


async def create_deal_store(backend: Optional[str] = None) -> DealRecordStore:
    """
    Build a ready-to-use store.

    `backend` defaults to DEAL_STORE_BACKEND ("memory" or "sql"). The SQL
    store connects and applies pending migrations before it is returned.
    """
    backend = (backend or os.getenv("DEAL_STORE_BACKEND", "memory")).lower()

    if backend == "memory":
        logger.info("Using in-memory deal store")
        return InMemoryDealStore()

    if backend == "sql":
        store = SqlDealStore(DatabaseAdapter(DatabaseConfig()), owns_connection=True)
        await store.initialize()
        logger.info("Using SQL deal store")
        return store

    raise ValueError(f"Unknown deal store backend '{backend}' (expected 'memory' or 'sql')")
