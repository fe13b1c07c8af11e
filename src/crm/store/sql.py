"""
SQL Deal Record Store

Persists deals through the DatabaseAdapter, so the same code runs on
SQLite and PostgreSQL. Each deal is one JSON document plus the columns
needed for filtering and the revision check.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..database.adapter import DatabaseAdapter, Session
from ..database.migrate import apply_migrations
from ..deals.errors import DealIntegrityError, DealNotFoundError, RevisionConflictError
from ..deals.models import Deal, Rep
from .base import DealEvent, DealEventType, DealRecordStore

logger = logging.getLogger(__name__)


class SqlDealStore(DealRecordStore):
    """
    Deal store backed by the `deals`, `reps` and `deal_events` tables.

    Usage:
        store = SqlDealStore(db)
        await store.initialize()   # applies pending migrations
    """

    def __init__(self, db: DatabaseAdapter, *, owns_connection: bool = False):
        self._db = db
        self._owns_connection = owns_connection

    async def initialize(self) -> None:
        await self._db.connect()
        await apply_migrations(self._db)

    async def close(self) -> None:
        if self._owns_connection:
            await self._db.disconnect()

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_deal(row: Dict[str, Any]) -> Deal:
        try:
            deal = Deal.model_validate(json.loads(row["data"]))
        except (PydanticValidationError, json.JSONDecodeError) as e:
            raise DealIntegrityError(f"Stored deal {row.get('id')} is malformed: {e}", row.get("id"))
        # Column is authoritative for the revision check
        return deal.model_copy(update={"revision": row["revision"]})

    @staticmethod
    def _row_to_event(row: Dict[str, Any]) -> DealEvent:
        details = row.get("details") or "{}"
        if isinstance(details, str):
            details = json.loads(details)
        return DealEvent(
            id=row["id"],
            deal_id=row["deal_id"],
            event_type=DealEventType(row["event_type"]),
            actor_id=row.get("actor_id"),
            actor_role=row.get("actor_role"),
            from_status=row.get("from_status"),
            to_status=row.get("to_status"),
            details=details,
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    async def _insert_event(self, tx: Session, event: DealEvent) -> None:
        await tx.execute(
            """
            INSERT INTO deal_events
            (id, deal_id, event_type, actor_id, actor_role, from_status, to_status, details, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            """,
            event.id,
            event.deal_id,
            DealEventType(event.event_type).value,
            event.actor_id,
            event.actor_role,
            event.from_status,
            event.to_status,
            json.dumps(event.details, default=str),
            event.created_at.isoformat(),
        )

    # -------------------------------------------------------------------------
    # Deals
    # -------------------------------------------------------------------------

    async def get(self, deal_id: str) -> Deal:
        row = await self._db.fetchrow(
            "SELECT id, revision, data FROM deals WHERE id = $1",
            deal_id
        )
        if not row:
            raise DealNotFoundError(deal_id)
        return self._row_to_deal(row)

    async def create(self, deal: Deal, event: Optional[DealEvent] = None) -> Deal:
        async with self._db.transaction() as tx:
            await tx.execute(
                """
                INSERT INTO deals (id, status, rep_id, revision, data, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                deal.id,
                deal.status.value,
                deal.rep_id,
                deal.revision,
                json.dumps(deal.to_json()),
                deal.created_at.isoformat(),
                deal.updated_at.isoformat(),
            )
            if event is not None:
                await self._insert_event(tx, event)

        logger.info(f"Deal {deal.id} created in status {deal.status.value}")
        return deal

    async def update(
        self,
        deal_id: str,
        fields: Dict[str, Any],
        *,
        expected_revision: Optional[int] = None,
        event: Optional[DealEvent] = None,
    ) -> Deal:
        async with self._db.transaction() as tx:
            row = await tx.fetchrow(
                "SELECT id, revision, data FROM deals WHERE id = $1",
                deal_id
            )
            if not row:
                raise DealNotFoundError(deal_id)

            current = self._row_to_deal(row)
            if expected_revision is not None and current.revision != expected_revision:
                raise RevisionConflictError(deal_id, expected_revision, current.revision)

            updated = self.apply_update(current, fields, datetime.now(timezone.utc))

            # Guard against a writer that slipped in after our SELECT
            written = await tx.fetchrow(
                """
                UPDATE deals
                SET status = $2, rep_id = $3, revision = $4, data = $5, updated_at = $6
                WHERE id = $1 AND revision = $7
                RETURNING revision
                """,
                deal_id,
                updated.status.value,
                updated.rep_id,
                updated.revision,
                json.dumps(updated.to_json()),
                updated.updated_at.isoformat(),
                current.revision,
            )
            if not written:
                raise RevisionConflictError(deal_id, current.revision, None)

            if event is not None:
                await self._insert_event(tx, event)

        return updated

    async def list(
        self,
        *,
        status: Optional[str] = None,
        rep_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Deal]:
        clauses = []
        args: List[Any] = []
        if status is not None:
            args.append(status)
            clauses.append(f"status = ${len(args)}")
        if rep_id is not None:
            args.append(rep_id)
            clauses.append(f"rep_id = ${len(args)}")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        args.extend([limit, offset])
        rows = await self._db.fetch(
            f"""
            SELECT id, revision, data FROM deals
            {where}
            ORDER BY created_at DESC
            LIMIT ${len(args) - 1} OFFSET ${len(args)}
            """,
            *args
        )
        return [self._row_to_deal(r) for r in rows]

    async def history(self, deal_id: str) -> List[DealEvent]:
        exists = await self._db.fetchval("SELECT COUNT(*) FROM deals WHERE id = $1", deal_id)
        if not exists:
            raise DealNotFoundError(deal_id)

        rows = await self._db.fetch(
            """
            SELECT id, deal_id, event_type, actor_id, actor_role,
                   from_status, to_status, details, created_at
            FROM deal_events
            WHERE deal_id = $1
            ORDER BY created_at ASC, id ASC
            """,
            deal_id
        )
        return [self._row_to_event(r) for r in rows]

    # -------------------------------------------------------------------------
    # Reps
    # -------------------------------------------------------------------------

    async def get_rep(self, rep_id: str) -> Optional[Rep]:
        row = await self._db.fetchrow("SELECT data FROM reps WHERE id = $1", rep_id)
        if not row:
            return None
        return Rep.model_validate(json.loads(row["data"]))

    async def put_rep(self, rep: Rep) -> Rep:
        data = json.dumps(rep.model_dump(mode="json"))
        now = datetime.now(timezone.utc).isoformat()
        async with self._db.transaction() as tx:
            existing = await tx.fetchrow("SELECT id FROM reps WHERE id = $1", rep.id)
            if existing:
                await tx.execute(
                    "UPDATE reps SET data = $2, updated_at = $3 WHERE id = $1",
                    rep.id, data, now
                )
            else:
                await tx.execute(
                    "INSERT INTO reps (id, data, updated_at) VALUES ($1, $2, $3)",
                    rep.id, data, now
                )
        return rep
