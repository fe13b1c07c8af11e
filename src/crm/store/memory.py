"""
In-memory Deal Record Store

Default backend for development and tests. Deals are held as validated
copies so callers never share mutable state with the store.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from ..deals.errors import DealNotFoundError, RevisionConflictError
from ..deals.models import Deal, Rep
from .base import DealEvent, DealRecordStore

logger = logging.getLogger(__name__)


class InMemoryDealStore(DealRecordStore):
    """Process-local store guarded by a single asyncio lock."""

    def __init__(self):
        self._deals: Dict[str, Deal] = {}
        self._reps: Dict[str, Rep] = {}
        self._events: Dict[str, List[DealEvent]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def get(self, deal_id: str) -> Deal:
        deal = self._deals.get(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal.model_copy(deep=True)

    async def create(self, deal: Deal, event: Optional[DealEvent] = None) -> Deal:
        async with self._lock:
            if deal.id in self._deals:
                raise ValueError(f"Deal already exists: {deal.id}")
            self._deals[deal.id] = deal.model_copy(deep=True)
            if event is not None:
                self._events[deal.id].append(event)
        return deal.model_copy(deep=True)

    async def update(
        self,
        deal_id: str,
        fields: Dict[str, Any],
        *,
        expected_revision: Optional[int] = None,
        event: Optional[DealEvent] = None,
    ) -> Deal:
        async with self._lock:
            current = self._deals.get(deal_id)
            if current is None:
                raise DealNotFoundError(deal_id)
            if expected_revision is not None and current.revision != expected_revision:
                raise RevisionConflictError(deal_id, expected_revision, current.revision)

            updated = self.apply_update(current, fields)
            self._deals[deal_id] = updated
            if event is not None:
                self._events[deal_id].append(event)

        logger.debug(f"Deal {deal_id} updated to revision {updated.revision}")
        return updated.model_copy(deep=True)

    async def list(
        self,
        *,
        status: Optional[str] = None,
        rep_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Deal]:
        deals = sorted(self._deals.values(), key=lambda d: d.created_at, reverse=True)
        if status is not None:
            deals = [d for d in deals if d.status.value == status]
        if rep_id is not None:
            deals = [d for d in deals if d.rep_id == rep_id]
        return [d.model_copy(deep=True) for d in deals[offset:offset + limit]]

    async def history(self, deal_id: str) -> List[DealEvent]:
        if deal_id not in self._deals:
            raise DealNotFoundError(deal_id)
        return list(self._events.get(deal_id, []))

    async def get_rep(self, rep_id: str) -> Optional[Rep]:
        rep = self._reps.get(rep_id)
        return rep.model_copy() if rep else None

    async def put_rep(self, rep: Rep) -> Rep:
        self._reps[rep.id] = rep.model_copy()
        return rep
