"""
Deal Record Store

Abstract interface for deal persistence. Updates are partial-field merges
keyed by deal id; each persisted update bumps the deal's revision so
concurrent rep and admin edits can be detected.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..deals.models import Deal, Rep


class DealEventType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    PAYMENT_REQUESTED = "payment_requested"
    COMMISSION_OVERRIDDEN = "commission_overridden"


@dataclass
class DealEvent:
    """Record of one change to a deal."""
    deal_id: str
    event_type: DealEventType
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "deal_id": self.deal_id,
            "event_type": DealEventType(self.event_type).value,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
        }


class DealRecordStore(ABC):
    """
    Abstract base class for deal storage backends.

    Implementations must make `update` atomic: the field merge, the
    revision bump and the optional event are written together or not at
    all.
    """

    @abstractmethod
    async def get(self, deal_id: str) -> Deal:
        """
        Fetch a deal.

        Raises:
            DealNotFoundError: If no deal has this id
        """
        ...

    @abstractmethod
    async def create(self, deal: Deal, event: Optional[DealEvent] = None) -> Deal:
        ...

    @abstractmethod
    async def update(
        self,
        deal_id: str,
        fields: Dict[str, Any],
        *,
        expected_revision: Optional[int] = None,
        event: Optional[DealEvent] = None,
    ) -> Deal:
        """
        Merge `fields` into a deal and bump its revision.

        Raises:
            DealNotFoundError: If no deal has this id
            RevisionConflictError: If expected_revision is given and stale
        """
        ...

    @abstractmethod
    async def list(
        self,
        *,
        status: Optional[str] = None,
        rep_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Deal]:
        ...

    @abstractmethod
    async def history(self, deal_id: str) -> List[DealEvent]:
        """Events for a deal, oldest first."""
        ...

    @abstractmethod
    async def get_rep(self, rep_id: str) -> Optional[Rep]:
        ...

    @abstractmethod
    async def put_rep(self, rep: Rep) -> Rep:
        ...

    async def close(self) -> None:
        """Release backend resources."""

    # =========================================================================
    # Utility Methods (non-abstract, common to all backends)
    # =========================================================================

    def apply_update(self, current: Deal, fields: Dict[str, Any], now: Optional[datetime] = None) -> Deal:
        """Merged copy of `current` with the next revision and a fresh updated_at."""
        data = dict(fields)
        data.pop("id", None)
        data.pop("created_at", None)
        data["revision"] = current.revision + 1
        data["updated_at"] = now or datetime.now(timezone.utc)
        return current.merged(data)
