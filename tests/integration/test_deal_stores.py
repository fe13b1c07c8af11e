"""
Tests for the deal record stores (in-memory and SQL).
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.crm.deals.errors import DealIntegrityError, DealNotFoundError, RevisionConflictError
from src.crm.deals.models import Commission, DealStatus, Rep
from src.crm.store import DealEvent, DealEventType, SqlDealStore
from tests.factories import make_deal


def _deal(deal_id: str, minutes: int = 0, **fields):
    created = datetime(2026, 3, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    return make_deal(id=deal_id, created_at=created, updated_at=created, **fields)


class TestDealRecordStore:

    @pytest.mark.asyncio
    async def test_create_and_get(self, deal_store):
        deal = _deal("d1", rcv=Decimal("10000.50"), deal_commissions=[Commission(commission_percent=Decimal("10"))])

        await deal_store.create(deal, event=DealEvent(deal_id="d1", event_type=DealEventType.CREATED))
        fetched = await deal_store.get("d1")

        assert fetched.id == "d1"
        assert fetched.rcv == Decimal("10000.50")
        assert fetched.commission.commission_percent == Decimal("10")
        assert fetched.revision == 1

    @pytest.mark.asyncio
    async def test_get_missing(self, deal_store):
        with pytest.raises(DealNotFoundError):
            await deal_store.get("nope")

    @pytest.mark.asyncio
    async def test_update_merges_and_bumps_revision(self, deal_store):
        await deal_store.create(_deal("d1", claim_number="C-1"))

        updated = await deal_store.update("d1", {"policy_number": "P-9", "status": DealStatus.INSPECTION_SCHEDULED})

        assert updated.revision == 2
        assert updated.claim_number == "C-1"
        assert updated.policy_number == "P-9"
        fetched = await deal_store.get("d1")
        assert fetched.status == DealStatus.INSPECTION_SCHEDULED
        assert fetched.revision == 2

    @pytest.mark.asyncio
    async def test_stale_revision_rejected(self, deal_store):
        await deal_store.create(_deal("d1"))
        await deal_store.update("d1", {"notes": "first"}, expected_revision=1)

        with pytest.raises(RevisionConflictError) as exc:
            await deal_store.update("d1", {"notes": "second"}, expected_revision=1)

        assert exc.value.actual == 2
        assert (await deal_store.get("d1")).notes == "first"

    @pytest.mark.asyncio
    async def test_update_missing(self, deal_store):
        with pytest.raises(DealNotFoundError):
            await deal_store.update("nope", {"notes": "x"})

    @pytest.mark.asyncio
    async def test_returned_deals_are_copies(self, deal_store):
        await deal_store.create(_deal("d1"))

        fetched = await deal_store.get("d1")
        fetched.inspection_images.append("deals/d1/inspection/1.jpg")

        assert (await deal_store.get("d1")).inspection_images == []

    @pytest.mark.asyncio
    async def test_list_filters_and_orders(self, deal_store):
        await deal_store.create(_deal("old", minutes=0, rep_id="rep-1"))
        await deal_store.create(_deal("new", minutes=5, rep_id="rep-1"))
        await deal_store.create(_deal("other", minutes=10, rep_id="rep-2", status=DealStatus.CLAIM_FILED))

        assert [d.id for d in await deal_store.list()] == ["other", "new", "old"]
        assert [d.id for d in await deal_store.list(rep_id="rep-1")] == ["new", "old"]
        assert [d.id for d in await deal_store.list(status="claim_filed")] == ["other"]
        assert [d.id for d in await deal_store.list(limit=1, offset=1)] == ["new"]

    @pytest.mark.asyncio
    async def test_history_in_order(self, deal_store):
        await deal_store.create(_deal("d1"), event=DealEvent(deal_id="d1", event_type=DealEventType.CREATED))
        await deal_store.update(
            "d1",
            {"status": DealStatus.INSPECTION_SCHEDULED},
            event=DealEvent(
                deal_id="d1",
                event_type=DealEventType.STATUS_CHANGED,
                from_status="lead",
                to_status="inspection_scheduled",
                details={"trigger": "save"},
            ),
        )

        events = await deal_store.history("d1")

        assert [e.event_type for e in events] == [DealEventType.CREATED, DealEventType.STATUS_CHANGED]
        assert events[1].details == {"trigger": "save"}

    @pytest.mark.asyncio
    async def test_history_missing(self, deal_store):
        with pytest.raises(DealNotFoundError):
            await deal_store.history("nope")

    @pytest.mark.asyncio
    async def test_reps(self, deal_store):
        assert await deal_store.get_rep("rep-1") is None

        await deal_store.put_rep(Rep(id="rep-1", name="Riley", default_commission_percent=Decimal("8")))
        await deal_store.put_rep(Rep(id="rep-1", name="Riley R.", default_commission_percent=Decimal("9")))

        rep = await deal_store.get_rep("rep-1")
        assert rep.name == "Riley R."
        assert rep.default_commission_percent == Decimal("9")


class TestSqlDealStore:

    @pytest.mark.asyncio
    async def test_unknown_stored_status_is_integrity_error(self, deal_store):
        if not isinstance(deal_store, SqlDealStore):
            pytest.skip("SQL rows only")
        await deal_store.create(_deal("d1"))
        await deal_store._db.execute(
            "UPDATE deals SET data = $1 WHERE id = $2",
            '{"id": "d1", "status": "on_hold"}',
            "d1",
        )

        with pytest.raises(DealIntegrityError):
            await deal_store.get("d1")

    @pytest.mark.asyncio
    async def test_migrations_are_idempotent(self, deal_store):
        if not isinstance(deal_store, SqlDealStore):
            pytest.skip("SQL rows only")
        await deal_store.initialize()
        await deal_store.create(_deal("d1"))
        assert (await deal_store.get("d1")).id == "d1"
