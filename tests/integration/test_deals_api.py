"""
Tests for the deals HTTP API.
"""

import pytest

from src.crm.deals.models import DealStatus
from tests.factories import (
    ADJUSTER_MEETING,
    ADMIN_HEADERS,
    CREW_HEADERS,
    OTHER_REP_HEADERS,
    REP_HEADERS,
    make_deal,
)

NEW_DEAL = {"homeowner_name": "Dana Whitfield", "address": "418 Cedar Ln", "city": "Plano"}


class TestAuth:

    @pytest.mark.asyncio
    async def test_health_is_public(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready_with_engine(self, client):
        response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["deal_store"] == "healthy"

    @pytest.mark.asyncio
    async def test_identity_required(self, client):
        response = await client.get("/api/deals")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_unknown_role(self, client):
        response = await client.get("/api/deals", headers={"X-Actor-Id": "x", "X-Actor-Role": "homeowner"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_dev_admin_when_auth_disabled(self, client, monkeypatch):
        monkeypatch.setenv("AUTH_REQUIRED", "false")

        response = await client.post("/api/deals", json=NEW_DEAL)

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_trace_header(self, client):
        response = await client.get("/api/deals", headers=REP_HEADERS)
        assert response.headers.get("X-Trace-ID")


class TestDealsCrud:

    @pytest.mark.asyncio
    async def test_create_and_get(self, client):
        created = await client.post("/api/deals", json=NEW_DEAL, headers=REP_HEADERS)

        assert created.status_code == 201
        deal = created.json()
        assert deal["status"] == "lead"
        assert deal["rep_id"] == "rep-1"
        assert deal["revision"] == 1

        fetched = await client.get(f"/api/deals/{deal['id']}", headers=REP_HEADERS)
        assert fetched.json()["city"] == "Plano"

    @pytest.mark.asyncio
    async def test_create_validation(self, client):
        response = await client.post("/api/deals", json={"homeowner_name": "Dana"}, headers=REP_HEADERS)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_list(self, client):
        await client.post("/api/deals", json=NEW_DEAL, headers=REP_HEADERS)
        await client.post("/api/deals", json=NEW_DEAL, headers=OTHER_REP_HEADERS)

        response = await client.get("/api/deals", params={"rep_id": "rep-2"}, headers=ADMIN_HEADERS)

        body = response.json()
        assert body["meta"]["count"] == 1
        assert body["data"][0]["rep_id"] == "rep-2"

    @pytest.mark.asyncio
    async def test_get_missing(self, client):
        response = await client.get("/api/deals/nope", headers=REP_HEADERS)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DEAL_NOT_FOUND"


class TestRepScope:

    @pytest.mark.asyncio
    async def test_rep_lists_only_own_deals(self, client):
        await client.post("/api/deals", json=NEW_DEAL, headers=REP_HEADERS)

        response = await client.get("/api/deals", headers=OTHER_REP_HEADERS)

        assert response.json()["meta"]["count"] == 0

    @pytest.mark.asyncio
    async def test_rep_cannot_open_another_reps_deal(self, client, store):
        await store.create(make_deal())

        response = await client.get("/api/deals/deal-1", headers=OTHER_REP_HEADERS)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_rep_cannot_save_another_reps_deal(self, client, store):
        await store.create(make_deal())

        response = await client.patch(
            "/api/deals/deal-1", json={"fields": {"notes": "hijack"}}, headers=OTHER_REP_HEADERS
        )

        assert response.status_code == 403
        assert (await store.get("deal-1")).notes is None


class TestWorkflowLayout:

    @pytest.mark.asyncio
    async def test_rep_sees_rep_steps(self, client):
        body = (await client.get("/api/deals/workflow", headers=REP_HEADERS)).json()

        assert [p["phase"] for p in body["phases"]] == ["sign", "build", "finalizing", "complete"]
        assert sum(len(p["milestones"]) for p in body["phases"]) == 17
        assert not any(s["admin_only"] for s in body["steps"])

    @pytest.mark.asyncio
    async def test_admin_sees_every_step(self, client):
        body = (await client.get("/api/deals/workflow", headers=ADMIN_HEADERS)).json()
        assert len(body["steps"]) == 17


class TestSaveEndpoint:

    @pytest.mark.asyncio
    async def test_save_advances(self, client, store):
        await store.create(make_deal(DealStatus.CLAIM_FILED))
        body = {
            "fields": {
                "rcv": 10000, "acv": 7000, "deductible": 1000, "depreciation": 3000,
                **{k: str(v) for k, v in ADJUSTER_MEETING.items()},
            },
        }

        response = await client.patch("/api/deals/deal-1", json=body, headers=REP_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["result"]["advanced"] is True
        assert data["deal"]["status"] == "signed"

    @pytest.mark.asyncio
    async def test_blocked_save_reports_reason(self, client, store):
        await store.create(make_deal(DealStatus.CLAIM_FILED))

        response = await client.patch("/api/deals/deal-1", json={"fields": {"rcv": 10000}}, headers=REP_HEADERS)

        assert response.status_code == 200
        reason = response.json()["result"]["reason"]
        assert reason["code"] == "financials_incomplete"
        assert reason["missing_fields"] == ["acv", "deductible", "depreciation"]

    @pytest.mark.asyncio
    async def test_workflow_fields_rejected(self, client, store):
        await store.create(make_deal())

        response = await client.patch("/api/deals/deal-1", json={"fields": {"status": "paid"}}, headers=REP_HEADERS)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_revision_conflict(self, client, store):
        await store.create(make_deal())
        await client.patch("/api/deals/deal-1", json={"fields": {"notes": "a"}}, headers=REP_HEADERS)

        response = await client.patch(
            "/api/deals/deal-1",
            json={"fields": {"notes": "b"}, "expected_revision": 1},
            headers=REP_HEADERS,
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "REVISION_CONFLICT"

    @pytest.mark.asyncio
    async def test_crew_forbidden(self, client, store):
        await store.create(make_deal())

        response = await client.patch("/api/deals/deal-1", json={"fields": {"notes": "x"}}, headers=CREW_HEADERS)

        assert response.status_code == 403


class TestAdminEndpoints:

    @pytest.mark.asyncio
    async def test_admin_transition(self, client, store):
        await store.create(make_deal(DealStatus.MATERIALS_SELECTED))

        response = await client.post(
            "/api/deals/deal-1/admin-transition",
            json={"target": "install_scheduled", "fields": {"install_date": "2026-04-01"}},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["deal"]["status"] == "install_scheduled"

    @pytest.mark.asyncio
    async def test_backwards_transition(self, client, store):
        await store.create(make_deal(DealStatus.APPROVED))

        response = await client.post(
            "/api/deals/deal-1/admin-transition", json={"target": "lead"}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    @pytest.mark.asyncio
    async def test_rep_cannot_transition(self, client, store):
        await store.create(make_deal(DealStatus.ADJUSTER_MET))

        response = await client.post(
            "/api/deals/deal-1/admin-transition", json={"target": "awaiting_approval"}, headers=REP_HEADERS
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_request_payment_twice(self, client, store):
        await store.create(make_deal(DealStatus.COMPLETE))

        first = await client.post("/api/deals/deal-1/request-payment", headers=REP_HEADERS)
        second = await client.post("/api/deals/deal-1/request-payment", headers=REP_HEADERS)

        assert first.json()["payment_requested"] is True
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "PAYMENT_ALREADY_REQUESTED"

    @pytest.mark.asyncio
    async def test_commission_override_and_financials(self, client, store):
        await store.create(make_deal(DealStatus.COMPLETE, rcv="10000"))

        response = await client.post(
            "/api/deals/deal-1/commission-override",
            json={"amount": 400, "reason": "Split with manager"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 200

        financials = (await client.get("/api/deals/deal-1/financials", headers=REP_HEADERS)).json()
        assert financials["commission_amount"] == 400.0
        assert financials["commission_source"] == "override"
        assert financials["sales_tax"] == 825.0


class TestReadEndpoints:

    @pytest.mark.asyncio
    async def test_evaluation_and_progress(self, client, store):
        await store.create(make_deal(DealStatus.APPROVED))

        evaluation = (await client.get("/api/deals/deal-1/evaluation", headers=REP_HEADERS)).json()
        progress = (await client.get("/api/deals/deal-1/progress", headers=REP_HEADERS)).json()

        assert evaluation["evaluation"]["blocking"]["code"] == "acv_receipt_missing"
        assert progress["percent"] == 38
        assert progress["phase"] == "build"

    @pytest.mark.asyncio
    async def test_history(self, client):
        created = (await client.post("/api/deals", json=NEW_DEAL, headers=REP_HEADERS)).json()

        response = await client.get(f"/api/deals/{created['id']}/history", headers=REP_HEADERS)

        (event,) = response.json()["history"]
        assert event["event_type"] == "created"
        assert event["actor_id"] == "rep-1"


class TestUploadEndpoints:

    @pytest.mark.asyncio
    async def test_inspection_photo_upload(self, client, store):
        await store.create(make_deal())

        response = await client.post(
            "/api/deals/deal-1/uploads",
            files={"file": ("roof.jpg", b"\xff\xd8jpeg", "image/jpeg")},
            data={"field": "inspection_images"},
            headers=REP_HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["deal"]["status"] == "inspection_scheduled"

        signed = await client.get("/api/uploads/signed-url", params={"key": body["key"]}, headers=REP_HEADERS)
        assert signed.json()["url"].startswith("file://")

    @pytest.mark.asyncio
    async def test_bad_field(self, client, store):
        await store.create(make_deal())

        response = await client.post(
            "/api/deals/deal-1/uploads",
            files={"file": ("a.jpg", b"x", "image/jpeg")},
            data={"field": "homeowner_name"},
            headers=REP_HEADERS,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_crew_receipt_forbidden(self, client, store):
        await store.create(make_deal(DealStatus.APPROVED))

        response = await client.post(
            "/api/deals/deal-1/uploads",
            files={"file": ("r.pdf", b"%PDF", "application/pdf")},
            data={"field": "acv_receipt_url"},
            headers=CREW_HEADERS,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_signed_url_unknown_key(self, client):
        response = await client.get("/api/uploads/signed-url", params={"key": "deals/x/none.jpg"}, headers=REP_HEADERS)
        assert response.json()["url"] is None


class TestRepEndpoints:

    @pytest.mark.asyncio
    async def test_put_and_get(self, client):
        put = await client.put(
            "/api/reps/rep-1",
            json={"name": "Riley", "commission_level": "senior"},
            headers=ADMIN_HEADERS,
        )
        assert put.status_code == 200

        rep = (await client.get("/api/reps/rep-1", headers=REP_HEADERS)).json()
        assert rep["commission_level"] == "senior"

    @pytest.mark.asyncio
    async def test_rep_cannot_manage_reps(self, client):
        response = await client.put("/api/reps/rep-1", json={"name": "Me"}, headers=REP_HEADERS)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_rep(self, client):
        response = await client.get("/api/reps/nobody", headers=REP_HEADERS)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "REP_NOT_FOUND"
