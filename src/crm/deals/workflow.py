"""
Deal Workflow Engine

Async service around the pure transition engine. Every write re-fetches
the latest snapshot, decides with transitions.py, then persists fields,
status and the history event in one store update guarded by the
snapshot's revision.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import uuid4

from ..auth import Actor, Permission, ensure_permission
from ..observability import add_deal_to_span, create_span, record_counter, record_histogram, traced
from ..storage import ArtifactStore, build_upload_key
from ..store import DealEvent, DealEventType, DealRecordStore
from . import transitions
from .errors import PermissionDeniedError, RepNotFoundError, RevisionConflictError, UploadError
from .financials import DEFAULT_POLICY, FinancialPolicy, FinancialSummary, summarize
from .milestones import ProgressView, project_progress
from .models import Commission, Deal, DealCreate, DealStatus, Rep, Role
from .requirements import StepEvaluation, evaluate_step
from .steps import compute_next_status, step_for

logger = logging.getLogger(__name__)


# Deal fields that hold uploads, with the storage category each goes under
PHOTO_FIELDS = {
    "inspection_images": "inspection",
    "install_images": "install",
    "completion_images": "completion",
}

DOCUMENT_FIELDS = {
    "lost_statement_url": "documents",
    "insurance_agreement_url": "documents",
    "agreement_document_url": "documents",
    "permit_file_url": "documents",
    "invoice_url": "documents",
    "completion_form_url": "documents",
    "acv_receipt_url": "receipts",
    "deductible_receipt_url": "receipts",
    "depreciation_receipt_url": "receipts",
    "signature_url": "signatures",
    "completion_form_signature_url": "signatures",
    "homeowner_completion_signature_url": "signatures",
}

UPLOAD_FIELDS = {**PHOTO_FIELDS, **DOCUMENT_FIELDS}

CREW_UPLOAD_FIELDS = frozenset({"install_images", "completion_images"})

UPLOAD_SAVE_ATTEMPTS = 5

# Builds a save's field changes from the freshly read snapshot
ChangeBuilder = Callable[[Deal], Dict[str, Any]]


@dataclass
class SaveOutcome:
    """Persisted deal plus the decision that produced it."""
    deal: Deal
    result: transitions.AdvanceResult

    def to_dict(self) -> dict:
        return {"deal": self.deal.to_json(), "result": self.result.to_dict()}


@dataclass
class UploadResult:
    key: str
    url: Optional[str]
    deal: Optional[Deal] = None
    result: Optional[transitions.AdvanceResult] = None

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "url": self.url,
            "deal": self.deal.to_json() if self.deal else None,
            "result": self.result.to_dict() if self.result else None,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DealWorkflowEngine:
    """
    Manages deal lifecycle and status transitions.

    Usage:
        engine = DealWorkflowEngine(store, uploads)
        outcome = await engine.save(deal_id, {"claim_number": "C-1"}, actor)
        if not outcome.result.advanced:
            show(outcome.result.reason)
    """

    def __init__(
        self,
        store: DealRecordStore,
        uploads: Optional[ArtifactStore] = None,
        policy: FinancialPolicy = DEFAULT_POLICY,
        signed_url_ttl: int = 3600,
    ):
        self.store = store
        self.uploads = uploads
        self.policy = policy
        self.signed_url_ttl = signed_url_ttl

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_deal(self, deal_id: str, actor: Optional[Actor] = None) -> Deal:
        deal = await self.store.get(deal_id)
        self._ensure_visible(deal, actor)
        return deal

    async def list_deals(
        self,
        *,
        status: Optional[str] = None,
        rep_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        actor: Optional[Actor] = None,
    ) -> List[Deal]:
        if actor is not None and actor.role == Role.REP:
            rep_id = actor.id
        if status is not None:
            status = DealStatus(status).value
        return await self.store.list(status=status, rep_id=rep_id, limit=limit, offset=offset)

    async def evaluation(self, deal_id: str, actor: Optional[Actor] = None) -> Dict[str, Any]:
        """Where the deal stands against its current step."""
        deal = await self.get_deal(deal_id, actor)
        status = transitions.check_integrity(deal)
        evaluation: StepEvaluation = evaluate_step(deal, step_for(status))
        next_status = compute_next_status(status)
        return {
            "deal_id": deal.id,
            "revision": deal.revision,
            "step": evaluation.step.to_dict(),
            "evaluation": evaluation.to_dict(),
            "next_status": next_status.value if next_status else None,
        }

    async def progress(self, deal_id: str, actor: Optional[Actor] = None) -> ProgressView:
        deal = await self.get_deal(deal_id, actor)
        transitions.check_integrity(deal)
        return project_progress(deal)

    async def financials(self, deal_id: str, actor: Optional[Actor] = None) -> FinancialSummary:
        deal = await self.get_deal(deal_id, actor)
        rep = await self._rep_for(deal)
        return summarize(deal, rep, self.policy)

    async def history(self, deal_id: str, actor: Optional[Actor] = None) -> List[DealEvent]:
        if actor is not None:
            await self.get_deal(deal_id, actor)
        return await self.store.history(deal_id)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create_deal(
        self,
        payload: DealCreate,
        actor: Actor,
        rep_id: Optional[str] = None,
    ) -> Deal:
        """
        Open a new lead.

        A rep always owns the deals they create; admins may assign any
        rep (or none).
        """
        ensure_permission(actor, Permission.DEALS_WRITE)
        now = _utcnow()

        if actor.role == Role.REP:
            rep_id = actor.id
        rep = await self.store.get_rep(rep_id) if rep_id else None

        rep_name = rep.name if rep and rep.name else None
        if rep_name is None and actor.role == Role.REP:
            rep_name = actor.name

        data = payload.model_dump(exclude_unset=True)
        deal = Deal(
            **data,
            id=uuid4().hex,
            status=DealStatus.LEAD,
            rep_id=rep_id,
            rep_name=rep_name,
            lead_date=now,
            created_at=now,
            updated_at=now,
            deal_commissions=[
                Commission(commission_percent=rep.default_commission_percent if rep else None)
            ],
        )

        with create_span("deal.create", {"deal.id": deal.id, "actor.role": actor.role.value}):
            created = await self.store.create(
                deal,
                event=self._event(deal.id, DealEventType.CREATED, actor, to_status=DealStatus.LEAD),
            )

        record_counter("deal_transitions_total", 1, {"from": "none", "to": DealStatus.LEAD.value, "trigger": "create"})
        logger.info(f"Deal {created.id} created by {actor.id} for rep {rep_id}")
        return created

    async def save(
        self,
        deal_id: str,
        changes: Dict[str, Any],
        actor: Actor,
        *,
        acknowledge_step: bool = False,
        expected_revision: Optional[int] = None,
    ) -> SaveOutcome:
        """
        Save deal fields and advance the status if the current step is
        now satisfied.

        Raises:
            DealNotFoundError: Unknown deal
            RevisionConflictError: expected_revision is stale, or another
                writer got in between our read and write
            DealIntegrityError: Stored deal has an unknown status
        """
        ensure_permission(actor, Permission.DEALS_WRITE)
        return await self._save(deal_id, changes, actor, acknowledge_step, expected_revision, "save")

    async def _save(
        self,
        deal_id: str,
        changes: Union[Dict[str, Any], ChangeBuilder],
        actor: Actor,
        acknowledge_step: bool,
        expected_revision: Optional[int],
        trigger: str,
    ) -> SaveOutcome:
        started = time.perf_counter()

        with create_span("deal.save", {"deal.id": deal_id, "actor.role": actor.role.value}) as span:
            deal = await self.store.get(deal_id)
            self._ensure_visible(deal, actor)
            if expected_revision is not None and deal.revision != expected_revision:
                raise RevisionConflictError(deal_id, expected_revision, deal.revision)

            proposed = changes(deal) if callable(changes) else changes
            result = transitions.attempt_advance(
                deal,
                proposed,
                role=actor.role,
                acknowledge_step=acknowledge_step,
                now=_utcnow(),
            )
            span.set_attribute("deal.advanced", result.advanced)

            if result.reason is not None:
                record_counter("deal_advance_blocked_total", 1, {
                    "status": deal.status.value,
                    "reason": result.reason.code.value,
                })

            if not result.changed:
                return SaveOutcome(deal=deal, result=result)

            updated = await self._persist(deal, result, actor, trigger)

        record_histogram("deal_save_duration_seconds", time.perf_counter() - started, {"trigger": trigger})
        return SaveOutcome(deal=updated, result=result)

    async def admin_transition(
        self,
        deal_id: str,
        target: DealStatus,
        actor: Actor,
        changes: Optional[Dict[str, Any]] = None,
        *,
        expected_revision: Optional[int] = None,
    ) -> SaveOutcome:
        """
        Move a deal forward on an admin's authority.

        Admin requirements that are not met come back as a non-advancing
        result; nothing is written in that case.
        """
        ensure_permission(actor, Permission.DEALS_TRANSITION)

        with create_span("deal.admin_transition", {"deal.id": deal_id, "deal.target": DealStatus(target).value}):
            deal = await self.store.get(deal_id)
            if expected_revision is not None and deal.revision != expected_revision:
                raise RevisionConflictError(deal_id, expected_revision, deal.revision)

            rep = await self._rep_for(deal)
            result = transitions.admin_transition(deal, target, changes, rep=rep, policy=self.policy, now=_utcnow())

            if not result.advanced:
                record_counter("deal_advance_blocked_total", 1, {
                    "status": deal.status.value,
                    "reason": result.reason.code.value,
                })
                return SaveOutcome(deal=deal, result=result)

            updated = await self._persist(deal, result, actor, "admin")
        return SaveOutcome(deal=updated, result=result)

    @traced("deal.request_payment")
    async def request_payment(self, deal_id: str, actor: Actor) -> Deal:
        """Rep asks to be paid commission on a completed deal."""
        ensure_permission(actor, Permission.COMMISSION_REQUEST)
        deal = await self.store.get(deal_id)
        self._ensure_visible(deal, actor)

        fields = transitions.request_commission_payment(deal, _utcnow())
        updated = await self.store.update(
            deal_id,
            fields,
            expected_revision=deal.revision,
            event=self._event(deal_id, DealEventType.PAYMENT_REQUESTED, actor),
        )
        logger.info(f"Commission payment requested on deal {deal_id} by {actor.id}")
        return updated

    @traced("deal.commission_override")
    async def set_commission_override(
        self,
        deal_id: str,
        amount: Decimal,
        reason: str,
        actor: Actor,
    ) -> Deal:
        ensure_permission(actor, Permission.COMMISSION_OVERRIDE)
        deal = await self.store.get(deal_id)
        fields = transitions.set_commission_override(deal, amount, reason, _utcnow())
        updated = await self.store.update(
            deal_id,
            fields,
            expected_revision=deal.revision,
            event=self._event(
                deal_id,
                DealEventType.COMMISSION_OVERRIDDEN,
                actor,
                details={"amount": str(fields["commission_override_amount"]), "reason": fields["commission_override_reason"]},
            ),
        )
        logger.info(f"Commission override on deal {deal_id}: {amount} ({reason})")
        return updated

    # -------------------------------------------------------------------------
    # Uploads
    # -------------------------------------------------------------------------

    async def upload_file(
        self,
        deal_id: str,
        content: bytes,
        filename: str,
        mime_type: str,
        actor: Actor,
        *,
        category: Optional[str] = None,
        field: Optional[str] = None,
    ) -> UploadResult:
        """
        Store a file for a deal and, when `field` is given, attach its key
        to that deal field through a normal save.

        Photo fields collect keys; document fields hold one. The first
        inspection photo on a lead moves it to inspection_scheduled.

        Raises:
            UploadError: Storage failed; the deal is not touched
        """
        ensure_permission(actor, Permission.UPLOADS_WRITE)
        if self.uploads is None:
            raise UploadError("No upload store is configured")
        if field is not None and field not in UPLOAD_FIELDS:
            raise ValueError(f"Field does not hold uploads: {field}")
        if field is not None and actor.role == Role.CREW and field not in CREW_UPLOAD_FIELDS:
            raise PermissionDeniedError(f"Crew can only upload install and completion photos, not {field}")

        category = category or (UPLOAD_FIELDS[field] if field else "documents")
        deal = await self.get_deal(deal_id, actor)
        key = build_upload_key(deal.id, category, filename, _utcnow())

        with create_span("deal.upload", {"deal.id": deal_id, "upload.category": category}) as span:
            add_deal_to_span(deal_id, span)
            try:
                self.uploads.put(key, content, filename=filename, mime_type=mime_type)
            except Exception as e:
                logger.error(f"Upload to {key} failed: {e}")
                raise UploadError(f"Could not store {filename}: {e}") from e

        record_counter("uploads_total", 1, {"category": category})
        logger.info(f"Stored upload {key} ({len(content)} bytes) for deal {deal_id}")

        url = self.get_signed_url(key)
        if field is None:
            return UploadResult(key=key, url=url)

        def attach(fresh: Deal) -> Dict[str, Any]:
            if field in PHOTO_FIELDS:
                return {field: list(getattr(fresh, field)) + [key]}
            return {field: key}

        # Photo lists are rebuilt from the latest snapshot on every attempt
        for attempt in range(1, UPLOAD_SAVE_ATTEMPTS + 1):
            try:
                outcome = await self._save(deal_id, attach, actor, False, None, "upload")
                break
            except RevisionConflictError:
                if attempt == UPLOAD_SAVE_ATTEMPTS:
                    raise
                logger.warning(f"Deal {deal_id} changed while attaching {key}, retrying ({attempt})")
        return UploadResult(key=key, url=url, deal=outcome.deal, result=outcome.result)

    def get_signed_url(self, key: Optional[str]) -> Optional[str]:
        """
        Readable URL for a stored value.

        data: and http(s) URLs come back unchanged; unknown keys give None.
        """
        if self.uploads is None:
            return None
        return self.uploads.signed_url(key, expires_in=self.signed_url_ttl)

    # -------------------------------------------------------------------------
    # Reps
    # -------------------------------------------------------------------------

    async def get_rep(self, rep_id: str) -> Rep:
        rep = await self.store.get_rep(rep_id)
        if rep is None:
            raise RepNotFoundError(rep_id)
        return rep

    @traced("rep.put")
    async def put_rep(self, rep: Rep, actor: Actor) -> Rep:
        ensure_permission(actor, Permission.REPS_MANAGE)
        saved = await self.store.put_rep(rep)
        logger.info(f"Rep {rep.id} saved: level={rep.commission_level.value}")
        return saved

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _ensure_visible(deal: Deal, actor: Optional[Actor]) -> None:
        """Reps only see and change their own deals."""
        if actor is not None and actor.role == Role.REP and deal.rep_id != actor.id:
            raise PermissionDeniedError(f"Deal {deal.id} belongs to another rep")

    async def _rep_for(self, deal: Deal) -> Optional[Rep]:
        if not deal.rep_id:
            return None
        return await self.store.get_rep(deal.rep_id)

    async def _persist(
        self,
        deal: Deal,
        result: transitions.AdvanceResult,
        actor: Actor,
        trigger: str,
    ) -> Deal:
        event_type = DealEventType.STATUS_CHANGED if result.advanced else DealEventType.UPDATED
        event = self._event(
            deal.id,
            event_type,
            actor,
            from_status=result.from_status,
            to_status=result.to_status,
            details={
                "changed_fields": sorted(k for k in result.updates if k != "status"),
                "trigger": trigger,
                "auto": result.auto.value if result.auto else None,
                "reason": result.reason.code.value if result.reason else None,
            },
        )
        updated = await self.store.update(
            deal.id,
            result.updates,
            expected_revision=deal.revision,
            event=event,
        )

        if result.advanced:
            record_counter("deal_transitions_total", 1, {
                "from": result.from_status.value,
                "to": result.to_status.value,
                "trigger": result.auto.value if result.auto else trigger,
            })
            logger.info(
                f"Deal {deal.id} transitioned: {result.from_status.value} -> {result.to_status.value} "
                f"(by {actor.id}, {trigger})"
            )
        return updated

    @staticmethod
    def _event(
        deal_id: str,
        event_type: DealEventType,
        actor: Actor,
        *,
        from_status: Optional[DealStatus] = None,
        to_status: Optional[DealStatus] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> DealEvent:
        return DealEvent(
            deal_id=deal_id,
            event_type=event_type,
            actor_id=actor.id,
            actor_role=actor.role.value,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value if to_status else None,
            details=details or {},
        )


# Singleton instance
_workflow_engine: Optional[DealWorkflowEngine] = None


async def get_workflow_engine() -> DealWorkflowEngine:
    """Get workflow engine instance, building it from configuration once."""
    global _workflow_engine
    if _workflow_engine is None:
        from ..config import config
        from ..storage import get_artifact_store
        from ..store import create_deal_store

        _workflow_engine = DealWorkflowEngine(
            store=await create_deal_store(config.DEAL_STORE_BACKEND),
            uploads=get_artifact_store(config.ARTIFACT_STORAGE_BACKEND),
            policy=config.financial_policy(),
            signed_url_ttl=config.SIGNED_URL_TTL_SECONDS,
        )
    return _workflow_engine


def set_workflow_engine(engine: Optional[DealWorkflowEngine]) -> None:
    """Install (or clear, with None) the engine returned by get_workflow_engine."""
    global _workflow_engine
    _workflow_engine = engine


async def close_workflow_engine() -> None:
    global _workflow_engine
    if _workflow_engine is not None:
        await _workflow_engine.store.close()
        _workflow_engine = None
