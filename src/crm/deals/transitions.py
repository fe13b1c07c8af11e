"""
Transition Engine

Pure decision logic: given a deal snapshot and proposed changes, work out
which fields to write and whether the status moves. Nothing here touches
storage; DealWorkflowEngine persists the result in one update.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import DealIntegrityError, InvalidTransitionError, PaymentRequestError
from .financials import DEFAULT_POLICY, FinancialPolicy, commission_amount
from .milestones import locate_index
from .models import (
    FINANCIAL_FIELDS,
    Commission,
    Deal,
    DealFields,
    DealStatus,
    Rep,
    Role,
    timestamp_field,
)
from .requirements import (
    Blocker,
    BlockReason,
    StepEvaluation,
    completion_signatures_present,
    evaluate_step,
    financials_complete,
    is_empty,
)
from .steps import compute_next_status, step_for, step_index


class AutoTransition(str, Enum):
    """Shortcuts that move status as a side effect of a save."""
    INSPECTION_PHOTO = "inspection_photo"
    COMPLETION_SIGNED = "completion_signed"


@dataclass
class AdvanceResult:
    """
    What a save should persist.

    `updates` holds every field to write, including `status` and its
    timestamp when the deal advances. An empty `updates` is a no-op.
    `reason` explains why status did not move, if it did not.
    """
    deal_id: str
    from_status: DealStatus
    updates: Dict[str, Any] = field(default_factory=dict)
    to_status: Optional[DealStatus] = None
    evaluation: Optional[StepEvaluation] = None
    reason: Optional[Blocker] = None
    auto: Optional[AutoTransition] = None

    @property
    def advanced(self) -> bool:
        return self.to_status is not None

    @property
    def changed(self) -> bool:
        return bool(self.updates)

    def to_dict(self) -> dict:
        return {
            "deal_id": self.deal_id,
            "from_status": self.from_status.value,
            "to_status": self.to_status.value if self.to_status else None,
            "advanced": self.advanced,
            "changed_fields": sorted(self.updates),
            "reason": self.reason.to_dict() if self.reason else None,
            "auto": self.auto.value if self.auto else None,
            "evaluation": self.evaluation.to_dict() if self.evaluation else None,
        }


EDITABLE_FIELDS = frozenset(DealFields.model_fields)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_integrity(deal: Deal) -> DealStatus:
    """Reject snapshots the engine cannot reason about."""
    deal_id = getattr(deal, "id", None)
    if not deal_id:
        raise DealIntegrityError("Deal is missing its id")
    status = getattr(deal, "status", None)
    try:
        step_index(status)
        return DealStatus(status)
    except (DealIntegrityError, ValueError):
        raise DealIntegrityError(f"Deal {deal_id} has unknown status {status!r}", deal_id)


def _effective_changes(deal: Deal, merged: Deal, proposed: Dict[str, Any]) -> Dict[str, Any]:
    return {
        name: getattr(merged, name)
        for name in proposed
        if getattr(merged, name) != getattr(deal, name)
    }


def transition_fields(deal: Deal, target: DealStatus, now: datetime) -> Dict[str, Any]:
    """Status plus the bookkeeping written on entering `target`."""
    target = DealStatus(target)
    fields: Dict[str, Any] = {"status": target}

    stamp = timestamp_field(target)
    if getattr(deal, stamp) is None:
        fields[stamp] = now

    if target == DealStatus.ACV_COLLECTED:
        fields["acv_check_collected"] = True
    elif target == DealStatus.DEPRECIATION_COLLECTED:
        fields["depreciation_check_collected"] = True
    elif target == DealStatus.PAID:
        fields["commission_paid"] = True
        if deal.commission_paid_date is None:
            fields["commission_paid_date"] = now
    return fields


def attempt_advance(
    deal: Deal,
    proposed: Optional[Dict[str, Any]] = None,
    role: Role = Role.REP,
    acknowledge_step: bool = False,
    now: Optional[datetime] = None,
) -> AdvanceResult:
    """
    Apply a save to a snapshot and decide whether the deal moves on.

    The deal advances at most one status. A step that is admin-only is
    never left through this path; the caller shows a waiting state and an
    admin uses admin_transition(). Re-sending data the deal already holds
    is a no-op unless `acknowledge_step` is set, which lets a rep confirm
    steps that collect nothing.

    Raises DealIntegrityError for a malformed snapshot. Unmet requirements
    never raise; they come back as `reason`.
    """
    status = check_integrity(deal)
    now = now or _utcnow()
    proposed = dict(proposed or {})

    unknown = set(proposed) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not editable through a save: {sorted(unknown)}")

    merged = deal.merged(proposed)
    changes = _effective_changes(deal, merged, proposed)
    result = AdvanceResult(deal_id=deal.id, from_status=status)

    locked = [f for f in FINANCIAL_FIELDS if f in changes]
    if role != Role.ADMIN and financials_locked(deal) and locked:
        result.reason = Blocker(
            BlockReason.FINANCIALS_LOCKED,
            "Financials are locked after approval; ask an admin to change them",
            tuple(locked),
        )
        return result

    result.updates = dict(changes)
    step = step_for(status)
    result.evaluation = evaluate_step(merged, step)

    if not changes and not acknowledge_step:
        return result

    if status == DealStatus.LEAD and is_empty(deal.inspection_images) and not is_empty(merged.inspection_images):
        result.auto = AutoTransition.INSPECTION_PHOTO
        return _advance(result, merged, DealStatus.INSPECTION_SCHEDULED, now)

    if status == DealStatus.INSTALLED and completion_signatures_present(merged):
        result.auto = AutoTransition.COMPLETION_SIGNED
        return _advance(result, merged, DealStatus.COMPLETION_SIGNED, now)

    if not result.evaluation.satisfied:
        result.reason = result.evaluation.blocking
        return result

    next_status = compute_next_status(status)
    if next_status is None:
        result.reason = Blocker(BlockReason.TERMINAL, "Deal is at the end of the pipeline")
        return result

    if step.admin_only:
        result.reason = Blocker(BlockReason.ADMIN_REQUIRED, f"Waiting for admin: {step.label}")
        return result

    return _advance(result, merged, next_status, now)


def financials_locked(deal: Deal) -> bool:
    """True once the deal is approved, including when an admin skipped past approval."""
    if deal.approved_date is not None:
        return True
    return locate_index(deal.status) >= locate_index(DealStatus.APPROVED)


def _advance(result: AdvanceResult, merged: Deal, target: DealStatus, now: datetime) -> AdvanceResult:
    result.updates.update(transition_fields(merged, target, now))
    result.to_status = target
    result.reason = None
    return result


# Conditions an admin must meet when moving a deal into these statuses
def _admin_blocker(merged: Deal, target: DealStatus) -> Optional[Blocker]:
    if target == DealStatus.APPROVED and not financials_complete(merged):
        missing = tuple(f for f in FINANCIAL_FIELDS if getattr(merged, f) is None)
        return Blocker(
            BlockReason.FINANCIALS_INCOMPLETE,
            "Enter RCV, ACV, deductible and depreciation before approving",
            missing,
        )
    if target == DealStatus.INSTALL_SCHEDULED and merged.install_date is None:
        return Blocker(BlockReason.MISSING_FIELDS, "Required: Install Date", ("install_date",))
    if target == DealStatus.INVOICE_SENT and is_empty(merged.invoice_url):
        return Blocker(BlockReason.MISSING_FIELDS, "Required: Invoice", ("invoice_url",))
    return None


def _statuses_between(current: DealStatus, target: DealStatus) -> List[DealStatus]:
    """Statuses after `current` up to and including `target`, in order."""
    ordered = list(DealStatus)
    return ordered[ordered.index(current) + 1:ordered.index(target) + 1]


def admin_transition(
    deal: Deal,
    target: DealStatus,
    proposed: Optional[Dict[str, Any]] = None,
    rep: Optional[Rep] = None,
    policy: FinancialPolicy = DEFAULT_POLICY,
    now: Optional[datetime] = None,
) -> AdvanceResult:
    """
    Move a deal forward to `target` on an admin's authority.

    Status only moves forward; going back raises InvalidTransitionError.
    The admin conditions of every status passed on the way are checked,
    not just those of `target`.
    Moving to `paid` freezes the commission amount on the deal's
    commission record.
    """
    status = check_integrity(deal)
    now = now or _utcnow()
    target = DealStatus(target)

    if locate_index(target) <= locate_index(status):
        raise InvalidTransitionError(
            f"Status can only move forward ({status.value} -> {target.value})",
            status.value, target.value,
        )

    proposed = dict(proposed or {})
    unknown = set(proposed) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not editable through a transition: {sorted(unknown)}")

    merged = deal.merged(proposed)
    result = AdvanceResult(
        deal_id=deal.id,
        from_status=status,
        updates=_effective_changes(deal, merged, proposed),
    )

    crossed = _statuses_between(status, target)
    for passed in crossed:
        blocker = _admin_blocker(merged, passed)
        if blocker is not None:
            result.updates = {}
            result.reason = blocker
            return result

    if DealStatus.INSTALLED in crossed and merged.completion_date is None:
        result.updates["completion_date"] = now.date()

    if target == DealStatus.PAID:
        result.updates["deal_commissions"] = [_paid_commission(merged, rep, policy, now)]

    return _advance(result, merged, target, now)


def _paid_commission(deal: Deal, rep: Optional[Rep], policy: FinancialPolicy, now: datetime) -> Commission:
    current = deal.commission or Commission()
    amount = commission_amount(deal, rep, policy)
    return current.model_copy(update={
        "commission_amount": amount if amount is not None else current.commission_amount,
        "paid": True,
        "paid_date": now,
    })


def request_commission_payment(deal: Deal, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Fields a rep writes to ask for their commission on a completed deal."""
    status = check_integrity(deal)
    if status != DealStatus.COMPLETE:
        raise PaymentRequestError(
            f"Commission can only be requested on a complete deal (status is {status.value})"
        )
    if deal.payment_requested:
        raise PaymentRequestError("Commission payment was already requested")
    return {"payment_requested": True, "payment_request_date": now or _utcnow()}


def set_commission_override(
    deal: Deal,
    amount: Decimal,
    reason: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Fields an admin writes to replace the computed commission."""
    check_integrity(deal)
    if not reason or not reason.strip():
        raise ValueError("An override reason is required")
    amount = Decimal(amount)
    if amount < 0:
        raise ValueError("Override amount cannot be negative")
    return {
        "commission_override_amount": amount,
        "commission_override_reason": reason.strip(),
        "commission_override_date": now or _utcnow(),
    }
