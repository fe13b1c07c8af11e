"""
Tests for the pure transition engine.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.crm.deals.errors import DealIntegrityError, InvalidTransitionError, PaymentRequestError
from src.crm.deals.models import CommissionLevel, Commission, DealStatus, Rep, Role
from src.crm.deals.requirements import BlockReason
from src.crm.deals.transitions import (
    AutoTransition,
    admin_transition,
    attempt_advance,
    check_integrity,
    request_commission_payment,
    set_commission_override,
)
from tests.factories import ADJUSTER_MEETING, NOW, claim_financials, make_deal


class TestCheckIntegrity:

    def test_unknown_status_rejected(self):
        deal = make_deal().model_copy(update={"status": "on_hold"})
        with pytest.raises(DealIntegrityError):
            check_integrity(deal)

    def test_missing_id_rejected(self):
        deal = make_deal().model_copy(update={"id": ""})
        with pytest.raises(DealIntegrityError):
            check_integrity(deal)


class TestAttemptAdvance:
    """Saves that may move a deal one step forward."""

    def test_first_inspection_photo_moves_lead(self):
        deal = make_deal(DealStatus.LEAD)

        result = attempt_advance(deal, {"inspection_images": ["deals/deal-1/inspection/1-roof.jpg"]}, now=NOW)

        assert result.advanced
        assert result.to_status == DealStatus.INSPECTION_SCHEDULED
        assert result.auto == AutoTransition.INSPECTION_PHOTO
        assert result.updates["status"] == DealStatus.INSPECTION_SCHEDULED
        assert result.updates["inspection_scheduled_date"] == NOW

    def test_claim_filed_advances_when_complete(self):
        deal = make_deal(DealStatus.CLAIM_FILED)

        result = attempt_advance(deal, {**claim_financials(), **ADJUSTER_MEETING}, now=NOW)

        assert result.to_status == DealStatus.SIGNED
        assert result.updates["signed_date"] == NOW
        assert result.reason is None

    def test_partial_save_is_written_but_blocked(self):
        deal = make_deal(DealStatus.CLAIM_FILED)

        result = attempt_advance(deal, claim_financials(), now=NOW)

        assert not result.advanced
        assert result.changed
        assert "status" not in result.updates
        assert result.reason.code == BlockReason.ADJUSTER_INFO_MISSING

    def test_advances_at_most_one_step(self):
        """Data for later steps does not skip ahead."""
        deal = make_deal(DealStatus.APPROVED)

        result = attempt_advance(deal, {
            "acv_receipt_url": "deals/deal-1/receipts/1-acv.pdf",
            "deductible_receipt_url": "deals/deal-1/receipts/2-ded.pdf",
        }, now=NOW)

        assert result.to_status == DealStatus.ACV_COLLECTED
        assert result.updates["acv_check_collected"] is True

    def test_materials_selected_never_advances_on_save(self):
        deal = make_deal(DealStatus.MATERIALS_SELECTED, material_category="shingle", material_color="Onyx")

        result = attempt_advance(deal, {"notes": "Ready to go"}, acknowledge_step=True, now=NOW)

        assert not result.advanced
        assert result.reason.code == BlockReason.ADMIN_REQUIRED
        assert result.updates == {"notes": "Ready to go"}

    def test_resending_same_data_is_a_noop(self):
        deal = make_deal(DealStatus.CLAIM_FILED, **claim_financials())

        result = attempt_advance(deal, claim_financials(), now=NOW)

        assert not result.changed
        assert not result.advanced

    def test_acknowledge_moves_steps_without_requirements(self):
        deal = make_deal(DealStatus.SIGNED)

        assert not attempt_advance(deal, {}, now=NOW).advanced
        result = attempt_advance(deal, {}, acknowledge_step=True, now=NOW)

        assert result.to_status == DealStatus.ADJUSTER_MET

    def test_completion_signatures_shortcut(self):
        deal = make_deal(DealStatus.INSTALLED, completion_form_signature_url="data:image/png;base64,AA==")

        result = attempt_advance(deal, {"homeowner_completion_signature_url": "data:image/png;base64,BB=="}, now=NOW)

        assert result.to_status == DealStatus.COMPLETION_SIGNED
        assert result.auto == AutoTransition.COMPLETION_SIGNED

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            attempt_advance(make_deal(), {"status": "paid"})

    def test_existing_milestone_timestamp_kept(self):
        earlier = make_deal(DealStatus.APPROVED, acv_collected_date=NOW.replace(year=2025))

        result = attempt_advance(earlier, {"acv_receipt_url": "deals/deal-1/receipts/1.pdf"}, now=NOW)

        assert "acv_collected_date" not in result.updates


class TestFinancialLock:

    def _approved(self):
        return make_deal(DealStatus.APPROVED, **claim_financials())

    def test_rep_cannot_change_financials_after_approval(self):
        result = attempt_advance(self._approved(), {"rcv": Decimal("12000")}, role=Role.REP, now=NOW)

        assert not result.changed
        assert result.reason.code == BlockReason.FINANCIALS_LOCKED
        assert result.reason.missing_fields == ("rcv",)

    def test_admin_can_change_financials_after_approval(self):
        result = attempt_advance(self._approved(), {"rcv": Decimal("12000")}, role=Role.ADMIN, now=NOW)

        assert result.updates == {"rcv": Decimal("12000")}

    def test_unchanged_financials_are_not_locked(self):
        result = attempt_advance(self._approved(), {**claim_financials(), "notes": "ok"}, role=Role.REP, now=NOW)

        assert result.updates == {"notes": "ok"}

    def test_lock_ignored_before_approval(self):
        deal = make_deal(DealStatus.CLAIM_FILED)
        result = attempt_advance(deal, {"rcv": Decimal("9000")}, role=Role.REP, now=NOW)
        assert result.updates == {"rcv": Decimal("9000")}


class TestAdminTransition:

    def test_forward_to_any_later_status(self):
        deal = make_deal(DealStatus.ADJUSTER_MET)

        result = admin_transition(deal, DealStatus.AWAITING_APPROVAL, now=NOW)

        assert result.to_status == DealStatus.AWAITING_APPROVAL
        assert result.updates["awaiting_approval_date"] == NOW

    def test_backwards_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc:
            admin_transition(make_deal(DealStatus.APPROVED), DealStatus.SIGNED)
        assert exc.value.from_status == "approved"
        assert exc.value.to_status == "signed"

    def test_same_status_rejected(self):
        with pytest.raises(InvalidTransitionError):
            admin_transition(make_deal(DealStatus.APPROVED), DealStatus.APPROVED)

    def test_approval_needs_financials(self):
        result = admin_transition(make_deal(DealStatus.AWAITING_APPROVAL), DealStatus.APPROVED, now=NOW)

        assert not result.advanced
        assert result.reason.code == BlockReason.FINANCIALS_INCOMPLETE
        assert result.updates == {}

    def test_fields_saved_with_transition(self):
        deal = make_deal(DealStatus.MATERIALS_SELECTED)

        result = admin_transition(deal, DealStatus.INSTALL_SCHEDULED, {"install_date": date(2026, 4, 1)}, now=NOW)

        assert result.to_status == DealStatus.INSTALL_SCHEDULED
        assert result.updates["install_date"] == date(2026, 4, 1)

    def test_install_needs_date(self):
        result = admin_transition(make_deal(DealStatus.MATERIALS_SELECTED), DealStatus.INSTALL_SCHEDULED, now=NOW)
        assert result.reason.missing_fields == ("install_date",)

    def test_skipping_ahead_checks_approval(self):
        deal = make_deal(DealStatus.AWAITING_APPROVAL)

        result = admin_transition(deal, DealStatus.ACV_COLLECTED, now=NOW)

        assert not result.advanced
        assert result.reason.code == BlockReason.FINANCIALS_INCOMPLETE
        assert result.updates == {}

    def test_skipping_ahead_checks_install_date(self):
        deal = make_deal(DealStatus.MATERIALS_SELECTED)

        result = admin_transition(deal, DealStatus.INSTALLED, now=NOW)

        assert not result.advanced
        assert result.reason.missing_fields == ("install_date",)

    def test_skipping_ahead_with_everything_present(self):
        deal = make_deal(DealStatus.AWAITING_APPROVAL, **claim_financials())

        result = admin_transition(deal, DealStatus.DEDUCTIBLE_COLLECTED, now=NOW)

        assert result.to_status == DealStatus.DEDUCTIBLE_COLLECTED
        assert "approved_date" not in result.updates

    def test_skipped_approval_still_locks_rep_financials(self):
        deal = make_deal(DealStatus.AWAITING_APPROVAL, **claim_financials())
        moved = admin_transition(deal, DealStatus.ACV_COLLECTED, now=NOW)
        after = deal.merged(moved.updates)
        assert after.approved_date is None

        result = attempt_advance(after, {"rcv": Decimal("99999")}, role=Role.REP, now=NOW)

        assert not result.changed
        assert result.reason.code == BlockReason.FINANCIALS_LOCKED

    def test_installed_stamps_completion_date(self):
        result = admin_transition(make_deal(DealStatus.INSTALL_SCHEDULED), DealStatus.INSTALLED, now=NOW)
        assert result.updates["completion_date"] == NOW.date()

    def test_paid_snapshots_commission(self):
        deal = make_deal(
            DealStatus.COMPLETE,
            rcv=Decimal("10000"),
            deal_commissions=[Commission(commission_percent=Decimal("10"))],
        )

        result = admin_transition(deal, DealStatus.PAID, now=NOW)

        (commission,) = result.updates["deal_commissions"]
        assert commission.commission_amount == Decimal("917.50")
        assert commission.paid is True
        assert commission.paid_date == NOW
        assert result.updates["commission_paid"] is True

    def test_paid_uses_rep_level_without_percent(self):
        deal = make_deal(DealStatus.COMPLETE, rcv=Decimal("10000"), deal_commissions=[Commission()])
        rep = Rep(id="rep-1", commission_level=CommissionLevel.MANAGER)

        result = admin_transition(deal, DealStatus.PAID, rep=rep, now=NOW)

        assert result.updates["deal_commissions"][0].commission_amount == Decimal("1192.75")


class TestCommissionRequests:

    def test_request_on_complete_deal(self):
        fields = request_commission_payment(make_deal(DealStatus.COMPLETE), NOW)
        assert fields == {"payment_requested": True, "payment_request_date": NOW}

    def test_request_before_complete(self):
        with pytest.raises(PaymentRequestError):
            request_commission_payment(make_deal(DealStatus.INVOICE_SENT), NOW)

    def test_request_twice(self):
        with pytest.raises(PaymentRequestError):
            request_commission_payment(make_deal(DealStatus.COMPLETE, payment_requested=True), NOW)

    def test_override_requires_reason(self):
        with pytest.raises(ValueError):
            set_commission_override(make_deal(), Decimal("500"), "  ")

    def test_override_fields(self):
        fields = set_commission_override(make_deal(), Decimal("500"), " Split deal ", NOW)
        assert fields["commission_override_amount"] == Decimal("500")
        assert fields["commission_override_reason"] == "Split deal"
