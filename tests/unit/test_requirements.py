"""
Tests for the requirement evaluator and its named predicates.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.crm.deals.models import DealStatus
from src.crm.deals.requirements import (
    BlockReason,
    agreement_present,
    evaluate_step,
    is_empty,
    is_step_satisfied,
    missing_material_fields,
)
from src.crm.deals.steps import WORKFLOW_STEPS, step_for
from tests.factories import ADJUSTER_MEETING, claim_financials, make_deal


def _claim_filed_complete(**overrides):
    fields = {**claim_financials(), **ADJUSTER_MEETING}
    fields.update(overrides)
    return make_deal(DealStatus.CLAIM_FILED, **fields)


class TestIsEmpty:

    @pytest.mark.parametrize("value", [None, "", [], ()])
    def test_empty(self, value):
        assert is_empty(value)

    @pytest.mark.parametrize("value", [0, False, " ", ["k"], Decimal("0")])
    def test_not_empty(self, value):
        """Zero and False are real answers, not missing ones."""
        assert not is_empty(value)


class TestAgreementPresent:

    def test_signed_flag(self):
        assert agreement_present(make_deal(contract_signed=True))

    def test_uploaded_agreement_counts(self):
        assert agreement_present(make_deal(agreement_document_url="deals/deal-1/documents/a.pdf"))
        assert agreement_present(make_deal(insurance_agreement_url="https://files.example/a.pdf"))

    def test_neither(self):
        assert not agreement_present(make_deal())


class TestMaterials:

    def test_category_required_first(self):
        assert missing_material_fields(make_deal()) == ("material_category",)

    def test_metal_needs_type(self):
        deal = make_deal(material_category="Architectural Metal", material_color="Charcoal")
        assert missing_material_fields(deal) == ("material_type",)

    def test_shingle_needs_color(self):
        deal = make_deal(material_category="shingle", material_type="Duration")
        assert missing_material_fields(deal) == ("material_color",)
        assert missing_material_fields(deal.merged({"material_color": "Onyx"})) == ()


class TestEvaluateStep:

    def test_claim_filed_satisfied(self):
        deal = _claim_filed_complete()
        assert evaluate_step(deal, step_for(deal.status)).satisfied

    @pytest.mark.parametrize("field,reason", [
        ("rcv", BlockReason.FINANCIALS_INCOMPLETE),
        ("acv", BlockReason.FINANCIALS_INCOMPLETE),
        ("deductible", BlockReason.FINANCIALS_INCOMPLETE),
        ("depreciation", BlockReason.FINANCIALS_INCOMPLETE),
        ("adjuster_name", BlockReason.ADJUSTER_INFO_MISSING),
        ("adjuster_meeting_date", BlockReason.ADJUSTER_INFO_MISSING),
        ("lost_statement_url", BlockReason.LOST_STATEMENT_MISSING),
    ])
    def test_removing_any_one_requirement_blocks(self, field, reason):
        deal = _claim_filed_complete(**{field: None})

        evaluation = evaluate_step(deal, step_for(deal.status))

        assert not evaluation.satisfied
        assert evaluation.blocking.code == reason
        assert field in evaluation.blocking.missing_fields

    def test_zero_deductible_counts_as_entered(self):
        deal = _claim_filed_complete(deductible=Decimal("0"))
        assert evaluate_step(deal, step_for(deal.status)).satisfied

    def test_missing_fields_reported_together(self):
        deal = make_deal(DealStatus.INSPECTION_SCHEDULED, insurance_company="Acme Mutual")

        evaluation = evaluate_step(deal, step_for(deal.status))

        codes = [b.code for b in evaluation.blockers]
        assert codes == [BlockReason.MISSING_FIELDS, BlockReason.SIGNATURE_MISSING]
        assert evaluation.blocking.missing_fields == ("policy_number", "claim_number")

    def test_completion_needs_both_signatures(self):
        deal = make_deal(DealStatus.INSTALLED, completion_form_signature_url="data:image/png;base64,AA==")

        evaluation = evaluate_step(deal, step_for(deal.status))

        assert evaluation.blocking.code == BlockReason.COMPLETION_SIGNATURES_MISSING
        assert evaluation.blocking.missing_fields == ("homeowner_completion_signature_url",)

    def test_to_dict(self):
        deal = make_deal(DealStatus.APPROVED)
        data = evaluate_step(deal, step_for(deal.status)).to_dict()

        assert data["satisfied"] is False
        assert data["blocking"]["code"] == "acv_receipt_missing"


class TestIsStepSatisfied:

    def test_steps_without_requirements_are_satisfied(self):
        deal = make_deal()
        for step in WORKFLOW_STEPS:
            if not step.required_fields and not step.rules:
                assert is_step_satisfied(deal, step)

    def test_adjuster_meeting_date_accepts_dates(self):
        deal = _claim_filed_complete(adjuster_meeting_date=date(2026, 1, 5))
        assert is_step_satisfied(deal, step_for(deal.status))
