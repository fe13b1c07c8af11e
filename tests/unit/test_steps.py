"""
Tests for the workflow step table.
"""

import pytest

from src.crm.deals.errors import DealIntegrityError
from src.crm.deals.models import DealStatus
from src.crm.deals.steps import (
    WORKFLOW_STEPS,
    FieldType,
    compute_next_status,
    rep_visible_steps,
    step_for,
)


class TestStepTable:

    def test_one_step_per_status_in_order(self):
        assert [s.status for s in WORKFLOW_STEPS] == list(DealStatus)

    def test_admin_only_steps(self):
        admin_only = {s.status for s in WORKFLOW_STEPS if s.admin_only}
        assert admin_only == {
            DealStatus.ADJUSTER_MET,
            DealStatus.AWAITING_APPROVAL,
            DealStatus.MATERIALS_SELECTED,
            DealStatus.INSTALL_SCHEDULED,
            DealStatus.COMPLETION_SIGNED,
            DealStatus.DEPRECIATION_COLLECTED,
            DealStatus.COMPLETE,
            DealStatus.PAID,
        }

    def test_rep_visible_steps_exclude_admin_steps(self):
        assert all(not s.admin_only for s in rep_visible_steps())
        assert len(rep_visible_steps()) == 9

    def test_lead_step_requires_inspection_photos(self):
        (required,) = step_for(DealStatus.LEAD).required_fields
        assert required.field == "inspection_images"
        assert required.type == FieldType.PHOTOS

    def test_claim_step_requires_agreement_signature(self):
        step = step_for(DealStatus.INSPECTION_SCHEDULED)
        fields = {r.field: r.type for r in step.required_fields}
        assert fields["contract_signed"] == FieldType.SIGNATURE
        assert {"insurance_company", "policy_number", "claim_number"} <= set(fields)

    def test_step_to_dict(self):
        data = step_for(DealStatus.CLAIM_FILED).to_dict()
        assert data["status"] == "claim_filed"
        assert data["rules"] == [
            "financials_complete", "adjuster_info_complete", "lost_statement_uploaded",
        ]
        assert data["admin_only"] is False


class TestComputeNextStatus:

    def test_next_in_order(self):
        assert compute_next_status(DealStatus.LEAD) == DealStatus.INSPECTION_SCHEDULED
        assert compute_next_status("complete") == DealStatus.PAID

    def test_end_of_pipeline(self):
        assert compute_next_status(DealStatus.PAID) is None

    def test_unknown_status_raises(self):
        with pytest.raises(DealIntegrityError):
            compute_next_status("archived")
