"""
Workflow Step Table

One step per status, in pipeline order. A step lists what the rep must
collect while the deal sits in that status before it may move on, plus
whether moving on is reserved for an admin.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .errors import DealIntegrityError
from .models import DealStatus


class FieldType(str, Enum):
    TEXT = "text"
    DATE = "date"
    PHONE = "phone"
    EMAIL = "email"
    NUMBER = "number"
    SIGNATURE = "signature"
    PHOTOS = "photos"


class Rule(str, Enum):
    """Status-specific conditions beyond plain field presence."""
    FINANCIALS_COMPLETE = "financials_complete"
    ADJUSTER_INFO_COMPLETE = "adjuster_info_complete"
    LOST_STATEMENT_UPLOADED = "lost_statement_uploaded"
    ACV_RECEIPT_PRESENT = "acv_receipt_present"
    DEDUCTIBLE_RECEIPT_PRESENT = "deductible_receipt_present"
    MATERIALS_COMPLETE = "materials_complete"
    COMPLETION_SIGNATURES_PRESENT = "completion_signatures_present"
    DEPRECIATION_RECEIPT_PRESENT = "depreciation_receipt_present"


@dataclass(frozen=True)
class RequiredField:
    field: str
    label: str
    type: FieldType = FieldType.TEXT


@dataclass(frozen=True)
class WorkflowStep:
    status: DealStatus
    label: str
    description: str
    required_fields: Tuple[RequiredField, ...] = ()
    rules: Tuple[Rule, ...] = ()
    admin_only: bool = False

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "label": self.label,
            "description": self.description,
            "required_fields": [
                {"field": f.field, "label": f.label, "type": f.type.value}
                for f in self.required_fields
            ],
            "rules": [r.value for r in self.rules],
            "admin_only": self.admin_only,
        }


WORKFLOW_STEPS: Tuple[WorkflowStep, ...] = (
    WorkflowStep(
        DealStatus.LEAD,
        "Schedule & Complete Inspection",
        "Take inspection photos and show homeowner the report",
        required_fields=(
            RequiredField("inspection_images", "Inspection Photos", FieldType.PHOTOS),
        ),
    ),
    WorkflowStep(
        DealStatus.INSPECTION_SCHEDULED,
        "File Claim & Sign Agreement",
        "Call insurance, file the claim, sign agreement with homeowner",
        required_fields=(
            RequiredField("insurance_company", "Insurance Company"),
            RequiredField("policy_number", "Policy Number"),
            RequiredField("claim_number", "Claim Number"),
            RequiredField("contract_signed", "Homeowner Agreement", FieldType.SIGNATURE),
        ),
    ),
    WorkflowStep(
        DealStatus.CLAIM_FILED,
        "Meet Adjuster",
        "Enter claim financials, adjuster info and upload the loss statement",
        rules=(
            Rule.FINANCIALS_COMPLETE,
            Rule.ADJUSTER_INFO_COMPLETE,
            Rule.LOST_STATEMENT_UPLOADED,
        ),
    ),
    WorkflowStep(
        DealStatus.SIGNED,
        "Awaiting Insurance Decision",
        "Waiting for insurance approval, denial or partial approval",
    ),
    WorkflowStep(
        DealStatus.ADJUSTER_MET,
        "Awaiting Admin Review",
        "Admin reviews the loss statement and financials",
        admin_only=True,
    ),
    WorkflowStep(
        DealStatus.AWAITING_APPROVAL,
        "Approve Financials",
        "Admin approves the claim financials",
        admin_only=True,
    ),
    WorkflowStep(
        DealStatus.APPROVED,
        "Collect ACV Payment",
        "Collect ACV check from homeowner and give them a receipt",
        rules=(Rule.ACV_RECEIPT_PRESENT,),
    ),
    WorkflowStep(
        DealStatus.ACV_COLLECTED,
        "Collect Deductible",
        "Collect deductible from homeowner and give them a receipt",
        rules=(Rule.DEDUCTIBLE_RECEIPT_PRESENT,),
    ),
    WorkflowStep(
        DealStatus.DEDUCTIBLE_COLLECTED,
        "Select Materials",
        "Pick roof materials and colors with homeowner",
        rules=(Rule.MATERIALS_COMPLETE,),
    ),
    WorkflowStep(
        DealStatus.MATERIALS_SELECTED,
        "Ready for Install",
        "All info collected, waiting for admin to schedule install",
        admin_only=True,
    ),
    WorkflowStep(
        DealStatus.INSTALL_SCHEDULED,
        "Installation In Progress",
        "Crew is installing and uploading progress photos",
        admin_only=True,
    ),
    WorkflowStep(
        DealStatus.INSTALLED,
        "Get Completion Signature",
        "Rep and homeowner sign the installation completion form",
        rules=(Rule.COMPLETION_SIGNATURES_PRESENT,),
    ),
    WorkflowStep(
        DealStatus.COMPLETION_SIGNED,
        "Send Invoice",
        "Admin sends the final invoice to insurance for depreciation",
        admin_only=True,
    ),
    WorkflowStep(
        DealStatus.INVOICE_SENT,
        "Collect Depreciation",
        "Collect depreciation payment, give receipt and roof certificate",
        rules=(Rule.DEPRECIATION_RECEIPT_PRESENT,),
    ),
    WorkflowStep(
        DealStatus.DEPRECIATION_COLLECTED,
        "Complete Deal",
        "All payments collected, waiting for admin to close the deal",
        admin_only=True,
    ),
    WorkflowStep(
        DealStatus.COMPLETE,
        "Waiting for Commission",
        "Request commission; admin approves the payout",
        admin_only=True,
    ),
    WorkflowStep(
        DealStatus.PAID,
        "Paid",
        "Commission has been paid",
        admin_only=True,
    ),
)

_STEP_INDEX: Mapping[str, int] = MappingProxyType(
    {s.status.value: i for i, s in enumerate(WORKFLOW_STEPS)}
)


def step_index(status) -> int:
    value = status.value if isinstance(status, DealStatus) else status
    index = _STEP_INDEX.get(value)
    if index is None:
        raise DealIntegrityError(f"Unknown deal status: {status!r}")
    return index


def step_for(status) -> WorkflowStep:
    return WORKFLOW_STEPS[step_index(status)]


def compute_next_status(current) -> Optional[DealStatus]:
    """Status after `current` in step order; None at the end of the pipeline."""
    index = step_index(current) + 1
    if index >= len(WORKFLOW_STEPS):
        return None
    return WORKFLOW_STEPS[index].status


def rep_visible_steps() -> Tuple[WorkflowStep, ...]:
    """Steps a rep acts on; admin-only steps render as waiting states."""
    return tuple(s for s in WORKFLOW_STEPS if not s.admin_only)
