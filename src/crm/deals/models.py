"""
Deal Data Model

Pydantic models for deals, commission records and reps.

A Deal serializes to a flat JSON object; money fields are Decimals in
Python and plain numbers on the wire. `deal_commissions` is always an
array, holding zero or one Commission.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer


Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DealStatus(str, Enum):
    """Pipeline statuses, in canonical order."""
    LEAD = "lead"
    INSPECTION_SCHEDULED = "inspection_scheduled"
    CLAIM_FILED = "claim_filed"
    SIGNED = "signed"
    ADJUSTER_MET = "adjuster_met"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    ACV_COLLECTED = "acv_collected"
    DEDUCTIBLE_COLLECTED = "deductible_collected"
    MATERIALS_SELECTED = "materials_selected"
    INSTALL_SCHEDULED = "install_scheduled"
    INSTALLED = "installed"
    COMPLETION_SIGNED = "completion_signed"
    INVOICE_SENT = "invoice_sent"
    DEPRECIATION_COLLECTED = "depreciation_collected"
    COMPLETE = "complete"
    PAID = "paid"


class CommissionLevel(str, Enum):
    JUNIOR = "junior"
    SENIOR = "senior"
    MANAGER = "manager"


class Role(str, Enum):
    """Actor roles."""
    REP = "rep"
    ADMIN = "admin"
    CREW = "crew"


# Fields a rep may not touch once the deal's financials are approved
FINANCIAL_FIELDS = ("rcv", "acv", "deductible", "depreciation")


def timestamp_field(status: DealStatus) -> str:
    """Name of the milestone timestamp recorded when a deal enters `status`."""
    return f"{DealStatus(status).value}_date"


class Commission(BaseModel):
    """Per-deal commission snapshot (deal_commissions[0])."""
    commission_type: str = "self_gen"
    commission_percent: Optional[Money] = None
    commission_amount: Optional[Money] = None
    paid: bool = False
    paid_date: Optional[datetime] = None


class Rep(BaseModel):
    id: str
    name: Optional[str] = None
    commission_level: CommissionLevel = CommissionLevel.JUNIOR
    default_commission_percent: Optional[Money] = None


class DealFields(BaseModel):
    """
    Freely editable deal attributes.

    Shared by Deal and DealUpdate. Workflow-owned fields (status,
    milestone timestamps, payment and commission bookkeeping) live on Deal
    only and change through the engine.
    """

    # Homeowner / property
    homeowner_name: Optional[str] = None
    homeowner_phone: Optional[str] = None
    homeowner_email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    roof_type: Optional[str] = None
    roof_squares: Optional[float] = None
    roof_squares_with_waste: Optional[float] = None
    stories: Optional[int] = None
    roofing_system_type: Optional[str] = None
    notes: Optional[str] = None

    # Insurance
    insurance_company: Optional[str] = None
    policy_number: Optional[str] = None
    claim_number: Optional[str] = None
    date_of_loss: Optional[date] = None
    date_type: Optional[str] = None
    inspection_date: Optional[date] = None

    # Adjuster
    adjuster_name: Optional[str] = None
    adjuster_phone: Optional[str] = None
    adjuster_email: Optional[str] = None
    adjuster_meeting_date: Optional[date] = None
    adjuster_not_assigned: Optional[bool] = None
    adjuster_notes: Optional[str] = None

    # Financials (locked to reps once approved)
    rcv: Optional[Money] = None
    acv: Optional[Money] = None
    deductible: Optional[Money] = None
    depreciation: Optional[Money] = None

    # Informational money fields
    sales_tax: Optional[Money] = None
    total_price: Optional[Money] = None
    acv_check_amount: Optional[Money] = None
    acv_check_date: Optional[date] = None
    depreciation_check_amount: Optional[Money] = None
    depreciation_check_date: Optional[date] = None
    invoice_amount: Optional[Money] = None
    supplement_amount: Optional[Money] = None
    supplement_approved: Optional[bool] = None
    supplement_notes: Optional[str] = None
    total_contract_value: Optional[Money] = None
    approval_type: Optional[str] = None

    # Materials
    material_category: Optional[str] = None
    material_type: Optional[str] = None
    material_color: Optional[str] = None
    drip_edge: Optional[str] = None
    vent_color: Optional[str] = None

    # Photos (storage keys)
    inspection_images: List[str] = Field(default_factory=list)
    install_images: List[str] = Field(default_factory=list)
    completion_images: List[str] = Field(default_factory=list)

    # Documents (storage keys)
    lost_statement_url: Optional[str] = None
    insurance_agreement_url: Optional[str] = None
    agreement_document_url: Optional[str] = None
    permit_file_url: Optional[str] = None
    acv_receipt_url: Optional[str] = None
    deductible_receipt_url: Optional[str] = None
    depreciation_receipt_url: Optional[str] = None
    invoice_url: Optional[str] = None
    signature_url: Optional[str] = None
    completion_form_url: Optional[str] = None
    completion_form_signature_url: Optional[str] = None
    homeowner_completion_signature_url: Optional[str] = None

    contract_signed: bool = False

    # Build
    install_date: Optional[date] = None
    install_time: Optional[str] = None
    crew_assignment: Optional[str] = None
    completion_date: Optional[date] = None
    materials_ordered_date: Optional[date] = None
    materials_delivered_date: Optional[date] = None


class DealUpdate(DealFields):
    """Partial update body. Only explicitly set fields are applied."""

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class DealCreate(DealFields):
    """New deal body; homeowner name and address are required."""

    model_config = ConfigDict(extra="forbid")

    homeowner_name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)


class Deal(DealFields):
    """A roofing job tracked end to end."""

    id: str = Field(..., min_length=1)
    status: DealStatus = DealStatus.LEAD
    revision: int = 1

    rep_id: Optional[str] = None
    rep_name: Optional[str] = None

    # Derived flags
    acv_check_collected: bool = False
    depreciation_check_collected: bool = False
    payment_requested: bool = False
    payment_request_date: Optional[datetime] = None
    commission_paid: bool = False
    commission_paid_date: Optional[datetime] = None

    # Admin commission override
    commission_override_amount: Optional[Money] = None
    commission_override_reason: Optional[str] = None
    commission_override_date: Optional[datetime] = None

    # Milestone timestamps, one per status
    lead_date: Optional[datetime] = None
    inspection_scheduled_date: Optional[datetime] = None
    claim_filed_date: Optional[datetime] = None
    signed_date: Optional[datetime] = None
    adjuster_met_date: Optional[datetime] = None
    awaiting_approval_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    acv_collected_date: Optional[datetime] = None
    deductible_collected_date: Optional[datetime] = None
    materials_selected_date: Optional[datetime] = None
    install_scheduled_date: Optional[datetime] = None
    installed_date: Optional[datetime] = None
    completion_signed_date: Optional[datetime] = None
    invoice_sent_date: Optional[datetime] = None
    depreciation_collected_date: Optional[datetime] = None
    complete_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    deal_commissions: List[Commission] = Field(default_factory=list)

    @property
    def commission(self) -> Optional[Commission]:
        return self.deal_commissions[0] if self.deal_commissions else None

    def to_json(self) -> Dict[str, Any]:
        """Flat JSON-ready dict."""
        return self.model_dump(mode="json")

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Deal":
        return cls.model_validate(data)

    def merged(self, fields: Dict[str, Any]) -> "Deal":
        """Validated copy of this deal with `fields` applied on top."""
        data = self.model_dump()
        data.update(fields)
        return Deal.model_validate(data)
