"""
Milestone Table & Progress Projector

The canonical pipeline order used for progress display. Each milestone
carries a display label, an icon hint and the phase it belongs to.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from .errors import DealIntegrityError
from .models import Deal, DealStatus, timestamp_field


class Phase(str, Enum):
    SIGN = "sign"
    BUILD = "build"
    FINALIZING = "finalizing"
    COMPLETE = "complete"


PHASE_LABELS: Mapping[Phase, str] = MappingProxyType({
    Phase.SIGN: "Sign",
    Phase.BUILD: "Build",
    Phase.FINALIZING: "Finalizing",
    Phase.COMPLETE: "Complete",
})


@dataclass(frozen=True)
class Milestone:
    status: DealStatus
    label: str
    icon: str
    phase: Phase


MILESTONES: Tuple[Milestone, ...] = (
    Milestone(DealStatus.LEAD, "Lead", "person", Phase.SIGN),
    Milestone(DealStatus.INSPECTION_SCHEDULED, "Inspected", "camera", Phase.SIGN),
    Milestone(DealStatus.CLAIM_FILED, "Claim Filed", "document-text", Phase.SIGN),
    Milestone(DealStatus.SIGNED, "Signed", "create", Phase.SIGN),
    Milestone(DealStatus.ADJUSTER_MET, "Adjuster Met", "people", Phase.SIGN),
    Milestone(DealStatus.AWAITING_APPROVAL, "Awaiting Appr.", "time", Phase.SIGN),
    Milestone(DealStatus.APPROVED, "Approved", "checkmark-circle", Phase.BUILD),
    Milestone(DealStatus.ACV_COLLECTED, "ACV Collected", "cash", Phase.BUILD),
    Milestone(DealStatus.DEDUCTIBLE_COLLECTED, "Ded. Collected", "cash", Phase.BUILD),
    Milestone(DealStatus.MATERIALS_SELECTED, "Materials", "construct", Phase.BUILD),
    Milestone(DealStatus.INSTALL_SCHEDULED, "Install Sched.", "calendar", Phase.BUILD),
    Milestone(DealStatus.INSTALLED, "Installed", "home", Phase.BUILD),
    Milestone(DealStatus.COMPLETION_SIGNED, "Completion Form", "create", Phase.FINALIZING),
    Milestone(DealStatus.INVOICE_SENT, "RCV Sent", "send", Phase.FINALIZING),
    Milestone(DealStatus.DEPRECIATION_COLLECTED, "Depreciation", "cash", Phase.FINALIZING),
    Milestone(DealStatus.COMPLETE, "Complete", "trophy", Phase.COMPLETE),
    Milestone(DealStatus.PAID, "Paid", "checkmark-done", Phase.COMPLETE),
)

_INDEX: Mapping[str, int] = MappingProxyType(
    {m.status.value: i for i, m in enumerate(MILESTONES)}
)


def locate_index(status, strict: bool = True) -> int:
    """
    Zero-based position of `status` in the milestone sequence.

    Unknown statuses are a data-integrity fault and raise
    DealIntegrityError. Pass strict=False to get the lenient display
    fallback (index 0) instead.
    """
    value = status.value if isinstance(status, DealStatus) else status
    index = _INDEX.get(value)
    if index is None:
        if strict:
            raise DealIntegrityError(f"Unknown deal status: {status!r}")
        return 0
    return index


def milestone_for(status, strict: bool = True) -> Milestone:
    return MILESTONES[locate_index(status, strict=strict)]


def percent_complete(status, strict: bool = True) -> int:
    """round(index / (len - 1) * 100), halves rounded up."""
    index = locate_index(status, strict=strict)
    ratio = Decimal(index * 100) / Decimal(len(MILESTONES) - 1)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def current_phase(status, strict: bool = True) -> Phase:
    return milestone_for(status, strict=strict).phase


def milestones_in_phase(phase: Phase) -> List[Milestone]:
    return [m for m in MILESTONES if m.phase == Phase(phase)]


@dataclass(frozen=True)
class MilestoneProgress:
    milestone: Milestone
    reached: bool
    reached_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProgressView:
    """Read-side projection of a deal's position in the pipeline."""
    status: DealStatus
    index: int
    label: str
    phase: Phase
    percent: int
    milestones: Tuple[MilestoneProgress, ...]

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "index": self.index,
            "label": self.label,
            "phase": self.phase.value,
            "phase_label": PHASE_LABELS[self.phase],
            "percent": self.percent,
            "milestones": [
                {
                    "status": p.milestone.status.value,
                    "label": p.milestone.label,
                    "icon": p.milestone.icon,
                    "phase": p.milestone.phase.value,
                    "reached": p.reached,
                    "reached_at": p.reached_at.isoformat() if p.reached_at else None,
                }
                for p in self.milestones
            ],
        }


def project_progress(deal: Deal) -> ProgressView:
    """Build the progress view for a deal snapshot."""
    index = locate_index(deal.status)
    current = MILESTONES[index]
    return ProgressView(
        status=current.status,
        index=index,
        label=current.label,
        phase=current.phase,
        percent=percent_complete(deal.status),
        milestones=tuple(
            MilestoneProgress(
                milestone=m,
                reached=i <= index,
                reached_at=getattr(deal, timestamp_field(m.status)),
            )
            for i, m in enumerate(MILESTONES)
        ),
    )
