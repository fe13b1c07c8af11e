"""
Roofing deal workflow: statuses, steps, requirement checks, transitions
and financial math.

Everything here is synchronous and pure over a Deal snapshot. The async
service that persists decisions is `src.crm.deals.workflow`.
"""

from .errors import (
    DealIntegrityError,
    DealNotFoundError,
    InvalidTransitionError,
    PaymentRequestError,
    PermissionDeniedError,
    RepNotFoundError,
    RevisionConflictError,
    UploadError,
    WorkflowError,
)
from .models import Commission, CommissionLevel, Deal, DealCreate, DealStatus, DealUpdate, Rep, Role
from .steps import WORKFLOW_STEPS, compute_next_status, step_for
from .transitions import AdvanceResult, admin_transition, attempt_advance

__all__ = [
    "WorkflowError",
    "DealIntegrityError",
    "DealNotFoundError",
    "RepNotFoundError",
    "RevisionConflictError",
    "InvalidTransitionError",
    "PermissionDeniedError",
    "PaymentRequestError",
    "UploadError",
    "Commission",
    "CommissionLevel",
    "Deal",
    "DealCreate",
    "DealUpdate",
    "DealStatus",
    "Rep",
    "Role",
    "WORKFLOW_STEPS",
    "compute_next_status",
    "step_for",
    "AdvanceResult",
    "attempt_advance",
    "admin_transition",
]
