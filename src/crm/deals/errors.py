"""
Deal Workflow Errors

Exceptions raised by the workflow engine and its collaborators.

Business-rule failures (a requirement not yet met) are never raised; they
come back as data on AdvanceResult / StepEvaluation. The classes below are
for caller bugs, missing records, and collaborator failures.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for deal workflow errors."""


class DealIntegrityError(WorkflowError):
    """Deal snapshot is malformed (missing id, unknown status)."""

    def __init__(self, message: str, deal_id: Optional[str] = None):
        self.deal_id = deal_id
        super().__init__(message)


class DealNotFoundError(WorkflowError):
    """No deal exists with the requested id."""

    def __init__(self, deal_id: str):
        self.deal_id = deal_id
        super().__init__(f"Deal not found: {deal_id}")


class RepNotFoundError(WorkflowError):
    def __init__(self, rep_id: str):
        self.rep_id = rep_id
        super().__init__(f"Rep not found: {rep_id}")


class RevisionConflictError(WorkflowError):
    """Deal changed since the snapshot the caller computed against."""

    def __init__(self, deal_id: str, expected: int, actual: Optional[int]):
        self.deal_id = deal_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Deal {deal_id} revision mismatch: expected {expected}, found {actual}"
        )


class InvalidTransitionError(WorkflowError):
    """An explicit (admin) status change that the workflow does not allow."""

    def __init__(self, message: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message)


class PermissionDeniedError(WorkflowError):
    """The acting role may not perform this workflow operation."""


class PaymentRequestError(WorkflowError):
    """Commission payment cannot be requested in the deal's current state."""


class UploadError(WorkflowError):
    """Storing an uploaded file failed; deal state is left untouched."""
