"""
Requirement Evaluator

Decides whether a deal satisfies the step it is sitting in, and if not,
says which group of requirements is blocking. Each business rule is a
named predicate so it can be tested on its own.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Tuple

from .models import FINANCIAL_FIELDS, Deal
from .steps import FieldType, RequiredField, Rule, WorkflowStep


class BlockReason(str, Enum):
    """Machine-readable reasons a deal cannot advance."""
    MISSING_FIELDS = "missing_fields"
    SIGNATURE_MISSING = "signature_missing"
    FINANCIALS_INCOMPLETE = "financials_incomplete"
    ADJUSTER_INFO_MISSING = "adjuster_info_missing"
    LOST_STATEMENT_MISSING = "lost_statement_missing"
    ACV_RECEIPT_MISSING = "acv_receipt_missing"
    DEDUCTIBLE_RECEIPT_MISSING = "deductible_receipt_missing"
    MATERIALS_INCOMPLETE = "materials_incomplete"
    COMPLETION_SIGNATURES_MISSING = "completion_signatures_missing"
    DEPRECIATION_RECEIPT_MISSING = "depreciation_receipt_missing"
    FINANCIALS_LOCKED = "financials_locked"
    ADMIN_REQUIRED = "admin_required"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class Blocker:
    code: BlockReason
    message: str
    missing_fields: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "missing_fields": list(self.missing_fields),
        }


@dataclass(frozen=True)
class StepEvaluation:
    """Outcome of checking one step against one deal snapshot."""
    step: WorkflowStep
    blockers: Tuple[Blocker, ...] = field(default_factory=tuple)

    @property
    def satisfied(self) -> bool:
        return not self.blockers

    @property
    def blocking(self) -> Optional[Blocker]:
        """The single reason a UI should show first."""
        return self.blockers[0] if self.blockers else None

    def to_dict(self) -> dict:
        return {
            "status": self.step.status.value,
            "step": self.step.label,
            "satisfied": self.satisfied,
            "admin_only": self.step.admin_only,
            "blocking": self.blocking.to_dict() if self.blocking else None,
            "blockers": [b.to_dict() for b in self.blockers],
        }


METAL_CATEGORIES = frozenset({"metal", "architectural_metal"})


def is_empty(value: Any) -> bool:
    """None, an empty string and an empty list all count as missing."""
    if value is None:
        return True
    if isinstance(value, str) and value == "":
        return True
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return True
    return False


def _missing(deal: Deal, names) -> Tuple[str, ...]:
    return tuple(n for n in names if is_empty(getattr(deal, n, None)))


# ---------------------------------------------------------------------------
# Named predicates
# ---------------------------------------------------------------------------

def agreement_present(deal: Deal) -> bool:
    """Signed in-app, or a signed agreement document was uploaded."""
    if deal.contract_signed is True:
        return True
    return not is_empty(deal.insurance_agreement_url) or not is_empty(deal.agreement_document_url)


def financials_complete(deal: Deal) -> bool:
    return not _missing(deal, FINANCIAL_FIELDS)


def adjuster_info_complete(deal: Deal) -> bool:
    return not _missing(deal, ("adjuster_name", "adjuster_meeting_date"))


def lost_statement_uploaded(deal: Deal) -> bool:
    return not is_empty(deal.lost_statement_url)


def acv_receipt_present(deal: Deal) -> bool:
    return not is_empty(deal.acv_receipt_url)


def deductible_receipt_present(deal: Deal) -> bool:
    return not is_empty(deal.deductible_receipt_url)


def depreciation_receipt_present(deal: Deal) -> bool:
    return not is_empty(deal.depreciation_receipt_url)


def is_metal_category(category: Optional[str]) -> bool:
    if is_empty(category):
        return False
    return category.strip().lower().replace(" ", "_") in METAL_CATEGORIES


def missing_material_fields(deal: Deal) -> Tuple[str, ...]:
    """Metal roofs need a type, everything else needs a color."""
    if is_empty(deal.material_category):
        return ("material_category",)
    if is_metal_category(deal.material_category):
        return _missing(deal, ("material_type",))
    return _missing(deal, ("material_color",))


def materials_complete(deal: Deal) -> bool:
    return not missing_material_fields(deal)


def completion_signatures_present(deal: Deal) -> bool:
    return not _missing(
        deal, ("completion_form_signature_url", "homeowner_completion_signature_url")
    )


# ---------------------------------------------------------------------------
# Rule checks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleCheck:
    reason: BlockReason
    message: str
    missing: Callable[[Deal], Tuple[str, ...]]

    def evaluate(self, deal: Deal) -> Optional[Blocker]:
        missing = self.missing(deal)
        if not missing:
            return None
        return Blocker(self.reason, self.message, missing)


RULE_CHECKS: Mapping[Rule, RuleCheck] = MappingProxyType({
    Rule.FINANCIALS_COMPLETE: RuleCheck(
        BlockReason.FINANCIALS_INCOMPLETE,
        "RCV, ACV, deductible and depreciation must all be entered",
        lambda d: _missing(d, FINANCIAL_FIELDS),
    ),
    Rule.ADJUSTER_INFO_COMPLETE: RuleCheck(
        BlockReason.ADJUSTER_INFO_MISSING,
        "Adjuster name and meeting date are required",
        lambda d: _missing(d, ("adjuster_name", "adjuster_meeting_date")),
    ),
    Rule.LOST_STATEMENT_UPLOADED: RuleCheck(
        BlockReason.LOST_STATEMENT_MISSING,
        "Lost statement must be uploaded",
        lambda d: _missing(d, ("lost_statement_url",)),
    ),
    Rule.ACV_RECEIPT_PRESENT: RuleCheck(
        BlockReason.ACV_RECEIPT_MISSING,
        "ACV receipt must be uploaded",
        lambda d: _missing(d, ("acv_receipt_url",)),
    ),
    Rule.DEDUCTIBLE_RECEIPT_PRESENT: RuleCheck(
        BlockReason.DEDUCTIBLE_RECEIPT_MISSING,
        "Deductible receipt must be uploaded",
        lambda d: _missing(d, ("deductible_receipt_url",)),
    ),
    Rule.MATERIALS_COMPLETE: RuleCheck(
        BlockReason.MATERIALS_INCOMPLETE,
        "Material category and type (metal) or color are required",
        missing_material_fields,
    ),
    Rule.COMPLETION_SIGNATURES_PRESENT: RuleCheck(
        BlockReason.COMPLETION_SIGNATURES_MISSING,
        "Rep and homeowner must both sign the completion form",
        lambda d: _missing(
            d, ("completion_form_signature_url", "homeowner_completion_signature_url")
        ),
    ),
    Rule.DEPRECIATION_RECEIPT_PRESENT: RuleCheck(
        BlockReason.DEPRECIATION_RECEIPT_MISSING,
        "Depreciation receipt must be uploaded",
        lambda d: _missing(d, ("depreciation_receipt_url",)),
    ),
})


def _field_satisfied(deal: Deal, required: RequiredField) -> bool:
    if required.type == FieldType.SIGNATURE:
        return agreement_present(deal)
    return not is_empty(getattr(deal, required.field, None))


def evaluate_step(deal: Deal, step: WorkflowStep) -> StepEvaluation:
    """
    Check every requirement of `step` against `deal`.

    Plain required fields are reported together (signatures separately),
    followed by one blocker per failing rule, in the order the step lists
    them.
    """
    blockers: List[Blocker] = []

    missing = [
        r for r in step.required_fields
        if r.type != FieldType.SIGNATURE and not _field_satisfied(deal, r)
    ]
    if missing:
        blockers.append(Blocker(
            BlockReason.MISSING_FIELDS,
            "Required: " + ", ".join(r.label for r in missing),
            tuple(r.field for r in missing),
        ))

    for required in step.required_fields:
        if required.type == FieldType.SIGNATURE and not _field_satisfied(deal, required):
            blockers.append(Blocker(
                BlockReason.SIGNATURE_MISSING,
                f"{required.label} must be signed or uploaded",
                (required.field,),
            ))

    for rule in step.rules:
        blocker = RULE_CHECKS[rule].evaluate(deal)
        if blocker is not None:
            blockers.append(blocker)

    return StepEvaluation(step=step, blockers=tuple(blockers))


def is_step_satisfied(deal: Deal, step: WorkflowStep) -> bool:
    """True when `deal` meets every requirement of `step`. Never raises."""
    if not step.required_fields and not step.rules:
        return True
    return evaluate_step(deal, step).satisfied
