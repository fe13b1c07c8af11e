"""
Financial Calculator

Pure functions over a deal snapshot: sales tax, commission base,
commission payout, and the ACV / depreciation split of an insurance claim.
All amounts are Decimals rounded to cents, halves away from zero.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional

from .models import CommissionLevel, Deal, Rep

CENTS = Decimal("0.01")
ZERO = Decimal("0")

DEFAULT_SALES_TAX_RATE = Decimal("0.0825")

DEFAULT_LEVEL_PERCENTS: Mapping[CommissionLevel, Decimal] = MappingProxyType({
    CommissionLevel.JUNIOR: Decimal("5"),
    CommissionLevel.SENIOR: Decimal("10"),
    CommissionLevel.MANAGER: Decimal("13"),
})


@dataclass(frozen=True)
class FinancialPolicy:
    """Tax rate and commission tiers, built once and passed in."""
    sales_tax_rate: Decimal = DEFAULT_SALES_TAX_RATE
    level_percents: Mapping[CommissionLevel, Decimal] = field(
        default_factory=lambda: DEFAULT_LEVEL_PERCENTS
    )


DEFAULT_POLICY = FinancialPolicy()


class CommissionSource(str, Enum):
    OVERRIDE = "override"
    RECORDED = "recorded"
    COMPUTED = "computed"
    UNAVAILABLE = "unavailable"


def to_cents(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _positive(value: Optional[Decimal]) -> bool:
    return value is not None and value > ZERO


def sales_tax(rcv: Decimal, policy: FinancialPolicy = DEFAULT_POLICY) -> Decimal:
    return to_cents(Decimal(rcv) * policy.sales_tax_rate)


def _unrounded_base(rcv: Decimal, policy: FinancialPolicy) -> Decimal:
    return Decimal(rcv) * (Decimal(1) - policy.sales_tax_rate)


def base_amount(rcv: Decimal, policy: FinancialPolicy = DEFAULT_POLICY) -> Decimal:
    """RCV with sales tax taken out; the amount commission is paid on."""
    return to_cents(_unrounded_base(rcv, policy))


def effective_rcv(deal: Deal) -> Optional[Decimal]:
    """
    Stored RCV, or ACV + depreciation when RCV was never entered.

    A stored RCV always wins, even if it disagrees with ACV + depreciation;
    see rcv_discrepancy() for surfacing that case.
    """
    if deal.rcv is not None:
        return deal.rcv
    if deal.acv is None or deal.depreciation is None:
        return None
    return deal.acv + deal.depreciation


def rcv_discrepancy(deal: Deal) -> Optional[Decimal]:
    """Stored RCV minus (ACV + depreciation), when all three exist and differ."""
    if deal.rcv is None or deal.acv is None or deal.depreciation is None:
        return None
    diff = deal.rcv - (deal.acv + deal.depreciation)
    return to_cents(diff) if diff != ZERO else None


def effective_commission_percent(
    deal: Deal,
    rep: Optional[Rep] = None,
    policy: FinancialPolicy = DEFAULT_POLICY,
) -> Decimal:
    """Deal commission record, then rep default, then rep level, then 0."""
    commission = deal.commission
    if commission is not None and _positive(commission.commission_percent):
        return commission.commission_percent
    if rep is None:
        return ZERO
    if _positive(rep.default_commission_percent):
        return rep.default_commission_percent
    return policy.level_percents.get(rep.commission_level, ZERO)


def commission_amount(
    deal: Deal,
    rep: Optional[Rep] = None,
    policy: FinancialPolicy = DEFAULT_POLICY,
) -> Optional[Decimal]:
    amount, _ = _commission_with_source(deal, rep, policy)
    return amount


def _commission_with_source(deal: Deal, rep: Optional[Rep], policy: FinancialPolicy):
    if deal.commission_override_amount is not None:
        return to_cents(deal.commission_override_amount), CommissionSource.OVERRIDE

    commission = deal.commission
    # Recorded amounts are a point-in-time snapshot and never recomputed
    if commission is not None and _positive(commission.commission_amount):
        return to_cents(commission.commission_amount), CommissionSource.RECORDED

    rcv = effective_rcv(deal)
    if rcv is None:
        return None, CommissionSource.UNAVAILABLE
    percent = effective_commission_percent(deal, rep, policy)
    return to_cents(_unrounded_base(rcv, policy) * percent / Decimal(100)), CommissionSource.COMPUTED


@dataclass(frozen=True)
class ClaimBreakdown:
    """What the insurer pays and when."""
    rcv: Optional[Decimal]
    first_check: Optional[Decimal]
    second_check: Optional[Decimal]
    deductible: Optional[Decimal]


def claim_breakdown(deal: Deal) -> ClaimBreakdown:
    first = None
    if deal.acv is not None:
        first = to_cents(deal.acv - (deal.deductible or ZERO))
    return ClaimBreakdown(
        rcv=effective_rcv(deal),
        first_check=first,
        second_check=deal.depreciation,
        deductible=deal.deductible,
    )


@dataclass
class FinancialSummary:
    rcv: Optional[Decimal]
    rcv_reconstructed: bool
    sales_tax: Optional[Decimal]
    base_amount: Optional[Decimal]
    commission_percent: Decimal
    commission_amount: Optional[Decimal]
    commission_source: CommissionSource
    claim: ClaimBreakdown
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        def num(v):
            return float(v) if v is not None else None

        return {
            "rcv": num(self.rcv),
            "rcv_reconstructed": self.rcv_reconstructed,
            "sales_tax": num(self.sales_tax),
            "base_amount": num(self.base_amount),
            "commission_percent": num(self.commission_percent),
            "commission_amount": num(self.commission_amount),
            "commission_source": self.commission_source.value,
            "first_check": num(self.claim.first_check),
            "second_check": num(self.claim.second_check),
            "deductible": num(self.claim.deductible),
            "warnings": list(self.warnings),
        }


def summarize(
    deal: Deal,
    rep: Optional[Rep] = None,
    policy: FinancialPolicy = DEFAULT_POLICY,
) -> FinancialSummary:
    rcv = effective_rcv(deal)
    amount, source = _commission_with_source(deal, rep, policy)

    warnings = []
    diff = rcv_discrepancy(deal)
    if diff is not None:
        warnings.append(
            f"Stored RCV {deal.rcv} differs from ACV + depreciation "
            f"({deal.acv + deal.depreciation}) by {diff}"
        )

    return FinancialSummary(
        rcv=rcv,
        rcv_reconstructed=deal.rcv is None and rcv is not None,
        sales_tax=sales_tax(rcv, policy) if rcv is not None else None,
        base_amount=base_amount(rcv, policy) if rcv is not None else None,
        commission_percent=effective_commission_percent(deal, rep, policy),
        commission_amount=amount,
        commission_source=source,
        claim=claim_breakdown(deal),
        warnings=warnings,
    )
