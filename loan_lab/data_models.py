"""Data models for the loans and payoff lab.

This module defines dataclasses for the inputs of a simulation run (recurring
extra principal, lump sums, the amortization and refinance parameter bundles)
and for its outputs (schedule rows, whole schedules, refinance results and
scenario comparisons). Values that cannot be computed are ``None`` rather
than NaN so that they never leak into unrelated arithmetic.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


@dataclass(frozen=True)
class RecurringExtra:
    """Extra principal paid every month from ``start_month`` onwards.

    Attributes
    ----------
    amount: Decimal
        Extra principal per month. Negative amounts are treated as zero.
    start_month: int
        1-based month index at which the extra payment begins (inclusive).
    enabled: bool
        When False the extra is ignored entirely.
    """

    amount: Decimal
    start_month: int = 1
    enabled: bool = True

    def applies_to(self, month: int) -> bool:
        return self.enabled and month >= self.start_month


@dataclass(frozen=True)
class LumpSum:
    """A one-time extra principal payment applied in ``month``."""

    month: int
    amount: Decimal


@dataclass(frozen=True)
class AmortizationParams:
    """Configuration of a single amortization run.

    Either ``n_months`` or ``years_remaining`` defines the term; ``n_months``
    wins when both are given. When ``current_payment`` is None the level
    payment is derived from the balance, rate and term.
    """

    balance: Decimal
    apr: Decimal  # annual nominal rate in percent
    n_months: Optional[int] = None
    years_remaining: Optional[Decimal] = None
    current_payment: Optional[Decimal] = None
    recurring: Optional[RecurringExtra] = None
    lump_sums: List[LumpSum] = field(default_factory=list)
    limit_months: int = 1200


@dataclass(frozen=True)
class RefinanceParams:
    """Configuration of a refinance scenario.

    ``refi_years`` may be fractional; it is rounded to whole months. The
    closing ``costs`` are added to the new loan's opening balance.
    """

    balance: Decimal
    apr: Decimal
    years_remaining: Decimal
    refi_years: Decimal
    new_apr: Decimal
    new_term_years: Decimal
    current_payment: Optional[Decimal] = None
    costs: Decimal = Decimal("0")


@dataclass(frozen=True)
class ScheduleRow:
    """One simulated month.

    ``principal`` is the total principal applied this month (scheduled part
    plus extras), already clamped to the remaining balance. ``payment`` is the
    nominal scheduled payment and is informational only.
    """

    month: int
    interest: Decimal
    principal: Decimal
    payment: Decimal
    extra_monthly: Decimal
    extra_lump: Decimal
    balance: Decimal
    cumulative_interest: Decimal
    cumulative_principal: Decimal


@dataclass
class Schedule:
    """An ordered sequence of schedule rows plus summary values.

    An infeasible configuration yields no rows, ``payoff_month`` and
    ``total_interest`` of None and ``negative_amortization`` set to True.
    """

    rows: List[ScheduleRow]
    payoff_month: Optional[int]
    total_interest: Optional[Decimal]
    negative_amortization: bool = False

    @property
    def is_feasible(self) -> bool:
        return self.payoff_month is not None

    @property
    def final_balance(self) -> Optional[Decimal]:
        return self.rows[-1].balance if self.rows else None

    @classmethod
    def infeasible(cls) -> "Schedule":
        return cls(rows=[], payoff_month=None, total_interest=None, negative_amortization=True)


@dataclass
class RefinanceResult(Schedule):
    """A stitched pre/post refinance schedule.

    ``balance_at_refinance`` is the original loan's balance at the refinance
    month plus closing costs; ``new_monthly_payment`` is the level payment of
    the replacement loan.
    """

    balance_at_refinance: Optional[Decimal] = None
    new_monthly_payment: Optional[Decimal] = None
    refinance_month: Optional[int] = None


@dataclass(frozen=True)
class ScenarioComparison:
    """Deltas between a baseline schedule and an alternative scenario.

    Positive values mean the scenario is better (less interest, earlier
    payoff). Both are None when either schedule is infeasible.
    """

    interest_saved: Optional[Decimal]
    months_saved: Optional[int]
    negative_amortization_warning: bool


@dataclass(frozen=True)
class LoanCost:
    """Level payment together with lifetime totals for a loan."""

    payment: Optional[Decimal]
    total_paid: Optional[Decimal]
    total_interest: Optional[Decimal]
