"""Core calculation engine for the loans and payoff lab.

This module implements the level payment formula, a month-by-month
amortization simulator with recurring extra principal and one-time lump sums,
a refinance scenario that splices the original loan's schedule with the
replacement loan's schedule, and a comparator that derives interest and months
saved between two schedules.

Nothing here raises for numerically infeasible input. A payment that cannot
be computed is ``None`` and an infeasible schedule has no rows, a ``None``
payoff month and total interest, and the negative amortization flag set.
"""

from __future__ import annotations

import logging
from decimal import Decimal, getcontext
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .data_models import (
    AmortizationParams,
    LoanCost,
    LumpSum,
    RecurringExtra,
    RefinanceParams,
    RefinanceResult,
    Schedule,
    ScheduleRow,
    ScenarioComparison,
)
from .utils import Number, clamp, monthly_rate, round_months, to_decimal, years_to_months

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

# A balance at or below this is considered paid off.
PAYOFF_EPSILON = Decimal("0.01")

# Iteration cap is min(limit_months, CAP_MULTIPLIER * term + CAP_PADDING).
DEFAULT_LIMIT_MONTHS = 1200
CAP_MULTIPLIER = 2
CAP_PADDING = 240

# Closing cost estimate used when the caller does not supply one.
REFI_COST_RATE = Decimal("0.02")
REFI_COST_MIN = Decimal("1000")
REFI_COST_MAX = Decimal("6000")

ZERO = Decimal("0")


def compute_payment(balance: Number, apr: Number, months: Number) -> Optional[Decimal]:
    """Return the level monthly payment that fully amortizes ``balance``.

    The formula is:

        payment = P * i / (1 - (1 + i)^-n)

    where ``P`` is the balance, ``i`` the monthly rate (``apr / 100 / 12``)
    and ``n`` the number of months, rounded to an integer. When the rate is
    zero the payment is simply ``P / n``. Returns ``None`` when the balance is
    not positive or the month count is not a positive integer.
    """
    principal = to_decimal(balance)
    rate = to_decimal(apr)
    n = round_months(months) if months is not None else None
    if principal is None or rate is None or n is None:
        return None
    if principal <= 0 or n <= 0:
        return None
    i = monthly_rate(rate)
    if i == 0:
        return principal / Decimal(n)
    return principal * i / (1 - (1 + i) ** -n)


def resolve_term(n_months: Optional[Number], years_remaining: Optional[Number]) -> int:
    """Term in months: ``n_months`` rounded when given, else from years."""
    if n_months is not None:
        n = round_months(n_months)
        if n is not None:
            return max(1, n)
    return years_to_months(years_remaining)


def _prepare_lump_sums(lump_sums: Iterable[LumpSum]) -> Dict[int, Decimal]:
    """Sum valid lump sums by target month for quick lookup."""
    mapping: Dict[int, Decimal] = {}
    for lump in lump_sums:
        amount = to_decimal(lump.amount)
        if amount is None or amount <= 0 or lump.month < 1:
            continue
        mapping[lump.month] = mapping.get(lump.month, ZERO) + amount
    return mapping


def iteration_cap(term: int, limit_months: int = DEFAULT_LIMIT_MONTHS) -> int:
    return min(limit_months, term * CAP_MULTIPLIER + CAP_PADDING)


def run_amortization(params: AmortizationParams) -> Schedule:
    """Simulate a loan month by month until payoff or the iteration cap.

    Each month the interest on the opening balance is charged, the scheduled
    payment minus interest (plus any active recurring extra) goes to
    principal, and lump sums targeting the month are added on top. When the
    scheduled part would be negative the payment does not cover interest:
    the run is flagged as negative amortization and that part is floored at
    zero, so only lump sums reduce the balance. The principal applied never
    exceeds the remaining balance.

    Parameters
    ----------
    params: AmortizationParams
        Loan terms, optional payment override and extras.

    Returns
    -------
    Schedule
        The rows plus payoff month, total interest and the negative
        amortization flag. An empty schedule with ``None`` summary values and
        the flag set signals a payment that is not a positive number.
    """
    balance = to_decimal(params.balance)
    apr = to_decimal(params.apr)
    if balance is None or apr is None:
        return Schedule.infeasible()

    term = resolve_term(params.n_months, params.years_remaining)
    override = to_decimal(params.current_payment)
    payment = override if override is not None else compute_payment(balance, apr, term)
    if payment is None or payment <= 0:
        logger.debug("No positive payment for balance=%s apr=%s term=%s", balance, apr, term)
        return Schedule.infeasible()

    rate = monthly_rate(apr)
    recurring = params.recurring or RecurringExtra(amount=ZERO, enabled=False)
    recurring_amount = max(ZERO, to_decimal(recurring.amount) or ZERO)
    lump_map = _prepare_lump_sums(params.lump_sums)
    cap = iteration_cap(term, params.limit_months)
    logger.debug("Amortizing balance=%s apr=%s term=%d payment=%s cap=%d", balance, apr, term, payment, cap)

    rows: List[ScheduleRow] = []
    cumulative_interest = ZERO
    cumulative_principal = ZERO
    negative_amortization = False
    month = 0

    while balance > PAYOFF_EPSILON and month < cap:
        month += 1
        interest = balance * rate
        scheduled_principal = payment - interest
        extra_monthly = recurring_amount if recurring.applies_to(month) else ZERO
        scheduled_principal += extra_monthly
        extra_lump = lump_map.get(month, ZERO)

        if scheduled_principal < 0:
            negative_amortization = True
            scheduled_principal = ZERO

        principal_applied = scheduled_principal + extra_lump
        if principal_applied > balance:
            principal_applied = balance

        balance = max(ZERO, balance - principal_applied)
        cumulative_interest += max(ZERO, interest)
        cumulative_principal += principal_applied

        rows.append(
            ScheduleRow(
                month=month,
                interest=interest,
                principal=principal_applied,
                payment=payment,
                extra_monthly=extra_monthly,
                extra_lump=extra_lump,
                balance=balance,
                cumulative_interest=cumulative_interest,
                cumulative_principal=cumulative_principal,
            )
        )

    if negative_amortization:
        logger.warning("Payment %s does not cover interest; negative amortization detected", payment)
    if balance > PAYOFF_EPSILON and month >= cap and cap < params.limit_months:
        logger.warning("Stopped at safety cap of %d months with balance %s remaining", cap, balance)

    return Schedule(
        rows=rows,
        payoff_month=len(rows),
        total_interest=rows[-1].cumulative_interest if rows else None,
        negative_amortization=negative_amortization,
    )


def _stitch(pre_rows: Sequence[ScheduleRow], post_rows: Sequence[ScheduleRow]) -> List[ScheduleRow]:
    """Append ``post_rows`` after ``pre_rows`` with continuous months and totals."""
    stitched = list(pre_rows)
    offset = len(pre_rows)
    cumulative_interest = pre_rows[-1].cumulative_interest if pre_rows else ZERO
    cumulative_principal = pre_rows[-1].cumulative_principal if pre_rows else ZERO
    for row in post_rows:
        cumulative_interest += max(ZERO, row.interest)
        cumulative_principal += row.principal
        stitched.append(
            ScheduleRow(
                month=offset + row.month,
                interest=row.interest,
                principal=row.principal,
                payment=row.payment,
                extra_monthly=ZERO,
                extra_lump=ZERO,
                balance=row.balance,
                cumulative_interest=cumulative_interest,
                cumulative_principal=cumulative_principal,
            )
        )
    return stitched


def run_refinance_scenario(params: RefinanceParams) -> RefinanceResult:
    """Simulate keeping the original loan until a refinance, then a new loan.

    The original loan is amortized without extras for exactly the refinance
    month count (or until it pays off, whichever comes first). Its closing
    balance plus closing costs becomes the opening balance of the new loan,
    whose level payment is computed from the new rate and term. The two legs
    are joined into one timeline: month indices keep counting and cumulative
    totals carry over the splice point.
    """
    base_term = years_to_months(params.years_remaining)
    override = to_decimal(params.current_payment)
    base_payment = override if override is not None else compute_payment(params.balance, params.apr, base_term)
    refi_month = years_to_months(params.refi_years)

    pre = run_amortization(
        AmortizationParams(
            balance=params.balance,
            apr=params.apr,
            n_months=base_term,
            current_payment=base_payment,
            limit_months=refi_month,
        )
    )
    if not pre.rows:
        return RefinanceResult.infeasible()

    snapshot = pre.rows[-1]
    costs = max(ZERO, to_decimal(params.costs) or ZERO)
    balance_at_refinance = snapshot.balance + costs

    new_term = years_to_months(params.new_term_years)
    new_payment = compute_payment(balance_at_refinance, params.new_apr, new_term)
    post = run_amortization(
        AmortizationParams(
            balance=balance_at_refinance,
            apr=params.new_apr,
            n_months=new_term,
            current_payment=new_payment,
        )
    )
    logger.debug(
        "Refinanced %s at month %d into payment %s over %d months",
        balance_at_refinance,
        snapshot.month,
        new_payment,
        new_term,
    )

    rows = _stitch(pre.rows, post.rows)
    return RefinanceResult(
        rows=rows,
        payoff_month=len(rows),
        total_interest=rows[-1].cumulative_interest,
        negative_amortization=pre.negative_amortization or post.negative_amortization,
        balance_at_refinance=balance_at_refinance,
        new_monthly_payment=new_payment,
        refinance_month=snapshot.month,
    )


def compare_schedules(baseline: Schedule, scenario: Schedule) -> ScenarioComparison:
    """Interest and months saved by ``scenario`` relative to ``baseline``."""
    interest_saved = None
    if baseline.total_interest is not None and scenario.total_interest is not None:
        interest_saved = baseline.total_interest - scenario.total_interest
    months_saved = None
    if baseline.payoff_month is not None and scenario.payoff_month is not None:
        months_saved = baseline.payoff_month - scenario.payoff_month
    return ScenarioComparison(
        interest_saved=interest_saved,
        months_saved=months_saved,
        negative_amortization_warning=baseline.negative_amortization or scenario.negative_amortization,
    )


def loan_cost_summary(principal: Number, apr: Number, years: Number) -> LoanCost:
    """Level payment, total paid and total interest over the full term."""
    months = years_to_months(years)
    payment = compute_payment(principal, apr, months)
    if payment is None:
        return LoanCost(payment=None, total_paid=None, total_interest=None)
    total_paid = payment * months
    return LoanCost(payment=payment, total_paid=total_paid, total_interest=total_paid - to_decimal(principal))


def estimate_refinance_costs(balance: Number) -> Optional[Decimal]:
    """Rough closing costs: 2 % of the balance, kept within 1,000 to 6,000."""
    amount = to_decimal(balance)
    if amount is None:
        return None
    return clamp(amount * REFI_COST_RATE, REFI_COST_MIN, REFI_COST_MAX)


def build_extra_principal_params(
    balance: Number,
    apr: Number,
    years_remaining: Number,
    current_payment: Optional[Number] = None,
    extra_monthly: Optional[Number] = None,
    extra_start_years: Optional[Number] = None,
    lump_sums: Iterable[Tuple[Number, Number]] = (),
    limit_months: int = DEFAULT_LIMIT_MONTHS,
) -> AmortizationParams:
    """Build amortization parameters from year-based extra payment inputs.

    ``extra_start_years`` and the years of each ``(years, amount)`` lump sum
    are converted to months with :func:`years_to_months`, so the earliest
    possible month is 1. Lump sums without a positive amount are dropped.
    """
    recurring = None
    monthly = to_decimal(extra_monthly)
    if monthly is not None and monthly > 0:
        recurring = RecurringExtra(amount=monthly, start_month=years_to_months(extra_start_years))
    lumps: List[LumpSum] = []
    for years, amount in lump_sums:
        value = to_decimal(amount)
        if value is None or value <= 0:
            continue
        lumps.append(LumpSum(month=years_to_months(years), amount=value))
    return AmortizationParams(
        balance=to_decimal(balance),
        apr=to_decimal(apr),
        n_months=years_to_months(years_remaining),
        current_payment=to_decimal(current_payment),
        recurring=recurring,
        lump_sums=lumps,
        limit_months=limit_months,
    )
