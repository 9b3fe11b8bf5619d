"""Output helpers for the loans and payoff lab.

This module renders schedules, summaries and scenario comparisons in a
tabular text format for the terminal, converts them to JSON-friendly
dictionaries and extracts single metric series for charting. Values that
could not be computed are shown as an em dash in text and ``None`` in data.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .data_models import RefinanceResult, Schedule, ScheduleRow, ScenarioComparison

MISSING = "—"

SERIES_METRICS = ("cumulative_interest", "cumulative_principal", "balance")


def _money(value: Optional[Decimal]) -> str:
    return MISSING if value is None else f"{value:,.2f}"


def _as_float(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def summarize(schedule: Schedule) -> Dict[str, Any]:
    """Return summary metrics for ``schedule`` as plain Python values."""
    first = schedule.rows[0] if schedule.rows else None
    summary: Dict[str, Any] = {
        "payoff_month": schedule.payoff_month,
        "total_interest": _as_float(schedule.total_interest),
        "total_principal": _as_float(schedule.rows[-1].cumulative_principal) if schedule.rows else None,
        "monthly_payment": _as_float(first.payment) if first else None,
        "final_balance": _as_float(schedule.final_balance),
        "negative_amortization": schedule.negative_amortization,
    }
    if isinstance(schedule, RefinanceResult):
        summary["balance_at_refinance"] = _as_float(schedule.balance_at_refinance)
        summary["new_monthly_payment"] = _as_float(schedule.new_monthly_payment)
        summary["refinance_month"] = schedule.refinance_month
    return summary


def serialize_row(row: ScheduleRow) -> Dict[str, Any]:
    return {
        "month": row.month,
        "interest": float(row.interest),
        "principal": float(row.principal),
        "payment": float(row.payment),
        "extra_monthly": float(row.extra_monthly),
        "extra_lump": float(row.extra_lump),
        "balance": float(row.balance),
        "cumulative_interest": float(row.cumulative_interest),
        "cumulative_principal": float(row.cumulative_principal),
    }


def serialize_comparison(comparison: ScenarioComparison) -> Dict[str, Any]:
    return {
        "interest_saved": _as_float(comparison.interest_saved),
        "months_saved": comparison.months_saved,
        "negative_amortization_warning": comparison.negative_amortization_warning,
    }


def schedule_series(schedule: Schedule, metric: str = "cumulative_interest") -> Tuple[List[int], List[float]]:
    """Return ``(months, values)`` for one metric, ready for a line chart."""
    if metric not in SERIES_METRICS:
        raise ValueError(f"Unknown metric {metric!r}; expected one of {', '.join(SERIES_METRICS)}")
    months = [row.month for row in schedule.rows]
    values = [float(getattr(row, metric)) for row in schedule.rows]
    return months, values


def print_summary(schedule: Schedule, title: str = "Summary") -> None:
    """Print a summary of schedule metrics in a human-readable format."""
    summary = summarize(schedule)
    print(title)
    print("-" * 72)
    print(f"Monthly payment    : {_money(schedule.rows[0].payment) if schedule.rows else MISSING}")
    payoff = schedule.payoff_month
    print(f"Payoff month       : {MISSING if payoff is None else payoff}")
    print(f"Total interest     : {_money(schedule.total_interest)}")
    if isinstance(schedule, RefinanceResult):
        print(f"Refinance month    : {MISSING if schedule.refinance_month is None else schedule.refinance_month}")
        print(f"Balance at refi    : {_money(schedule.balance_at_refinance)}")
        print(f"New payment        : {_money(schedule.new_monthly_payment)}")
    if summary["negative_amortization"]:
        print("Warning            : payment does not cover interest (negative amortization)")
    print("-" * 72)


def print_schedule(rows: Iterable[ScheduleRow]) -> None:
    """Print schedule rows as a tab separated table."""
    headers = [
        "Month",
        "Payment",
        "Interest",
        "Principal",
        "Extra",
        "Lump",
        "Balance",
        "CumInterest",
        "CumPrincipal",
    ]
    print("\t".join(headers))
    for row in rows:
        print(
            "\t".join(
                [
                    str(row.month),
                    f"{row.payment:.2f}",
                    f"{row.interest:.2f}",
                    f"{row.principal:.2f}",
                    f"{row.extra_monthly:.2f}",
                    f"{row.extra_lump:.2f}",
                    f"{row.balance:.2f}",
                    f"{row.cumulative_interest:.2f}",
                    f"{row.cumulative_principal:.2f}",
                ]
            )
        )


def print_comparison(baseline: Schedule, scenario: Schedule, comparison: ScenarioComparison) -> None:
    """Print baseline and scenario side by side with the savings.

    Positive savings mean the scenario pays less interest or finishes sooner.
    """
    print("Comparison")
    print("=" * 72)
    print(f"{'Metric':20s} {'Baseline':>15s} {'Scenario':>15s} {'Saved':>15s}")
    print(
        f"{'total_interest':20s} {_money(baseline.total_interest):>15s} "
        f"{_money(scenario.total_interest):>15s} {_money(comparison.interest_saved):>15s}"
    )
    months = [baseline.payoff_month, scenario.payoff_month, comparison.months_saved]
    cells = [MISSING if m is None else str(m) for m in months]
    print(f"{'payoff_month':20s} {cells[0]:>15s} {cells[1]:>15s} {cells[2]:>15s}")
    if comparison.negative_amortization_warning:
        print("Warning: a payment does not cover interest (negative amortization)")
    print("=" * 72)
