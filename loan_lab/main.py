"""Command-line interface for the loans and payoff lab.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute the level payment for a loan, simulate a full
amortization schedule with extra principal, simulate a refinance, or compare
a baseline loan against either scenario. Schedules can be printed to the
terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import click

from .data_models import AmortizationParams, RefinanceParams, Schedule
from .engine import (
    DEFAULT_LIMIT_MONTHS,
    build_extra_principal_params,
    compare_schedules,
    estimate_refinance_costs,
    loan_cost_summary,
    run_amortization,
    run_refinance_scenario,
)
from .formatter import (
    MISSING,
    print_comparison,
    print_schedule,
    print_summary,
    serialize_comparison,
    serialize_row,
    summarize,
)
from .utils import decimal_from_str, years_to_months

logger = logging.getLogger(__name__)

MAX_TERMINAL_ROWS = 120


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("300000"), thousands separators ("300,000") and
    shorthand with ``k``/``m`` suffixes (e.g. "300k" meaning 300_000).
    """
    value = value.strip().lower().replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def _amount_callback(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    return parse_amount(value)


def parse_lump_strings(values: Tuple[str, ...]) -> List[Tuple[Decimal, Decimal]]:
    """Parse ``YEARS:AMOUNT`` entries into ``(years, amount)`` pairs."""
    lumps: List[Tuple[Decimal, Decimal]] = []
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(f"Lump sum must be in YEARS:AMOUNT format; got {item}")
        years_str, amount_str = parts
        try:
            years = decimal_from_str(years_str)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        amount = parse_amount(amount_str)
        if amount <= 0:
            raise click.BadParameter(f"Lump sum amount must be positive; got {amount_str}")
        lumps.append((years, amount))
    return lumps


def loan_options(func: Callable) -> Callable:
    """Options describing the existing loan, shared by every command."""
    decorators = [
        click.option("--balance", "-b", "balance", required=True, callback=_amount_callback, help="Current loan balance"),
        click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)"),
        click.option("--years", "-y", "years", required=True, type=float, help="Years remaining on the loan"),
        click.option(
            "--payment",
            "payment",
            callback=_amount_callback,
            help="Current monthly payment. Defaults to the level payment for the balance, rate and term.",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def extra_options(func: Callable) -> Callable:
    decorators = [
        click.option("--extra-monthly", "extra_monthly", callback=_amount_callback, help="Recurring extra principal per month"),
        click.option(
            "--extra-start-years",
            "extra_start_years",
            type=float,
            default=0.0,
            show_default=True,
            help="Years from now when the recurring extra starts",
        ),
        click.option("--lump", "lump", multiple=True, help="One-time extra principal in YEARS:AMOUNT format"),
        click.option(
            "--limit-months",
            "limit_months",
            type=click.IntRange(min=1),
            default=DEFAULT_LIMIT_MONTHS,
            show_default=True,
            help="Hard cap on simulated months",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def refinance_options(func: Callable) -> Callable:
    decorators = [
        click.option("--refi-years", "refi_years", required=True, type=float, help="Years from now until refinancing"),
        click.option("--new-rate", "new_rate", required=True, type=float, help="Annual rate of the new loan (percent)"),
        click.option("--new-term-years", "new_term_years", required=True, type=float, help="Term of the new loan in years"),
        click.option(
            "--costs",
            "costs",
            callback=_amount_callback,
            help="Closing costs added to the new loan. Defaults to an estimate of 2% of the balance.",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _to_decimal(value: Optional[float]) -> Optional[Decimal]:
    return None if value is None else decimal_from_str(repr(value))


def build_baseline_params(
    balance: Decimal, rate: float, years: float, payment: Optional[Decimal], limit_months: int = DEFAULT_LIMIT_MONTHS
) -> AmortizationParams:
    return AmortizationParams(
        balance=balance,
        apr=_to_decimal(rate),
        n_months=years_to_months(_to_decimal(years)),
        current_payment=payment,
        limit_months=limit_months,
    )


def build_refinance_params(
    balance: Decimal,
    rate: float,
    years: float,
    payment: Optional[Decimal],
    refi_years: float,
    new_rate: float,
    new_term_years: float,
    costs: Optional[Decimal],
) -> RefinanceParams:
    if costs is None:
        costs = estimate_refinance_costs(balance)
        logger.info("Using estimated closing costs of %s", costs)
    return RefinanceParams(
        balance=balance,
        apr=_to_decimal(rate),
        years_remaining=_to_decimal(years),
        current_payment=payment,
        refi_years=_to_decimal(refi_years),
        new_apr=_to_decimal(new_rate),
        new_term_years=_to_decimal(new_term_years),
        costs=costs,
    )


def export_to_json(path: Path, schedule: Schedule) -> None:
    """Export schedule and summary to a JSON file."""
    data = {"summary": summarize(schedule), "schedule": [serialize_row(r) for r in schedule.rows]}
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: Schedule) -> None:
    """Export schedule rows to a CSV file."""
    header = [
        "Month",
        "Payment",
        "Interest",
        "Principal",
        "Extra_Monthly",
        "Extra_Lump",
        "Balance",
        "Cumulative_Interest",
        "Cumulative_Principal",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in schedule.rows:
            data = serialize_row(row)
            writer.writerow(
                [
                    data["month"],
                    data["payment"],
                    data["interest"],
                    data["principal"],
                    data["extra_monthly"],
                    data["extra_lump"],
                    data["balance"],
                    data["cumulative_interest"],
                    data["cumulative_principal"],
                ]
            )


def _emit(schedule: Schedule, output: Optional[str], title: str) -> None:
    """Export ``schedule`` to ``output`` or print it to the terminal."""
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, schedule)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, schedule)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return
    print_summary(schedule, title=title)
    rows = schedule.rows
    if len(rows) > MAX_TERMINAL_ROWS:
        click.echo(f"Schedule has {len(rows)} rows; showing first {MAX_TERMINAL_ROWS} rows.")
        rows = rows[:MAX_TERMINAL_ROWS]
    print_schedule(rows)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Loan payoff calculator: amortization, extra principal and refinancing."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--balance", "-b", "balance", required=True, callback=_amount_callback, help="Loan amount")
@click.option("--rate", "-r", "rate", required=True, type=float, help="Annual interest rate (percent)")
@click.option("--years", "-y", "years", type=float, help="Loan term in years")
@click.option("--term", "-t", "term", type=int, help="Loan term in months (overrides --years)")
def payment(balance: Decimal, rate: float, years: Optional[float], term: Optional[int]) -> None:
    """Print the level monthly payment and lifetime totals."""
    if years is None and term is None:
        raise click.UsageError("Provide --years or --term")
    years_value = Decimal(term) / 12 if term is not None else _to_decimal(years)
    cost = loan_cost_summary(balance, _to_decimal(rate), years_value)
    click.echo(f"Monthly payment : {MISSING if cost.payment is None else f'{cost.payment:,.2f}'}")
    click.echo(f"Total paid      : {MISSING if cost.total_paid is None else f'{cost.total_paid:,.2f}'}")
    click.echo(f"Total interest  : {MISSING if cost.total_interest is None else f'{cost.total_interest:,.2f}'}")


@cli.command()
@loan_options
@extra_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(
    balance: Decimal,
    rate: float,
    years: float,
    payment: Optional[Decimal],
    extra_monthly: Optional[Decimal],
    extra_start_years: float,
    lump: Tuple[str, ...],
    limit_months: int,
    output: Optional[str],
) -> None:
    """Compute and print the amortization schedule, with optional extras."""
    params = build_extra_principal_params(
        balance,
        _to_decimal(rate),
        _to_decimal(years),
        current_payment=payment,
        extra_monthly=extra_monthly,
        extra_start_years=_to_decimal(extra_start_years),
        lump_sums=parse_lump_strings(lump),
        limit_months=limit_months,
    )
    _emit(run_amortization(params), output, "Amortization")


@cli.command()
@loan_options
@refinance_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def refinance(
    balance: Decimal,
    rate: float,
    years: float,
    payment: Optional[Decimal],
    refi_years: float,
    new_rate: float,
    new_term_years: float,
    costs: Optional[Decimal],
    output: Optional[str],
) -> None:
    """Compute the combined schedule of refinancing the loan later."""
    params = build_refinance_params(balance, rate, years, payment, refi_years, new_rate, new_term_years, costs)
    _emit(run_refinance_scenario(params), output, "Refinance")


@cli.command()
@loan_options
@click.option(
    "--scenario",
    "scenario_type",
    type=click.Choice(["extra", "refinance"]),
    default="extra",
    show_default=True,
    help="Scenario to compare against the baseline",
)
@extra_options
@click.option("--refi-years", "refi_years", type=float, help="Years from now until refinancing")
@click.option("--new-rate", "new_rate", type=float, help="Annual rate of the new loan (percent)")
@click.option("--new-term-years", "new_term_years", type=float, help="Term of the new loan in years")
@click.option("--costs", "costs", callback=_amount_callback, help="Closing costs added to the new loan")
@click.option("--output", "output", type=str, help="Output file path for the comparison (.json)")
def compare(
    balance: Decimal,
    rate: float,
    years: float,
    payment: Optional[Decimal],
    scenario_type: str,
    extra_monthly: Optional[Decimal],
    extra_start_years: float,
    lump: Tuple[str, ...],
    limit_months: int,
    refi_years: Optional[float],
    new_rate: Optional[float],
    new_term_years: Optional[float],
    costs: Optional[Decimal],
    output: Optional[str],
) -> None:
    """Compare the loan as-is against extra principal or a refinance."""
    baseline = run_amortization(build_baseline_params(balance, rate, years, payment, limit_months))
    if scenario_type == "refinance":
        missing = [
            name
            for name, value in (("--refi-years", refi_years), ("--new-rate", new_rate), ("--new-term-years", new_term_years))
            if value is None
        ]
        if missing:
            raise click.UsageError(f"Refinance scenario requires {', '.join(missing)}")
        scenario = run_refinance_scenario(
            build_refinance_params(balance, rate, years, payment, refi_years, new_rate, new_term_years, costs)
        )
    else:
        scenario = run_amortization(
            build_extra_principal_params(
                balance,
                _to_decimal(rate),
                _to_decimal(years),
                current_payment=payment,
                extra_monthly=extra_monthly,
                extra_start_years=_to_decimal(extra_start_years),
                lump_sums=parse_lump_strings(lump),
                limit_months=limit_months,
            )
        )
    comparison = compare_schedules(baseline, scenario)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Comparison export must use .json extension")
        data: Dict[str, Any] = {
            "baseline": summarize(baseline),
            "scenario": summarize(scenario),
            **serialize_comparison(comparison),
        }
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        click.echo(f"Comparison exported to {path}")
    else:
        print_comparison(baseline, scenario, comparison)


if __name__ == "__main__":
    cli()
