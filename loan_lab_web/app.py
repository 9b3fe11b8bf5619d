"""Flask JSON API for the loans and payoff lab.

A browser front end posts the loan inputs it collects and receives the
schedule rows, summary values and scenario deltas it needs to draw charts.
Every recomputation is a fresh, stateless call into ``loan_lab.engine``.
"""

import logging
import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify, request

from loan_lab.data_models import AmortizationParams, LumpSum, RecurringExtra, RefinanceParams, Schedule
from loan_lab.engine import (
    DEFAULT_LIMIT_MONTHS,
    compare_schedules,
    compute_payment,
    estimate_refinance_costs,
    run_amortization,
    run_refinance_scenario,
)
from loan_lab.formatter import schedule_series, serialize_comparison, serialize_row, summarize
from loan_lab.utils import round_months, to_decimal, years_to_months

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["MAX_ROWS"] = int(os.environ.get("LOAN_LAB_MAX_ROWS", str(DEFAULT_LIMIT_MONTHS)))


class RequestError(ValueError):
    """Raised when a request body cannot be turned into loan parameters."""


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise RequestError("Request body must be a JSON object")
    return data


def _required(data: Dict[str, Any], key: str) -> Decimal:
    value = to_decimal(data.get(key))
    if value is None:
        raise RequestError(f"Missing or invalid field: {key}")
    return value


def _optional(data: Dict[str, Any], key: str) -> Optional[Decimal]:
    return to_decimal(data.get(key))


def _optional_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = to_decimal(data.get(key))
    if value is None:
        return None
    if value != value.to_integral_value():
        raise RequestError(f"Field {key} must be a whole number")
    return int(value)


def _required_int(data: Dict[str, Any], key: str) -> int:
    value = _optional_int(data, key)
    if value is None:
        raise RequestError(f"Missing or invalid field: {key}")
    return value


def _list_of_objects(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise RequestError(f"Field {key} must be a list of objects")
    return raw


def _parse_lump_sums(data: Dict[str, Any]) -> List[LumpSum]:
    """Collect lump sums from both ``lump_sums`` and ``lump_sums_years``.

    ``lump_sums`` entries look like ``{"month": 12, "amount": 5000}``;
    ``lump_sums_years`` entries like ``{"years": 1.5, "amount": 5000}`` and
    their years are rounded to months as on the command line. Both lists may
    be sent together; amounts landing in the same month add up.
    """
    lumps: List[LumpSum] = []
    for item in _list_of_objects(data, "lump_sums"):
        lumps.append(LumpSum(month=_required_int(item, "month"), amount=_required(item, "amount")))
    for item in _list_of_objects(data, "lump_sums_years"):
        lumps.append(LumpSum(month=years_to_months(_required(item, "years")), amount=_required(item, "amount")))
    return lumps


def _recurring_extra(data: Dict[str, Any]) -> Optional[RecurringExtra]:
    """Recurring extra principal from ``extra_monthly`` and its start.

    The start is either ``start_month`` or ``extra_start_years``, never both.
    A positive ``extra_monthly`` without a start is rejected rather than
    guessed.
    """
    has_month = data.get("start_month") is not None
    has_years = data.get("extra_start_years") is not None
    if has_month and has_years:
        raise RequestError("Use either start_month or extra_start_years, not both")
    extra_monthly = _optional(data, "extra_monthly")
    if extra_monthly is None or extra_monthly <= 0:
        return None
    if has_years:
        start_month = years_to_months(_required(data, "extra_start_years"))
    elif has_month:
        start_month = max(1, _required_int(data, "start_month"))
    else:
        raise RequestError("extra_monthly requires start_month or extra_start_years")
    return RecurringExtra(amount=extra_monthly, start_month=start_month)


def _amortization_params(data: Dict[str, Any]) -> AmortizationParams:
    """Build amortization parameters from a request body.

    The term is ``n_months`` or ``years_remaining``. Extras may mix month
    based fields (``start_month``, ``lump_sums``) with year based ones
    (``extra_start_years``, ``lump_sums_years``).
    """
    n_months = _optional(data, "n_months")
    years_remaining = _optional(data, "years_remaining")
    if n_months is None and years_remaining is None:
        raise RequestError("Provide n_months or years_remaining")
    return AmortizationParams(
        balance=_required(data, "balance"),
        apr=_required(data, "apr"),
        n_months=n_months,
        years_remaining=years_remaining,
        current_payment=_optional(data, "current_payment"),
        recurring=_recurring_extra(data),
        lump_sums=_parse_lump_sums(data),
        limit_months=_optional_int(data, "limit_months") or DEFAULT_LIMIT_MONTHS,
    )


def _refinance_params(data: Dict[str, Any]) -> RefinanceParams:
    balance = _required(data, "balance")
    costs = _optional(data, "costs")
    if costs is None and data.get("estimate_costs"):
        costs = estimate_refinance_costs(balance)
    return RefinanceParams(
        balance=balance,
        apr=_required(data, "apr"),
        years_remaining=_required(data, "years_remaining"),
        current_payment=_optional(data, "current_payment"),
        refi_years=_required(data, "refi_years"),
        new_apr=_required(data, "new_apr"),
        new_term_years=_required(data, "new_term_years"),
        costs=costs if costs is not None else to_decimal(0),
    )


def _serialize_schedule(schedule: Schedule) -> Dict[str, Any]:
    """Convert a schedule into a JSON-serialisable dictionary for charts."""
    max_rows = app.config["MAX_ROWS"]
    rows = schedule.rows[:max_rows]
    payload: Dict[str, Any] = {
        "summary": summarize(schedule),
        "rows": [serialize_row(r) for r in rows],
    }
    if len(schedule.rows) > len(rows):
        payload["truncated"] = len(schedule.rows) - len(rows)
    metric = request.args.get("metric")
    if metric:
        months, values = schedule_series(schedule, metric)
        payload["series"] = {"metric": metric, "months": months, "values": values}
    return payload


def _run_scenario(data: Dict[str, Any]) -> Schedule:
    kind = data.get("type", "extra")
    if kind == "refinance":
        return run_refinance_scenario(_refinance_params(data))
    if kind == "extra":
        return run_amortization(_amortization_params(data))
    raise RequestError(f"Unknown scenario type: {kind}")


@app.errorhandler(ValueError)
def bad_request(exc: ValueError):
    logger.info("Rejected request: %s", exc)
    return jsonify({"error": str(exc)}), 400


@app.get("/api/health")
def health():
    return jsonify({"status": "ok"})


@app.post("/api/payment")
def payment():
    data = _body()
    months = _optional(data, "n_months")
    if months is None:
        months = years_to_months(_required(data, "years"))
    result = compute_payment(_required(data, "balance"), _required(data, "apr"), months)
    return jsonify({"payment": None if result is None else float(result), "months": round_months(months)})


@app.post("/api/amortization")
def amortization():
    return jsonify(_serialize_schedule(run_amortization(_amortization_params(_body()))))


@app.post("/api/refinance")
def refinance():
    return jsonify(_serialize_schedule(run_refinance_scenario(_refinance_params(_body()))))


@app.post("/api/compare")
def compare():
    data = _body()
    baseline_data = data.get("baseline")
    scenario_data = data.get("scenario")
    if not isinstance(baseline_data, dict) or not isinstance(scenario_data, dict):
        raise RequestError("Body must contain 'baseline' and 'scenario' objects")
    baseline = run_amortization(_amortization_params(baseline_data))
    scenario = _run_scenario(scenario_data)
    return jsonify(
        {
            "baseline": _serialize_schedule(baseline),
            "scenario": _serialize_schedule(scenario),
            **serialize_comparison(compare_schedules(baseline, scenario)),
        }
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print("Starting Loan Lab API...")
    app.run(host="0.0.0.0", port=int(os.environ.get("LOAN_LAB_PORT", "8710")), debug=True)
