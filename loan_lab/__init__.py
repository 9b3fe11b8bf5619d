"""Loan amortization, extra principal and refinance scenario calculator."""

from .engine import compare_schedules, compute_payment, run_amortization, run_refinance_scenario

__all__ = ["compare_schedules", "compute_payment", "run_amortization", "run_refinance_scenario"]
