"""
Rent-vs-buy engine — amortization math, per-path comparison, and the Monte Carlo runner.
"""

from .cashflow import amortization_schedule, appreciate, level_payment, payment, variable_payment
from .comparison import ComparisonResult, compare
from .runner import run_monte_carlo, run_rent_vs_buy, run_trial

__all__ = [
    "amortization_schedule",
    "appreciate",
    "level_payment",
    "payment",
    "variable_payment",
    "ComparisonResult",
    "compare",
    "run_monte_carlo",
    "run_rent_vs_buy",
    "run_trial",
]
