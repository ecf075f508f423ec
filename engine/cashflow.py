"""
Amortization math — fixed and variable-rate payment schedules, appreciation.

Key conventions:
  1. Rates are annualized fractions; the monthly rate is annual_rate / 12
  2. Term N = 12 * term_years months, financed amount a0 = principal * (1 - downpayment)
  3. Fixed payment c = a0 * r(1+r)^N / ((1+r)^N - 1), the closed form of the
     recurrence a_n = (1+r) a_{n-1} - c with a_N = 0
  4. Zero rate: the payment is the limit a0 / N
  5. Variable rate: the balance is re-amortized every month over the months left
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

from core.schema import SCHEDULE_COLUMNS
from core.utils import broadcast_inputs

_ZERO_RATE = 1e-12


def level_payment(balance: float, monthly_rate: float, n_months: int) -> float:
    """Standard fully-amortizing level payment (PMT) with near-zero rate guard."""
    if n_months <= 0:
        return float(balance)
    if abs(monthly_rate) < _ZERO_RATE:
        return float(balance) / n_months
    growth = (1 + monthly_rate) ** n_months
    return float(balance) * (monthly_rate * growth) / (growth - 1)


def payment(principal, annual_rate, downpayment_fraction: float = 0.0, term_years: int = 25):
    """
    Fixed monthly payment.

    principal and annual_rate may be scalars or equal-length sequences
    (e.g. appreciated values and the rates prevailing at each renewal);
    scalars broadcast against sequences. All-scalar input returns a float.
    """
    (p, rate, down), all_scalar = broadcast_inputs(principal, annual_rate, downpayment_fraction)
    n = 12 * int(term_years)
    if n <= 0:
        raise ValueError(f"term_years must be positive, got {term_years}")

    a0 = p * (1.0 - down)
    r = rate / 12.0
    zero = np.abs(r) < _ZERO_RATE
    r_safe = np.where(zero, 1.0, r)
    growth = np.power(1.0 + r_safe, n)
    pmt = np.where(zero, a0 / n, a0 * r_safe * growth / (growth - 1.0))

    if all_scalar:
        return float(pmt)
    return pmt


def _variable_amortization(
    principal: float,
    downpayment_fraction: float,
    term_years: int,
    rate_series,
):
    n = 12 * int(term_years)
    if n <= 0:
        raise ValueError(f"term_years must be positive, got {term_years}")
    rates = np.asarray(rate_series, dtype=float).ravel()
    if len(rates) < n:
        raise ValueError(f"rate_series has {len(rates)} months, term needs {n}")
    rates = rates[:n]

    payments = np.empty(n, dtype=float)
    interest = np.empty(n, dtype=float)
    balances = np.empty(n, dtype=float)

    bal = float(principal) * (1.0 - float(downpayment_fraction))
    for i in range(n):
        mr = rates[i] / 12.0
        pay = level_payment(bal, mr, n - i)
        intr = bal * mr
        bal = bal - pay + intr
        payments[i] = pay
        interest[i] = intr
        balances[i] = bal

    return rates, payments, interest, balances


def variable_payment(
    principal: float,
    downpayment_fraction: float,
    term_years: int,
    rate_series,
) -> np.ndarray:
    """
    Monthly payments of a variable-rate mortgage re-amortized every month.

    Month i (1-indexed) pays whatever clears the current balance over the
    remaining n-i+1 months at that month's rate; only the first 12*term_years
    rates are used. A constant series collapses to payment().
    """
    _, payments, _, _ = _variable_amortization(principal, downpayment_fraction, term_years, rate_series)
    return payments


def amortization_schedule(
    principal: float,
    downpayment_fraction: float = 0.0,
    term_years: int = 25,
    rate_series=None,
    *,
    annual_rate: Optional[float] = None,
) -> pd.DataFrame:
    """
    Month-by-month schedule: month, rate, payment, interest, principal, balance.

    Pass rate_series for a variable-rate loan or annual_rate for a fixed one.
    """
    if (rate_series is None) == (annual_rate is None):
        raise ValueError("Provide rate_series OR annual_rate, not both.")
    if rate_series is None:
        rate_series = np.full(12 * int(term_years), float(annual_rate))

    rates, payments, interest, balances = _variable_amortization(
        principal, downpayment_fraction, term_years, rate_series
    )
    out = pd.DataFrame({
        "month": np.arange(1, len(payments) + 1),
        "rate": rates,
        "payment": payments,
        "interest": interest,
        "principal": payments - interest,
        "balance": balances,
    })
    return out[list(SCHEDULE_COLUMNS)]


def appreciate(principal, monthly_factor: float, num_months: int) -> np.ndarray:
    """Property value path principal * factor^(i-1) for i = 1..num_months."""
    if num_months < 0:
        raise ValueError(f"num_months must be >= 0, got {num_months}")
    exponents = np.arange(int(num_months), dtype=float)
    return float(principal) * np.power(float(monthly_factor), exponents)
