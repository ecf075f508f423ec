"""
Per-path rent-vs-buy comparison.

For ONE simulated rate path:
  Buy:  pay a variable-rate mortgage re-amortized every month at the path's rate.
  Rent: pay ratio x baseline rent, where the baseline is the fixed-rate payment on
        the appreciated property at the rate prevailing at each lease renewal,
        and invest (mortgage payment - rent) every month at investment_appreciation.

cost_difference[ratio] = mortgage_total_cost - (total_rent - investment_value)
Positive means renting was cheaper on this path.

The investment account is linear in its monthly injections, so its final value
for every ratio is V - ratio * B with V, B the compounded sums of mortgage
payments and baseline rents. That makes the whole result affine in the ratio
with slope -(sum(baseline) + B) <= 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

import numpy as np
import pandas as pd

from core.errors import SimulationError
from core.utils import is_ascending

from .cashflow import appreciate, payment, variable_payment


@dataclass(frozen=True)
class ComparisonResult:
    """Rent ratio -> signed lifetime cost difference for exactly one trajectory."""
    ratios: np.ndarray
    cost_difference: np.ndarray  # mortgage_cost - rental_cost, per ratio
    mortgage_cost: float
    rental_cost: np.ndarray
    investment_value: np.ndarray

    def __len__(self) -> int:
        return len(self.ratios)

    def __getitem__(self, ratio: float) -> float:
        idx = np.flatnonzero(np.isclose(self.ratios, ratio, rtol=0.0, atol=1e-9))
        if len(idx) == 0:
            raise KeyError(ratio)
        return float(self.cost_difference[idx[0]])

    def favors_rent(self) -> np.ndarray:
        return self.cost_difference > 0

    def as_dict(self) -> Dict[float, float]:
        return {float(r): float(d) for r, d in zip(self.ratios, self.cost_difference)}

    def to_series(self) -> pd.Series:
        return pd.Series(
            self.cost_difference,
            index=pd.Index(self.ratios, name="ratio"),
            name="cost_difference",
        )

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({
            "ratio": self.ratios,
            "mortgage_cost": self.mortgage_cost,
            "rental_cost": self.rental_cost,
            "investment_value": self.investment_value,
            "cost_difference": self.cost_difference,
        })


def baseline_rent(
    principal: float,
    term_years: int,
    trajectory,
    property_appreciation: float,
    lease_term_months: int,
) -> np.ndarray:
    """
    Monthly baseline rent: the fixed-rate payment on the appreciated property at
    the rate of the month the current lease started. Re-priced every
    lease_term_months and held flat in between.
    """
    if lease_term_months <= 0:
        raise ValueError(f"lease_term_months must be positive, got {lease_term_months}")
    n = 12 * int(term_years)
    rates = np.asarray(trajectory, dtype=float)[:n]

    values = appreciate(principal, 1.0 + property_appreciation / 12.0, n)
    lease_start = (np.arange(n) // int(lease_term_months)) * int(lease_term_months)
    return payment(values[lease_start], rates[lease_start], 0.0, term_years)


def compare(
    principal: float,
    term_years: int,
    trajectory,
    investment_appreciation: float,
    property_appreciation: float,
    lease_term_months: int,
    ratios,
) -> ComparisonResult:
    """
    Lifetime cost of buying minus net cost of renting, for each candidate rent ratio.

    Parameters
    ----------
    principal : float
        Property price, fully financed
    term_years : int
        Mortgage term; the path must cover 12 * term_years months
    trajectory : array-like
        Simulated annualized rates, one per month
    investment_appreciation, property_appreciation : float
        Annual rates, compounded monthly
    lease_term_months : int
        Months between rent re-pricings
    ratios : array-like
        Ascending rent ratios (fraction of baseline rent)
    """
    ratios = np.asarray(ratios, dtype=float).ravel()
    if len(ratios) == 0:
        raise ValueError("ratios must not be empty")
    if not is_ascending(ratios):
        raise ValueError("ratios must be strictly ascending")

    n = 12 * int(term_years)
    path = np.asarray(trajectory, dtype=float).ravel()
    if len(path) < n:
        raise ValueError(f"trajectory has {len(path)} months, term needs {n}")

    with np.errstate(over="ignore", invalid="ignore"):
        mortgage_payments = variable_payment(principal, 0.0, term_years, path)
        mortgage_cost = float(mortgage_payments.sum())

        rent = baseline_rent(principal, term_years, path, property_appreciation, lease_term_months)

        # injection in month i compounds for the n - i months that follow it
        growth = 1.0 + investment_appreciation / 12.0
        weights = np.power(growth, np.arange(n - 1, -1, -1, dtype=float))
        compounded_payments = float(mortgage_payments @ weights)
        compounded_rent = float(rent @ weights)

        total_rent = ratios * float(rent.sum())
        investment_value = compounded_payments - ratios * compounded_rent
        rental_cost = total_rent - investment_value
        diff = mortgage_cost - rental_cost

    if not (np.isfinite(mortgage_cost) and np.all(np.isfinite(diff))):
        raise SimulationError("non-finite cost in rent-vs-buy comparison")

    return ComparisonResult(
        ratios=ratios,
        cost_difference=diff,
        mortgage_cost=mortgage_cost,
        rental_cost=rental_cost,
        investment_value=investment_value,
    )
