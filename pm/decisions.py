"""
Decision support — where does renting stop paying off?

Translates aggregate statistics into answers a household can act on:
  Q1: "Up to what rent is renting the better bet?" → break-even ratio
  Q2: "How sure are we?"                           → probability at the break-even
  Q3: "Can we trust the run?"                      → exclusion and parameter flags
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd

from distributions.sampler import CIRParameters

from .aggregator import AggregateStatistics


def break_even_ratio(stats: AggregateStatistics, *, threshold: float = 0.5) -> Optional[float]:
    """
    Smallest rent ratio at which renting is no longer favoured with probability >= threshold.
    None if renting stays favoured across the whole grid.
    """
    below = np.flatnonzero(stats.favor_rent_probability < threshold)
    if len(below) == 0:
        return None
    return float(stats.ratios[below[0]])


@dataclass
class DecisionSummary:
    """Structured rent-vs-buy decision output."""
    break_even_ratio: Optional[float]
    threshold: float

    # outcome at the ends of the ratio grid
    lowest_ratio: float
    prob_rent_at_lowest: float
    mean_saving_at_lowest: float
    highest_ratio: float
    prob_rent_at_highest: float
    mean_saving_at_highest: float

    n_trials: int
    n_excluded: int

    flags: List[str] = field(default_factory=list)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to a display-friendly table."""
        be = f"{self.break_even_ratio:.2f}" if self.break_even_ratio is not None else "none in range"
        rows = [
            {"Metric": "Break-even Rent Ratio", "Value": be, "Unit": "x baseline"},
            {"Metric": f"P(rent wins) at {self.lowest_ratio:.2f}", "Value": f"{self.prob_rent_at_lowest:.1%}", "Unit": ""},
            {"Metric": f"Mean Saving at {self.lowest_ratio:.2f}", "Value": f"{self.mean_saving_at_lowest:,.0f}", "Unit": "$"},
            {"Metric": f"P(rent wins) at {self.highest_ratio:.2f}", "Value": f"{self.prob_rent_at_highest:.1%}", "Unit": ""},
            {"Metric": f"Mean Saving at {self.highest_ratio:.2f}", "Value": f"{self.mean_saving_at_highest:,.0f}", "Unit": "$"},
            {"Metric": "Trials", "Value": str(self.n_trials), "Unit": ""},
            {"Metric": "Excluded Trials", "Value": str(self.n_excluded), "Unit": ""},
        ]
        if self.flags:
            rows.append({"Metric": "FLAGS", "Value": " | ".join(self.flags), "Unit": ""})
        return pd.DataFrame(rows)


def generate_decision_summary(
    stats: AggregateStatistics,
    *,
    params: Optional[CIRParameters] = None,
    threshold: float = 0.5,
    max_exclusion_rate: float = 0.05,
) -> DecisionSummary:
    """
    Generate a decision summary from aggregate statistics.

    Parameters
    ----------
    stats : AggregateStatistics
        Output of engine.runner.run_monte_carlo()
    params : CIRParameters, optional
        Parameters the paths were drawn from; used for the Feller flag
    threshold : float
        Probability above which renting counts as favoured
    max_exclusion_rate : float
        Exclusion rate above which the run is flagged
    """
    if stats.n_trials == 0:
        raise ValueError("No included trials to summarize.")

    flags = []
    if stats.exclusion_rate > max_exclusion_rate:
        flags.append(f"HIGH_EXCLUSION: {stats.exclusion_rate:.1%} of trials excluded")
    if params is not None and not params.satisfies_feller:
        flags.append(f"FELLER_VIOLATION: 2*alpha*theta/sigma^2 = {params.feller_ratio:.2f}")
    if stats.cancelled:
        flags.append(f"PARTIAL_RUN: {stats.n_trials} of {stats.n_requested} trials")

    return DecisionSummary(
        break_even_ratio=break_even_ratio(stats, threshold=threshold),
        threshold=threshold,
        lowest_ratio=float(stats.ratios[0]),
        prob_rent_at_lowest=float(stats.favor_rent_probability[0]),
        mean_saving_at_lowest=float(stats.mean_cost_difference[0]),
        highest_ratio=float(stats.ratios[-1]),
        prob_rent_at_highest=float(stats.favor_rent_probability[-1]),
        mean_saving_at_highest=float(stats.mean_cost_difference[-1]),
        n_trials=stats.n_trials,
        n_excluded=stats.n_excluded,
        flags=flags,
    )
