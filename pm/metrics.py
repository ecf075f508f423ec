"""
Sampling-error metrics for aggregate statistics.

Used to decide whether enough trials have been run: a run can be stopped
early once every per-ratio probability is pinned down to a chosen half-width.
"""

from __future__ import annotations

from typing import Callable, Tuple

import numpy as np
import pandas as pd

from .aggregator import AggregateStatistics


def probability_interval(stats: AggregateStatistics, *, z: float = 1.96) -> Tuple[np.ndarray, np.ndarray]:
    """Normal-approximation interval for favor_rent_probability, clipped to [0, 1]."""
    p = stats.favor_rent_probability
    n = max(stats.n_trials, 1)
    half = z * np.sqrt(p * (1.0 - p) / n)
    return np.clip(p - half, 0.0, 1.0), np.clip(p + half, 0.0, 1.0)


def mean_interval(stats: AggregateStatistics, *, z: float = 1.96) -> Tuple[np.ndarray, np.ndarray]:
    """Interval for mean_cost_difference from the per-ratio standard error."""
    half = z * stats.std_error
    return stats.mean_cost_difference - half, stats.mean_cost_difference + half


def confidence_reached(
    stats: AggregateStatistics,
    half_width: float,
    *,
    z: float = 1.96,
    min_trials: int = 30,
) -> bool:
    """
    True once every ratio's probability interval is narrower than +/- half_width.
    p(1-p) is floored at 1/n so a run of unanimous paths is not declared precise
    after a handful of trials.
    """
    n = stats.n_trials
    if n < min_trials:
        return False
    p = stats.favor_rent_probability
    spread = np.maximum(p * (1.0 - p), 1.0 / n)
    return bool(np.all(z * np.sqrt(spread / n) <= half_width))


def stop_at_confidence(half_width: float, *, z: float = 1.96, min_trials: int = 30) -> Callable[[AggregateStatistics], bool]:
    """Build a stop_when rule for engine.runner.run_monte_carlo."""
    def _rule(stats: AggregateStatistics) -> bool:
        return confidence_reached(stats, half_width, z=z, min_trials=min_trials)
    return _rule


def interval_table(stats: AggregateStatistics, *, z: float = 1.96) -> pd.DataFrame:
    """Per-ratio table with probability and mean intervals."""
    p_lo, p_hi = probability_interval(stats, z=z)
    m_lo, m_hi = mean_interval(stats, z=z)
    return pd.DataFrame({
        "ratio": stats.ratios,
        "favor_rent_probability": stats.favor_rent_probability,
        "probability_low": p_lo,
        "probability_high": p_hi,
        "mean_cost_difference": stats.mean_cost_difference,
        "mean_low": m_lo,
        "mean_high": m_hi,
    })
