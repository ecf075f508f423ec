"""
Reduce per-path comparison results into per-ratio aggregate statistics.

Instead of: "renting saves $40k on this path" (one path, no context)
The caller gets, per rent ratio: "renting wins on 63% of paths, by $41k on average"

The reduction keeps only (count of paths favoring rent, sum, sum of squares)
per ratio, plus included/excluded trial counters. Tallies merge associatively
and commutatively, so trials can be split across any number of workers and
folded back in any grouping; merging in a fixed order keeps results
bit-identical between runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Tuple

import numpy as np
import pandas as pd

from core.schema import AGGREGATE_COLUMNS


@dataclass
class RatioTally:
    """Partial reduction over a subset of trials."""
    ratios: np.ndarray
    favor_rent_count: np.ndarray
    total: np.ndarray
    total_sq: np.ndarray
    n_included: int = 0
    n_excluded: int = 0

    @classmethod
    def empty(cls, ratios) -> "RatioTally":
        ratios = np.asarray(ratios, dtype=float)
        k = len(ratios)
        return cls(
            ratios=ratios,
            favor_rent_count=np.zeros(k, dtype=np.int64),
            total=np.zeros(k, dtype=float),
            total_sq=np.zeros(k, dtype=float),
        )

    def add(self, cost_difference) -> None:
        """Fold one trial's cost differences (aligned with self.ratios) into the tally."""
        diff = np.asarray(cost_difference, dtype=float)
        if diff.shape != self.ratios.shape:
            raise ValueError(f"Expected {self.ratios.shape} cost differences, got {diff.shape}")
        self.favor_rent_count += diff > 0
        self.total += diff
        self.total_sq += diff * diff
        self.n_included += 1

    def exclude(self, n: int = 1) -> None:
        self.n_excluded += int(n)

    def merge(self, other: "RatioTally") -> "RatioTally":
        """Combine two tallies into a new one; neither input is modified."""
        if not np.array_equal(self.ratios, other.ratios):
            raise ValueError("Cannot merge tallies over different ratio grids.")
        return RatioTally(
            ratios=self.ratios,
            favor_rent_count=self.favor_rent_count + other.favor_rent_count,
            total=self.total + other.total,
            total_sq=self.total_sq + other.total_sq,
            n_included=self.n_included + other.n_included,
            n_excluded=self.n_excluded + other.n_excluded,
        )

    @property
    def n_attempted(self) -> int:
        return self.n_included + self.n_excluded


def merge_tallies(tallies: Iterable[RatioTally], ratios) -> RatioTally:
    """Left fold of tallies in the given order, starting from the empty tally."""
    out = RatioTally.empty(ratios)
    for t in tallies:
        out = out.merge(t)
    return out


@dataclass(frozen=True)
class AggregateStatistics:
    """
    Per-ratio outcome over all included trials.

    favor_rent_probability[k] = share of paths where renting at ratios[k] was cheaper
    mean_cost_difference[k]   = mean of (mortgage cost - rental cost) at ratios[k]
    """
    ratios: np.ndarray
    favor_rent_probability: np.ndarray
    mean_cost_difference: np.ndarray
    std_error: np.ndarray
    n_trials: int
    n_excluded: int
    n_requested: int
    cancelled: bool = False
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def exclusion_rate(self) -> float:
        attempted = self.n_trials + self.n_excluded
        return self.n_excluded / attempted if attempted else 0.0

    def as_dict(self) -> Dict[float, Tuple[float, float]]:
        """ratio -> (favor_rent_probability, mean_cost_difference)."""
        return {
            float(r): (float(p), float(m))
            for r, p, m in zip(self.ratios, self.favor_rent_probability, self.mean_cost_difference)
        }

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({
            "ratio": self.ratios,
            "favor_rent_probability": self.favor_rent_probability,
            "mean_cost_difference": self.mean_cost_difference,
            "std_error": self.std_error,
        })[list(AGGREGATE_COLUMNS)]

    def with_warnings(self, extra: Iterable[str]) -> "AggregateStatistics":
        return replace(self, warnings=tuple(extra) + tuple(self.warnings))


def finalize(
    tally: RatioTally,
    *,
    n_requested: int,
    cancelled: bool = False,
    warnings: Iterable[str] = (),
) -> AggregateStatistics:
    """
    Turn a tally into AggregateStatistics. Excluded trials are left out of every
    denominator; with no included trials the per-ratio values are NaN.
    """
    n = tally.n_included
    if n > 0:
        prob = tally.favor_rent_count / n
        mean = tally.total / n
        if n > 1:
            var = np.maximum(tally.total_sq - n * mean * mean, 0.0) / (n - 1)
            se = np.sqrt(var / n)
        else:
            se = np.full(len(tally.ratios), np.nan)
    else:
        prob = np.full(len(tally.ratios), np.nan)
        mean = np.full(len(tally.ratios), np.nan)
        se = np.full(len(tally.ratios), np.nan)

    return AggregateStatistics(
        ratios=tally.ratios,
        favor_rent_probability=prob,
        mean_cost_difference=mean,
        std_error=se,
        n_trials=n,
        n_excluded=tally.n_excluded,
        n_requested=int(n_requested),
        cancelled=bool(cancelled),
        warnings=tuple(warnings),
    )
