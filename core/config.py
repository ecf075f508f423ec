"""
Rent-vs-buy Monte Carlo configuration.

Rates, appreciation and dt follow the monthly convention of the rate history:
rates are annualized fractions sampled monthly, dt=1 is one month.
CIR parameters live in distributions/sampler.py (CIRParameters).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal, Optional

import numpy as np

from .utils import ratio_grid


@dataclass(frozen=True)
class RentVsBuyConfig:
    # property / mortgage
    principal: float = 700_000.0
    term_years: int = 25

    # growth assumptions (annual, compounded monthly)
    investment_appreciation: float = 0.05
    property_appreciation: float = 0.03

    # rent re-pricing
    lease_term_months: int = 12

    # candidate rent ratios (fraction of baseline fixed-rate payment)
    min_ratio: float = 0.6
    max_ratio: float = 0.9
    ratio_step: float = 0.05

    # Monte Carlo
    num_trajectories: int = 1000
    num_steps: int = 300
    dt: float = 1.0
    rng_seed: Optional[int] = None

    # execution
    workers: int = 1
    parallel_backend: Literal["process", "thread"] = "process"
    chunk_size: Optional[int] = None  # trials per work unit; None -> split evenly over workers

    # share of excluded trials above which a warning is raised
    max_exclusion_rate: float = 0.05

    @property
    def n_months(self) -> int:
        return 12 * int(self.term_years)

    @property
    def ratios(self) -> np.ndarray:
        return ratio_grid(self.min_ratio, self.max_ratio, self.ratio_step)

    def with_overrides(self, **changes) -> "RentVsBuyConfig":
        return replace(self, **changes)

    def validate(self) -> "RentVsBuyConfig":
        """Raise ConfigError listing every problem; returns self so calls can chain."""
        from core.errors import ConfigError
        from data_prep.validators import validate_config

        result = validate_config(self)
        if not result.is_valid:
            raise ConfigError(result.errors)
        return self
