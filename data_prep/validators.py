"""
Checks run before anything enters calibration or the Monte Carlo runner.

Catches problems early:
- Non-positive principal, term, steps or trajectory counts
- A ratio range that is empty or has a non-positive step
- Simulated paths shorter than the mortgage term
- Rate histories with gaps, zeros, or values in percent instead of fractions
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from typing import List

import numpy as np


@dataclass
class ValidationResult:
    """Collects all validation warnings/errors for a config or rate series."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  ✗ {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  ⚠ {w}")
        if not lines:
            lines.append("✓ All checks passed.")
        return "\n".join(lines)


def _is_finite_number(x) -> bool:
    # strings such as "5" are rejected, not coerced
    return isinstance(x, numbers.Real) and math.isfinite(float(x))


def validate_config(config) -> ValidationResult:
    """
    Run all checks on a RentVsBuyConfig.
    Returns a ValidationResult with errors (blocking) and warnings (informational).
    """
    result = ValidationResult()

    # --- Numeric sanity ---
    for name in [
        "principal", "term_years", "investment_appreciation", "property_appreciation",
        "lease_term_months", "min_ratio", "max_ratio", "ratio_step",
        "num_trajectories", "num_steps", "dt", "workers", "max_exclusion_rate",
    ]:
        if not _is_finite_number(getattr(config, name)):
            result.errors.append(f"{name} must be a finite number, got {getattr(config, name)!r}.")
    for name in ["rng_seed", "chunk_size"]:
        value = getattr(config, name)
        if value is not None and not _is_finite_number(value):
            result.errors.append(f"{name} must be an integer or None, got {value!r}.")
    if result.errors:
        return result  # can't compare non-numbers below

    # --- Property / mortgage ---
    if config.principal <= 0:
        result.errors.append(f"principal must be > 0, got {config.principal}.")
    if int(config.term_years) != config.term_years or config.term_years <= 0:
        result.errors.append(f"term_years must be a positive integer, got {config.term_years}.")
    if int(config.lease_term_months) != config.lease_term_months or config.lease_term_months <= 0:
        result.errors.append(
            f"lease_term_months must be a positive integer, got {config.lease_term_months}."
        )

    # --- Ratio range ---
    if config.ratio_step <= 0:
        result.errors.append(f"ratio_step must be > 0, got {config.ratio_step}.")
    if config.max_ratio < config.min_ratio:
        result.errors.append(
            f"max_ratio ({config.max_ratio}) must be >= min_ratio ({config.min_ratio})."
        )
    if config.ratio_step > 0 and config.max_ratio >= config.min_ratio:
        span = (config.max_ratio - config.min_ratio) / config.ratio_step
        if abs(span - round(span)) > 1e-6:
            result.warnings.append(
                f"Ratio range {config.min_ratio}..{config.max_ratio} is not a whole number of "
                f"steps of {config.ratio_step}; the last ratio will not equal max_ratio."
            )
    if config.min_ratio < 0:
        result.warnings.append(f"min_ratio is negative ({config.min_ratio}).")

    # --- Monte Carlo ---
    if int(config.num_trajectories) != config.num_trajectories or config.num_trajectories <= 0:
        result.errors.append(
            f"num_trajectories must be a positive integer, got {config.num_trajectories}."
        )
    if int(config.num_steps) != config.num_steps or config.num_steps <= 0:
        result.errors.append(f"num_steps must be a positive integer, got {config.num_steps}.")
    elif config.term_years > 0 and config.num_steps < 12 * config.term_years:
        result.errors.append(
            f"num_steps ({config.num_steps}) must cover the mortgage term "
            f"({12 * config.term_years} months)."
        )
    if config.dt <= 0:
        result.errors.append(f"dt must be > 0, got {config.dt}.")
    if config.rng_seed is not None and (int(config.rng_seed) != config.rng_seed or config.rng_seed < 0):
        result.errors.append(f"rng_seed must be a non-negative integer or None, got {config.rng_seed}.")

    # --- Execution ---
    if int(config.workers) != config.workers or config.workers <= 0:
        result.errors.append(f"workers must be a positive integer, got {config.workers}.")
    if config.parallel_backend not in ("process", "thread"):
        result.errors.append(
            f"parallel_backend must be 'process' or 'thread', got {config.parallel_backend!r}."
        )
    if config.chunk_size is not None and (int(config.chunk_size) != config.chunk_size or config.chunk_size <= 0):
        result.errors.append(f"chunk_size must be a positive integer or None, got {config.chunk_size}.")
    if not 0.0 <= config.max_exclusion_rate <= 1.0:
        result.errors.append(
            f"max_exclusion_rate must be in [0, 1], got {config.max_exclusion_rate}."
        )

    # --- Plausibility ---
    for name in ["investment_appreciation", "property_appreciation"]:
        value = getattr(config, name)
        if abs(value) > 1.0:
            result.warnings.append(
                f"{name}={value} exceeds 100% per year — check if it is in percent vs decimal form."
            )

    return result


def validate_rate_series(rates) -> ValidationResult:
    """
    Checks on a historical rate series before calibration.
    Zeros and negatives are allowed (calibration drops those transitions) but reported.
    """
    result = ValidationResult()
    values = np.asarray(rates, dtype=float).ravel()

    n = len(values)
    if n == 0:
        result.errors.append("Rate series is empty.")
        return result

    n_nan = int((~np.isfinite(values)).sum())
    if n_nan > 0:
        result.errors.append(f"{n_nan} observations are NaN or infinite.")

    finite = values[np.isfinite(values)]
    if len(finite) < 4:
        result.errors.append(f"Need at least 4 observations to calibrate, got {len(finite)}.")

    n_nonpos = int((finite <= 0).sum())
    if n_nonpos > 0:
        result.warnings.append(
            f"{n_nonpos} observations are zero or negative; transitions touching them are skipped."
        )

    n_high = int((finite > 1.0).sum())
    if n_high > 0:
        result.warnings.append(
            f"{n_high} observations exceed 1.0 — check if rates are in percent vs decimal form."
        )

    if len(finite) > 1 and np.ptp(finite) == 0:
        result.errors.append("Rate series is constant; volatility cannot be estimated.")

    return result
