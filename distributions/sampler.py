"""
CIR path sampler — generates simulated short-rate trajectories.

Input:  CIR parameters (alpha, theta, sigma) + number of steps + an RNG stream
Output: one non-negative rate trajectory per call

Discretization (Euler–Maruyama with reflection):
  r[0] = theta
  r[t] = | r[t-1] + alpha*(theta - r[t-1])*dt + sigma*sqrt(r[t-1])*sqrt(dt)*W |,  W ~ N(0, 1)

The noise is scaled by sqrt(dt), the Brownian increment over one step, rather
than by dt as in the plain textbook recurrence. The two agree at dt = 1 (one
month), and sqrt(dt) matches the /dt variance convention the calibration uses.

The absolute value keeps paths non-negative when a discrete step overshoots
below zero. It biases the path slightly upward near zero; the bias grows as
the Feller condition (2*alpha*theta > sigma^2) is violated.

Each trial owns its own Generator derived from (seed, trial index), so trial k
draws the same path no matter how trials are split across workers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from core.errors import SimulationError


@dataclass(frozen=True)
class CIRParameters:
    """
    Calibrated CIR parameters in the time unit of the rate history (monthly when dt=1).

    alpha: mean-reversion speed, theta: long-run mean, sigma: volatility.
    """
    alpha: float
    theta: float
    sigma: float

    @property
    def feller_ratio(self) -> float:
        """2*alpha*theta / sigma^2 — above 1 the continuous process stays strictly positive."""
        if self.sigma == 0:
            return float("inf")
        return 2.0 * self.alpha * self.theta / self.sigma ** 2

    @property
    def satisfies_feller(self) -> bool:
        return 2.0 * self.alpha * self.theta > self.sigma ** 2

    @property
    def is_feasible(self) -> bool:
        values = self.as_array()
        return bool(np.all(np.isfinite(values)) and np.all(values > 0))

    def as_array(self) -> np.ndarray:
        return np.array([self.alpha, self.theta, self.sigma], dtype=float)

    @classmethod
    def from_array(cls, values) -> "CIRParameters":
        alpha, theta, sigma = (float(v) for v in values)
        return cls(alpha=alpha, theta=theta, sigma=sigma)

    def summary(self) -> pd.DataFrame:
        """Return a summary table of the parameters."""
        return pd.DataFrame([
            {"Parameter": "alpha", "Value": self.alpha, "Meaning": "mean-reversion speed"},
            {"Parameter": "theta", "Value": self.theta, "Meaning": "long-run mean level"},
            {"Parameter": "sigma", "Value": self.sigma, "Meaning": "volatility"},
            {"Parameter": "feller_ratio", "Value": self.feller_ratio, "Meaning": "2*alpha*theta/sigma^2"},
        ])


def simulate_rates(
    params: CIRParameters,
    num_steps: int,
    dt: float = 1.0,
    rng: Optional[np.random.Generator] = None,
    *,
    r0: Optional[float] = None,
) -> np.ndarray:
    """
    Simulate one CIR trajectory of length num_steps.

    The returned array is read-only. Identical rng state gives an identical path.
    """
    if num_steps < 1:
        raise ValueError(f"num_steps must be >= 1, got {num_steps}")
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if rng is None:
        rng = np.random.default_rng()

    alpha, theta, sigma = params.alpha, params.theta, params.sigma
    sqrt_dt = np.sqrt(dt)

    path = np.empty(int(num_steps), dtype=float)
    path[0] = theta if r0 is None else float(r0)
    if path[0] < 0 or not np.isfinite(path[0]):
        raise SimulationError(f"initial rate must be finite and non-negative, got {path[0]}")

    w = rng.standard_normal(int(num_steps) - 1)
    for t in range(1, int(num_steps)):
        prev = path[t - 1]
        step = prev + alpha * (theta - prev) * dt + sigma * np.sqrt(prev) * sqrt_dt * w[t - 1]
        path[t] = abs(step)

    if not np.all(np.isfinite(path)):
        bad = int(np.argmax(~np.isfinite(path)))
        raise SimulationError(f"rate path became non-finite at step {bad}")

    path.flags.writeable = False
    return path


class CIRPathSampler:
    """
    Generates independent CIR trajectories, one per trial index.

    Usage:
        sampler = CIRPathSampler(params, seed=42)
        path = sampler.sample(17, num_steps=300)   # trial 17, always the same path
        paths = sampler.sample_many(100, num_steps=300)
    """

    def __init__(
        self,
        params: CIRParameters,
        seed: Optional[int] = None,
        dt: float = 1.0,
    ):
        self.params = params
        self.dt = float(dt)
        # Resolve entropy once so seed=None is still consistent across workers.
        self.entropy = np.random.SeedSequence(seed).entropy

    def rng_for(self, index: int) -> np.random.Generator:
        """Independent Generator for trial `index`."""
        seq = np.random.SeedSequence(entropy=self.entropy, spawn_key=(int(index),))
        return np.random.default_rng(seq)

    def sample(self, index: int, num_steps: int) -> np.ndarray:
        return simulate_rates(self.params, num_steps, self.dt, self.rng_for(index))

    def sample_many(self, n_paths: int, num_steps: int, *, start_index: int = 0) -> np.ndarray:
        """(n_paths, num_steps) array of trajectories, for diagnostics and charts."""
        out = np.empty((int(n_paths), int(num_steps)), dtype=float)
        for k in range(int(n_paths)):
            out[k] = self.sample(start_index + k, num_steps)
        return out

    def summary(self, n_paths: int = 200, num_steps: int = 300) -> pd.DataFrame:
        """Percentile summary of simulated rates at a few horizons."""
        paths = self.sample_many(n_paths, num_steps)
        pcts = [0.05, 0.25, 0.50, 0.75, 0.95]
        rows = []
        for step in sorted({0, num_steps // 4, num_steps // 2, num_steps - 1}):
            values = paths[:, step]
            row = {"Step": step, "Mean": np.mean(values), "Std": np.std(values)}
            for p in pcts:
                row[f"P{int(p*100):02d}"] = np.percentile(values, p * 100)
            rows.append(row)
        return pd.DataFrame(rows)
