"""
Benchmark CIR parameter sets for when no rate history is available.

Pass one of these as pre-computed CIRParameters to skip calibration entirely.
Values are monthly (dt = 1 month) and roughly span the short-rate regimes seen in
developed markets over the last few decades:

  - alpha: annual mean-reversion speed / 12
  - theta: long-run annualized rate level
  - sigma: annual volatility / sqrt(12)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .sampler import CIRParameters


@dataclass(frozen=True)
class BenchmarkParameters:
    """A named CIR regime with a note on where it comes from."""
    name: str
    params: CIRParameters
    source: str


BENCHMARK_PARAMETERS: Dict[str, BenchmarkParameters] = {
    "base": BenchmarkParameters(
        name="base",
        params=CIRParameters(alpha=0.25 / 12, theta=0.045, sigma=0.06 / 12 ** 0.5),
        source="Long-run average of policy rates; moderate reversion",
    ),
    "low_rate": BenchmarkParameters(
        name="low_rate",
        params=CIRParameters(alpha=0.15 / 12, theta=0.015, sigma=0.04 / 12 ** 0.5),
        source="Post-2009 zero-lower-bound era; slow reversion, low level",
    ),
    "high_rate": BenchmarkParameters(
        name="high_rate",
        params=CIRParameters(alpha=0.35 / 12, theta=0.08, sigma=0.09 / 12 ** 0.5),
        source="1980s-style high-inflation regime",
    ),
    "volatile": BenchmarkParameters(
        name="volatile",
        params=CIRParameters(alpha=0.20 / 12, theta=0.04, sigma=0.15 / 12 ** 0.5),
        source="Stress regime; violates the Feller condition on purpose",
    ),
}


def get_benchmark_parameters(name: str = "base") -> CIRParameters:
    """
    Return a named benchmark parameter set.

    Parameters
    ----------
    name : str
        One of: "base", "low_rate", "high_rate", "volatile"
    """
    if name not in BENCHMARK_PARAMETERS:
        raise KeyError(
            f"Unknown benchmark '{name}'. "
            f"Available: {list(BENCHMARK_PARAMETERS.keys())}"
        )
    return BENCHMARK_PARAMETERS[name].params


def list_benchmark_names():
    return list(BENCHMARK_PARAMETERS.keys())
