"""
Distributions package — estimate and sample the CIR short-rate process.

  1. historical.py  — calibrate CIR parameters from a rate history (regression seed + MLE)
  2. benchmarks.py  — named parameter sets for when no history is available
  3. sampler.py     — CIRParameters and the per-trial path simulator
"""

from .historical import (
    CalibrationResult,
    calibrate_cir,
    calibrate_from_history,
    cir_log_likelihood,
    regression_seed,
)
from .benchmarks import get_benchmark_parameters, list_benchmark_names
from .sampler import CIRParameters, CIRPathSampler, simulate_rates

__all__ = [
    "CalibrationResult",
    "calibrate_cir",
    "calibrate_from_history",
    "cir_log_likelihood",
    "regression_seed",
    "get_benchmark_parameters",
    "list_benchmark_names",
    "CIRParameters",
    "CIRPathSampler",
    "simulate_rates",
]
