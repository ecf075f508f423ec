"""
Error taxonomy for calibration, configuration, and simulation failures.

  CalibrationError — no valid CIR parameters can be produced (fatal)
  ConfigError      — configuration rejected before any simulation starts
  SimulationError  — numerical blow-up in a single trial (recovered per trial)
"""

from __future__ import annotations

from typing import List, Optional


class RentVsBuyError(Exception):
    """Base class for all errors raised by this package."""


class CalibrationError(RentVsBuyError):
    """MLE did not converge, or the likelihood is non-finite everywhere it was probed."""


class ConfigError(RentVsBuyError):
    """Invalid configuration. `errors` lists every problem found, not just the first."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class SimulationError(RentVsBuyError):
    """A single trial produced non-finite values and must be excluded."""

    def __init__(self, message: str, *, trial_index: Optional[int] = None):
        self.trial_index = trial_index
        if trial_index is not None:
            message = f"trial {trial_index}: {message}"
        super().__init__(message)
