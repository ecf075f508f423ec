"""
Data preparation — loading historical rate CSVs and validating inputs.
"""

from .loader import load_rate_history, rate_series_from_frame
from .validators import ValidationResult, validate_config, validate_rate_series

__all__ = [
    "load_rate_history",
    "rate_series_from_frame",
    "ValidationResult",
    "validate_config",
    "validate_rate_series",
]
