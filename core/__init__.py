"""
Core package — configuration, error taxonomy, schema constants, and shared utilities.
No business logic lives here.
"""

from .schema import RATE_HISTORY_COLUMNS, SCHEDULE_COLUMNS, AGGREGATE_COLUMNS
from .config import RentVsBuyConfig
from .errors import RentVsBuyError, CalibrationError, ConfigError, SimulationError
from .utils import require_columns, broadcast_inputs, ratio_count, ratio_grid

__all__ = [
    "RATE_HISTORY_COLUMNS",
    "SCHEDULE_COLUMNS",
    "AGGREGATE_COLUMNS",
    "RentVsBuyConfig",
    "RentVsBuyError",
    "CalibrationError",
    "ConfigError",
    "SimulationError",
    "require_columns",
    "broadcast_inputs",
    "ratio_count",
    "ratio_grid",
]
