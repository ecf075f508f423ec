from __future__ import annotations

from typing import Tuple

# Columns of a historical rate file: one row per month, rate as a fraction.
RATE_HISTORY_COLUMNS: Tuple[str, ...] = (
    "date",
    "rate",
)

# Columns of the amortization schedule produced by engine.cashflow.
SCHEDULE_COLUMNS: Tuple[str, ...] = (
    "month",
    "rate",
    "payment",
    "interest",
    "principal",
    "balance",
)

# Columns of AggregateStatistics.to_dataframe().
AGGREGATE_COLUMNS: Tuple[str, ...] = (
    "ratio",
    "favor_rent_probability",
    "mean_cost_difference",
    "std_error",
)
