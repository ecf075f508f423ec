from __future__ import annotations

import logging

import pandas as pd

from core.schema import RATE_HISTORY_COLUMNS
from core.utils import require_columns

logger = logging.getLogger(__name__)


def rate_series_from_frame(
    df: pd.DataFrame,
    *,
    date_col: str = "date",
    rate_col: str = "rate",
    percent: bool = False,
) -> pd.Series:
    """
    Turn a (date, rate) table into a chronological rate Series indexed by date.
    Unparseable dates/rates are dropped; percent=True converts 5.0 -> 0.05.
    """
    require_columns(df, [date_col, rate_col])
    date_key, rate_key = RATE_HISTORY_COLUMNS
    data = pd.DataFrame({
        date_key: pd.to_datetime(df[date_col], errors="coerce"),
        rate_key: pd.to_numeric(df[rate_col], errors="coerce"),
    })
    n_before = len(data)
    data = data.dropna(subset=[date_key, rate_key])
    if len(data) < n_before:
        logger.warning("Dropped %d unparseable rows from rate history", n_before - len(data))

    if percent:
        data[rate_key] = data[rate_key] / 100.0

    series = data.sort_values(date_key).set_index(date_key)[rate_key]
    series.name = rate_key
    return series


def load_rate_history(
    path: str,
    *,
    date_col: str = "date",
    rate_col: str = "rate",
    percent: bool = False,
) -> pd.Series:
    """
    Load a historical monthly rate CSV (one row per month).
    """
    df = pd.read_csv(path)
    series = rate_series_from_frame(df, date_col=date_col, rate_col=rate_col, percent=percent)
    logger.info("Loaded %d rate observations from %s", len(series), path)
    return series
