from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np
import pandas as pd


def require_columns(df: pd.DataFrame, cols: Iterable[str]) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def broadcast_inputs(*values) -> Tuple[Tuple[np.ndarray, ...], bool]:
    """
    Broadcast scalar / sequence inputs elementwise.

    Equal-length sequences pair up; scalars broadcast against sequences.
    Returns the broadcast float arrays and whether every input was a scalar
    (so callers can hand back a plain float).
    """
    arrays = [np.asarray(v, dtype=float) for v in values]
    all_scalar = all(a.ndim == 0 for a in arrays)
    try:
        out = np.broadcast_arrays(*arrays)
    except ValueError as exc:
        shapes = [a.shape for a in arrays]
        raise ValueError(f"Sequence inputs must have equal length, got shapes {shapes}") from exc
    return tuple(out), all_scalar


def ratio_count(min_ratio: float, max_ratio: float, step: float) -> int:
    """Number of ratios in [min_ratio, max_ratio] at `step`, counted explicitly (no float accumulation)."""
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    if max_ratio < min_ratio:
        raise ValueError(f"max_ratio ({max_ratio}) < min_ratio ({min_ratio})")
    return int(round((max_ratio - min_ratio) / step)) + 1


def ratio_grid(min_ratio: float, max_ratio: float, step: float) -> np.ndarray:
    """
    Ascending rent-ratio grid rebuilt from an integer index.

    Each ratio is min_ratio + k*step rounded to 10 decimals, so
    ratio_grid(0.6, 0.9, 0.05) is exactly the 7 values 0.60 .. 0.90.
    """
    n = ratio_count(min_ratio, max_ratio, step)
    k = np.arange(n, dtype=float)
    return np.round(float(min_ratio) + k * float(step), 10)


def is_ascending(values: np.ndarray) -> bool:
    values = np.asarray(values, dtype=float)
    return bool(np.all(np.diff(values) > 0))
