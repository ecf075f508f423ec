"""
Estimate CIR parameters from a historical monthly rate series.

Input:  chronological rate observations (fractions, e.g. 0.05)
Output: calibrated CIRParameters + diagnostics

Two stages:
  1. Regression seed — discretizing dr = alpha(theta - r)dt + sigma sqrt(r) dW and
     dividing by sqrt(r[t-1]) gives the linear model
         r[t]/sqrt(r[t-1]) = a*sqrt(r[t-1]) + b/sqrt(r[t-1]) + noise
     solved by ordinary least squares (normal equations):
         alpha = (1 - a)/dt,  theta = b/(1 - a),  sigma = sqrt(RSS/(n-3)/dt)
  2. Maximum likelihood — the exact CIR transition density is a scaled
     noncentral chi-squared; its log-likelihood is written with the
     exponentially scaled Bessel function ive() for numerical stability and
     maximized from the regression seed.

Transitions whose endpoints are not strictly positive are skipped: the
regression divides by sqrt(r) and the likelihood takes log(r[t+1]/r[t]).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize
from scipy.special import ive

from core.errors import CalibrationError

from .sampler import CIRParameters

logger = logging.getLogger(__name__)

# Objective value where the likelihood is undefined (non-positive parameters, Bessel/log overflow).
_INFEASIBLE_PENALTY = 1e10
_LOWER_BOUND = 1e-10
_MIN_OBSERVATIONS = 4


@dataclass
class CalibrationResult:
    """Calibrated parameters plus what it took to get them."""
    params: CIRParameters
    seed: CIRParameters
    log_likelihood: float
    n_observations: int
    n_dropped: int
    converged: bool
    message: str
    method: str
    warnings: List[str] = field(default_factory=list)

    def __repr__(self) -> str:
        p = self.params
        return (
            f"CalibrationResult(alpha={p.alpha:.6f}, theta={p.theta:.6f}, "
            f"sigma={p.sigma:.6f}, loglik={self.log_likelihood:.3f}, "
            f"n={self.n_observations}, method={self.method})"
        )

    def summary(self) -> pd.DataFrame:
        return pd.DataFrame([
            {"Parameter": name, "Seed": getattr(self.seed, name), "MLE": getattr(self.params, name)}
            for name in ("alpha", "theta", "sigma")
        ])


def _as_rate_array(rates) -> np.ndarray:
    if isinstance(rates, pd.DataFrame):
        if "rate" not in rates.columns:
            raise ValueError("DataFrame rate history needs a 'rate' column.")
        rates = rates["rate"]
    if isinstance(rates, pd.Series) and isinstance(rates.index, pd.DatetimeIndex):
        rates = rates.sort_index()
    return np.asarray(rates, dtype=float).ravel()


def _usable_transitions(rates) -> Tuple[np.ndarray, np.ndarray, int]:
    """(r[t], r[t+1]) pairs with both endpoints finite and > 0, and how many were skipped."""
    r = _as_rate_array(rates)
    if len(r) < 2:
        raise CalibrationError(f"Need at least {_MIN_OBSERVATIONS} observations, got {len(r)}.")
    x, y = r[:-1], r[1:]
    ok = np.isfinite(x) & np.isfinite(y) & (x > 0) & (y > 0)
    n_dropped = int((~ok).sum())
    if n_dropped:
        logger.warning("Skipping %d of %d transitions with non-positive or missing rates",
                       n_dropped, len(x))
    return x[ok], y[ok], n_dropped


def _check_identifiable(x: np.ndarray, y: np.ndarray) -> None:
    n = len(x) + 1  # observations implied by the transition count
    if n < _MIN_OBSERVATIONS:
        raise CalibrationError(
            f"Need at least {_MIN_OBSERVATIONS} usable observations, got {n}."
        )
    if np.ptp(np.concatenate([x, y])) == 0:
        raise CalibrationError("Rate series is constant; volatility is not identified.")


def _regression_from_pairs(x: np.ndarray, y: np.ndarray, dt: float) -> CIRParameters:
    _check_identifiable(x, y)
    n = len(x) + 1

    sx = np.sqrt(x)
    target = y / sx
    design = np.column_stack([sx, 1.0 / sx])

    try:
        a, b = np.linalg.solve(design.T @ design, design.T @ target)
    except np.linalg.LinAlgError as exc:
        raise CalibrationError("Regression normal equations are singular.") from exc

    residuals = target - design @ np.array([a, b])
    rss = float(residuals @ residuals)

    if a == 1.0:
        raise CalibrationError("Regression slope is exactly 1; mean reversion is not identified.")
    alpha = (1.0 - a) / dt
    theta = b / (1.0 - a)
    sigma = float(np.sqrt(rss / (n - 3) / dt))
    return CIRParameters(alpha=float(alpha), theta=float(theta), sigma=sigma)


def regression_seed(rates, dt: float = 1.0) -> CIRParameters:
    """
    Closed-form OLS estimate of (alpha, theta, sigma) from the discretized CIR equation.

    The result is not guaranteed feasible (e.g. alpha < 0 for a trending series);
    calibrate_cir() clips it into the feasible box before refining.
    """
    x, y, _ = _usable_transitions(rates)
    return _regression_from_pairs(x, y, dt)


def _log_likelihood_pairs(values: np.ndarray, x: np.ndarray, y: np.ndarray, dt: float) -> float:
    alpha, theta, sigma = values
    if not (alpha > 0 and theta > 0 and sigma > 0):
        return -np.inf

    with np.errstate(all="ignore"):
        decay = np.exp(-alpha * dt)
        c = 2.0 * alpha / (sigma ** 2 * (1.0 - decay))
        q = 2.0 * alpha * theta / sigma ** 2 - 1.0
        u = c * x * decay
        v = c * y
        z = 2.0 * np.sqrt(u * v)
        terms = np.log(c) - u - v + 0.5 * q * np.log(v / u) + np.log(ive(q, z)) + z
        total = float(np.sum(terms))

    if not np.isfinite(total):
        return -np.inf
    return total


def cir_log_likelihood(params: CIRParameters, rates, dt: float = 1.0) -> float:
    """
    Exact CIR transition log-likelihood of a rate series.

    Returns -inf where the likelihood is undefined (non-positive parameters,
    Bessel underflow, or overflow in any term).
    """
    x, y, _ = _usable_transitions(rates)
    return _log_likelihood_pairs(params.as_array(), x, y, dt)


def _negative_log_likelihood(values: np.ndarray, x: np.ndarray, y: np.ndarray, dt: float) -> float:
    """Per-transition negative log-likelihood, so optimizer tolerances do not depend on series length."""
    ll = _log_likelihood_pairs(values, x, y, dt)
    if not np.isfinite(ll):
        return _INFEASIBLE_PENALTY
    return -ll / len(x)


def _feasible_start(seed: CIRParameters, x: np.ndarray, y: np.ndarray, dt: float) -> np.ndarray:
    """Clip the regression seed into alpha, theta, sigma > 0, falling back to moment guesses."""
    start = seed.as_array()
    fallback = np.array([
        0.1 / dt,
        float(np.mean(np.concatenate([x, y[-1:]]))),
        float(np.std(np.diff(np.concatenate([x, y[-1:]]))) / np.sqrt(max(np.mean(x), _LOWER_BOUND) * dt)),
    ])
    bad = ~np.isfinite(start) | (start <= _LOWER_BOUND)
    if bad.any():
        logger.warning("Regression seed %s is infeasible; replacing %d component(s)",
                       seed, int(bad.sum()))
        start = np.where(bad, fallback, start)
    return np.maximum(start, 10 * _LOWER_BOUND)


def calibrate_cir(
    rates,
    dt: float = 1.0,
    *,
    seed: Optional[CIRParameters] = None,
    maxiter: int = 5000,
) -> CalibrationResult:
    """
    Main entry point: regression seed + maximum-likelihood refinement.

    Parameters
    ----------
    rates : array-like or pd.Series
        Chronological historical rates (fractions)
    dt : float
        Time step between observations (1.0 = one month)
    seed : CIRParameters, optional
        Starting point; defaults to the regression estimate
    maxiter : int
        Iteration cap per optimizer pass

    Raises CalibrationError when the optimizer does not converge or the
    likelihood is non-finite at the solution.
    """
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")

    x, y, n_dropped = _usable_transitions(rates)
    if seed is None:
        seed = _regression_from_pairs(x, y, dt)
    else:
        _check_identifiable(x, y)
    logger.info("Regression seed: alpha=%.6g theta=%.6g sigma=%.6g", seed.alpha, seed.theta, seed.sigma)

    start = _feasible_start(seed, x, y, dt)
    if _negative_log_likelihood(start, x, y, dt) >= _INFEASIBLE_PENALTY:
        raise CalibrationError(f"Log-likelihood is not finite at the starting point {start}.")

    bounds = [(_LOWER_BOUND, None)] * 3
    res = minimize(
        _negative_log_likelihood, start, args=(x, y, dt),
        method="L-BFGS-B", bounds=bounds, options={"maxiter": maxiter},
    )
    method = "L-BFGS-B"

    if not res.success:
        logger.warning("L-BFGS-B did not converge (%s); retrying with Nelder-Mead", res.message)
        res = minimize(
            _negative_log_likelihood, res.x, args=(x, y, dt),
            method="Nelder-Mead",
            options={"maxiter": maxiter, "maxfev": 2 * maxiter, "xatol": 1e-8, "fatol": 1e-8},
        )
        method = "Nelder-Mead"

    if not res.success:
        raise CalibrationError(f"MLE did not converge: {res.message}")
    if not np.isfinite(res.fun) or res.fun >= _INFEASIBLE_PENALTY:
        raise CalibrationError("Log-likelihood is not finite at the optimum.")

    params = CIRParameters.from_array(res.x)
    if not params.is_feasible:
        raise CalibrationError(f"Optimizer returned infeasible parameters {params}.")
    log_likelihood = _log_likelihood_pairs(res.x, x, y, dt)

    warnings: List[str] = []
    if n_dropped:
        warnings.append(f"{n_dropped} transitions with non-positive rates were skipped.")
    if not params.satisfies_feller:
        msg = (
            f"Calibrated parameters violate the Feller condition "
            f"(2*alpha*theta/sigma^2 = {params.feller_ratio:.3f} < 1); "
            f"simulated paths will hit zero more often."
        )
        logger.warning(msg)
        warnings.append(msg)

    result = CalibrationResult(
        params=params,
        seed=seed,
        log_likelihood=log_likelihood,
        n_observations=len(x) + 1,
        n_dropped=n_dropped,
        converged=bool(res.success),
        message=str(res.message),
        method=method,
        warnings=warnings,
    )
    logger.info("Calibrated %r", result)
    return result


def calibrate_from_history(history, dt: float = 1.0) -> CalibrationResult:
    """
    Calibrate from a loaded rate history (Series indexed by date, DataFrame with a
    'rate' column, or plain array). Date-indexed input is sorted chronologically.
    """
    return calibrate_cir(_as_rate_array(history), dt=dt)
