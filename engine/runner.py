"""
Monte Carlo runner — orchestrates simulated rate paths through the rent-vs-buy comparison.

Flow:
  1. (once)      calibrate CIR parameters from history, or take them pre-computed
  2. (per trial) draw a path from the trial's own RNG stream -> compare -> fold into a tally
  3. (at end)    merge chunk tallies in chunk order -> AggregateStatistics

Trials are split into contiguous chunks of trial indices. A chunk is the unit of
work handed to a worker and the point at which cancellation and early-stop
rules are checked. Trial k always uses the RNG stream derived from
(rng_seed, k), and chunks are merged in index order, so a fixed seed and
configuration give bit-identical statistics.

A trial that raises SimulationError is excluded from every denominator and
counted; the batch never aborts on a single bad trial.
"""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import numpy as np

from core.config import RentVsBuyConfig
from core.errors import ConfigError, SimulationError
from distributions.historical import calibrate_from_history
from distributions.sampler import CIRParameters, CIRPathSampler
from pm.aggregator import AggregateStatistics, RatioTally, finalize

from .comparison import ComparisonResult, compare

logger = logging.getLogger(__name__)

# Log the first few exclusions at WARNING, the rest at DEBUG.
_EXCLUSION_LOG_LIMIT = 5


def chunk_bounds(n_trials: int, chunk_size: int) -> List[Tuple[int, int]]:
    """Contiguous [start, stop) trial-index ranges covering 0..n_trials."""
    chunk_size = max(1, int(chunk_size))
    return [(s, min(s + chunk_size, n_trials)) for s in range(0, n_trials, chunk_size)]


def default_chunk_size(config: RentVsBuyConfig) -> int:
    if config.chunk_size is not None:
        return int(config.chunk_size)
    # several chunks per worker
    return max(1, math.ceil(config.num_trajectories / (8 * config.workers)))


def run_trial(
    index: int,
    config: RentVsBuyConfig,
    sampler: CIRPathSampler,
    ratios: Optional[np.ndarray] = None,
) -> ComparisonResult:
    """Simulate trial `index`'s path from sampler.params and compare renting against buying on it."""
    try:
        trajectory = sampler.sample(index, config.num_steps)
        return compare(
            config.principal,
            config.term_years,
            trajectory,
            config.investment_appreciation,
            config.property_appreciation,
            config.lease_term_months,
            config.ratios if ratios is None else ratios,
        )
    except SimulationError as exc:
        if exc.trial_index is None:
            raise SimulationError(str(exc), trial_index=index) from exc
        raise


def _run_chunk(
    config: RentVsBuyConfig,
    sampler: CIRPathSampler,
    start: int,
    stop: int,
) -> Tuple[RatioTally, List[str]]:
    """
    Fold trials [start, stop) into a tally. Runs inside a worker.

    Also returns the messages of the first few exclusions; the caller logs them
    so the warning limit applies to the whole run.
    """
    ratios = config.ratios
    tally = RatioTally.empty(ratios)
    messages: List[str] = []
    for index in range(start, stop):
        try:
            result = run_trial(index, config, sampler, ratios)
        except SimulationError as exc:
            tally.exclude()
            if len(messages) < _EXCLUSION_LOG_LIMIT:
                messages.append(str(exc))
            continue
        tally.add(result.cost_difference)
    return tally, messages


def _require_feasible(params: CIRParameters) -> None:
    if not params.is_feasible:
        raise ConfigError([
            f"CIR parameters must be finite and > 0, got alpha={params.alpha}, "
            f"theta={params.theta}, sigma={params.sigma}."
        ])


def _make_executor(config: RentVsBuyConfig) -> Executor:
    if config.parallel_backend == "thread":
        return ThreadPoolExecutor(max_workers=config.workers)
    return ProcessPoolExecutor(max_workers=config.workers)


def _exclusion_warnings(tally: RatioTally, config: RentVsBuyConfig) -> List[str]:
    warnings = []
    if tally.n_excluded == 0:
        return warnings
    rate = tally.n_excluded / tally.n_attempted
    logger.warning("Excluded %d of %d trials (%.1f%%)", tally.n_excluded, tally.n_attempted, 100 * rate)
    if rate > config.max_exclusion_rate:
        msg = (
            f"{tally.n_excluded} of {tally.n_attempted} trials ({rate:.1%}) were excluded, above the "
            f"{config.max_exclusion_rate:.1%} threshold; the CIR parameters are likely unstable."
        )
        logger.warning(msg)
        warnings.append(msg)
    return warnings


def run_monte_carlo(
    params: CIRParameters,
    config: RentVsBuyConfig,
    *,
    cancel_event: Optional[threading.Event] = None,
    stop_when: Optional[Callable[[AggregateStatistics], bool]] = None,
    progress: Optional[Callable[[int, int], None]] = None,
) -> AggregateStatistics:
    """
    Run config.num_trajectories independent trials and reduce them per ratio.

    Parameters
    ----------
    params : CIRParameters
        Calibrated (or benchmark) parameters; shared read-only by every trial.
        All three must be finite and > 0 (ConfigError otherwise)
    config : RentVsBuyConfig
        Validated before any trial starts (ConfigError)
    cancel_event : threading.Event, optional
        Set from another thread to stop after the chunk in flight
    stop_when : callable, optional
        Called with the running statistics after each chunk; True stops the run
        (e.g. pm.metrics.stop_at_confidence(0.02))
    progress : callable, optional
        Called as progress(trials_done, trials_total) after each chunk

    Returns AggregateStatistics; when stopped early, cancelled=True and the
    statistics cover the trials completed so far.
    """
    config.validate()
    _require_feasible(params)

    n_total = int(config.num_trajectories)
    sampler = CIRPathSampler(params, seed=config.rng_seed, dt=config.dt)
    bounds = chunk_bounds(n_total, default_chunk_size(config))
    ratios = config.ratios

    logger.info(
        "Running %d trials over %d ratios in %d chunks (workers=%d, backend=%s)",
        n_total, len(ratios), len(bounds), config.workers, config.parallel_backend,
    )

    tally = RatioTally.empty(ratios)
    cancelled = False
    n_warned = 0

    def _cancel_requested() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    def _stop_rule_met(i: int) -> bool:
        if stop_when is None or i == len(bounds) - 1:
            return False
        return bool(stop_when(finalize(tally, n_requested=n_total)))

    def _fold(outcome: Tuple[RatioTally, List[str]], i: int) -> None:
        nonlocal tally, n_warned
        chunk, messages = outcome
        for message in messages:
            level = logging.WARNING if n_warned < _EXCLUSION_LOG_LIMIT else logging.DEBUG
            logger.log(level, "Excluding trial: %s", message)
            n_warned += 1
        tally = tally.merge(chunk)
        logger.debug("Chunk %d/%d done: %d trials so far", i + 1, len(bounds), tally.n_attempted)
        if progress is not None:
            progress(tally.n_attempted, n_total)

    if config.workers == 1:
        for i, (start, stop) in enumerate(bounds):
            if _cancel_requested():
                cancelled = True
                break
            _fold(_run_chunk(config, sampler, start, stop), i)
            if _stop_rule_met(i):
                cancelled = True
                break
    else:
        with _make_executor(config) as executor:
            futures = [
                executor.submit(_run_chunk, config, sampler, start, stop)
                for start, stop in bounds
            ]
            for i, future in enumerate(futures):
                if _cancel_requested():
                    cancelled = True
                    for pending in futures[i:]:
                        pending.cancel()
                    break
                _fold(future.result(), i)
                if _stop_rule_met(i):
                    cancelled = True
                    for pending in futures[i + 1:]:
                        pending.cancel()
                    break

    if cancelled:
        logger.info("Run stopped early after %d of %d trials", tally.n_attempted, n_total)

    warnings = _exclusion_warnings(tally, config)
    stats = finalize(tally, n_requested=n_total, cancelled=cancelled, warnings=warnings)
    logger.info("Monte Carlo done: %d included, %d excluded", stats.n_trials, stats.n_excluded)
    return stats


def run_rent_vs_buy(
    config: RentVsBuyConfig,
    *,
    rate_history=None,
    cir_params: Optional[CIRParameters] = None,
    cancel_event: Optional[threading.Event] = None,
    stop_when: Optional[Callable[[AggregateStatistics], bool]] = None,
    progress: Optional[Callable[[int, int], None]] = None,
) -> AggregateStatistics:
    """
    Full pipeline: validate config -> calibrate once (unless cir_params given) -> Monte Carlo.

    Exactly one of rate_history or cir_params must be provided. CalibrationError
    propagates: no statistics are produced without valid parameters. Calibration
    warnings are carried on the returned statistics.
    """
    if rate_history is None and cir_params is None:
        raise ValueError("Must provide either rate_history or cir_params.")
    if rate_history is not None and cir_params is not None:
        raise ValueError("Provide rate_history OR cir_params, not both.")

    config.validate()

    warnings: List[str] = []
    if cir_params is None:
        calibration = calibrate_from_history(rate_history, dt=config.dt)
        params = calibration.params
        warnings.extend(calibration.warnings)
    else:
        params = cir_params
        _require_feasible(params)
        if not params.satisfies_feller:
            msg = (
                f"Supplied parameters violate the Feller condition "
                f"(2*alpha*theta/sigma^2 = {params.feller_ratio:.3f} < 1)."
            )
            logger.warning(msg)
            warnings.append(msg)

    stats = run_monte_carlo(
        params, config,
        cancel_event=cancel_event, stop_when=stop_when, progress=progress,
    )
    return stats.with_warnings(warnings)
