import logging
import threading

import numpy as np
import pandas as pd
import pytest

import engine.runner as runner
from core.errors import CalibrationError, ConfigError, SimulationError
from distributions.benchmarks import get_benchmark_parameters
from distributions.sampler import CIRParameters, simulate_rates
from engine.runner import chunk_bounds, run_monte_carlo, run_rent_vs_buy, run_trial


def _make_config(small_config, **overrides):
    return small_config.with_overrides(**overrides)


def test_chunk_bounds_cover_every_trial():
    bounds = chunk_bounds(10, 4)
    assert bounds == [(0, 4), (4, 8), (8, 10)]


def test_run_trial_is_reproducible(small_config, monthly_params):
    sampler = runner.CIRPathSampler(monthly_params, seed=small_config.rng_seed)
    a = run_trial(3, small_config, sampler)
    b = run_trial(3, small_config, sampler)
    np.testing.assert_array_equal(a.cost_difference, b.cost_difference)


def test_run_trial_draws_from_the_sampler_parameters(small_config, monthly_params):
    calm = runner.CIRPathSampler(monthly_params, seed=1)
    wild = runner.CIRPathSampler(CIRParameters(0.05, 0.05, 0.2), seed=1)
    a = run_trial(0, small_config, calm)
    b = run_trial(0, small_config, wild)
    assert not np.array_equal(a.cost_difference, b.cost_difference)


class TestRunMonteCarlo:
    def test_probabilities_in_unit_interval(self, small_config, monthly_params):
        stats = run_monte_carlo(monthly_params, small_config)
        assert stats.n_trials == small_config.num_trajectories
        assert stats.n_excluded == 0
        assert not stats.cancelled
        assert len(stats.ratios) == 7
        assert np.all((stats.favor_rent_probability >= 0) & (stats.favor_rent_probability <= 1))

    def test_probability_non_increasing_in_ratio(self, small_config, monthly_params):
        stats = run_monte_carlo(monthly_params, small_config)
        assert np.all(np.diff(stats.favor_rent_probability) <= 0)
        assert np.all(np.diff(stats.mean_cost_difference) <= 1e-6)

    def test_seeded_runs_are_bit_identical(self, small_config, monthly_params):
        a = run_monte_carlo(monthly_params, small_config)
        b = run_monte_carlo(monthly_params, small_config)
        np.testing.assert_array_equal(a.favor_rent_probability, b.favor_rent_probability)
        np.testing.assert_array_equal(a.mean_cost_difference, b.mean_cost_difference)

    def test_thread_pool_matches_serial(self, small_config, monthly_params):
        serial = run_monte_carlo(monthly_params, _make_config(small_config, chunk_size=7))
        threaded = run_monte_carlo(
            monthly_params,
            _make_config(small_config, chunk_size=7, workers=3, parallel_backend="thread"),
        )
        np.testing.assert_array_equal(serial.favor_rent_probability, threaded.favor_rent_probability)
        np.testing.assert_array_equal(serial.mean_cost_difference, threaded.mean_cost_difference)

    def test_process_pool_runs(self, small_config, monthly_params):
        config = _make_config(small_config, num_trajectories=8, workers=2, parallel_backend="process")
        stats = run_monte_carlo(monthly_params, config)
        assert stats.n_trials == 8

    def test_different_seeds_differ(self, small_config, monthly_params):
        a = run_monte_carlo(monthly_params, small_config)
        b = run_monte_carlo(monthly_params, _make_config(small_config, rng_seed=99))
        assert not np.array_equal(a.mean_cost_difference, b.mean_cost_difference)

    def test_failing_trials_are_excluded(self, small_config, monthly_params, monkeypatch):
        real_compare = runner.compare

        def flaky_compare(*args, **kwargs):
            result = real_compare(*args, **kwargs)
            if result.mortgage_cost > np.median(_costs):
                raise SimulationError("overflow")
            return result

        sampler = runner.CIRPathSampler(monthly_params, seed=small_config.rng_seed)
        _costs = [run_trial(i, small_config, sampler).mortgage_cost
                  for i in range(small_config.num_trajectories)]
        monkeypatch.setattr(runner, "compare", flaky_compare)

        stats = run_monte_carlo(monthly_params, small_config)
        assert stats.n_excluded == small_config.num_trajectories // 2
        assert stats.n_trials + stats.n_excluded == small_config.num_trajectories
        assert any("threshold" in w for w in stats.warnings)

    def test_all_trials_failing_returns_nan(self, small_config, monthly_params, monkeypatch):
        def broken_compare(*args, **kwargs):
            raise SimulationError("overflow")

        monkeypatch.setattr(runner, "compare", broken_compare)
        stats = run_monte_carlo(monthly_params, small_config)
        assert stats.n_trials == 0
        assert stats.n_excluded == small_config.num_trajectories
        assert np.all(np.isnan(stats.favor_rent_probability))

    def test_cancel_before_start(self, small_config, monthly_params):
        event = threading.Event()
        event.set()
        stats = run_monte_carlo(monthly_params, small_config, cancel_event=event)
        assert stats.cancelled
        assert stats.n_trials == 0

    def test_cancel_midway_keeps_partial_results(self, small_config, monthly_params):
        event = threading.Event()

        def progress(done, total):
            if done >= 10:
                event.set()

        config = _make_config(small_config, chunk_size=5)
        stats = run_monte_carlo(monthly_params, config, cancel_event=event, progress=progress)
        assert stats.cancelled
        assert stats.n_trials == 10
        assert np.all((stats.favor_rent_probability >= 0) & (stats.favor_rent_probability <= 1))

    def test_stop_rule(self, small_config, monthly_params):
        config = _make_config(small_config, chunk_size=10)
        stats = run_monte_carlo(monthly_params, config, stop_when=lambda s: s.n_trials >= 20)
        assert stats.cancelled
        assert stats.n_trials == 20
        assert stats.n_requested == config.num_trajectories

    def test_progress_reports_every_chunk(self, small_config, monthly_params):
        seen = []
        run_monte_carlo(monthly_params, _make_config(small_config, chunk_size=10),
                        progress=lambda done, total: seen.append((done, total)))
        assert seen == [(10, 40), (20, 40), (30, 40), (40, 40)]

    @pytest.mark.parametrize("params", [
        CIRParameters(0.05, -0.05, 0.02),
        CIRParameters(0.05, 0.05, -0.02),
        CIRParameters(0.0, 0.05, 0.02),
        CIRParameters(0.05, float("nan"), 0.02),
    ])
    def test_infeasible_parameters_rejected_before_running(self, small_config, params, monkeypatch):
        def never_called(*args, **kwargs):
            raise AssertionError("no trial should run")

        monkeypatch.setattr(runner, "compare", never_called)
        with pytest.raises(ConfigError, match="CIR parameters"):
            run_monte_carlo(params, small_config)
        with pytest.raises(ConfigError, match="CIR parameters"):
            run_rent_vs_buy(small_config, cir_params=params)

    def test_exclusion_warnings_are_limited_per_run(self, small_config, monthly_params, monkeypatch, caplog):
        def broken_compare(*args, **kwargs):
            raise SimulationError("overflow")

        monkeypatch.setattr(runner, "compare", broken_compare)
        config = _make_config(small_config, chunk_size=5)
        with caplog.at_level(logging.DEBUG, logger="engine.runner"):
            run_monte_carlo(monthly_params, config)
        excluded = [r for r in caplog.records if r.getMessage().startswith("Excluding trial")]
        warned = [r for r in excluded if r.levelno == logging.WARNING]
        assert len(warned) == runner._EXCLUSION_LOG_LIMIT
        assert len(excluded) > len(warned)

    def test_invalid_config_rejected_before_running(self, small_config, monthly_params):
        with pytest.raises(ConfigError) as excinfo:
            run_monte_carlo(monthly_params, _make_config(small_config, principal=-1.0, ratio_step=0.0))
        assert len(excinfo.value.errors) == 2


class TestRunRentVsBuy:
    def test_from_history(self, small_config):
        history = simulate_rates(CIRParameters(0.05, 0.05, 0.02), 3_000, rng=np.random.default_rng(8))
        dates = pd.date_range("1750-01-01", periods=len(history), freq="MS")
        stats = run_rent_vs_buy(small_config, rate_history=pd.Series(history, index=dates))
        assert stats.n_trials == small_config.num_trajectories

    def test_from_benchmark_warns_on_feller(self, small_config):
        stats = run_rent_vs_buy(small_config, cir_params=get_benchmark_parameters("volatile"))
        assert any("Feller" in w for w in stats.warnings)

    def test_needs_exactly_one_source(self, small_config, monthly_params):
        with pytest.raises(ValueError):
            run_rent_vs_buy(small_config)
        with pytest.raises(ValueError):
            run_rent_vs_buy(small_config, rate_history=[0.05] * 10, cir_params=monthly_params)

    def test_failed_calibration_produces_no_statistics(self, small_config):
        with pytest.raises(CalibrationError):
            run_rent_vs_buy(small_config, rate_history=np.full(24, 0.04))
