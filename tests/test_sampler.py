import numpy as np
import pytest

from core.errors import SimulationError
from distributions.benchmarks import get_benchmark_parameters, list_benchmark_names
from distributions.sampler import CIRParameters, CIRPathSampler, simulate_rates


class TestCIRParameters:
    def test_feller(self, monthly_params):
        assert monthly_params.feller_ratio == pytest.approx(12.5)
        assert monthly_params.satisfies_feller
        assert not CIRParameters(0.01, 0.01, 0.1).satisfies_feller

    def test_array_roundtrip(self, monthly_params):
        assert CIRParameters.from_array(monthly_params.as_array()) == monthly_params

    def test_feasibility(self):
        assert not CIRParameters(-0.1, 0.05, 0.02).is_feasible
        assert not CIRParameters(0.1, np.nan, 0.02).is_feasible


class TestSimulateRates:
    def test_starts_at_theta(self, monthly_params):
        path = simulate_rates(monthly_params, 10, rng=np.random.default_rng(0))
        assert path[0] == monthly_params.theta
        assert len(path) == 10

    def test_custom_start(self, monthly_params):
        path = simulate_rates(monthly_params, 5, rng=np.random.default_rng(0), r0=0.02)
        assert path[0] == 0.02

    def test_non_negative_even_when_feller_fails(self):
        harsh = CIRParameters(alpha=0.01, theta=0.01, sigma=0.3)
        for seed in range(20):
            path = simulate_rates(harsh, 300, rng=np.random.default_rng(seed))
            assert np.all(path >= 0)

    def test_path_is_read_only(self, monthly_params):
        path = simulate_rates(monthly_params, 5, rng=np.random.default_rng(0))
        with pytest.raises(ValueError):
            path[0] = 1.0

    def test_same_rng_state_same_path(self, monthly_params):
        a = simulate_rates(monthly_params, 50, rng=np.random.default_rng(9))
        b = simulate_rates(monthly_params, 50, rng=np.random.default_rng(9))
        np.testing.assert_array_equal(a, b)

    def test_invalid_arguments(self, monthly_params):
        with pytest.raises(ValueError):
            simulate_rates(monthly_params, 0)
        with pytest.raises(ValueError):
            simulate_rates(monthly_params, 10, dt=0.0)
        with pytest.raises(SimulationError):
            simulate_rates(monthly_params, 10, r0=-0.01)

    def test_overflow_raises_simulation_error(self):
        explosive = CIRParameters(alpha=-50.0, theta=1.0, sigma=1.0)
        with pytest.raises(SimulationError, match="non-finite"):
            simulate_rates(explosive, 400, rng=np.random.default_rng(0))

    def test_noise_scales_with_sqrt_dt(self):
        params = CIRParameters(alpha=0.1, theta=1.0, sigma=0.1)
        full = simulate_rates(params, 2, dt=1.0, rng=np.random.default_rng(4))
        quarter = simulate_rates(params, 2, dt=0.25, rng=np.random.default_rng(4))
        # r0 = theta, so the first step is pure noise
        assert quarter[1] - 1.0 == pytest.approx(0.5 * (full[1] - 1.0))

    def test_long_run_mean(self, monthly_params):
        path = simulate_rates(monthly_params, 20_000, rng=np.random.default_rng(3))
        assert path[1000:].mean() == pytest.approx(monthly_params.theta, rel=0.1)


class TestCIRPathSampler:
    def test_trial_paths_depend_only_on_index(self, monthly_params):
        sampler = CIRPathSampler(monthly_params, seed=42)
        other = CIRPathSampler(monthly_params, seed=42)
        np.testing.assert_array_equal(sampler.sample(17, 120), other.sample(17, 120))
        assert not np.array_equal(sampler.sample(17, 120), sampler.sample(18, 120))

    def test_sample_many_matches_individual_samples(self, monthly_params):
        sampler = CIRPathSampler(monthly_params, seed=5)
        paths = sampler.sample_many(4, 30, start_index=10)
        assert paths.shape == (4, 30)
        np.testing.assert_array_equal(paths[2], sampler.sample(12, 30))

    def test_unseeded_sampler_is_self_consistent(self, monthly_params):
        sampler = CIRPathSampler(monthly_params)
        np.testing.assert_array_equal(sampler.sample(0, 20), sampler.sample(0, 20))

    def test_summary_table(self, monthly_params):
        table = CIRPathSampler(monthly_params, seed=1).summary(n_paths=20, num_steps=40)
        assert list(table["Step"]) == [0, 10, 20, 39]
        assert {"Mean", "P05", "P95"} <= set(table.columns)


class TestBenchmarks:
    def test_all_benchmarks_are_feasible(self):
        for name in list_benchmark_names():
            assert get_benchmark_parameters(name).is_feasible

    def test_volatile_violates_feller(self):
        assert not get_benchmark_parameters("volatile").satisfies_feller
        assert get_benchmark_parameters("base").satisfies_feller

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            get_benchmark_parameters("nope")
