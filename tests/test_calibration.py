import numpy as np
import pandas as pd
import pytest

from core.errors import CalibrationError
from distributions.historical import (
    calibrate_cir,
    calibrate_from_history,
    cir_log_likelihood,
    regression_seed,
)
from distributions.sampler import CIRParameters, simulate_rates


@pytest.fixture(scope="module")
def true_params():
    return CIRParameters(alpha=0.05, theta=0.05, sigma=0.02)


@pytest.fixture(scope="module")
def synthetic_history(true_params):
    return np.array(simulate_rates(true_params, 20_000, rng=np.random.default_rng(2024)))


class TestRegressionSeed:
    def test_close_to_truth(self, true_params, synthetic_history):
        seed = regression_seed(synthetic_history)
        assert seed.alpha == pytest.approx(true_params.alpha, rel=0.25)
        assert seed.theta == pytest.approx(true_params.theta, rel=0.1)
        assert seed.sigma == pytest.approx(true_params.sigma, rel=0.15)

    def test_too_few_observations(self):
        with pytest.raises(CalibrationError):
            regression_seed([0.05, 0.051, 0.049])


class TestLogLikelihood:
    def test_higher_at_truth_than_far_away(self, true_params, synthetic_history):
        at_truth = cir_log_likelihood(true_params, synthetic_history)
        far = cir_log_likelihood(CIRParameters(0.5, 0.2, 0.2), synthetic_history)
        assert np.isfinite(at_truth)
        assert at_truth > far

    def test_non_positive_parameters_give_minus_inf(self, synthetic_history):
        assert cir_log_likelihood(CIRParameters(-0.1, 0.05, 0.02), synthetic_history) == -np.inf
        assert cir_log_likelihood(CIRParameters(0.1, 0.05, 0.0), synthetic_history) == -np.inf


class TestCalibrateCIR:
    def test_recovers_parameters(self, true_params, synthetic_history):
        result = calibrate_cir(synthetic_history)
        assert result.converged
        assert result.params.alpha == pytest.approx(true_params.alpha, rel=0.25)
        assert result.params.theta == pytest.approx(true_params.theta, rel=0.1)
        assert result.params.sigma == pytest.approx(true_params.sigma, rel=0.15)

    def test_mle_does_not_lose_to_the_seed(self, synthetic_history):
        result = calibrate_cir(synthetic_history)
        seed_ll = cir_log_likelihood(result.seed, synthetic_history)
        assert result.log_likelihood >= seed_ll - 1e-6
        assert result.log_likelihood == pytest.approx(
            cir_log_likelihood(result.params, synthetic_history)
        )

    def test_skips_non_positive_transitions(self, synthetic_history):
        rates = np.array(synthetic_history[:3000])
        rates[[100, 500]] = 0.0
        result = calibrate_cir(rates)
        assert result.n_dropped == 4
        assert any("skipped" in w for w in result.warnings)

    def test_constant_series_fails(self):
        with pytest.raises(CalibrationError):
            calibrate_cir(np.full(50, 0.05))

    def test_short_series_fails(self):
        with pytest.raises(CalibrationError):
            calibrate_cir([0.05, 0.06])

    def test_invalid_dt(self, synthetic_history):
        with pytest.raises(ValueError):
            calibrate_cir(synthetic_history, dt=0.0)

    def test_summary_table(self, synthetic_history):
        table = calibrate_cir(synthetic_history[:2000]).summary()
        assert list(table["Parameter"]) == ["alpha", "theta", "sigma"]


def test_calibrate_from_dated_history_sorts_chronologically(synthetic_history):
    rates = synthetic_history[:1200]
    dates = pd.date_range("1920-01-01", periods=len(rates), freq="MS")
    shuffled = pd.Series(rates, index=dates).sample(frac=1.0, random_state=0)
    from_series = calibrate_from_history(shuffled)
    from_array = calibrate_cir(rates)
    assert from_series.params == from_array.params
