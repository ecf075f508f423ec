import numpy as np
import pytest

from core.errors import SimulationError
from core.utils import ratio_grid
from engine.cashflow import payment, variable_payment
from engine.comparison import baseline_rent, compare

RATIOS = ratio_grid(0.6, 0.9, 0.05)


def _compare(path, **overrides):
    kwargs = dict(
        principal=500_000.0,
        term_years=25,
        trajectory=path,
        investment_appreciation=0.05,
        property_appreciation=0.03,
        lease_term_months=12,
        ratios=RATIOS,
    )
    kwargs.update(overrides)
    return compare(**kwargs)


def _brute_force(path, ratio, principal=500_000.0, term_years=25,
                 investment_appreciation=0.05, property_appreciation=0.03, lease=12):
    """Month-by-month simulation of both strategies, for cross-checking the closed form."""
    n = 12 * term_years
    mortgage = variable_payment(principal, 0.0, term_years, path)
    account = 0.0
    total_rent = 0.0
    value = principal
    rent = 0.0
    for i in range(n):
        if i % lease == 0:
            rent = ratio * payment(value, path[i], 0.0, term_years)
        total_rent += rent
        account = account * (1.0 + investment_appreciation / 12.0) + mortgage[i] - rent
        value *= 1.0 + property_appreciation / 12.0
    return mortgage.sum() - (total_rent - account)


class TestCompare:
    def test_one_entry_per_ratio(self, flat_path):
        result = _compare(flat_path)
        assert len(result) == 7
        assert result[0.9] == result.cost_difference[-1]
        assert set(result.as_dict()) == set(float(r) for r in RATIOS)

    def test_matches_month_by_month_simulation(self):
        rng = np.random.default_rng(11)
        path = np.abs(0.05 + 0.01 * rng.standard_normal(300))
        result = _compare(path)
        for ratio in (0.6, 0.75, 0.9):
            assert result[ratio] == pytest.approx(_brute_force(path, ratio), rel=1e-9)

    def test_non_increasing_in_ratio(self):
        rng = np.random.default_rng(5)
        for _ in range(10):
            path = np.abs(0.04 + 0.02 * rng.standard_normal(300))
            diff = _compare(path).cost_difference
            assert np.all(np.diff(diff) <= 1e-9)

    def test_lease_holds_rent_between_renewals(self):
        path = np.linspace(0.02, 0.08, 300)
        rent = baseline_rent(500_000.0, 25, path, 0.03, 12)
        assert np.all(rent[:12] == rent[0])
        assert rent[12] != rent[11]
        monthly = baseline_rent(500_000.0, 25, path, 0.03, 1)
        assert np.all(np.diff(monthly) != 0)

    def test_zero_rate_path(self):
        result = _compare(np.zeros(300))
        assert np.all(np.isfinite(result.cost_difference))

    def test_unknown_ratio_lookup(self, flat_path):
        with pytest.raises(KeyError):
            _compare(flat_path)[0.61]

    def test_rejects_unsorted_or_empty_ratios(self, flat_path):
        with pytest.raises(ValueError):
            _compare(flat_path, ratios=[0.9, 0.6])
        with pytest.raises(ValueError):
            _compare(flat_path, ratios=[])

    def test_rejects_short_trajectory(self):
        with pytest.raises(ValueError):
            _compare(np.full(100, 0.05))

    def test_non_finite_path_raises_simulation_error(self):
        path = np.full(300, 0.05)
        path[40] = np.inf
        with pytest.raises(SimulationError):
            _compare(path)

    def test_frames(self, flat_path):
        result = _compare(flat_path)
        assert result.to_series().index.name == "ratio"
        assert list(result.to_dataframe()["ratio"]) == list(RATIOS)
