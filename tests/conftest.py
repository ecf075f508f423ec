import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.config import RentVsBuyConfig  # noqa: E402
from distributions.sampler import CIRParameters  # noqa: E402


@pytest.fixture
def monthly_params():
    """Feller-satisfying monthly parameters around a 5% long-run rate."""
    return CIRParameters(alpha=0.05, theta=0.05, sigma=0.02)


@pytest.fixture
def small_config():
    return RentVsBuyConfig(
        principal=500_000.0,
        term_years=5,
        num_steps=60,
        num_trajectories=40,
        rng_seed=1234,
    )


@pytest.fixture
def flat_path():
    return np.full(300, 0.05)
