"""Tests for smooth exploration noise."""

import numpy as np
import pytest

from stompopt.policy import CovariantTrajectory, DerivativeOrder
from stompopt.sampling import NoiseModel


def _noise_model(T=10, D=1):
    trajectory = CovariantTrajectory.from_endpoints(
        np.zeros(D), np.ones(D), T, 1.0, derivative_order=DerivativeOrder.VELOCITY
    )
    return NoiseModel(trajectory)


def test_zero_stddev_gives_zero_noise():
    model = _noise_model()
    rng = np.random.default_rng(0)

    assert np.array_equal(model.sample(0, 0.0, rng), np.zeros(10))
    assert np.array_equal(model.sample_all([0.0], rng), np.zeros((1, 10)))


def test_sample_all_shape_and_scaling():
    """Per-dimension magnitudes scale independent draws."""
    model = _noise_model(T=8, D=3)
    noise = model.sample_all([1.0, 0.0, 2.0], np.random.default_rng(1))

    assert noise.shape == (3, 8)
    assert np.allclose(noise[1], 0.0)
    assert np.any(noise[0] != 0.0)


def test_same_seed_same_noise():
    model = _noise_model()
    first = model.sample_all(0.5, np.random.default_rng(np.random.SeedSequence(7)))
    second = model.sample_all(0.5, np.random.default_rng(np.random.SeedSequence(7)))

    assert np.array_equal(first, second)


def test_sample_covariance_matches_model():
    """Empirical covariance approaches stddev² · R⁻¹ / max diag R⁻¹."""
    model = _noise_model(T=10)
    rng = np.random.default_rng(42)
    stddev = 0.5
    samples = np.stack([model.sample(0, stddev, rng) for _ in range(20000)])

    empirical = np.cov(samples, rowvar=False)
    expected = model.covariance(0, stddev)

    assert np.allclose(empirical, expected, atol=0.015)


def test_marginal_variances_peak_at_one():
    model = _noise_model(T=15)
    variances = model.marginal_variances(0)

    assert variances.max() == pytest.approx(1.0)
    # Pinned ends vary least
    assert variances[0] < variances[7]
    assert variances[-1] < variances[7]


def test_uninitialized_trajectory_rejected():
    with pytest.raises(RuntimeError):
        NoiseModel(CovariantTrajectory())
