"""Tests for the smoothness model and covariant trajectory."""

import numpy as np
import pytest

from stompopt.algebra import DenseBackend
from stompopt.core.errors import ConfigurationError
from stompopt.policy import (
    TRAJECTORY_PADDING,
    CovariantTrajectory,
    DerivativeOrder,
    build_smoothness_model,
)


def _velocity_trajectory(T=20, start=0.0, goal=1.0, backend=None):
    return CovariantTrajectory.from_endpoints(
        [start], [goal], T, 1.0, derivative_order=DerivativeOrder.VELOCITY,
        backend=backend,
    )


def test_boundary_exactness_velocity():
    """Velocity-only weighting gives the straight line between the boundaries."""
    T, a, b = 20, -0.3, 1.7
    trajectory = _velocity_trajectory(T, a, b)

    expected = a + (b - a) * np.arange(1, T + 1) / (T + 1)

    assert np.allclose(trajectory.get_parameters()[0], expected)


def test_minimum_cost_idempotent():
    """A second solve returns the same parameters."""
    trajectory = CovariantTrajectory.from_endpoints(
        [0.0, 1.0], [2.0, -1.0], 15, 2.0, derivative_order=DerivativeOrder.ACCELERATION
    )
    first = trajectory.get_parameters()
    trajectory.set_to_minimum_cost()

    assert np.array_equal(first, trajectory.get_parameters())


def test_minimum_cost_is_stationary():
    """The control cost gradient vanishes at the minimum cost trajectory."""
    trajectory = CovariantTrajectory.from_endpoints(
        [0.0], [1.0], 12, 1.0, derivative_order=DerivativeOrder.JERK
    )
    grad = trajectory.control_cost_gradient()
    scale = np.abs(trajectory.smoothness_model(0).R_all).max()

    assert np.allclose(grad / scale, 0.0, atol=1e-10)


def test_step_costs_sum_to_quadratic_form():
    """Per-step control costs sum to x_allᵀ R_all x_all."""
    rng = np.random.default_rng(3)
    trajectory = _velocity_trajectory(10)
    params = rng.normal(size=(1, 10))

    costs = trajectory.compute_control_costs(params)
    padded = trajectory.pad(params)[0]
    R_all = trajectory.smoothness_model(0).R_all

    assert costs.shape == (1, 10)
    assert costs.sum() == pytest.approx(padded @ R_all @ padded)


def test_set_parameters_keeps_padding():
    trajectory = _velocity_trajectory(8)
    before = trajectory.get_padded_parameters()

    trajectory.set_parameters(np.full((1, 8), 0.25))
    after = trajectory.get_padded_parameters()

    assert np.array_equal(after[:, :TRAJECTORY_PADDING], before[:, :TRAJECTORY_PADDING])
    assert np.array_equal(after[:, -TRAJECTORY_PADDING:], before[:, -TRAJECTORY_PADDING:])
    assert np.allclose(trajectory.get_parameters(), 0.25)


def test_set_parameters_wrong_shape():
    trajectory = _velocity_trajectory(8)

    with pytest.raises(ValueError):
        trajectory.set_parameters(np.zeros((2, 8)))


def test_projection_matrix_column_scaling():
    """Every column of M peaks at 1/T."""
    T = 16
    trajectory = _velocity_trajectory(T)
    M = trajectory.smoothness_model(0).projection_matrix

    assert np.allclose(M.max(axis=0), 1.0 / T)
    assert np.all(M > 0.0)


def test_noise_covariance_normalized():
    model = _velocity_trajectory(12).smoothness_model(0)

    assert np.max(np.diag(model.noise_covariance)) == pytest.approx(1.0)
    assert np.allclose(model.R_inverse @ model.R, np.eye(12), atol=1e-8)


def test_dense_backend_matches_banded():
    banded = CovariantTrajectory.from_endpoints(
        [0.0], [1.0], 14, 1.0, derivative_order=DerivativeOrder.ACCELERATION
    )
    dense = CovariantTrajectory.from_endpoints(
        [0.0], [1.0], 14, 1.0, derivative_order=DerivativeOrder.ACCELERATION,
        backend=DenseBackend(),
    )

    assert np.allclose(banded.get_parameters(), dense.get_parameters())
    assert np.allclose(
        banded.smoothness_model(0).projection_matrix,
        dense.smoothness_model(0).projection_matrix,
    )


def test_identical_weights_share_model():
    trajectory = CovariantTrajectory.from_endpoints([0.0, 0.0, 1.0], [1.0, 2.0, 0.0], 10, 1.0)

    assert trajectory.smoothness_model(0) is trajectory.smoothness_model(2)


def test_time_step():
    trajectory = _velocity_trajectory(11)

    assert trajectory.time_step() == pytest.approx(1.0 / 10)


def test_copy_is_independent():
    trajectory = _velocity_trajectory(6)
    duplicate = trajectory.copy()
    duplicate.set_parameters(np.zeros((1, 6)))

    assert not np.allclose(trajectory.get_parameters(), 0.0)
    assert duplicate.smoothness_model(0) is trajectory.smoothness_model(0)


def test_per_step_weights_accepted():
    """Weights may vary along the padded grid."""
    T = 10
    N = T + 2 * TRAJECTORY_PADDING
    weights = np.zeros((1, N, 2))
    weights[0, :, 1] = np.linspace(1.0, 2.0, N)

    trajectory = CovariantTrajectory()
    trajectory.initialize(T, 1, 1.0, weights, np.array([[0.0, 1.0]]))

    assert trajectory.smoothness_model(0).weights.shape == (N, 2)


@pytest.mark.parametrize(
    "T, weights, message",
    [
        (1, [[0.0, 1.0]], "minimum"),
        (10, [[0.0, 0.0]], "zero"),
        (10, [[0.0, -1.0]], ">= 0"),
        (10, [[0.0, 1.0, 0.0, 0.0, 1.0]], "orders"),
        (2, [[0.0, 0.0, 0.0, 1.0]], "minimum"),
    ],
)
def test_invalid_configuration(T, weights, message):
    trajectory = CovariantTrajectory()

    with pytest.raises(ConfigurationError, match=message):
        trajectory.initialize(T, 1, 1.0, weights, [[0.0, 1.0]])


def test_invalid_duration():
    with pytest.raises(ConfigurationError):
        CovariantTrajectory().initialize(10, 1, 0.0, [[0.0, 1.0]], [[0.0, 1.0]])


def test_uninitialized_access_raises():
    with pytest.raises(RuntimeError):
        CovariantTrajectory().get_parameters()


def test_build_smoothness_model_default_bandwidth():
    """The banded backend is sized by the highest weighted order."""
    T, P = 10, TRAJECTORY_PADDING
    weights = np.zeros((T + 2 * P, 4))
    weights[:, 2] = 1.0

    model = build_smoothness_model(T, P, 0.1, weights)

    assert model.backend.bandwidth == 2
