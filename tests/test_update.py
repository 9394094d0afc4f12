"""Tests for the importance-weighted policy update."""

import numpy as np

from stompopt.core.rollout import Rollout
from stompopt.optimization.update import PolicyUpdater
from stompopt.policy import CovariantTrajectory, DerivativeOrder


T = 12


def _trajectory():
    return CovariantTrajectory.from_endpoints(
        [0.0], [1.0], T, 1.0, derivative_order=DerivativeOrder.VELOCITY
    )


def _rollout(noise_value, step_cost, number):
    noise = np.full((1, T), noise_value)
    return Rollout(
        noise=noise,
        noisy_parameters=noise.copy(),
        projected_parameters=noise.copy(),
        task_costs=np.full(T, step_cost),
        control_costs=np.zeros((1, T)),
        rollout_number=number,
    )


def test_update_moves_toward_cheaper_rollout():
    trajectory = _trajectory()
    theta = trajectory.get_parameters()
    updater = PolicyUpdater(trajectory)
    rollouts = [_rollout(0.1, 1.0, 0), _rollout(-0.1, 5.0, 1)]

    delta = updater.apply(theta, rollouts)

    assert np.all(delta > 0.0)
    assert np.allclose(trajectory.get_parameters(), theta + delta)
    for rollout in rollouts:
        assert rollout.importance_weights.shape == (T,)
    assert np.allclose(rollouts[0].importance_weights + rollouts[1].importance_weights, 1.0)


def test_update_is_projected_weighted_noise():
    """Δ = M · Σ_k w_k ε_k."""
    trajectory = _trajectory()
    updater = PolicyUpdater(trajectory)
    rng = np.random.default_rng(5)
    rollouts = []
    for k in range(4):
        rollout = _rollout(0.0, 0.0, k)
        rollout.noise = rng.normal(size=(1, T))
        rollout.task_costs = rng.uniform(size=T)
        rollouts.append(rollout)

    weights = updater.compute_weights(rollouts)
    delta = updater.compute_update(rollouts, weights)

    raw = sum(weights[k] * rollouts[k].noise[0] for k in range(4))
    M = trajectory.smoothness_model(0).projection_matrix
    assert np.allclose(delta[0], M @ raw)


def test_zero_noise_gives_zero_update():
    trajectory = _trajectory()
    theta = trajectory.get_parameters()
    updater = PolicyUpdater(trajectory)
    rollouts = [_rollout(0.0, float(k), k) for k in range(5)]

    delta = updater.apply(theta, rollouts)

    assert np.array_equal(delta, np.zeros((1, T)))
    assert np.array_equal(trajectory.get_parameters(), theta)


def test_no_rollouts_is_noop():
    trajectory = _trajectory()
    theta = trajectory.get_parameters()
    updater = PolicyUpdater(trajectory)

    delta = updater.apply(theta, [])

    assert np.array_equal(delta, np.zeros((1, T)))
    assert updater.compute_weights([]).shape == (0, T)


def test_weights_follow_total_cost():
    """Every step of a rollout shares the weight of its total cost."""
    trajectory = _trajectory()
    updater = PolicyUpdater(trajectory)
    cheap_overall = _rollout(0.0, 0.0, 0)
    cheap_overall.task_costs = np.r_[5.0, np.zeros(T - 1)]
    cheap_steps = _rollout(0.0, 0.0, 1)
    cheap_steps.task_costs = np.r_[0.0, np.full(T - 1, 1.0)]

    weights = updater.compute_weights([cheap_overall, cheap_steps])

    assert weights.shape == (2, T)
    assert np.allclose(weights, weights[:, :1])
    assert np.all(weights[0] > weights[1])


def test_control_costs_enter_weights():
    trajectory = _trajectory()
    updater = PolicyUpdater(trajectory)
    smooth = _rollout(0.0, 1.0, 0)
    rough = _rollout(0.0, 1.0, 1)
    rough.control_costs = np.full((1, T), 0.5)

    weights = updater.compute_weights([smooth, rough])

    assert np.all(weights[0] > weights[1])
