"""End-to-end optimization scenarios."""

import numpy as np
import pytest

from stompopt import Chomp, ChompConfig, Stomp, StompConfig
from stompopt.core.config import NoiseAdaptationConfig
from stompopt.tasks import Obstacle, Obstacle2DTask


class HalfwayTask:
    """Pull every step toward x = 0.5."""

    def __init__(self):
        self.policy = None

    def initialize(self, num_threads):
        pass

    def filter(self, parameters, thread_id):
        return False

    def execute(self, parameters, projected_parameters, iteration_number, rollout_number, thread_id):
        return ((projected_parameters[0] - 0.5) ** 2), None, True

    def get_policy(self):
        return self.policy

    def set_policy(self, policy):
        self.policy = policy

    def get_control_cost_weight(self):
        return 1.0


def _optimal_cost(policy):
    """Closed-form minimum of Σ(x - 0.5)² + control cost."""
    model = policy.smoothness_model(0)
    padded = policy.get_padded_parameters()[0]
    T = policy.num_time_steps
    x = np.linalg.solve(np.eye(T) + model.R, 0.5 - model.boundary_rhs(padded))
    cost = np.sum((x - 0.5) ** 2) + policy.compute_control_costs(x[np.newaxis, :]).sum()
    return float(cost)


def _run_scenario(seed, iterations=50, start=None):
    config = StompConfig(num_rollouts=20, noise_stddev=0.1, random_seed=seed)
    with Stomp(HalfwayTask(), config) as stomp:
        stomp.initialize(1, 1, 20, 1.0, [[0.0, 1.0]], [[0.0, 1.0]])
        if start is not None:
            replacement = stomp.get_policy().copy()
            replacement.set_parameters(np.full((1, 20), start))
            stomp.set_policy(replacement)
        initial = stomp.get_noiseless_rollout().total_cost
        for i in range(1, iterations + 1):
            stomp.run_single_iteration(i)
        optimum = _optimal_cost(stomp.get_policy())
        return initial, np.array(stomp.iteration_history), optimum


def test_convergence_scenario():
    """1-D, T = 20, velocity smoothness, 0 → 1, cost (x - 0.5)², σ = 0.1, K = 20.

    The final noiseless cost lies within 5% of the closed-form optimum.
    """
    histories = []
    for seed in range(4):
        initial, history, optimum = _run_scenario(seed)

        assert len(history) == 50
        assert np.all(np.isfinite(history))
        assert history[-1] >= optimum - 1e-9
        assert history[-1] <= 1.05 * optimum
        assert history[-1] <= initial + 1e-3 * optimum
        histories.append(history)

    mean_history = np.mean(histories, axis=0)
    assert mean_history[-10:].mean() <= mean_history[:10].mean() + 1e-3 * optimum


def test_convergence_from_poor_start():
    """Starting away from the optimum, the noiseless cost trends down."""
    initial, history, optimum = _run_scenario(3, start=0.9)

    assert initial > 1.5 * optimum
    assert history[-1] < initial
    assert history[-10:].mean() < history[:10].mean()


def test_chomp_reaches_quadratic_optimum():
    """Covariant gradient descent converges on the same scenario."""
    with Chomp(HalfwayTask(), ChompConfig(learning_rate=0.2)) as chomp:
        chomp.initialize(1, 1, 20, 1.0, [[0.0, 1.0]], [[0.0, 1.0]])
        for i in range(1, 101):
            chomp.run_single_iteration(i)
        final = chomp.get_noiseless_rollout().total_cost
        optimum = _optimal_cost(chomp.get_policy())

    assert final == pytest.approx(optimum, rel=1e-4)


def test_obstacle_field_with_adaptation():
    """The 2-D benchmark runs on a thread pool with adaptive exploration."""
    task = Obstacle2DTask(
        [Obstacle(center=(0.5, 0.5), radius=(0.2, 0.2))],
        control_cost_weight=0.0001,
        use_filter=True,
    )
    config = StompConfig(
        num_rollouts=10,
        noise_stddev=[0.2, 0.2],
        random_seed=11,
        num_reused_rollouts=3,
        adaptation=NoiseAdaptationConfig(enabled=True, min_stddev=0.01, max_stddev=1.0),
    )
    with Stomp(task, config) as stomp:
        stomp.initialize(4, 2, 30, 1.0, [[0.0, 1.0], [0.0, 1.0]], [[0.1, 0.9], [0.1, 0.9]])
        initial = stomp.get_noiseless_rollout().total_cost
        for i in range(1, 21):
            stomp.run_single_iteration(i)
        stddevs = stomp.get_adapted_stddevs()
        params = stomp.get_policy().get_parameters()

    assert initial > 0.0
    assert len(stomp.iteration_history) == 20
    assert np.all(np.isfinite(stomp.iteration_history))
    assert np.all((stddevs >= 0.01) & (stddevs <= 1.0))
    assert np.all((params >= 0.0) & (params <= 1.0))
