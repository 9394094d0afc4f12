"""Importance-weighted policy update."""

from typing import Sequence
import numpy as np
from numpy.typing import NDArray

from stompopt.core.rollout import Rollout
from stompopt.optimization.weights import (
    DEFAULT_EPSILON,
    DEFAULT_SENSITIVITY,
    compute_importance_weights,
)
from stompopt.policy.covariant import CovariantTrajectory


class PolicyUpdater:
    """
    Turns rollout costs into a smooth parameter update.

    Δ[d] = M · Σ_k w_k ε_k[d, :], where w_k is the soft-min weight of rollout
    k's total cost (task plus control, summed over time) and ε_k the noise it
    applied. The scalar weight is broadcast over the time steps.
    """

    def __init__(
        self,
        policy: CovariantTrajectory,
        sensitivity: float = DEFAULT_SENSITIVITY,
        epsilon: float = DEFAULT_EPSILON,
    ):
        self.policy = policy
        self.sensitivity = sensitivity
        self.epsilon = epsilon

    def compute_weights(self, rollouts: Sequence[Rollout]) -> NDArray:
        """Importance weights (K, T), constant along T."""
        T = self.policy.num_time_steps
        if len(rollouts) == 0:
            return np.zeros((0, T))
        costs = np.array([rollout.total_cost for rollout in rollouts])
        weights = compute_importance_weights(costs, self.sensitivity, self.epsilon)
        return np.repeat(weights[:, None], T, axis=1)

    def compute_update(self, rollouts: Sequence[Rollout], weights: NDArray) -> NDArray:
        """
        Weighted noise average projected through the smoothness model.

        Args:
            rollouts: Evaluated rollouts
            weights: (K, T) from ``compute_weights``

        Returns:
            Update (D, T); zero when there are no rollouts
        """
        D, T = self.policy.num_dimensions, self.policy.num_time_steps
        if len(rollouts) == 0:
            return np.zeros((D, T))
        noise = np.stack([rollout.noise for rollout in rollouts])  # (K, D, T)
        delta = np.einsum("kt,kdt->dt", weights, noise)
        return self.policy.project_through_smoothness(delta)

    def apply(self, parameters: NDArray, rollouts: Sequence[Rollout]) -> NDArray:
        """
        Write θ + Δ to the policy.

        Args:
            parameters: θ the rollouts were sampled around (D, T)
            rollouts: Evaluated rollouts; their ``importance_weights`` are set

        Returns:
            The update Δ (D, T)
        """
        weights = self.compute_weights(rollouts)
        for rollout, w in zip(rollouts, weights):
            rollout.importance_weights = w
        delta = self.compute_update(rollouts, weights)
        self.policy.set_parameters(parameters + delta)
        return delta
