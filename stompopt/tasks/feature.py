"""Feature-weighted cost tasks."""

from abc import ABC, abstractmethod
from typing import Optional
import numpy as np
from numpy.typing import ArrayLike, NDArray

from stompopt.core.errors import ConfigurationError
from stompopt.policy.covariant import CovariantTrajectory
from stompopt.policy.differentiation import DerivativeOrder, differentiate


class FeatureCostTask(ABC):
    """
    Cost as a weighted sum of normalized per-step features.

    cost[t] = Σ_f w_f (φ_f[t] - μ_f) / σ²_f. Subclasses fill the feature
    matrix; each worker thread owns its own (T, F) buffer.
    """

    def __init__(
        self,
        num_features: int,
        control_cost_weight: float = 1.0,
        joint_limits: Optional[ArrayLike] = None,
    ):
        if num_features < 1:
            raise ConfigurationError("num_features must be >= 1")
        self.num_features = num_features
        self.control_cost_weight = control_cost_weight
        self.feature_weights = np.ones(num_features)
        self.feature_means = np.zeros(num_features)
        self.feature_variances = np.ones(num_features)

        self.joint_limits: Optional[NDArray] = None
        if joint_limits is not None:
            limits = np.asarray(joint_limits, dtype=float)
            if limits.ndim != 2 or limits.shape[1] != 2 or np.any(limits[:, 0] > limits[:, 1]):
                raise ConfigurationError("joint_limits must be (D, 2) rows of [min, max]")
            self.joint_limits = limits

        self._policy: Optional[CovariantTrajectory] = None
        self._features: list[NDArray] = []

    @abstractmethod
    def compute_features(
        self,
        parameters: NDArray,
        projected_parameters: NDArray,
        features: NDArray,
        thread_id: int,
    ) -> bool:
        """
        Fill ``features`` (T, F) in place.

        Returns:
            Validity of the trajectory
        """

    def initialize(self, num_threads: int) -> None:
        T = self._require_policy().num_time_steps
        self._features = [np.zeros((T, self.num_features)) for _ in range(num_threads)]

    def get_policy(self) -> CovariantTrajectory:
        return self._require_policy()

    def set_policy(self, policy: CovariantTrajectory) -> None:
        if self.joint_limits is not None and self.joint_limits.shape[0] != policy.num_dimensions:
            raise ConfigurationError(
                f"joint_limits has {self.joint_limits.shape[0]} rows, "
                f"trajectory has {policy.num_dimensions} dimensions"
            )
        self._policy = policy

    def get_control_cost_weight(self) -> float:
        return self.control_cost_weight

    def _require_policy(self) -> CovariantTrajectory:
        if self._policy is None:
            raise RuntimeError("No trajectory has been set")
        return self._policy

    def set_feature_weights(self, weights: ArrayLike) -> None:
        weights = np.asarray(weights, dtype=float)
        if weights.shape != (self.num_features,):
            raise ConfigurationError(f"Expected {self.num_features} feature weights")
        self.feature_weights = weights.copy()

    def set_feature_scaling(self, means: ArrayLike, variances: ArrayLike) -> None:
        means = np.asarray(means, dtype=float)
        variances = np.asarray(variances, dtype=float)
        if means.shape != (self.num_features,) or variances.shape != (self.num_features,):
            raise ConfigurationError(f"Expected {self.num_features} means and variances")
        if np.any(variances <= 0.0):
            raise ConfigurationError("Feature variances must be positive")
        self.feature_means = means.copy()
        self.feature_variances = variances.copy()

    def weigh_features(self, features: NDArray) -> NDArray:
        """Weighted, normalized feature values (T, F)."""
        return (features - self.feature_means) / self.feature_variances * self.feature_weights

    def filter(self, parameters: NDArray, thread_id: int) -> bool:
        """Clip each dimension to its joint limits."""
        if self.joint_limits is None:
            return False
        lower = self.joint_limits[:, :1]
        upper = self.joint_limits[:, 1:]
        if not np.any((parameters < lower) | (parameters > upper)):
            return False
        np.clip(parameters, lower, upper, out=parameters)
        return True

    def execute(
        self,
        parameters: NDArray,
        projected_parameters: NDArray,
        iteration_number: int,
        rollout_number: int,
        thread_id: int,
    ) -> tuple[NDArray, NDArray, bool]:
        features = self._features[thread_id]
        valid = self.compute_features(parameters, projected_parameters, features, thread_id)
        weighted = self.weigh_features(features)
        return weighted.sum(axis=1), weighted, bool(valid)


class JointMotionTask(FeatureCostTask):
    """Features: summed squared joint velocity and acceleration."""

    def __init__(
        self,
        control_cost_weight: float = 1.0,
        joint_limits: Optional[ArrayLike] = None,
    ):
        super().__init__(2, control_cost_weight, joint_limits)

    def compute_features(self, parameters, projected_parameters, features, thread_id):
        dt = self._require_policy().time_step()
        features.fill(0.0)
        for d in range(parameters.shape[0]):
            vel = differentiate(parameters[d], DerivativeOrder.VELOCITY, dt)
            acc = differentiate(parameters[d], DerivativeOrder.ACCELERATION, dt)
            features[:, 0] += vel ** 2
            features[:, 1] += acc ** 2
        return True
