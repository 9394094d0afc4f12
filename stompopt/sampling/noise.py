"""Trajectory-consistent exploration noise."""

from typing import Union
import numpy as np
from numpy.typing import ArrayLike, NDArray

from stompopt.policy.covariant import CovariantTrajectory


class NoiseModel:
    """
    Zero-mean Gaussian noise with covariance stddev² · R⁻¹ / max(diag R⁻¹).

    Samples are drawn as U⁻¹ z with R = UᵀU, so a draw costs one banded
    triangular solve and never forms R⁻¹'s Cholesky factor. The generator is
    passed in per call; the model itself holds no random state.
    """

    def __init__(self, policy: CovariantTrajectory):
        if not policy.is_initialized:
            raise RuntimeError("Trajectory has not been initialized")
        self.num_dimensions = policy.num_dimensions
        self.num_time_steps = policy.num_time_steps
        self._models = [
            policy.smoothness_model(d) for d in range(self.num_dimensions)
        ]

    def sample(
        self, dimension: int, stddev: float, rng: np.random.Generator
    ) -> NDArray:
        """
        Draw one noise vector for a dimension.

        Args:
            dimension: Trajectory dimension
            stddev: Exploration magnitude (largest marginal stddev)
            rng: Random generator

        Returns:
            Noise (T,)
        """
        if stddev == 0.0:
            return np.zeros(self.num_time_steps)
        model = self._models[dimension]
        z = rng.standard_normal(self.num_time_steps)
        return stddev * model.noise_scale * model.whiten(z)

    def sample_all(
        self, stddevs: Union[float, ArrayLike], rng: np.random.Generator
    ) -> NDArray:
        """Independent draws for every dimension (D, T)."""
        stddevs = np.broadcast_to(
            np.asarray(stddevs, dtype=float), (self.num_dimensions,)
        )
        return np.stack([
            self.sample(d, float(stddevs[d]), rng)
            for d in range(self.num_dimensions)
        ])

    def covariance(self, dimension: int, stddev: float = 1.0) -> NDArray:
        """Covariance of ``sample(dimension, stddev, ...)`` (T, T)."""
        return stddev ** 2 * self._models[dimension].noise_covariance

    def marginal_variances(self, dimension: int) -> NDArray:
        """Per-step variance at unit stddev (T,), maximum 1."""
        return np.diag(self._models[dimension].noise_covariance).copy()
