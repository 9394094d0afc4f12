"""Exploration-magnitude controllers."""

from abc import ABC, abstractmethod
import logging
from typing import Optional, Sequence, Union
import numpy as np
from numpy.typing import ArrayLike, NDArray

from stompopt.core.config import NoiseAdaptationConfig
from stompopt.core.errors import ConfigurationError
from stompopt.core.rollout import Rollout
from stompopt.sampling.noise import NoiseModel

logger = logging.getLogger(__name__)


class NoiseAdaptation(ABC):
    """
    Feedback rule for the per-dimension noise stddev.

    Strategies hold no state besides their settings; the magnitude vector is
    passed in and returned, clipped to [min_stddev, max_stddev].
    """

    def __init__(
        self,
        num_dimensions: int,
        min_stddev: Union[float, ArrayLike] = 0.0,
        max_stddev: Union[float, ArrayLike] = np.inf,
    ):
        self.num_dimensions = num_dimensions
        self.min_stddev = np.broadcast_to(
            np.asarray(min_stddev, dtype=float), (num_dimensions,)
        ).copy()
        self.max_stddev = np.broadcast_to(
            np.asarray(max_stddev, dtype=float), (num_dimensions,)
        ).copy()
        if np.any(self.min_stddev < 0.0) or np.any(self.max_stddev < self.min_stddev):
            raise ConfigurationError("Require 0 <= min_stddev <= max_stddev")

    def update(
        self,
        stddevs: NDArray,
        rollouts: Sequence[Rollout],
        noiseless_rollout: Optional[Rollout],
        weights: NDArray,
        noise_model: NoiseModel,
    ) -> NDArray:
        """
        Next iteration's exploration magnitude.

        Args:
            stddevs: Magnitude the rollouts were sampled with (D,)
            rollouts: This iteration's evaluated rollouts
            noiseless_rollout: Noiseless evaluation of the trajectory the
                rollouts were sampled around
            weights: Importance weights (K, T)
            noise_model: Noise model the rollouts were drawn from

        Returns:
            New magnitudes (D,)
        """
        if len(rollouts) == 0:
            return np.asarray(stddevs, dtype=float).copy()
        proposed = self._propose(
            np.asarray(stddevs, dtype=float), rollouts, noiseless_rollout,
            weights, noise_model,
        )
        return np.clip(proposed, self.min_stddev, self.max_stddev)

    @abstractmethod
    def _propose(
        self,
        stddevs: NDArray,
        rollouts: Sequence[Rollout],
        noiseless_rollout: Optional[Rollout],
        weights: NDArray,
        noise_model: NoiseModel,
    ) -> NDArray:
        ...


class ConstantExploration(NoiseAdaptation):
    """Adaptation disabled: the magnitude never changes."""

    def update(self, stddevs, rollouts, noiseless_rollout, weights, noise_model):
        return np.asarray(stddevs, dtype=float).copy()

    def _propose(self, stddevs, rollouts, noiseless_rollout, weights, noise_model):
        return stddevs


class CostFeedbackAdaptation(NoiseAdaptation):
    """
    Success-rate rule.

    A rollout succeeds when its total cost is below the noiseless cost of the
    trajectory it perturbed. Above the target success rate noise is paying
    off and grows; below it noise is mostly harmful and shrinks.
    """

    def __init__(
        self,
        num_dimensions: int,
        target_success_rate: float = 0.2,
        growth_factor: float = 1.1,
        shrink_factor: float = 0.9,
        min_stddev: Union[float, ArrayLike] = 0.0,
        max_stddev: Union[float, ArrayLike] = np.inf,
    ):
        super().__init__(num_dimensions, min_stddev, max_stddev)
        self.target_success_rate = target_success_rate
        self.growth_factor = growth_factor
        self.shrink_factor = shrink_factor

    def success_rate(
        self, rollouts: Sequence[Rollout], noiseless_rollout: Rollout
    ) -> float:
        reference = noiseless_rollout.total_cost
        successes = sum(1 for r in rollouts if r.total_cost < reference)
        return successes / len(rollouts)

    def _propose(self, stddevs, rollouts, noiseless_rollout, weights, noise_model):
        if noiseless_rollout is None:
            return stddevs
        rate = self.success_rate(rollouts, noiseless_rollout)
        if rate > self.target_success_rate:
            factor = self.growth_factor
        elif rate < self.target_success_rate:
            factor = self.shrink_factor
        else:
            factor = 1.0
        logger.debug("Success rate %.3f -> stddev factor %.3f", rate, factor)
        return stddevs * factor


class WeightedVarianceAdaptation(NoiseAdaptation):
    """
    Re-estimate the magnitude from the importance-weighted noise.

    σ̂_d² = Σ_k Σ_t w_k[t] ε_k[d, t]² / (T · c_tt), with c_tt the unit
    marginal variance of step t, then σ ← s·σ + (1 - s)·σ̂.
    Uniform weights leave σ unchanged in expectation.
    """

    def __init__(
        self,
        num_dimensions: int,
        smoothing: float = 0.8,
        min_stddev: Union[float, ArrayLike] = 0.0,
        max_stddev: Union[float, ArrayLike] = np.inf,
    ):
        super().__init__(num_dimensions, min_stddev, max_stddev)
        self.smoothing = smoothing

    def _propose(self, stddevs, rollouts, noiseless_rollout, weights, noise_model):
        noise = np.stack([r.noise for r in rollouts])  # (K, D, T)
        T = noise.shape[2]
        estimate = np.empty(self.num_dimensions)
        for d in range(self.num_dimensions):
            variances = noise_model.marginal_variances(d)
            weighted = np.sum(weights * noise[:, d, :] ** 2, axis=0)
            estimate[d] = np.sqrt(np.sum(weighted / variances) / T)
        return self.smoothing * stddevs + (1.0 - self.smoothing) * estimate


class DecayingExploration(NoiseAdaptation):
    """Fixed multiplicative decay per iteration."""

    def __init__(
        self,
        num_dimensions: int,
        decay: float = 0.97,
        min_stddev: Union[float, ArrayLike] = 0.0,
        max_stddev: Union[float, ArrayLike] = np.inf,
    ):
        super().__init__(num_dimensions, min_stddev, max_stddev)
        self.decay = decay

    def _propose(self, stddevs, rollouts, noiseless_rollout, weights, noise_model):
        return stddevs * self.decay


def create_noise_adaptation(
    config: NoiseAdaptationConfig, num_dimensions: int
) -> NoiseAdaptation:
    """
    Dispatch on the configured strategy.

    Args:
        config: Adaptation settings
        num_dimensions: Trajectory dimensions

    Returns:
        Strategy instance; ConstantExploration when adaptation is disabled
    """
    bounds = dict(min_stddev=config.min_stddev, max_stddev=config.max_stddev)

    if not config.enabled:
        return ConstantExploration(num_dimensions)

    if config.strategy == "cost_feedback":
        return CostFeedbackAdaptation(
            num_dimensions,
            target_success_rate=config.target_success_rate,
            growth_factor=config.growth_factor,
            shrink_factor=config.shrink_factor,
            **bounds,
        )

    if config.strategy == "weighted_variance":
        return WeightedVarianceAdaptation(
            num_dimensions, smoothing=config.smoothing, **bounds
        )

    if config.strategy == "decay":
        return DecayingExploration(num_dimensions, decay=config.decay, **bounds)

    raise ConfigurationError(f"Unknown noise adaptation strategy: {config.strategy!r}")
