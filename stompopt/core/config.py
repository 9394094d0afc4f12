"""Optimizer configuration."""

from dataclasses import dataclass, field, fields
from typing import Any, Optional, Sequence, Union

from stompopt.core.errors import ConfigurationError


def _from_dict(cls, values: dict[str, Any]):
    """Build a dataclass from a dict, rejecting unknown keys."""
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} keys: {sorted(unknown)}"
        )
    return cls(**values)


@dataclass
class NoiseAdaptationConfig:
    """Exploration-magnitude controller settings."""

    enabled: bool = False
    strategy: str = "cost_feedback"  # cost_feedback | weighted_variance | decay

    # Bounds applied by every strategy
    min_stddev: Union[float, Sequence[float]] = 1e-4
    max_stddev: Union[float, Sequence[float]] = 10.0

    # cost_feedback
    target_success_rate: float = 0.2
    growth_factor: float = 1.1
    shrink_factor: float = 0.9

    # weighted_variance: σ ← smoothing·σ + (1 - smoothing)·σ̂
    smoothing: float = 0.8

    # decay: σ ← decay·σ
    decay: float = 0.97

    def validate(self) -> None:
        if not 0.0 <= self.target_success_rate <= 1.0:
            raise ConfigurationError("target_success_rate must lie in [0, 1]")
        if self.growth_factor < 1.0:
            raise ConfigurationError("growth_factor must be >= 1")
        if not 0.0 < self.shrink_factor <= 1.0:
            raise ConfigurationError("shrink_factor must lie in (0, 1]")
        if not 0.0 <= self.smoothing < 1.0:
            raise ConfigurationError("smoothing must lie in [0, 1)")
        if not 0.0 < self.decay <= 1.0:
            raise ConfigurationError("decay must lie in (0, 1]")

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "NoiseAdaptationConfig":
        return _from_dict(cls, values)


@dataclass
class StompConfig:
    """
    Settings of the sampling optimizer.

    Trajectory shape (time steps, dimensions, duration, derivative weights,
    initial values) and the thread count are passed to ``Stomp.initialize``.
    """

    num_rollouts: int = 10          # K fresh rollouts per iteration
    min_rollouts: int = 1
    max_rollouts: int = 100         # ceiling on fresh + reused rollouts
    num_reused_rollouts: int = 0    # 0 disables the reuse cache

    # Initial exploration magnitude, scalar or one entry per dimension
    noise_stddev: Union[float, Sequence[float]] = 1.0
    adaptation: NoiseAdaptationConfig = field(
        default_factory=NoiseAdaptationConfig
    )

    cost_sensitivity: float = 10.0  # h in exp(-h·normalized cost)
    weight_epsilon: float = 1e-10

    random_seed: Optional[int] = None

    def validate(self) -> None:
        """Raise ConfigurationError on inconsistent settings."""
        if self.min_rollouts < 0:
            raise ConfigurationError("min_rollouts must be >= 0")
        if self.max_rollouts < self.min_rollouts:
            raise ConfigurationError("max_rollouts must be >= min_rollouts")
        if self.num_rollouts < 0:
            raise ConfigurationError("num_rollouts must be >= 0")
        if self.num_reused_rollouts < 0:
            raise ConfigurationError("num_reused_rollouts must be >= 0")
        if self.cost_sensitivity <= 0.0:
            raise ConfigurationError("cost_sensitivity must be positive")
        if self.weight_epsilon <= 0.0:
            raise ConfigurationError("weight_epsilon must be positive")
        self.adaptation.validate()

    @property
    def rollouts_per_iteration(self) -> int:
        """K clamped to [min_rollouts, max_rollouts]."""
        return min(max(self.num_rollouts, self.min_rollouts), self.max_rollouts)

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "StompConfig":
        values = dict(values)
        adaptation = values.pop("adaptation", None)
        config = _from_dict(cls, values)
        if isinstance(adaptation, dict):
            config.adaptation = NoiseAdaptationConfig.from_dict(adaptation)
        elif adaptation is not None:
            config.adaptation = adaptation
        return config


@dataclass
class ChompConfig:
    """Settings of the covariant gradient-descent optimizer."""

    learning_rate: float = 0.01
    max_update: Optional[float] = None   # clip |Δ| per parameter
    finite_difference_step: float = 1e-5

    def validate(self) -> None:
        if self.learning_rate <= 0.0:
            raise ConfigurationError("learning_rate must be positive")
        if self.max_update is not None and self.max_update <= 0.0:
            raise ConfigurationError("max_update must be positive")
        if self.finite_difference_step <= 0.0:
            raise ConfigurationError("finite_difference_step must be positive")

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "ChompConfig":
        return _from_dict(cls, values)
