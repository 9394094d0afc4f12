"""Core abstractions for stochastic trajectory optimization."""

from stompopt.core.config import ChompConfig, NoiseAdaptationConfig, StompConfig
from stompopt.core.errors import (
    ConfigurationError,
    NumericalDegeneracy,
    StompError,
    MalformedTaskOutput,
)
from stompopt.core.rollout import NOISELESS_ROLLOUT, Rollout
from stompopt.core.task import CostTask, GradientCostTask

__all__ = [
    "StompConfig",
    "NoiseAdaptationConfig",
    "ChompConfig",
    "StompError",
    "ConfigurationError",
    "NumericalDegeneracy",
    "MalformedTaskOutput",
    "Rollout",
    "NOISELESS_ROLLOUT",
    "CostTask",
    "GradientCostTask",
]
