"""
stompopt: stochastic trajectory optimization.

Improves a smooth, time-parameterized trajectory against an arbitrary
(possibly non-differentiable) cost with:
- Smooth exploration noise shaped by a finite-difference control cost
- Parallel, filtered evaluation of noisy rollouts
- Importance-weighted updates projected onto smooth trajectories
- Adaptive exploration magnitude
- A covariant gradient-descent variant on the same task interface
"""

__version__ = "0.1.0"

from stompopt.core.config import ChompConfig, NoiseAdaptationConfig, StompConfig
from stompopt.core.errors import (
    ConfigurationError,
    NumericalDegeneracy,
    StompError,
    MalformedTaskOutput,
)
from stompopt.core.rollout import Rollout
from stompopt.core.task import CostTask, GradientCostTask
from stompopt.policy.covariant import CovariantTrajectory
from stompopt.policy.differentiation import DerivativeOrder
from stompopt.optimization.stomp import Stomp
from stompopt.optimization.chomp import Chomp

__all__ = [
    "Stomp",
    "Chomp",
    "StompConfig",
    "NoiseAdaptationConfig",
    "ChompConfig",
    "CovariantTrajectory",
    "DerivativeOrder",
    "Rollout",
    "CostTask",
    "GradientCostTask",
    "StompError",
    "ConfigurationError",
    "NumericalDegeneracy",
    "MalformedTaskOutput",
]
