"""Sampling and gradient-based trajectory optimizers."""

from stompopt.optimization.stomp import Stomp, OptimizerState
from stompopt.optimization.chomp import Chomp, finite_difference_gradient
from stompopt.optimization.executor import (
    ExecutionStats,
    RolloutExecutor,
    RolloutJob,
    RolloutReuseCache,
    WorkerContext,
)
from stompopt.optimization.update import PolicyUpdater
from stompopt.optimization.weights import compute_importance_weights
from stompopt.optimization.adaptation import (
    ConstantExploration,
    CostFeedbackAdaptation,
    DecayingExploration,
    NoiseAdaptation,
    WeightedVarianceAdaptation,
    create_noise_adaptation,
)

__all__ = [
    "Stomp",
    "OptimizerState",
    "Chomp",
    "finite_difference_gradient",
    "RolloutExecutor",
    "RolloutJob",
    "RolloutReuseCache",
    "WorkerContext",
    "ExecutionStats",
    "PolicyUpdater",
    "compute_importance_weights",
    "NoiseAdaptation",
    "ConstantExploration",
    "CostFeedbackAdaptation",
    "WeightedVarianceAdaptation",
    "DecayingExploration",
    "create_noise_adaptation",
]
