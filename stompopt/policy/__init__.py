"""Trajectory parameterization and smoothness model."""

from stompopt.policy.differentiation import (
    DerivativeOrder,
    NUM_DERIVATIVE_ORDERS,
    TRAJECTORY_PADDING,
    differentiate,
    differentiation_matrix,
)
from stompopt.policy.smoothness import SmoothnessModel, build_smoothness_model
from stompopt.policy.covariant import CovariantTrajectory

__all__ = [
    "DerivativeOrder",
    "NUM_DERIVATIVE_ORDERS",
    "TRAJECTORY_PADDING",
    "differentiate",
    "differentiation_matrix",
    "SmoothnessModel",
    "build_smoothness_model",
    "CovariantTrajectory",
]
