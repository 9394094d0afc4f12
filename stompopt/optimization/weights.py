"""Importance weights from rollout costs."""

import logging
import numpy as np
from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

DEFAULT_SENSITIVITY = 10.0
DEFAULT_EPSILON = 1e-10


def compute_importance_weights(
    costs: ArrayLike,
    sensitivity: float = DEFAULT_SENSITIVITY,
    epsilon: float = DEFAULT_EPSILON,
) -> NDArray:
    """
    Soft-min weights over rollouts.

    w_k ∝ exp(-h (S_k - min S) / (max S - min S + ε)), normalized over k.
    For (K, T) costs the transform is applied independently per time step.

    Args:
        costs: Rollout costs (K,) or (K, T)
        sensitivity: h
        epsilon: Guards the normalization when all costs are equal

    Returns:
        Non-negative weights of the same shape, summing to 1 over axis 0
    """
    costs = np.asarray(costs, dtype=float)
    if costs.shape[0] == 0:
        return np.zeros_like(costs)

    min_cost = costs.min(axis=0)
    max_cost = costs.max(axis=0)
    with np.errstate(over="ignore"):
        spread = max_cost - min_cost
    # Extreme but finite costs: rescale so the difference is representable
    scale = np.where(
        np.isfinite(spread), 1.0, np.maximum(np.abs(min_cost), np.abs(max_cost))
    )
    shifted = costs / scale - min_cost / scale
    spread = max_cost / scale - min_cost / scale

    degenerate = spread <= epsilon
    if np.any(degenerate):
        logger.debug("Degenerate cost spread; weights fall back to uniform")

    # Exponents lie in [-h, 0]; no overflow and the minimum gets weight 1
    exponent = -sensitivity * shifted / (spread + epsilon)
    weights = np.exp(np.where(degenerate, 0.0, exponent))
    return weights / weights.sum(axis=0)
