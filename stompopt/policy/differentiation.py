"""Finite-difference rules on the padded trajectory grid."""

from enum import IntEnum
import numpy as np
from numpy.typing import NDArray


class DerivativeOrder(IntEnum):
    """Derivative orders penalized by the control cost."""
    POSITION = 0
    VELOCITY = 1
    ACCELERATION = 2
    JERK = 3


NUM_DERIVATIVE_ORDERS = len(DerivativeOrder)

# Fixed number of boundary steps on each side; must be >= the highest order
# so that every row touching an interior variable has a complete stencil.
TRAJECTORY_PADDING = 4

# Stencil coefficients, applied to x[i - offset], ..., x[i - offset + order]
DIFF_RULES: dict[DerivativeOrder, NDArray] = {
    DerivativeOrder.POSITION: np.array([1.0]),
    DerivativeOrder.VELOCITY: np.array([-1.0, 1.0]),
    DerivativeOrder.ACCELERATION: np.array([1.0, -2.0, 1.0]),
    DerivativeOrder.JERK: np.array([-1.0, 3.0, -3.0, 1.0]),
}


def stencil_offset(order: int) -> int:
    """Steps the stencil reaches behind the row index."""
    return int(order) // 2


def differentiation_matrix(num_vars: int, order: int, dt: float) -> NDArray:
    """
    Finite-difference operator A_order scaled by 1/dt^order.

    Row i applies the stencil to x[i - offset : i - offset + order + 1].
    Rows whose stencil leaves the grid are zero.

    Args:
        num_vars: Grid length (T + 2·padding)
        order: Derivative order
        dt: Time step

    Returns:
        Matrix (num_vars, num_vars)
    """
    order = DerivativeOrder(order)
    rule = DIFF_RULES[order] / dt ** int(order)
    offset = stencil_offset(order)
    A = np.zeros((num_vars, num_vars))
    for i in range(num_vars):
        start = i - offset
        stop = start + len(rule)
        if start < 0 or stop > num_vars:
            continue
        A[i, start:stop] = rule
    return A


def differentiate(values: NDArray, order: int, dt: float) -> NDArray:
    """
    Differentiate a sampled signal with the trajectory stencils.

    The signal is edge-padded so the result has the same length as the input.

    Args:
        values: Samples (T,)
        order: Derivative order
        dt: Sample spacing

    Returns:
        Derivative estimate (T,)
    """
    values = np.asarray(values, dtype=float)
    order = DerivativeOrder(order)
    if order == DerivativeOrder.POSITION:
        return values.copy()
    rule = DIFF_RULES[order] / dt ** int(order)
    offset = stencil_offset(order)
    padded = np.pad(values, (offset, len(rule) - 1 - offset), mode="edge")
    return np.correlate(padded, rule, mode="valid")
