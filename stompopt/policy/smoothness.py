"""Quadratic smoothness (control) cost model."""

from dataclasses import dataclass
from functools import cached_property
from typing import Any, Optional
import numpy as np
from numpy.typing import NDArray

from stompopt.algebra.banded import BandedBackend
from stompopt.algebra.protocols import SPDBackend
from stompopt.policy.differentiation import differentiation_matrix


@dataclass(frozen=True, eq=False)
class SmoothnessModel:
    """
    Control cost of one trajectory dimension.

    With x_all the padded trajectory (T + 2P,) the control cost is
    x_allᵀ R_all x_all, R_all = Σ_order A_orderᵀ diag(w_order) A_order.
    R is its interior block; the padded entries are constants.
    """

    num_time_steps: int
    padding: int
    dt: float
    weights: NDArray                 # (T + 2P, orders) per-step weights
    differentiation_matrices: tuple  # one (T + 2P, T + 2P) per order
    R_all: NDArray                   # (T + 2P, T + 2P)
    backend: SPDBackend
    factorization: Any

    @property
    def interior(self) -> slice:
        return slice(self.padding, self.padding + self.num_time_steps)

    @property
    def num_vars_all(self) -> int:
        return self.num_time_steps + 2 * self.padding

    @cached_property
    def R(self) -> NDArray:
        """Interior block (T, T), symmetric positive definite."""
        return self.R_all[self.interior, self.interior]

    @cached_property
    def R_inverse(self) -> NDArray:
        return self.backend.inverse(self.factorization)

    @cached_property
    def noise_scale(self) -> float:
        """1/sqrt(max diag R⁻¹): normalizes the largest marginal variance to 1."""
        return 1.0 / np.sqrt(np.max(np.diag(self.R_inverse)))

    @cached_property
    def noise_covariance(self) -> NDArray:
        """R⁻¹ scaled so its largest diagonal entry is 1."""
        return self.R_inverse * self.noise_scale ** 2

    @cached_property
    def projection_matrix(self) -> NDArray:
        """
        Update projection M: columns of R⁻¹ scaled so each column's
        maximum equals 1/T.
        """
        column_max = np.max(self.R_inverse, axis=0)
        return self.R_inverse / (self.num_time_steps * column_max)[np.newaxis, :]

    def boundary_rhs(self, padded_values: NDArray) -> NDArray:
        """R_all[interior, :] @ x_all with the interior set to zero."""
        x = np.array(padded_values, dtype=float)
        x[self.interior] = 0.0
        return self.R_all[self.interior] @ x

    def minimum_cost_interior(self, padded_values: NDArray) -> NDArray:
        """Interior minimizing the control cost for fixed padding values."""
        return self.backend.solve(
            self.factorization, -self.boundary_rhs(padded_values)
        )

    def step_costs(self, padded_values: NDArray) -> NDArray:
        """
        Per-step control cost over the interior (T,).

        Padding-row contributions are folded into the first and last interior
        steps, so the sum equals x_allᵀ R_all x_all.
        """
        costs_all = np.zeros(self.num_vars_all)
        for order, A in enumerate(self.differentiation_matrices):
            w = self.weights[:, order]
            if not np.any(w):
                continue
            Ax = A @ padded_values
            costs_all += w * Ax * Ax
        costs = costs_all[self.interior].copy()
        costs[0] += costs_all[:self.padding].sum()
        costs[-1] += costs_all[self.padding + self.num_time_steps:].sum()
        return costs

    def gradient(self, padded_values: NDArray) -> NDArray:
        """Gradient of x_allᵀ R_all x_all w.r.t. the interior (T,)."""
        return 2.0 * (self.R_all[self.interior] @ padded_values)

    def solve(self, b: NDArray) -> NDArray:
        """R⁻¹ b."""
        return self.backend.solve(self.factorization, b)

    def whiten(self, z: NDArray) -> NDArray:
        """U⁻¹ z with R = UᵀU; covariance R⁻¹ for white z."""
        return self.backend.whiten(self.factorization, z)


def build_smoothness_model(
    num_time_steps: int,
    padding: int,
    dt: float,
    weights: NDArray,
    backend: Optional[SPDBackend] = None,
) -> SmoothnessModel:
    """
    Assemble R_all from finite-difference operators and factor R.

    Args:
        num_time_steps: Interior steps T
        padding: Padding steps on each side
        dt: Time step
        weights: Per-step derivative weights (T + 2P, orders)
        backend: SPD backend; banded with the highest weighted order as
            bandwidth if not provided

    Returns:
        Factored smoothness model

    Raises:
        NumericalDegeneracy: If R is not positive definite
    """
    num_vars_all = num_time_steps + 2 * padding
    num_orders = weights.shape[1]

    matrices = []
    R_all = np.zeros((num_vars_all, num_vars_all))
    for order in range(num_orders):
        A = differentiation_matrix(num_vars_all, order, dt)
        matrices.append(A)
        w = weights[:, order]
        if np.any(w):
            R_all += A.T @ (w[:, np.newaxis] * A)

    if backend is None:
        weighted_orders = [o for o in range(num_orders) if np.any(weights[:, o])]
        backend = BandedBackend(bandwidth=max(weighted_orders, default=0))

    R = R_all[padding:padding + num_time_steps, padding:padding + num_time_steps]
    factorization = backend.factor(R)

    return SmoothnessModel(
        num_time_steps=num_time_steps,
        padding=padding,
        dt=dt,
        weights=weights,
        differentiation_matrices=tuple(matrices),
        R_all=R_all,
        backend=backend,
        factorization=factorization,
    )
