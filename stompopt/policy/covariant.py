"""Smoothness-constrained trajectory parameterization."""

import copy
import logging
from typing import Optional
import numpy as np
from numpy.typing import ArrayLike, NDArray

from stompopt.algebra.protocols import SPDBackend
from stompopt.core.errors import ConfigurationError
from stompopt.policy.differentiation import (
    NUM_DERIVATIVE_ORDERS,
    TRAJECTORY_PADDING,
    DerivativeOrder,
)
from stompopt.policy.smoothness import SmoothnessModel, build_smoothness_model

logger = logging.getLogger(__name__)


class CovariantTrajectory:
    """
    D-dimensional trajectory of T free steps with fixed boundary padding.

    Each dimension owns a SmoothnessModel; dimensions with identical
    derivative weights share one. Only the interior values are parameters;
    the padding keeps the boundary values given at initialization.
    """

    def __init__(self, backend: Optional[SPDBackend] = None):
        self._backend = backend
        self._initialized = False
        self.padding = TRAJECTORY_PADDING
        self.num_time_steps = 0
        self.num_dimensions = 0
        self.movement_duration = 0.0
        self._dt = 0.0
        self._padded: Optional[NDArray] = None       # (D, T + 2P)
        self._models: list[SmoothnessModel] = []

    @classmethod
    def from_endpoints(
        cls,
        start: ArrayLike,
        goal: ArrayLike,
        num_time_steps: int,
        movement_duration: float,
        derivative_order: int = DerivativeOrder.ACCELERATION,
        backend: Optional[SPDBackend] = None,
    ) -> "CovariantTrajectory":
        """Minimum-cost trajectory between two configurations."""
        start = np.atleast_1d(np.asarray(start, dtype=float))
        goal = np.atleast_1d(np.asarray(goal, dtype=float))
        if start.shape != goal.shape:
            raise ConfigurationError("start and goal must have the same shape")
        num_dimensions = start.shape[0]
        weights = np.zeros((num_dimensions, int(derivative_order) + 1))
        weights[:, int(derivative_order)] = 1.0

        trajectory = cls(backend=backend)
        trajectory.initialize(
            num_time_steps,
            num_dimensions,
            movement_duration,
            weights,
            np.stack([start, goal], axis=1),
        )
        trajectory.set_to_minimum_cost()
        return trajectory

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def num_vars_all(self) -> int:
        return self.num_time_steps + 2 * self.padding

    @property
    def interior(self) -> slice:
        return slice(self.padding, self.padding + self.num_time_steps)

    def initialize(
        self,
        num_time_steps: int,
        num_dimensions: int,
        movement_duration: float,
        derivative_weights: ArrayLike,
        initial_values: ArrayLike,
    ) -> None:
        """
        Build the smoothness models and store the initial trajectory.

        Args:
            num_time_steps: Free steps T
            num_dimensions: Dimensions D
            movement_duration: Duration covered by the T steps
            derivative_weights: (D, orders) or (D, T + 2P, orders)
            initial_values: Padded trajectory (D, T + 2P) or endpoints (D, 2)

        Raises:
            ConfigurationError: On invalid sizes or weights
            NumericalDegeneracy: If a control cost matrix cannot be factored
        """
        T, D = int(num_time_steps), int(num_dimensions)
        if D < 1:
            raise ConfigurationError("num_dimensions must be >= 1")
        if not np.isfinite(movement_duration) or movement_duration <= 0.0:
            raise ConfigurationError("movement_duration must be positive")

        weights = self._expand_weights(derivative_weights, T, D)
        highest = max(
            o for d in range(D) for o in range(weights.shape[2])
            if np.any(weights[d, :, o])
        )
        min_steps = max(2, highest + 1)
        if T < min_steps:
            raise ConfigurationError(
                f"num_time_steps={T} is below the minimum {min_steps} "
                f"for derivative order {highest}"
            )

        self.num_time_steps = T
        self.num_dimensions = D
        self.movement_duration = float(movement_duration)
        self._dt = self.movement_duration / (T - 1)
        self._padded = self._expand_initial_values(initial_values, T, D)

        shared: dict[bytes, SmoothnessModel] = {}
        self._models = []
        for d in range(D):
            key = weights[d].tobytes()
            if key not in shared:
                model = build_smoothness_model(
                    T, self.padding, self._dt, weights[d], self._backend
                )
                # Materialize cached matrices before worker threads read them
                model.projection_matrix
                model.noise_covariance
                shared[key] = model
            self._models.append(shared[key])

        self._initialized = True
        logger.debug(
            "Initialized trajectory: D=%d T=%d dt=%.4g (%d smoothness models)",
            D, T, self._dt, len(shared),
        )

    def _expand_weights(self, derivative_weights: ArrayLike, T: int, D: int) -> NDArray:
        weights = np.asarray(derivative_weights, dtype=float)
        num_vars_all = T + 2 * self.padding
        if weights.ndim == 2 and weights.shape[0] == D:
            weights = np.repeat(weights[:, np.newaxis, :], num_vars_all, axis=1)
        elif not (weights.ndim == 3 and weights.shape[:2] == (D, num_vars_all)):
            raise ConfigurationError(
                f"derivative_weights must have shape (D, orders) or "
                f"(D, {num_vars_all}, orders), got {weights.shape}"
            )
        if weights.shape[2] < 1 or weights.shape[2] > NUM_DERIVATIVE_ORDERS:
            raise ConfigurationError(
                f"Between 1 and {NUM_DERIVATIVE_ORDERS} derivative orders supported"
            )
        if not np.all(np.isfinite(weights)) or np.any(weights < 0.0):
            raise ConfigurationError("derivative weights must be finite and >= 0")
        for d in range(D):
            if not np.any(weights[d]):
                raise ConfigurationError(
                    f"All derivative weights of dimension {d} are zero"
                )
        return weights

    def _expand_initial_values(self, initial_values: ArrayLike, T: int, D: int) -> NDArray:
        values = np.asarray(initial_values, dtype=float)
        num_vars_all = T + 2 * self.padding
        if values.shape == (D, num_vars_all):
            padded = values.copy()
        elif values.shape == (D, 2):
            # Endpoints: constant padding, straight line through the interior
            padded = np.empty((D, num_vars_all))
            padded[:, :self.padding] = values[:, :1]
            padded[:, self.padding + T:] = values[:, 1:]
            alpha = np.arange(1, T + 1) / (T + 1)
            padded[:, self.interior] = (
                values[:, :1] + alpha[np.newaxis, :] * (values[:, 1:] - values[:, :1])
            )
        else:
            raise ConfigurationError(
                f"initial_values must have shape ({D}, {num_vars_all}) or "
                f"({D}, 2), got {values.shape}"
            )
        if not np.all(np.isfinite(padded)):
            raise ConfigurationError("initial_values must be finite")
        return padded

    def _check_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Trajectory has not been initialized")

    def smoothness_model(self, dimension: int) -> SmoothnessModel:
        self._check_initialized()
        return self._models[dimension]

    def time_step(self) -> float:
        """duration / (T - 1)."""
        self._check_initialized()
        return self._dt

    def set_to_minimum_cost(self) -> None:
        """Replace the interior with the minimum control cost solution."""
        self._check_initialized()
        for d, model in enumerate(self._models):
            self._padded[d, self.interior] = model.minimum_cost_interior(
                self._padded[d]
            )

    def get_parameters(self) -> NDArray:
        """Copy of the interior (D, T)."""
        self._check_initialized()
        return self._padded[:, self.interior].copy()

    def set_parameters(self, values: ArrayLike) -> None:
        """Overwrite the interior; the padding is left untouched."""
        self._check_initialized()
        values = np.asarray(values, dtype=float)
        expected = (self.num_dimensions, self.num_time_steps)
        if values.shape != expected:
            raise ValueError(f"Expected parameters of shape {expected}, got {values.shape}")
        self._padded[:, self.interior] = values

    def get_padded_parameters(self) -> NDArray:
        """Copy of the full trajectory including padding (D, T + 2P)."""
        self._check_initialized()
        return self._padded.copy()

    def pad(self, parameters: NDArray) -> NDArray:
        """Embed interior parameters (D, T) between this trajectory's padding."""
        padded = self._padded.copy()
        padded[:, self.interior] = parameters
        return padded

    def project_through_smoothness(self, update: ArrayLike) -> NDArray:
        """
        Map an update onto the subspace preferred by the control cost.

        Args:
            update: Per-dimension update (D, T)

        Returns:
            M @ update[d] for every dimension (D, T)
        """
        self._check_initialized()
        update = np.asarray(update, dtype=float)
        projected = np.empty_like(update)
        for d, model in enumerate(self._models):
            projected[d] = model.projection_matrix @ update[d]
        return projected

    def compute_control_costs(self, parameters: Optional[NDArray] = None) -> NDArray:
        """
        Per-step control cost for each dimension (D, T).

        Args:
            parameters: Interior values (D, T); the stored trajectory if None
        """
        self._check_initialized()
        padded = self._padded if parameters is None else self.pad(parameters)
        return np.stack([
            model.step_costs(padded[d]) for d, model in enumerate(self._models)
        ])

    def control_cost_gradient(self, parameters: Optional[NDArray] = None) -> NDArray:
        """Gradient of the summed control cost w.r.t. the interior (D, T)."""
        self._check_initialized()
        padded = self._padded if parameters is None else self.pad(parameters)
        return np.stack([
            model.gradient(padded[d]) for d, model in enumerate(self._models)
        ])

    def solve_control_system(self, vector: ArrayLike) -> NDArray:
        """R⁻¹ v per dimension (D, T)."""
        self._check_initialized()
        vector = np.asarray(vector, dtype=float)
        return np.stack([
            model.solve(vector[d]) for d, model in enumerate(self._models)
        ])

    def copy(self) -> "CovariantTrajectory":
        """Working copy; smoothness models are shared, values are not."""
        duplicate = copy.copy(self)
        duplicate._models = list(self._models)
        if self._padded is not None:
            duplicate._padded = self._padded.copy()
        return duplicate
