"""Point robot in the unit square among ellipsoidal obstacles."""

from dataclasses import dataclass
import math
from typing import Optional, Sequence
import numpy as np
from numpy.typing import ArrayLike, NDArray

from stompopt.core.errors import ConfigurationError
from stompopt.policy.covariant import CovariantTrajectory
from stompopt.policy.differentiation import DerivativeOrder, differentiate


@dataclass
class Obstacle:
    """Axis-aligned ellipse; ``boolean`` obstacles cost 1 anywhere inside."""

    center: tuple[float, float]
    radius: tuple[float, float]
    boolean: bool = False

    @classmethod
    def from_dict(cls, values: dict) -> "Obstacle":
        return cls(
            center=tuple(values["center"]),
            radius=tuple(values["radius"]),
            boolean=bool(values.get("boolean", False)),
        )


class Obstacle2DTask:
    """
    Two-dimensional benchmark cost.

    The cost of step t integrates the map cost along the straight segment
    from the previous point, scaled by dt and by the speed of the projected
    trajectory. The map cost is the largest obstacle penetration plus a
    linear penalty outside [0, 1]².
    """

    num_dimensions = 2

    def __init__(
        self,
        obstacles: Sequence[Obstacle],
        control_cost_weight: float = 0.0001,
        use_filter: bool = False,
        resolution: float = 0.002,
        max_path_samples: int = 20,
        boundary_cost: float = 100.0,
    ):
        if resolution <= 0.0 or max_path_samples < 1:
            raise ConfigurationError("resolution and max_path_samples must be positive")
        for obstacle in obstacles:
            if min(obstacle.radius) <= 0.0:
                raise ConfigurationError("Obstacle radii must be positive")
        self.obstacles = list(obstacles)
        self.control_cost_weight = control_cost_weight
        self.use_filter = use_filter
        self.resolution = resolution
        self.max_path_samples = max_path_samples
        self.boundary_cost = boundary_cost

        self._policy: Optional[CovariantTrajectory] = None
        self._velocities: list[NDArray] = []
        self._accelerations: list[NDArray] = []

    def initialize(self, num_threads: int) -> None:
        T = self._require_policy().num_time_steps
        self._velocities = [np.zeros((2, T)) for _ in range(num_threads)]
        self._accelerations = [np.zeros((2, T)) for _ in range(num_threads)]

    def get_policy(self) -> CovariantTrajectory:
        return self._require_policy()

    def set_policy(self, policy: CovariantTrajectory) -> None:
        if policy.num_dimensions != self.num_dimensions:
            raise ConfigurationError("Obstacle2DTask needs a 2-dimensional trajectory")
        self._policy = policy

    def get_control_cost_weight(self) -> float:
        return self.control_cost_weight

    def _require_policy(self) -> CovariantTrajectory:
        if self._policy is None:
            raise RuntimeError("No trajectory has been set")
        return self._policy

    def _start_point(self) -> NDArray:
        policy = self._require_policy()
        return policy.get_padded_parameters()[:, policy.padding - 1]

    def map_cost(self, x: ArrayLike, y: ArrayLike) -> NDArray:
        """Map cost at points (vectorized)."""
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        cost = np.zeros(np.broadcast(x, y).shape)
        for obstacle in self.obstacles:
            dx = (x - obstacle.center[0]) / obstacle.radius[0]
            dy = (y - obstacle.center[1]) / obstacle.radius[1]
            dist = dx * dx + dy * dy
            value = np.ones_like(dist) if obstacle.boolean else 1.0 - dist
            cost = np.where(dist < 1.0, np.maximum(cost, value), cost)

        # Outside the unit square
        cost = cost + self.boundary_cost * (
            np.maximum(-x, 0.0) + np.maximum(x - 1.0, 0.0)
            + np.maximum(-y, 0.0) + np.maximum(y - 1.0, 0.0)
        )
        return cost

    def map_gradient(self, x: ArrayLike, y: ArrayLike) -> tuple[NDArray, NDArray]:
        """Central differences of the map cost with the path resolution as step."""
        h = self.resolution
        gx = (self.map_cost(np.add(x, h), y) - self.map_cost(np.subtract(x, h), y)) / (2 * h)
        gy = (self.map_cost(x, np.add(y, h)) - self.map_cost(x, np.subtract(y, h))) / (2 * h)
        return gx, gy

    def _path_samples(self, start: NDArray, end: NDArray) -> Optional[NDArray]:
        """Points on [start, end), or None for a degenerate segment."""
        length = float(np.hypot(*(end - start)))
        num_samples = min(math.ceil(length / self.resolution), self.max_path_samples)
        if num_samples == 0:
            return None
        fractions = np.arange(num_samples) / num_samples
        return start[:, np.newaxis] + fractions[np.newaxis, :] * (end - start)[:, np.newaxis]

    def filter(self, parameters: NDArray, thread_id: int) -> bool:
        """Clip to the unit square when enabled."""
        if not self.use_filter:
            return False
        outside = (parameters < 0.0) | (parameters > 1.0)
        if not np.any(outside):
            return False
        np.clip(parameters, 0.0, 1.0, out=parameters)
        return True

    def execute(
        self,
        parameters: NDArray,
        projected_parameters: NDArray,
        iteration_number: int,
        rollout_number: int,
        thread_id: int,
    ) -> tuple[NDArray, None, bool]:
        policy = self._require_policy()
        dt = policy.time_step()
        vel = self._velocities[thread_id]
        for d in range(self.num_dimensions):
            vel[d] = differentiate(projected_parameters[d], DerivativeOrder.VELOCITY, dt)
        speed = np.hypot(vel[0], vel[1])

        T = parameters.shape[1]
        costs = np.zeros(T)
        previous = self._start_point()
        for t in range(T):
            point = parameters[:, t]
            samples = self._path_samples(previous, point)
            if samples is not None:
                costs[t] = (
                    np.mean(self.map_cost(samples[0], samples[1])) * dt * speed[t]
                )
            previous = point
        return costs, None, True

    def compute_gradients(
        self,
        parameters: NDArray,
        projected_parameters: NDArray,
        thread_id: int,
    ) -> NDArray:
        """
        Functional gradient of the path cost (2, T).

        Per sample: |v| (P⊥ ∇c - c κ), with P⊥ the projection orthogonal to
        the velocity and κ = P⊥ a / |v|² the curvature vector.
        """
        policy = self._require_policy()
        dt = policy.time_step()
        vel = self._velocities[thread_id]
        acc = self._accelerations[thread_id]
        for d in range(self.num_dimensions):
            vel[d] = differentiate(projected_parameters[d], DerivativeOrder.VELOCITY, dt)
            acc[d] = differentiate(projected_parameters[d], DerivativeOrder.ACCELERATION, dt)

        T = parameters.shape[1]
        gradients = np.zeros((2, T))
        previous = self._start_point()
        for t in range(T):
            point = parameters[:, t]
            samples = self._path_samples(previous, point)
            previous = point
            v = vel[:, t]
            speed = float(np.hypot(*v))
            if samples is None or speed < 1e-12:
                continue
            direction = v / speed
            orth_proj = np.eye(2) - np.outer(direction, direction)
            curvature = orth_proj @ acc[:, t] / speed ** 2

            cost = self.map_cost(samples[0], samples[1]) * dt           # (S,)
            gx, gy = self.map_gradient(samples[0], samples[1])
            grad = np.stack([gx, gy]) * dt                                # (2, S)
            per_sample = speed * (orth_proj @ grad - np.outer(curvature, cost))
            gradients[:, t] = per_sample.mean(axis=1)
        return gradients
