"""CHOMP: covariant gradient descent on the same task interface."""

from enum import Enum, auto
import logging
from typing import Optional
import numpy as np
from numpy.typing import ArrayLike, NDArray

from stompopt.core.config import ChompConfig
from stompopt.core.errors import ConfigurationError, MalformedTaskOutput
from stompopt.core.rollout import NOISELESS_ROLLOUT, Rollout
from stompopt.core.task import CostTask, GradientCostTask
from stompopt.optimization.executor import RolloutExecutor
from stompopt.policy.covariant import CovariantTrajectory
from stompopt.sampling.noise import NoiseModel

logger = logging.getLogger(__name__)


class _State(Enum):
    UNINITIALIZED = auto()
    READY = auto()


def finite_difference_gradient(
    task: CostTask,
    parameters: NDArray,
    iteration_number: int,
    step: float,
    thread_id: int = 0,
) -> NDArray:
    """
    Central-difference gradient of the summed task cost.

    Args:
        task: Cost task; priced with the perturbed parameters passed as both
            noisy and projected parameters
        parameters: Point of evaluation (D, T)
        iteration_number: Passed through to the task
        step: Perturbation size
        thread_id: Worker index used for every evaluation

    Returns:
        Gradient (D, T)
    """
    def total(values: NDArray) -> float:
        costs, _, _ = task.execute(
            values, values, iteration_number, NOISELESS_ROLLOUT, thread_id
        )
        return float(np.sum(costs))

    work = np.array(parameters, dtype=float)
    grad = np.zeros_like(work)
    for index in np.ndindex(work.shape):
        original = work[index]
        work[index] = original + step
        plus = total(work)
        work[index] = original - step
        minus = total(work)
        work[index] = original
        grad[index] = (plus - minus) / (2.0 * step)
    return grad


class Chomp:
    """
    Covariant gradient descent.

    θ ← θ - η R⁻¹ (∇task + w_c ∇control), then filter and price θ. Uses the
    task's ``compute_gradients`` when it provides one, central differences
    of ``execute`` otherwise.
    """

    def __init__(self, task: CostTask, config: Optional[ChompConfig] = None):
        self.task = task
        self.config = config if config is not None else ChompConfig()
        self.config.validate()
        self.state = _State.UNINITIALIZED
        self.policy: Optional[CovariantTrajectory] = None
        self.executor: Optional[RolloutExecutor] = None
        self._noiseless_rollout: Optional[Rollout] = None
        self.iteration_history: list[float] = []

    def initialize(
        self,
        num_threads: int,
        num_dimensions: int,
        num_time_steps: int,
        movement_duration: float,
        derivative_weights: ArrayLike,
        initial_values: ArrayLike,
    ) -> None:
        """Build the trajectory at its minimum control cost and price it."""
        if num_threads < 1:
            raise ConfigurationError("num_threads must be >= 1")
        policy = CovariantTrajectory()
        policy.initialize(
            num_time_steps,
            num_dimensions,
            movement_duration,
            derivative_weights,
            initial_values,
        )
        policy.set_to_minimum_cost()
        self.task.set_policy(policy)
        self.task.initialize(num_threads)
        self._bind(policy)
        self.iteration_history = []
        self.state = _State.READY

    def _bind(self, policy: CovariantTrajectory) -> None:
        if self.executor is not None:
            self.executor.shutdown()
        self.policy = policy
        # Gradient steps are sequential; one context prices the noiseless rollout
        self.executor = RolloutExecutor(self.task, policy, NoiseModel(policy), 1)
        self._noiseless_rollout = self._run_noiseless(0)

    def _check_ready(self) -> None:
        if self.state is _State.UNINITIALIZED:
            raise RuntimeError("Optimizer has not been initialized")

    def _run_noiseless(self, iteration_number: int) -> Rollout:
        rollout = self.executor.execute_noiseless(
            iteration_number, self.policy.get_parameters()
        )
        if rollout.filtered:
            self.policy.set_parameters(rollout.noisy_parameters)
        return rollout

    def compute_gradient(self, parameters: NDArray, iteration_number: int = 0) -> NDArray:
        """
        Euclidean gradient of task plus weighted control cost (D, T).

        Raises:
            MalformedTaskOutput: If the task gradient has the wrong shape
                or is not finite
        """
        if isinstance(self.task, GradientCostTask):
            task_grad = np.asarray(
                self.task.compute_gradients(parameters, parameters, 0), dtype=float
            )
        else:
            task_grad = finite_difference_gradient(
                self.task, parameters, iteration_number,
                self.config.finite_difference_step,
            )
        if task_grad.shape != parameters.shape or not np.all(np.isfinite(task_grad)):
            raise MalformedTaskOutput(
                f"Task gradient must be finite with shape {parameters.shape}"
            )
        weight = float(self.task.get_control_cost_weight())
        return task_grad + weight * self.policy.control_cost_gradient(parameters)

    def run_single_iteration(self, iteration_number: int) -> Rollout:
        """
        One covariant gradient step.

        Returns:
            The noiseless rollout of the updated trajectory
        """
        self._check_ready()
        parameters = self.policy.get_parameters()
        grad = self.compute_gradient(parameters, iteration_number)

        delta = -self.config.learning_rate * self.policy.solve_control_system(grad)
        if self.config.max_update is not None:
            delta = np.clip(delta, -self.config.max_update, self.config.max_update)

        self.policy.set_parameters(parameters + delta)
        self._noiseless_rollout = self._run_noiseless(iteration_number)
        self.iteration_history.append(self._noiseless_rollout.total_cost)

        logger.info(
            "Iteration %d: cost %.6g, |∇|=%.3g, |Δ|=%.3g",
            iteration_number,
            self._noiseless_rollout.total_cost,
            float(np.linalg.norm(grad)),
            float(np.linalg.norm(delta)),
        )
        return self._noiseless_rollout

    def get_noiseless_rollout(self) -> Rollout:
        self._check_ready()
        return self._noiseless_rollout

    def get_policy(self) -> CovariantTrajectory:
        self._check_ready()
        return self.policy

    def set_policy(self, policy: CovariantTrajectory) -> None:
        """Swap in a trajectory of the same shape and reprice it."""
        self._check_ready()
        if (policy.num_dimensions, policy.num_time_steps) != (
            self.policy.num_dimensions, self.policy.num_time_steps
        ):
            raise ValueError("Trajectory shape does not match")
        self.task.set_policy(policy)
        self._bind(policy)

    def shutdown(self) -> None:
        if self.executor is not None:
            self.executor.shutdown()

    def __enter__(self) -> "Chomp":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
