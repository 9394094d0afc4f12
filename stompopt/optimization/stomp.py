"""STOMP: stochastic trajectory optimization driver."""

from enum import Enum, auto
import logging
from typing import Optional
import numpy as np
from numpy.typing import ArrayLike, NDArray

from stompopt.core.config import StompConfig
from stompopt.core.errors import ConfigurationError
from stompopt.core.rollout import Rollout
from stompopt.core.task import CostTask
from stompopt.optimization.adaptation import NoiseAdaptation, create_noise_adaptation
from stompopt.optimization.executor import (
    ExecutionStats,
    RolloutExecutor,
    RolloutJob,
    RolloutReuseCache,
)
from stompopt.optimization.update import PolicyUpdater
from stompopt.policy.covariant import CovariantTrajectory
from stompopt.sampling.noise import NoiseModel

logger = logging.getLogger(__name__)


class OptimizerState(Enum):
    UNINITIALIZED = auto()
    READY = auto()
    ITERATION_RUNNING = auto()


class Stomp:
    """
    Sampling-based local trajectory optimizer.

    Per iteration: sample K smooth perturbations of θ, filter and price them
    in parallel, apply the importance-weighted update, adapt the exploration
    magnitude, then price the new θ as the noiseless rollout. The driver
    decides how many iterations to run.
    """

    def __init__(self, task: CostTask, config: Optional[StompConfig] = None):
        self.task = task
        self.config = config if config is not None else StompConfig()
        self.config.validate()
        self.state = OptimizerState.UNINITIALIZED

        self.policy: Optional[CovariantTrajectory] = None
        self.noise_model: Optional[NoiseModel] = None
        self.executor: Optional[RolloutExecutor] = None
        self.updater: Optional[PolicyUpdater] = None
        self.adaptation: Optional[NoiseAdaptation] = None
        self.reuse_cache = RolloutReuseCache(self.config.num_reused_rollouts)

        self._seed_sequence = np.random.SeedSequence(self.config.random_seed)
        self._stddevs: Optional[NDArray] = None
        self._rollouts: list[Rollout] = []
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
        """
        Build the trajectory model and worker pool; price the initial trajectory.

        The trajectory is set to its minimum control cost solution and handed
        to the task through ``set_policy``.

        Raises:
            ConfigurationError: On invalid sizes, weights or thread count
        """
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
        self._setup(policy, num_threads)

    def _setup(self, policy: CovariantTrajectory, num_threads: int) -> None:
        D = policy.num_dimensions
        stddevs = np.asarray(self.config.noise_stddev, dtype=float)
        if stddevs.ndim > 1 or (stddevs.ndim == 1 and stddevs.shape[0] != D):
            raise ConfigurationError(
                f"noise_stddev must be a scalar or have {D} entries"
            )
        if np.any(stddevs < 0.0):
            raise ConfigurationError("noise_stddev must be >= 0")

        self._bind(policy, num_threads)
        self.adaptation = create_noise_adaptation(self.config.adaptation, D)
        self._stddevs = np.broadcast_to(stddevs, (D,)).copy()
        self.iteration_history = []

        self._noiseless_rollout = self._run_noiseless(0)
        self.state = OptimizerState.READY
        logger.info(
            "STOMP ready: D=%d T=%d threads=%d, initial cost %.6g",
            D, policy.num_time_steps, num_threads,
            self._noiseless_rollout.total_cost,
        )

    def _bind(self, policy: CovariantTrajectory, num_threads: int) -> None:
        """(Re)build every component that reads the live trajectory."""
        if self.executor is not None:
            self.executor.shutdown()
        self.policy = policy
        self.noise_model = NoiseModel(policy)
        self.executor = RolloutExecutor(self.task, policy, self.noise_model, num_threads)
        self.updater = PolicyUpdater(
            policy,
            sensitivity=self.config.cost_sensitivity,
            epsilon=self.config.weight_epsilon,
        )
        self._rollouts = []
        self.reuse_cache.clear()

    def _check_ready(self) -> None:
        if self.state is OptimizerState.UNINITIALIZED:
            raise RuntimeError("Optimizer has not been initialized")
        if self.state is OptimizerState.ITERATION_RUNNING:
            raise RuntimeError("An iteration is already running")

    def _run_noiseless(self, iteration_number: int) -> Rollout:
        parameters = self.policy.get_parameters()
        rollout = self.executor.execute_noiseless(iteration_number, parameters)
        if rollout.filtered:
            self.policy.set_parameters(rollout.noisy_parameters)
        return rollout

    def run_single_iteration(self, iteration_number: int) -> Rollout:
        """
        Run one sample → evaluate → update → adapt cycle.

        Args:
            iteration_number: Passed through to the task

        Returns:
            The noiseless rollout of the updated trajectory
        """
        self._check_ready()
        self.state = OptimizerState.ITERATION_RUNNING
        try:
            return self._iterate(iteration_number)
        finally:
            self.state = OptimizerState.READY

    def _iterate(self, iteration_number: int) -> Rollout:
        parameters = self.policy.get_parameters()
        num_fresh = self.config.rollouts_per_iteration
        # Without exploration a reused rollout would still carry old noise
        exploring = bool(np.any(self._stddevs > 0.0))
        num_reused = min(
            len(self.reuse_cache), self.config.max_rollouts - num_fresh
        ) if num_fresh > 0 and exploring else 0

        seeds = self._seed_sequence.spawn(num_fresh)
        jobs = [RolloutJob(rollout_number=k, seed=seed) for k, seed in enumerate(seeds)]
        for offset, noisy in enumerate(self.reuse_cache.recall(num_reused)):
            jobs.append(RolloutJob(rollout_number=num_fresh + offset, noisy_parameters=noisy))

        # Barrier: all rollouts finish before anything reads their costs
        rollouts = self.executor.execute(
            iteration_number, parameters, self._stddevs, jobs
        )

        # Single writer: θ ← θ + Δ
        delta = self.updater.apply(parameters, rollouts)

        previous_noiseless = self._noiseless_rollout
        weights = (
            np.stack([r.importance_weights for r in rollouts])
            if rollouts else np.zeros((0, self.policy.num_time_steps))
        )
        self._stddevs = self.adaptation.update(
            self._stddevs, rollouts, previous_noiseless, weights, self.noise_model
        )

        self.reuse_cache.store(rollouts)
        self._rollouts = rollouts
        self._noiseless_rollout = self._run_noiseless(iteration_number)
        self.iteration_history.append(self._noiseless_rollout.total_cost)

        logger.info(
            "Iteration %d: noiseless cost %.6g, %d rollouts (%d reused), "
            "|Δ|=%.3g, stddev=%s",
            iteration_number,
            self._noiseless_rollout.total_cost,
            len(rollouts),
            num_reused,
            float(np.linalg.norm(delta)),
            np.array2string(self._stddevs, precision=4),
        )
        return self._noiseless_rollout

    def get_all_rollouts(self) -> list[Rollout]:
        """Rollouts of the last iteration: K fresh, then any reused."""
        return list(self._rollouts)

    def get_noiseless_rollout(self) -> Rollout:
        self._check_ready()
        return self._noiseless_rollout

    def get_adapted_stddevs(self) -> NDArray:
        self._check_ready()
        return self._stddevs.copy()

    def set_adapted_stddevs(self, stddevs: ArrayLike) -> None:
        """Override the exploration magnitude, e.g. to zero for a sanity run.

        Cached rollouts were sampled at the old magnitude and are dropped.
        """
        self._check_ready()
        stddevs = np.asarray(stddevs, dtype=float)
        self._stddevs = np.broadcast_to(stddevs, self._stddevs.shape).copy()
        self.reuse_cache.clear()

    def get_policy(self) -> CovariantTrajectory:
        self._check_ready()
        return self.policy

    def set_policy(self, policy: CovariantTrajectory) -> None:
        """
        Swap in another trajectory of the same shape and reprice it.

        Raises:
            ValueError: If the dimension or step count differs
        """
        self._check_ready()
        if not policy.is_initialized:
            raise ValueError("Trajectory has not been initialized")
        if (policy.num_dimensions, policy.num_time_steps) != (
            self.policy.num_dimensions, self.policy.num_time_steps
        ):
            raise ValueError(
                f"Trajectory shape {(policy.num_dimensions, policy.num_time_steps)} "
                f"does not match {(self.policy.num_dimensions, self.policy.num_time_steps)}"
            )
        self.task.set_policy(policy)
        self._bind(policy, self.executor.num_threads)
        self._noiseless_rollout = self._run_noiseless(0)
        logger.info(
            "Trajectory replaced, noiseless cost %.6g",
            self._noiseless_rollout.total_cost,
        )

    @property
    def stats(self) -> ExecutionStats:
        """Executed, filtered and invalid rollout counters."""
        self._check_ready()
        return self.executor.stats

    def shutdown(self) -> None:
        """Release the worker pool."""
        if self.executor is not None:
            self.executor.shutdown()

    def __enter__(self) -> "Stomp":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
