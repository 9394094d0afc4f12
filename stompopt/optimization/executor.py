"""Parallel rollout generation and evaluation."""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
import logging
import queue
import threading
from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from stompopt.core.errors import MalformedTaskOutput
from stompopt.core.rollout import NOISELESS_ROLLOUT, Rollout
from stompopt.core.task import CostTask
from stompopt.policy.covariant import CovariantTrajectory
from stompopt.sampling.noise import NoiseModel

logger = logging.getLogger(__name__)


@dataclass
class WorkerContext:
    """Private scratch buffers of one worker, allocated once."""

    thread_id: int
    noise: NDArray                 # (D, T)
    noisy_parameters: NDArray      # (D, T)
    projected_parameters: NDArray  # (D, T)

    @classmethod
    def allocate(cls, thread_id: int, num_dimensions: int, num_time_steps: int) -> "WorkerContext":
        shape = (num_dimensions, num_time_steps)
        return cls(
            thread_id=thread_id,
            noise=np.zeros(shape),
            noisy_parameters=np.zeros(shape),
            projected_parameters=np.zeros(shape),
        )


@dataclass
class RolloutJob:
    """Work order for one rollout: a fresh noise seed or fixed parameters."""

    rollout_number: int
    seed: Optional[np.random.SeedSequence] = None
    noisy_parameters: Optional[NDArray] = None  # reused rollout


@dataclass
class ExecutionStats:
    """Counters over the executor's lifetime."""

    rollouts_executed: int = 0
    rollouts_filtered: int = 0
    rollouts_invalid: int = 0


class RolloutExecutor:
    """
    Evaluates batches of rollouts on a fixed worker pool.

    Each rollout is owned end to end by one worker holding a WorkerContext
    (and therefore a thread id) checked out of a queue, so the task's
    per-thread state is never shared. The live trajectory is only read here.
    """

    def __init__(
        self,
        task: CostTask,
        policy: CovariantTrajectory,
        noise_model: NoiseModel,
        num_threads: int = 1,
    ):
        if num_threads < 1:
            raise ValueError("num_threads must be >= 1")
        self.task = task
        self.policy = policy
        self.noise_model = noise_model
        self.num_threads = num_threads
        self.stats = ExecutionStats()

        D, T = policy.num_dimensions, policy.num_time_steps
        self.contexts = [
            WorkerContext.allocate(i, D, T) for i in range(num_threads)
        ]
        self._free_contexts: queue.SimpleQueue = queue.SimpleQueue()
        for context in self.contexts:
            self._free_contexts.put(context)

        self._write_lock = threading.Lock()
        self._pool: Optional[ThreadPoolExecutor] = None
        if num_threads > 1:
            self._pool = ThreadPoolExecutor(
                max_workers=num_threads, thread_name_prefix="stompopt-rollout"
            )

    def execute(
        self,
        iteration_number: int,
        parameters: NDArray,
        stddevs: NDArray,
        jobs: Sequence[RolloutJob],
    ) -> list[Rollout]:
        """
        Run all jobs and wait for every one of them.

        Args:
            iteration_number: Current iteration
            parameters: θ, read-only for the duration of the call (D, T)
            stddevs: Exploration magnitude (D,)
            jobs: Rollouts to produce

        Returns:
            Rollouts in job order
        """
        results: list[Optional[Rollout]] = [None] * len(jobs)
        control_cost_weight = float(self.task.get_control_cost_weight())

        if self._pool is None:
            for index, job in enumerate(jobs):
                self._run_job(
                    index, job, iteration_number, parameters, stddevs,
                    control_cost_weight, results,
                )
        else:
            futures = [
                self._pool.submit(
                    self._run_job, index, job, iteration_number, parameters,
                    stddevs, control_cost_weight, results,
                )
                for index, job in enumerate(jobs)
            ]
            wait(futures)
            for future in futures:
                future.result()  # re-raise worker exceptions

        return results

    def execute_noiseless(self, iteration_number: int, parameters: NDArray) -> Rollout:
        """Filter and price θ itself, inline on the calling thread."""
        context = self._free_contexts.get()
        try:
            context.noise.fill(0.0)
            context.noisy_parameters[:] = parameters
            filtered = bool(self.task.filter(context.noisy_parameters, context.thread_id))
            # The filtered trajectory becomes the noiseless one; noise stays zero
            context.projected_parameters[:] = context.noisy_parameters
            return self._price(
                context, iteration_number, NOISELESS_ROLLOUT, filtered,
                float(self.task.get_control_cost_weight()),
            )
        finally:
            self._free_contexts.put(context)

    def _run_job(
        self,
        index: int,
        job: RolloutJob,
        iteration_number: int,
        parameters: NDArray,
        stddevs: NDArray,
        control_cost_weight: float,
        results: list,
    ) -> None:
        context = self._free_contexts.get()
        try:
            if job.noisy_parameters is not None:
                context.noisy_parameters[:] = job.noisy_parameters
            else:
                rng = np.random.default_rng(job.seed)
                context.noise[:] = self.noise_model.sample_all(stddevs, rng)
                np.add(parameters, context.noise, out=context.noisy_parameters)

            filtered = bool(self.task.filter(context.noisy_parameters, context.thread_id))
            np.subtract(context.noisy_parameters, parameters, out=context.noise)
            context.projected_parameters[:] = (
                parameters + self.policy.project_through_smoothness(context.noise)
            )

            rollout = self._price(
                context, iteration_number, job.rollout_number, filtered,
                control_cost_weight,
            )
        finally:
            self._free_contexts.put(context)

        with self._write_lock:
            results[index] = rollout

    def _price(
        self,
        context: WorkerContext,
        iteration_number: int,
        rollout_number: int,
        filtered: bool,
        control_cost_weight: float,
    ) -> Rollout:
        """Execute the task on the context buffers and snapshot a Rollout."""
        T = self.policy.num_time_steps
        costs, feature_values, valid = self.task.execute(
            context.noisy_parameters,
            context.projected_parameters,
            iteration_number,
            rollout_number,
            context.thread_id,
        )
        costs = np.array(costs, dtype=float)
        if costs.shape != (T,):
            raise MalformedTaskOutput(
                f"Task returned costs of shape {costs.shape}, expected ({T},) "
                f"(iteration {iteration_number}, rollout {rollout_number})"
            )
        if not np.all(np.isfinite(costs)):
            raise MalformedTaskOutput(
                f"Task returned non-finite costs "
                f"(iteration {iteration_number}, rollout {rollout_number})"
            )

        control_costs = control_cost_weight * self.policy.compute_control_costs(
            context.projected_parameters
        )

        with self._write_lock:
            self.stats.rollouts_executed += 1
            if filtered:
                self.stats.rollouts_filtered += 1
            if not valid:
                self.stats.rollouts_invalid += 1

        if filtered:
            logger.debug(
                "Rollout %d of iteration %d was filtered", rollout_number, iteration_number
            )
        if not valid:
            logger.warning(
                "Task marked rollout %d of iteration %d invalid (cost %.6g)",
                rollout_number, iteration_number, costs.sum(),
            )

        return Rollout(
            noise=context.noise.copy(),
            noisy_parameters=context.noisy_parameters.copy(),
            projected_parameters=context.projected_parameters.copy(),
            task_costs=costs,
            control_costs=control_costs,
            feature_values=(
                None if feature_values is None
                else np.array(feature_values, dtype=float)
            ),
            valid=bool(valid),
            filtered=filtered,
            rollout_number=rollout_number,
        )

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None


class RolloutReuseCache:
    """
    Lowest-cost rollouts of the previous iteration.

    Only the noisy parameters are kept; the next iteration re-evaluates them
    around its own θ so noise, projection and costs stay consistent.
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self._parameters: list[NDArray] = []

    def __len__(self) -> int:
        return len(self._parameters)

    @property
    def enabled(self) -> bool:
        return self.capacity > 0

    def store(self, rollouts: Sequence[Rollout]) -> None:
        if not self.enabled:
            return
        best = sorted(rollouts, key=lambda r: r.total_cost)[:self.capacity]
        self._parameters = [r.noisy_parameters.copy() for r in best]

    def recall(self, limit: int) -> list[NDArray]:
        """At most ``limit`` cached parameter sets, cheapest first."""
        return [p.copy() for p in self._parameters[:max(limit, 0)]]

    def clear(self) -> None:
        self._parameters = []
