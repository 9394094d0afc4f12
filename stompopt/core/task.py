"""Cost task protocols."""

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable
from numpy.typing import NDArray

if TYPE_CHECKING:
    from stompopt.policy.covariant import CovariantTrajectory


@runtime_checkable
class CostTask(Protocol):
    """
    Prices trajectories for the optimizer.

    The optimizer calls ``filter`` and then ``execute`` at most once per
    rollout per iteration. Calls for distinct rollouts run concurrently, each
    with its own ``thread_id`` in ``[0, num_threads)``; implementations keep
    per-thread scratch state indexed by that id.
    """

    def initialize(self, num_threads: int) -> None:
        """Allocate per-thread scratch state."""
        ...

    def filter(self, parameters: NDArray, thread_id: int) -> bool:
        """
        Project parameters onto the feasible set in place.

        Args:
            parameters: Noisy parameters (D, T), modified in place
            thread_id: Worker index

        Returns:
            True if any value changed
        """
        ...

    def execute(
        self,
        parameters: NDArray,
        projected_parameters: NDArray,
        iteration_number: int,
        rollout_number: int,
        thread_id: int,
    ) -> tuple[NDArray, Optional[NDArray], bool]:
        """
        Price a trajectory per time step.

        Args:
            parameters: Filtered noisy parameters (D, T)
            projected_parameters: Smoothness-projected parameters (D, T)
            iteration_number: Current iteration
            rollout_number: Rollout index, negative for the noiseless rollout
            thread_id: Worker index

        Returns:
            costs: Per-step task cost (T,)
            feature_values: Optional per-step weighted features (T, F)
            valid: False encodes soft infeasibility; the cost is still used
        """
        ...

    def get_policy(self) -> "CovariantTrajectory":
        ...

    def set_policy(self, policy: "CovariantTrajectory") -> None:
        ...

    def get_control_cost_weight(self) -> float:
        """Scale of the smoothness cost relative to the task cost."""
        ...


@runtime_checkable
class GradientCostTask(CostTask, Protocol):
    """Cost task that can also supply analytic task-cost gradients."""

    def compute_gradients(
        self,
        parameters: NDArray,
        projected_parameters: NDArray,
        thread_id: int,
    ) -> NDArray:
        """
        Gradient of the summed task cost.

        Returns:
            Gradient (D, T)
        """
        ...
