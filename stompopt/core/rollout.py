"""Per-iteration rollout records."""

from dataclasses import dataclass, field
from typing import Optional
import numpy as np
from numpy.typing import NDArray


NOISELESS_ROLLOUT = -1


@dataclass
class Rollout:
    """One sampled (possibly zero-noise) trajectory evaluated in an iteration."""

    noise: NDArray                   # (D, T) noise actually applied
    noisy_parameters: NDArray        # (D, T) θ + noise, after filtering
    projected_parameters: NDArray    # (D, T) θ + M·noise
    task_costs: NDArray              # (T,)
    control_costs: NDArray           # (D, T) weighted by the control cost weight
    feature_values: Optional[NDArray] = None  # (T, F) if the task reports them
    valid: bool = True
    filtered: bool = False
    rollout_number: int = NOISELESS_ROLLOUT
    importance_weights: Optional[NDArray] = field(default=None, repr=False)

    @property
    def num_dimensions(self) -> int:
        return self.noise.shape[0]

    @property
    def num_time_steps(self) -> int:
        return self.noise.shape[1]

    @property
    def is_noiseless(self) -> bool:
        return self.rollout_number < 0

    @property
    def total_costs(self) -> NDArray:
        """Per-step task cost plus control cost summed over dimensions."""
        return self.task_costs + self.control_costs.sum(axis=0)

    @property
    def total_cost(self) -> float:
        return float(self.task_costs.sum() + self.control_costs.sum())

    @property
    def noise_magnitude(self) -> float:
        return float(np.linalg.norm(self.noise))

    def copy(self) -> "Rollout":
        return Rollout(
            noise=self.noise.copy(),
            noisy_parameters=self.noisy_parameters.copy(),
            projected_parameters=self.projected_parameters.copy(),
            task_costs=self.task_costs.copy(),
            control_costs=self.control_costs.copy(),
            feature_values=(
                None if self.feature_values is None else self.feature_values.copy()
            ),
            valid=self.valid,
            filtered=self.filtered,
            rollout_number=self.rollout_number,
            importance_weights=(
                None
                if self.importance_weights is None
                else self.importance_weights.copy()
            ),
        )
