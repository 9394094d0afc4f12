"""Reference cost tasks."""

from stompopt.tasks.obstacle_2d import Obstacle, Obstacle2DTask
from stompopt.tasks.feature import FeatureCostTask, JointMotionTask

__all__ = [
    "Obstacle",
    "Obstacle2DTask",
    "FeatureCostTask",
    "JointMotionTask",
]
