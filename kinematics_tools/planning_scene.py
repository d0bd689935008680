"""
planning_scene.py - Read-only snapshot consumed by sampler selection.

The scene bundles the kinematic model, the fixed frames and the current
state. Selection and sampler configuration only read from it.
"""
from __future__ import annotations

import numpy as np

from kinematics_tools.robot_model import RobotModel
from kinematics_tools.robot_state import RobotState
from kinematics_tools.transforms import Transforms


class PlanningScene:
    """
    Args:
        robot_model: Kinematic model
        transforms: Fixed frames; defaults to the model's own fixed frames
        current_state: State snapshot; defaults to the model's default values
        name: Optional scene name used in logs
    """

    def __init__(
        self,
        robot_model: RobotModel,
        transforms: Transforms | None = None,
        current_state: RobotState | None = None,
        name: str = 'scene',
    ):
        self.name = name
        self._robot_model = robot_model
        self._transforms = transforms if transforms is not None else robot_model.transforms.copy()
        self._current_state = current_state.copy() if current_state is not None else RobotState(robot_model)

    @property
    def robot_model(self) -> RobotModel:
        return self._robot_model

    @property
    def transforms(self) -> Transforms:
        return self._transforms

    @property
    def planning_frame(self) -> str:
        return self._robot_model.model_frame

    def get_current_state(self) -> RobotState:
        """A copy of the current state; the scene's own snapshot is never handed out."""
        return self._current_state.copy()

    def knows_frame(self, frame: str) -> bool:
        return self._transforms.is_fixed_frame(frame) or self._robot_model.has_link(frame.lstrip('/'))

    def get_frame_transform(self, frame: str, state: RobotState | None = None) -> np.ndarray:
        """Resolve a fixed frame or a robot link (in `state`, default the current state)."""
        if self._transforms.is_fixed_frame(frame):
            return self._transforms.get_transform(frame)
        state = state if state is not None else self._current_state
        return state.get_global_link_transform(frame.lstrip('/'))
