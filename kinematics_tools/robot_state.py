"""
robot_state.py - Mutable joint-space state of a robot.

A RobotState is owned by whoever created it. Samplers write into a state
passed to them and never keep a reference to it.
"""
from __future__ import annotations

from collections.abc import Mapping
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from kinematics_tools.robot_model import JointModelGroup
    from kinematics_tools.robot_model import RobotModel


class RobotState:
    """
    Variable values for every variable of a RobotModel, with lazily cached
    link transforms.

    Example:
        >>> state = RobotState(model)
        >>> state.set_variable_positions({'l_shoulder_yaw': 0.3})
        >>> tool_pose = state.get_global_link_transform('l_tool')
    """

    def __init__(self, robot_model: RobotModel, values: np.ndarray | None = None):
        self.robot_model = robot_model
        if values is None:
            self._values = robot_model.default_values()
        else:
            values = np.asarray(values, dtype=np.float64)
            if values.shape != (robot_model.variable_count,):
                raise ValueError(f'Expected {robot_model.variable_count} values, got shape {values.shape}')
            self._values = values.copy()
        self._link_poses: dict[str, np.ndarray] | None = None

    def __repr__(self) -> str:
        return f'RobotState({self.robot_model.name!r}, {dict(zip(self.robot_model.variable_names, np.round(self._values, 4)))})'

    def copy(self) -> RobotState:
        return RobotState(self.robot_model, self._values)

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the full variable vector."""
        view = self._values.view()
        view.flags.writeable = False
        return view

    def _dirty(self) -> None:
        self._link_poses = None

    # -------------------------------------------------------------------------
    # Setters / getters
    # -------------------------------------------------------------------------

    def set_to_default_values(self) -> None:
        self._values = self.robot_model.default_values()
        self._dirty()

    def set_to_random_values(
        self,
        rng: np.random.Generator,
        group: JointModelGroup | None = None,
    ) -> None:
        """Draw every variable (or only the group's) uniformly within its sampling range."""
        if group is None:
            self._values = self.robot_model.sample_variable_values(rng, self.robot_model.variable_names)
        else:
            self._values[group.variable_indices] = self.robot_model.sample_variable_values(rng, group.variable_names)
        self._dirty()

    def set_variable_positions(self, positions: Mapping[str, float]) -> None:
        model = self.robot_model
        for name, value in positions.items():
            self._values[model.variable_index(name)] = float(value)
        self._dirty()

    def get_variable_position(self, name: str) -> float:
        return float(self._values[self.robot_model.variable_index(name)])

    def get_variable_positions(self, names: Sequence[str]) -> np.ndarray:
        model = self.robot_model
        return np.array([self._values[model.variable_index(n)] for n in names], dtype=np.float64)

    def set_group_positions(self, group: JointModelGroup, values: Sequence[float]) -> None:
        values = np.asarray(values, dtype=np.float64)
        if values.shape != (group.variable_count,):
            raise ValueError(f"Group '{group.name}' has {group.variable_count} variables, got {values.shape}")
        self._values[group.variable_indices] = values
        self._dirty()

    def get_group_positions(self, group: JointModelGroup) -> np.ndarray:
        return self._values[group.variable_indices].copy()

    # -------------------------------------------------------------------------
    # Bounds
    # -------------------------------------------------------------------------

    def enforce_bounds(self, group: JointModelGroup | None = None) -> None:
        """Clamp bounded variables and wrap continuous ones to (-pi, pi]."""
        model = self.robot_model
        names = model.variable_names if group is None else group.variable_names
        for name in names:
            idx = model.variable_index(name)
            self._values[idx] = model.enforce_variable_bounds(name, self._values[idx])
        self._dirty()

    def satisfies_bounds(self, group: JointModelGroup | None = None, margin: float = 0.0) -> bool:
        model = self.robot_model
        names = model.variable_names if group is None else group.variable_names
        for name in names:
            if model.is_continuous_variable(name):
                continue
            lower, upper = model.get_variable_bounds(name)
            value = self._values[model.variable_index(name)]
            if value < lower - margin or value > upper + margin:
                return False
        return True

    # -------------------------------------------------------------------------
    # Kinematics
    # -------------------------------------------------------------------------

    def update_link_transforms(self) -> None:
        if self._link_poses is None:
            self._link_poses = self.robot_model.forward_kinematics(self._values)

    def get_global_link_transform(self, link_name: str) -> np.ndarray:
        """Pose of a link in the model frame. Raises KeyError for unknown links."""
        self.update_link_transforms()
        return self._link_poses[link_name].copy()
