"""
ik_solver.py - IK solver interface and a numerical reference solver.

The sampler layer only relies on the KinematicsSolver protocol:

    solver.supports_link(link_name) -> bool
    solver.solve(link_name, target, seed_state, max_evaluations=None) -> IKResult

LeastSquaresIK solves position, orientation or full-pose goals for any link of
its group with scipy.optimize.least_squares, holding every variable outside
the group at the seed state's values. It is meant for small arms and tests;
swap in an analytic or plugin solver by registering another allocator.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from typing import TYPE_CHECKING

import numpy as np
from scipy.optimize import least_squares
from scipy.spatial.transform import Rotation

if TYPE_CHECKING:
    from kinematics_tools.robot_model import JointModelGroup
    from kinematics_tools.robot_state import RobotState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IKTarget:
    """
    Goal for one link, expressed in the model frame.

    Attributes:
        position: Desired position of `offset` (a point in the link frame), or None
        rotation: Desired link orientation, or None
        offset: Point on the link that must reach `position`
    """
    position: np.ndarray | None = None
    rotation: Rotation | None = None
    offset: tuple[float, float, float] = (0.0, 0.0, 0.0)

    @property
    def mode(self) -> str:
        if self.position is not None and self.rotation is not None:
            return 'pose'
        return 'position' if self.position is not None else 'orientation'


@dataclass(frozen=True)
class IKResult:
    success: bool
    joint_names: tuple[str, ...]
    positions: np.ndarray
    position_error: float = 0.0
    orientation_error: float = 0.0
    reason: str = ''


class KinematicsSolver(Protocol):
    def supports_link(self, link_name: str) -> bool:
        ...

    def solve(
        self,
        link_name: str,
        target: IKTarget,
        seed_state: RobotState,
        max_evaluations: int | None = None,
    ) -> IKResult:
        ...


@dataclass
class LeastSquaresIKConfig:
    """
    Attributes:
        max_evaluations: Residual evaluations allowed per solve (scipy max_nfev)
        position_tolerance: Accepted position error (model units)
        orientation_tolerance: Accepted orientation error (radians)
        orientation_weight: Scale of the rotation residual relative to position
    """
    max_evaluations: int = 200
    position_tolerance: float = 1e-4
    orientation_tolerance: float = 1e-3
    orientation_weight: float = 0.5


class LeastSquaresIK:
    """Bounded nonlinear least-squares IK over the variables of one group."""

    def __init__(self, group: JointModelGroup, config: LeastSquaresIKConfig | None = None):
        self.group = group
        self.config = config or LeastSquaresIKConfig()
        self.robot_model = group.robot_model

        bounds = np.array(group.get_variable_bounds(), dtype=np.float64).reshape(-1, 2)
        lower, upper = bounds[:, 0], bounds[:, 1]
        # least_squares needs lower < upper strictly
        upper = np.where(upper <= lower, lower + 1e-9, upper)
        self._lower = lower
        self._upper = upper

    def supports_link(self, link_name: str) -> bool:
        return self.group.has_link_model(link_name)

    def _residual_fn(self, link_name: str, target: IKTarget, base_values: np.ndarray):
        model = self.robot_model
        indices = self.group.variable_indices
        offset = np.asarray(target.offset, dtype=np.float64)
        weight = self.config.orientation_weight
        target_inv = target.rotation.inv() if target.rotation is not None else None

        def residual(q: np.ndarray) -> np.ndarray:
            values = base_values.copy()
            values[indices] = q
            T = model.forward_kinematics(values)[link_name]
            parts = []
            if target.position is not None:
                parts.append(T[:3, :3] @ offset + T[:3, 3] - target.position)
            if target_inv is not None:
                parts.append(weight * (target_inv * Rotation.from_matrix(T[:3, :3])).as_rotvec())
            return np.concatenate(parts)

        return residual

    def solve(
        self,
        link_name: str,
        target: IKTarget,
        seed_state: RobotState,
        max_evaluations: int | None = None,
    ) -> IKResult:
        """
        Solve for `target` starting from the seed state's group values.

        Args:
            link_name: Link that must reach the target
            target: Position and/or orientation goal in the model frame
            seed_state: Start point; variables outside the group are held fixed
            max_evaluations: Overrides config.max_evaluations for this call

        Returns:
            IKResult; `positions` holds the group values reached even on failure
        """
        names = self.group.variable_names
        if not self.supports_link(link_name):
            return IKResult(False, names, seed_state.get_group_positions(self.group),
                            reason=f"link '{link_name}' is not part of group '{self.group.name}'")
        if target.position is None and target.rotation is None:
            return IKResult(False, names, seed_state.get_group_positions(self.group), reason='empty IK target')

        base_values = np.array(seed_state.values)
        x0 = np.clip(seed_state.get_group_positions(self.group), self._lower, self._upper)
        residual = self._residual_fn(link_name, target, base_values)

        result = least_squares(
            residual,
            x0,
            bounds=(self._lower, self._upper),
            max_nfev=max_evaluations or self.config.max_evaluations,
        )

        solution = np.array([
            self.robot_model.enforce_variable_bounds(name, value) for name, value in zip(names, result.x)
        ])
        final = residual(solution)
        position_error = 0.0
        orientation_error = 0.0
        if target.position is not None:
            position_error = float(np.linalg.norm(final[:3]))
        if target.rotation is not None:
            orientation_error = float(np.linalg.norm(final[-3:]) / self.config.orientation_weight)

        success = (
            position_error <= self.config.position_tolerance
            and orientation_error <= self.config.orientation_tolerance
        )
        reason = 'OK' if success else (
            f'no solution within tolerance (position error {position_error:.2e}, '
            f'orientation error {orientation_error:.2e})'
        )
        return IKResult(success, names, solution, position_error, orientation_error, reason)


def least_squares_allocator(group: JointModelGroup) -> LeastSquaresIK:
    return LeastSquaresIK(group)


# Registry of IK solver allocators selectable by name from robot descriptions
SOLVER_ALLOCATORS = {
    'least_squares': least_squares_allocator,
}
