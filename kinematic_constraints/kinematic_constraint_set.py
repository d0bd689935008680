"""
kinematic_constraint_set.py - Evaluate a whole ConstraintsSpec against a state.

The set configures every raw constraint it is given and keeps the ones that
configure; rejected constraints are logged and dropped, so decide() judges
only what could be understood for this robot.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from configs.constraint_models import ConstraintsSpec
from kinematic_constraints.constraints import ConstraintEvaluationResult
from kinematic_constraints.constraints import JointConstraint
from kinematic_constraints.constraints import KinematicConstraint
from kinematic_constraints.constraints import OrientationConstraint
from kinematic_constraints.constraints import PositionConstraint

if TYPE_CHECKING:
    from kinematics_tools.robot_model import RobotModel
    from kinematics_tools.robot_state import RobotState
    from kinematics_tools.transforms import Transforms

logger = logging.getLogger(__name__)


class KinematicConstraintSet:
    """
    Conjunction of configured joint, position and orientation constraints.

    Example:
        >>> cset = KinematicConstraintSet(model)
        >>> cset.add(spec, scene.transforms)
        >>> cset.decide(state).satisfied
    """

    def __init__(self, robot_model: RobotModel):
        self.robot_model = robot_model
        self.joint_constraints: list[JointConstraint] = []
        self.position_constraints: list[PositionConstraint] = []
        self.orientation_constraints: list[OrientationConstraint] = []

    def __len__(self) -> int:
        return len(self.joint_constraints) + len(self.position_constraints) + len(self.orientation_constraints)

    @property
    def empty(self) -> bool:
        return len(self) == 0

    def clear(self) -> None:
        self.joint_constraints = []
        self.position_constraints = []
        self.orientation_constraints = []

    def _configured(self, constraint: KinematicConstraint, spec, transforms: Transforms | None) -> bool:
        if constraint.configure(spec, transforms):
            return True
        logger.debug(f'Dropping {constraint.constraint_type} constraint that failed to configure: {spec!r}')
        return False

    def add(self, constraints: ConstraintsSpec | dict, transforms: Transforms | None = None) -> bool:
        """
        Configure and add every constraint of `constraints`.

        Returns:
            True if every constraint configured, False if any was dropped
        """
        if isinstance(constraints, dict):
            constraints = ConstraintsSpec.model_validate(constraints)
        model = self.robot_model
        all_ok = True

        for spec in constraints.joint_constraints:
            jc = JointConstraint(model)
            if self._configured(jc, spec, transforms):
                self.joint_constraints.append(jc)
            else:
                all_ok = False
        for spec in constraints.position_constraints:
            pc = PositionConstraint(model)
            if self._configured(pc, spec, transforms):
                self.position_constraints.append(pc)
            else:
                all_ok = False
        for spec in constraints.orientation_constraints:
            oc = OrientationConstraint(model)
            if self._configured(oc, spec, transforms):
                self.orientation_constraints.append(oc)
            else:
                all_ok = False
        return all_ok

    def decide(self, state: RobotState) -> ConstraintEvaluationResult:
        """All constraints must hold; distance is the sum over constraints."""
        satisfied = True
        distance = 0.0
        for constraint in (*self.joint_constraints, *self.position_constraints, *self.orientation_constraints):
            result = constraint.decide(state)
            satisfied = satisfied and result.satisfied
            distance += result.distance
        return ConstraintEvaluationResult(satisfied, distance)
