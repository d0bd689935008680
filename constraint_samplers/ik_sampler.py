"""
ik_sampler.py - Sample group configurations through the group's IK solver.

A goal (point and/or orientation) is drawn from the tolerance region of the
position/orientation constraints on one link, handed to the IK solver, and
the resulting configuration is kept only if the constraints accept it.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from constraint_samplers.base import ConstraintSampler
from kinematics_tools.ik_solver import IKTarget

if TYPE_CHECKING:
    from constraint_samplers.sampler_config import SamplerConfig
    from kinematic_constraints.constraints import OrientationConstraint
    from kinematic_constraints.constraints import PositionConstraint
    from kinematics_tools.ik_solver import KinematicsSolver
    from kinematics_tools.planning_scene import PlanningScene
    from kinematics_tools.robot_state import RobotState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IKSamplingPose:
    """Position and/or orientation goal for one link."""
    position_constraint: PositionConstraint | None = None
    orientation_constraint: OrientationConstraint | None = None

    @property
    def link_name(self) -> str:
        if self.position_constraint is not None:
            return self.position_constraint.link_name
        if self.orientation_constraint is not None:
            return self.orientation_constraint.link_name
        return ''


class IKConstraintSampler(ConstraintSampler):
    """
    IK-backed sampler for a single link goal.

    Controls every variable of the group, since the solver may move any of
    them to reach the goal.
    """

    name = 'IKConstraintSampler'

    def __init__(
        self,
        scene: PlanningScene,
        group_name: str,
        config: SamplerConfig | None = None,
    ):
        super().__init__(scene, group_name, config)
        self.sampling_pose = IKSamplingPose()
        self._solver: KinematicsSolver | None = None
        self._volume = 0.0

    def clear(self) -> None:
        super().clear()
        self.sampling_pose = IKSamplingPose()
        self._solver = None
        self._volume = 0.0

    @property
    def link_name(self) -> str:
        return self.sampling_pose.link_name

    @property
    def has_position(self) -> bool:
        return self.sampling_pose.position_constraint is not None

    @property
    def has_orientation(self) -> bool:
        return self.sampling_pose.orientation_constraint is not None

    def sampling_volume(self) -> float:
        """
        Size of the goal region: region volume (position) times the product
        of the three orientation tolerances (orientation). A goal with only
        one part uses only that factor.
        """
        return self._volume

    def configure(self, pose: IKSamplingPose) -> bool:
        """
        Args:
            pose: Configured position and/or orientation constraint on one link

        Returns:
            False if both parts are missing or not enabled, the parts name
            different links, the group has no direct IK solver, or the link
            is not part of the group / not supported by the solver
        """
        self.clear()
        group = self._group_or_fail()
        if group is None:
            return False
        pc = pose.position_constraint
        oc = pose.orientation_constraint
        if pc is None and oc is None:
            logger.debug(f'{self.name}: no position or orientation constraint given')
            return False
        if (pc is not None and not pc.enabled) or (oc is not None and not oc.enabled):
            logger.debug(f'{self.name}: constraint is not configured')
            return False
        if pc is not None and oc is not None and pc.link_name != oc.link_name:
            logger.warning(
                f"{self.name}: position constraint on '{pc.link_name}' and orientation "
                f"constraint on '{oc.link_name}' must name the same link",
            )
            return False

        link = pose.link_name
        if group.solver_allocator is None:
            logger.debug(f"{self.name}: group '{self.group_name}' has no IK solver")
            return False
        if not group.has_link_model(link):
            logger.debug(f"{self.name}: link '{link}' is not part of group '{self.group_name}'")
            return False
        solver = group.get_solver()
        if not solver.supports_link(link):
            logger.debug(f"{self.name}: IK solver of '{self.group_name}' cannot solve for link '{link}'")
            return False

        volume = 1.0
        if pc is not None:
            volume *= pc.constraint_region_volume()
        if oc is not None:
            volume *= float(np.prod(oc.tolerances))
        if not (math.isfinite(volume) and volume > 0.0):
            logger.debug(f"{self.name}: degenerate sampling volume {volume} for link '{link}'")
            return False

        self.sampling_pose = pose
        self._solver = solver
        self._volume = volume
        logger.debug(
            f"{self.name}: link '{link}' in group '{self.group_name}' "
            f'(position={pc is not None}, orientation={oc is not None}, volume={volume:.3e})',
        )
        return self._mark_configured(group.variable_names)

    def _sample_target(self, rng: np.random.Generator, state: RobotState) -> IKTarget:
        pc = self.sampling_pose.position_constraint
        oc = self.sampling_pose.orientation_constraint
        return IKTarget(
            position=pc.sample_point(rng, state) if pc is not None else None,
            rotation=oc.sample_rotation(rng, state) if oc is not None else None,
            offset=tuple(pc.target_point_offset) if pc is not None else (0.0, 0.0, 0.0),
        )

    def _accepts(self, state: RobotState) -> bool:
        pc = self.sampling_pose.position_constraint
        oc = self.sampling_pose.orientation_constraint
        if pc is not None and not pc.decide(state).satisfied:
            return False
        return oc is None or oc.decide(state).satisfied

    def _sample(self, state: RobotState, reference_state: RobotState, max_attempts: int, rng: np.random.Generator) -> bool:
        group = self.group
        candidate = state.copy()
        candidate.set_group_positions(group, reference_state.get_group_positions(group))

        for attempt in range(max_attempts):
            if attempt > 0:
                candidate.set_to_random_values(rng, group)
            target = self._sample_target(rng, candidate)
            result = self._solver.solve(
                self.link_name,
                target,
                candidate,
                max_evaluations=self.config.ik_max_iterations,
            )
            candidate.set_group_positions(group, result.positions)
            if self._accepts(candidate):
                state.set_group_positions(group, result.positions)
                return True
            logger.debug(f'{self.name}: attempt {attempt + 1}/{max_attempts} rejected ({result.reason})')

        logger.debug(f"{self.name}: no IK solution for '{self.link_name}' after {max_attempts} attempts")
        return False
