"""
joint_sampler.py - Sample joint variables directly from joint constraint bands.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from constraint_samplers.base import ConstraintSampler
from kinematics_tools.robot_model import normalize_angle

if TYPE_CHECKING:
    from constraint_samplers.sampler_config import SamplerConfig
    from kinematic_constraints.constraints import JointConstraint
    from kinematics_tools.planning_scene import PlanningScene
    from kinematics_tools.robot_state import RobotState

logger = logging.getLogger(__name__)


class JointConstraintSampler(ConstraintSampler):
    """
    Draws each constrained variable uniformly inside its band.

    Several constraints on the same variable are intersected. Variables of
    the group without a constraint are never written.
    """

    name = 'JointConstraintSampler'

    def __init__(
        self,
        scene: PlanningScene,
        group_name: str,
        config: SamplerConfig | None = None,
    ):
        super().__init__(scene, group_name, config)
        self._lower = np.zeros(0)
        self._upper = np.zeros(0)
        self._continuous = np.zeros(0, dtype=bool)

    def clear(self) -> None:
        super().clear()
        self._lower = np.zeros(0)
        self._upper = np.zeros(0)
        self._continuous = np.zeros(0, dtype=bool)

    def configure(self, constraints: Sequence[JointConstraint]) -> bool:
        """
        Args:
            constraints: Configured joint constraints on variables of the group

        Returns:
            False if the list is empty, a constraint is not enabled, a
            variable lies outside the group, or intersected bands are empty
        """
        self.clear()
        group = self._group_or_fail()
        if group is None:
            return False
        if not constraints:
            logger.debug(f"{self.name}: no joint constraints for group '{self.group_name}'")
            return False

        bands: dict[str, tuple[float, float]] = {}
        for jc in constraints:
            if not jc.enabled:
                logger.debug(f'{self.name}: joint constraint is not configured')
                return False
            var = jc.joint_variable_name
            if not group.has_variable(var):
                logger.debug(f"{self.name}: variable '{var}' is not part of group '{self.group_name}'")
                return False
            lower, upper = jc.lower_bound, jc.upper_bound
            if var in bands:
                lower = max(lower, bands[var][0])
                upper = min(upper, bands[var][1])
                if lower > upper:
                    logger.debug(f"{self.name}: constraints on '{var}' do not overlap")
                    return False
            bands[var] = (lower, upper)

        model = self.robot_model
        variables = [v for v in group.variable_names if v in bands]
        self._lower = np.array([bands[v][0] for v in variables])
        self._upper = np.array([bands[v][1] for v in variables])
        self._continuous = np.array([model.is_continuous_variable(v) for v in variables], dtype=bool)
        logger.debug(
            f"{self.name}: configured {len(variables)} of {group.variable_count} variables "
            f"of group '{self.group_name}'",
        )
        return self._mark_configured(variables)

    @property
    def bounds(self) -> list[tuple[float, float]]:
        """Sampling band of each controlled variable."""
        return list(zip(self._lower.tolist(), self._upper.tolist()))

    def _sample(self, state: RobotState, reference_state: RobotState, max_attempts: int, rng: np.random.Generator) -> bool:
        values = rng.uniform(self._lower, self._upper)
        positions = {
            var: normalize_angle(value) if continuous else float(value)
            for var, value, continuous in zip(self._controlled_variables, values, self._continuous)
        }
        state.set_variable_positions(positions)
        return True
