"""
union_sampler.py - Run several samplers one after another on the same state.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from constraint_samplers.base import ConstraintSampler

if TYPE_CHECKING:
    import numpy as np

    from constraint_samplers.sampler_config import SamplerConfig
    from kinematics_tools.planning_scene import PlanningScene
    from kinematics_tools.robot_state import RobotState

logger = logging.getLogger(__name__)


class UnionConstraintSampler(ConstraintSampler):
    """
    Ordered composition of configured samplers.

    Members run in list order; a variable controlled by two members ends up
    with the later member's value. sample() stops at the first member that
    fails and leaves whatever the earlier members already wrote.

    With config.allow_union_overlap=False, members that share a variable
    make configure() fail.
    """

    name = 'UnionConstraintSampler'

    def __init__(
        self,
        scene: PlanningScene,
        group_name: str,
        samplers: Sequence[ConstraintSampler],
        config: SamplerConfig | None = None,
    ):
        super().__init__(scene, group_name, config)
        self.samplers: tuple[ConstraintSampler, ...] = tuple(samplers)

    def configure(self) -> bool:
        self.clear()
        if self._group_or_fail() is None:
            return False
        if not self.samplers:
            logger.debug(f"{self.name}: no samplers to compose for group '{self.group_name}'")
            return False
        for sampler in self.samplers:
            if not sampler.is_valid:
                logger.debug(f'{self.name}: member {sampler!r} is not configured')
                return False

        owners: dict[str, str] = {}
        overlaps: list[str] = []
        for sampler in self.samplers:
            for var in sampler.controlled_variables:
                if var in owners:
                    overlaps.append(var)
                else:
                    owners[var] = sampler.group_name
        if overlaps:
            if not self.config.allow_union_overlap:
                logger.warning(f"{self.name}: members share variables {sorted(set(overlaps))} in group '{self.group_name}'")
                return False
            logger.debug(f'{self.name}: later members overwrite shared variables {sorted(set(overlaps))}')

        logger.debug(
            f"{self.name}: {len(self.samplers)} members for group '{self.group_name}': "
            f'{[s.name for s in self.samplers]}',
        )
        return self._mark_configured(owners)

    def _sample(self, state: RobotState, reference_state: RobotState, max_attempts: int, rng: np.random.Generator) -> bool:
        for i, sampler in enumerate(self.samplers):
            if not sampler.sample(state, reference_state, max_attempts, rng):
                logger.debug(f'{self.name}: member {i} ({sampler.name}) failed, aborting')
                return False
        return True
