"""
base.py - Common interface of all constraint samplers.

A sampler is built for one joint group of a scene, configured once, and then
asked repeatedly to write constraint-satisfying values into caller-owned
states:

    sampler = JointConstraintSampler(scene, 'left_arm')
    if sampler.configure(joint_constraints):
        ok = sampler.sample(state, reference_state=seed)

configure() returns False instead of raising; sample() returns False when no
values were found and may simply be called again. A configured sampler never
changes its own configuration while sampling, so one sampler can serve
several threads as long as each thread passes its own state and rng.
"""
from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from typing import ClassVar
from typing import TYPE_CHECKING

import numpy as np

from constraint_samplers.sampler_config import SamplerConfig

if TYPE_CHECKING:
    from kinematics_tools.planning_scene import PlanningScene
    from kinematics_tools.robot_model import JointModelGroup
    from kinematics_tools.robot_model import RobotModel
    from kinematics_tools.robot_state import RobotState

logger = logging.getLogger(__name__)


class ConstraintSampler(ABC):
    """
    Base class for samplers of one joint group.

    Args:
        scene: Read-only scene providing the model and fixed transforms
        group_name: Group whose variables the sampler assigns
        config: Sampling settings; None uses SamplerConfig defaults

    A group name the model does not know leaves `group` as None, and every
    configure() call then fails.
    """

    name: ClassVar[str] = 'ConstraintSampler'

    def __init__(
        self,
        scene: PlanningScene,
        group_name: str,
        config: SamplerConfig | None = None,
    ):
        self.scene = scene
        self.group_name = group_name
        self.config = config or SamplerConfig()
        self.group: JointModelGroup | None = scene.robot_model.get_joint_model_group(group_name)
        self._rng = self.config.make_rng()
        self._is_valid = False
        self._controlled_variables: tuple[str, ...] = ()

    def __repr__(self) -> str:
        state = 'configured' if self._is_valid else 'unconfigured'
        return f'{type(self).__name__}({self.group_name!r}, {state}, variables={list(self._controlled_variables)})'

    @property
    def robot_model(self) -> RobotModel:
        return self.scene.robot_model

    @property
    def is_valid(self) -> bool:
        """True once configure() succeeded."""
        return self._is_valid

    @property
    def controlled_variables(self) -> tuple[str, ...]:
        """Variables this sampler writes; never empty once configured."""
        return self._controlled_variables

    def clear(self) -> None:
        self._is_valid = False
        self._controlled_variables = ()

    def _group_or_fail(self) -> JointModelGroup | None:
        if self.group is None:
            logger.debug(f"{self.name}: unknown group '{self.group_name}'")
        return self.group

    def _mark_configured(self, variables) -> bool:
        self._controlled_variables = tuple(variables)
        self._is_valid = bool(self._controlled_variables)
        return self._is_valid

    # -------------------------------------------------------------------------
    # Sampling
    # -------------------------------------------------------------------------

    def sample(
        self,
        state: RobotState,
        reference_state: RobotState | None = None,
        max_attempts: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> bool:
        """
        Write values for the controlled variables into `state`.

        Args:
            state: Destination; only controlled variables are written
            reference_state: Seed/reference configuration; defaults to `state`
            max_attempts: Attempt budget for samplers that retry (IK);
                defaults to config.max_sample_attempts
            rng: Random generator; defaults to the sampler's own generator

        Returns:
            True if values were found and written

        Raises:
            RuntimeError: if the sampler was never configured successfully
        """
        if not self._is_valid:
            raise RuntimeError(f"{self.name} for group '{self.group_name}' is not configured")
        attempts = max_attempts if max_attempts is not None else self.config.max_sample_attempts
        return self._sample(
            state,
            reference_state if reference_state is not None else state,
            max(1, attempts),
            rng if rng is not None else self._rng,
        )

    def project(
        self,
        state: RobotState,
        max_attempts: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> bool:
        """Sample using `state` as its own reference, moving it onto the constraints."""
        return self.sample(state, state, max_attempts, rng)

    @abstractmethod
    def _sample(
        self,
        state: RobotState,
        reference_state: RobotState,
        max_attempts: int,
        rng: np.random.Generator,
    ) -> bool:
        ...
