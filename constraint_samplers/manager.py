"""
manager.py - Choose and compose a sampler for a joint group and a set of constraints.

Selection order:
    1. Registered allocators, in registration order. The first whose
       can_service() is True decides the request outright.
    2. The default decomposition (select_default_sampler):
         - joint constraints covering every group variable -> joint sampler
         - group has an IK solver -> IK sampler for one link goal
           (plus the partial joint sampler, as a union)
         - group has IK-capable subgroups -> per-subgroup recursion, union
         - otherwise the partial joint sampler, or None

Selection never raises for bad constraints or unknown groups: constraints
that fail to configure are dropped, and "nothing fits" is returned as None.

Example:
    >>> manager = ConstraintSamplerManager()
    >>> sampler = manager.select_sampler(scene, 'left_arm', constraints)
    >>> if sampler is not None and sampler.sample(state):
    ...     print(state.get_group_positions(model.get_joint_model_group('left_arm')))
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from collections.abc import Sequence
from typing import ClassVar

from configs.constraint_models import ConstraintsSpec
from constraint_samplers.allocator import ConstraintSamplerAllocator
from constraint_samplers.base import ConstraintSampler
from constraint_samplers.ik_sampler import IKConstraintSampler
from constraint_samplers.ik_sampler import IKSamplingPose
from constraint_samplers.joint_sampler import JointConstraintSampler
from constraint_samplers.sampler_config import SamplerConfig
from constraint_samplers.union_sampler import UnionConstraintSampler
from kinematic_constraints.constraints import JointConstraint
from kinematic_constraints.constraints import OrientationConstraint
from kinematic_constraints.constraints import PositionConstraint
from kinematics_tools.planning_scene import PlanningScene

logger = logging.getLogger(__name__)

IKCandidatePolicy = Callable[[Sequence[IKConstraintSampler]], IKConstraintSampler]


# =============================================================================
# IK candidate policies
# =============================================================================

def min_volume_candidate(candidates: Sequence[IKConstraintSampler]) -> IKConstraintSampler:
    """Smallest sampling volume; the earliest candidate wins ties."""
    return min(candidates, key=lambda s: s.sampling_volume())


def first_candidate(candidates: Sequence[IKConstraintSampler]) -> IKConstraintSampler:
    """The candidate whose link was recorded first."""
    return candidates[0]


# Policies for choosing one IK goal when a single solver is offered several links
IK_CANDIDATE_POLICIES: dict[str, IKCandidatePolicy] = {
    'min_volume': min_volume_candidate,
    'first': first_candidate,
}


def _as_constraints_spec(constraints: ConstraintsSpec | dict) -> ConstraintsSpec:
    if isinstance(constraints, ConstraintsSpec):
        return constraints
    return ConstraintsSpec.model_validate(constraints)


# =============================================================================
# Manager
# =============================================================================

class ConstraintSamplerManager:
    """
    Allocator registry plus the default decomposition algorithm.

    Args:
        config: Settings handed to every sampler the manager builds
        ik_candidate_policy: Name in IK_CANDIDATE_POLICIES or a callable;
            defaults to config.ik_candidate_policy

    The sampler classes used by the default decomposition are class
    attributes so a subclass can swap in its own variants.
    """

    joint_sampler_cls: ClassVar[type[JointConstraintSampler]] = JointConstraintSampler
    ik_sampler_cls: ClassVar[type[IKConstraintSampler]] = IKConstraintSampler
    union_sampler_cls: ClassVar[type[UnionConstraintSampler]] = UnionConstraintSampler

    def __init__(
        self,
        config: SamplerConfig | None = None,
        ik_candidate_policy: str | IKCandidatePolicy | None = None,
    ):
        self.config = config or SamplerConfig()
        policy = ik_candidate_policy if ik_candidate_policy is not None else self.config.ik_candidate_policy
        if isinstance(policy, str):
            if policy not in IK_CANDIDATE_POLICIES:
                raise ValueError(f"Unknown IK candidate policy '{policy}'. Available: {list(IK_CANDIDATE_POLICIES)}")
            policy = IK_CANDIDATE_POLICIES[policy]
        self.ik_candidate_policy: IKCandidatePolicy = policy
        self._allocators: list[ConstraintSamplerAllocator] = []
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------

    def register_allocator(self, allocator: ConstraintSamplerAllocator) -> None:
        """Append an allocator; earlier registrations are consulted first."""
        if not isinstance(allocator, ConstraintSamplerAllocator):
            raise TypeError(f'Expected a ConstraintSamplerAllocator, got {type(allocator).__name__}')
        with self._lock:
            self._allocators.append(allocator)
        logger.debug(f'Registered sampler allocator {allocator.name} (position {len(self._allocators)})')

    @property
    def allocators(self) -> tuple[ConstraintSamplerAllocator, ...]:
        """Snapshot of the registered allocators in registration order."""
        with self._lock:
            return tuple(self._allocators)

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_sampler(
        self,
        scene: PlanningScene,
        group_name: str,
        constraints: ConstraintsSpec | dict,
    ) -> ConstraintSampler | None:
        """
        Pick a sampler for `group_name` under `constraints`.

        Args:
            scene: Scene providing the model, fixed transforms and state
            group_name: Joint group to sample
            constraints: ConstraintsSpec or a dict validated into one

        Returns:
            A configured sampler, or None when no sampler could be built
        """
        constraints = _as_constraints_spec(constraints)
        for allocator in self.allocators:
            if allocator.can_service(scene, group_name, constraints):
                logger.debug(f"Allocator {allocator.name} claimed group '{group_name}'")
                return allocator.alloc(scene, group_name, constraints)
        return self.select_default_sampler(scene, group_name, constraints)

    def select_default_sampler(
        self,
        scene: PlanningScene,
        group_name: str,
        constraints: ConstraintsSpec | dict,
    ) -> ConstraintSampler | None:
        """Run the default decomposition, ignoring registered allocators."""
        return self._select_default(scene, group_name, _as_constraints_spec(constraints), frozenset())

    def _select_default(
        self,
        scene: PlanningScene,
        group_name: str,
        constraints: ConstraintsSpec,
        visited: frozenset[str],
    ) -> ConstraintSampler | None:
        model = scene.robot_model
        group = model.get_joint_model_group(group_name)
        if group is None:
            logger.debug(f"No joint group '{group_name}' in robot '{model.name}'")
            return None
        if group_name in visited:
            logger.warning(f"Group '{group_name}' reached twice while decomposing subgroups; skipping")
            return None
        visited = visited | {group_name}
        logger.debug(f"Constructing a sampler for group '{group_name}' with constraints {constraints.summary()}")

        # Joint constraints
        joint_sampler = None
        if constraints.joint_constraints:
            covered = dict.fromkeys(group.variable_names, False)
            joint_constraints: list[JointConstraint] = []
            for spec in constraints.joint_constraints:
                jc = JointConstraint(model)
                if not jc.configure(spec, scene.transforms):
                    logger.debug(f"Dropping joint constraint on '{spec.joint_name}'")
                    continue
                if jc.joint_variable_name not in covered:
                    logger.debug(f"Ignoring joint constraint on '{jc.joint_variable_name}', not in group '{group_name}'")
                    continue
                covered[jc.joint_variable_name] = True
                joint_constraints.append(jc)

            if joint_constraints:
                sampler = self.joint_sampler_cls(scene, group_name, self.config)
                if sampler.configure(joint_constraints):
                    if all(covered.values()):
                        logger.debug(f"Joint constraints cover every variable of group '{group_name}'; using a joint sampler")
                        return sampler
                    logger.debug(
                        f"Partial joint sampler for group '{group_name}' kept while looking for other constraints",
                    )
                    joint_sampler = sampler

        direct_allocator, subgroup_allocators = group.get_solver_allocators()

        # Whole-group IK
        if direct_allocator is not None:
            ik_sampler = self._select_ik_sampler(scene, group_name, constraints)
            if ik_sampler is not None:
                if joint_sampler is None:
                    return ik_sampler
                union = self._make_union(scene, group_name, [joint_sampler, ik_sampler])
                if union is not None:
                    return union

        # Subgroup IK
        if subgroup_allocators:
            logger.debug(f"Group '{group_name}' has IK-capable subgroups {list(subgroup_allocators)}")
            samplers: list[ConstraintSampler] = [joint_sampler] if joint_sampler is not None else []
            produced = False
            claimed_position: set[int] = set()
            claimed_orientation: set[int] = set()
            for sub_name in subgroup_allocators:
                subgroup = model.get_joint_model_group(sub_name)
                sub_spec = ConstraintsSpec(name=f'{constraints.name}:{sub_name}' if constraints.name else sub_name)
                for i, pc in enumerate(constraints.position_constraints):
                    if i not in claimed_position and subgroup.has_link_model(pc.link_name):
                        claimed_position.add(i)
                        sub_spec.position_constraints.append(pc)
                for i, oc in enumerate(constraints.orientation_constraints):
                    if i not in claimed_orientation and subgroup.has_link_model(oc.link_name):
                        claimed_orientation.add(i)
                        sub_spec.orientation_constraints.append(oc)
                if sub_spec.is_empty():
                    continue

                logger.debug(f"Constructing a sampler for subgroup '{sub_name}' of '{group_name}'")
                sub_sampler = self._select_default(scene, sub_name, sub_spec, visited)
                if sub_sampler is not None:
                    samplers.append(sub_sampler)
                    produced = True
            if produced:
                union = self._make_union(scene, group_name, samplers)
                if union is not None:
                    return union

        if joint_sampler is not None:
            logger.debug(f"Using the partial joint sampler for group '{group_name}'")
            return joint_sampler
        logger.debug(f"No constraint sampler for group '{group_name}'")
        return None

    def _select_ik_sampler(
        self,
        scene: PlanningScene,
        group_name: str,
        constraints: ConstraintsSpec,
    ) -> IKConstraintSampler | None:
        """One IK sampler for the group, or None if no link goal configures."""
        model = scene.robot_model
        transforms = scene.transforms
        candidates: dict[str, IKConstraintSampler] = {}

        def offer(pose: IKSamplingPose) -> None:
            sampler = self.ik_sampler_cls(scene, group_name, self.config)
            if not sampler.configure(pose):
                return
            link = sampler.link_name
            current = candidates.get(link)
            if current is None or sampler.sampling_volume() < current.sampling_volume():
                candidates[link] = sampler

        for p_spec in constraints.position_constraints:
            for o_spec in constraints.orientation_constraints:
                if p_spec.link_name != o_spec.link_name:
                    continue
                pc = PositionConstraint(model)
                oc = OrientationConstraint(model)
                if pc.configure(p_spec, transforms) and oc.configure(o_spec, transforms):
                    offer(IKSamplingPose(pc, oc))

        full_pose_links = set(candidates)

        for p_spec in constraints.position_constraints:
            if p_spec.link_name in full_pose_links:
                continue
            pc = PositionConstraint(model)
            if pc.configure(p_spec, transforms):
                offer(IKSamplingPose(position_constraint=pc))

        for o_spec in constraints.orientation_constraints:
            if o_spec.link_name in full_pose_links:
                continue
            oc = OrientationConstraint(model)
            if oc.configure(o_spec, transforms):
                offer(IKSamplingPose(orientation_constraint=oc))

        if not candidates:
            return None
        if len(candidates) == 1:
            chosen = next(iter(candidates.values()))
        else:
            chosen = self.ik_candidate_policy(list(candidates.values()))
            logger.debug(
                f"IK goals on {list(candidates)} for group '{group_name}'; keeping '{chosen.link_name}' only",
            )
        logger.debug(
            f"IK sampler for group '{group_name}' on link '{chosen.link_name}' "
            f'(position={chosen.has_position}, orientation={chosen.has_orientation})',
        )
        return chosen

    def _make_union(
        self,
        scene: PlanningScene,
        group_name: str,
        samplers: list[ConstraintSampler],
    ) -> ConstraintSampler | None:
        union = self.union_sampler_cls(scene, group_name, samplers, self.config)
        if not union.configure():
            logger.warning(f"Could not compose {len(samplers)} samplers for group '{group_name}'; trying the next strategy")
            return None
        logger.debug(f"Sampler for group '{group_name}' is a union of {len(samplers)} samplers")
        return union
