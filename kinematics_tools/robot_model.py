"""
robot_model.py - Kinematic model, joints, links and joint groups.

The RobotModel is built once from a RobotDescription and is read-only
afterwards. It owns:
  - the link tree (networkx.DiGraph, parent link -> child link, edge holds the joint)
  - the ordered list of variables (one per single-DOF joint, several per multi-DOF joint)
  - the joint groups, their subgroup hierarchy and their IK solver allocators

Usage:
    model = RobotModel.from_json_file(ROBOTS_DIR / 'dual_arm.json')
    group = model.get_joint_model_group('left_arm')
    direct_alloc, subgroup_allocs = group.get_solver_allocators()
    poses = model.forward_kinematics(model.default_values())
"""
from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import ClassVar
from typing import TYPE_CHECKING

import networkx as nx
import numpy as np
from scipy.spatial.transform import Rotation

from configs.robot_models import JOINT_TYPE_DOF
from configs.robot_models import JointDescription
from configs.robot_models import RobotDescription
from kinematics_tools.ik_solver import SOLVER_ALLOCATORS
from kinematics_tools.transforms import make_transform
from kinematics_tools.transforms import transform_from_xyz_rpy
from kinematics_tools.transforms import transform_from_xyz_quat
from kinematics_tools.transforms import Transforms

if TYPE_CHECKING:
    from kinematics_tools.ik_solver import KinematicsSolver

logger = logging.getLogger(__name__)

# Allocator: builds an IK solver for a group (called lazily, once per group)
SolverAllocatorFn = Callable[['JointModelGroup'], 'KinematicsSolver']

# Variable suffixes for multi-DOF joints
_MULTI_DOF_VARIABLES: dict[str, tuple[str, ...]] = {
    'planar': ('x', 'y', 'theta'),
    'floating': ('trans_x', 'trans_y', 'trans_z', 'rot_x', 'rot_y', 'rot_z'),
}

_INF = math.inf


def _default_bounds(joint_type: str) -> list[tuple[float, float]]:
    if joint_type == 'revolute':
        return [(-math.pi, math.pi)]
    if joint_type == 'prismatic':
        return [(-1.0, 1.0)]
    if joint_type == 'continuous':
        return [(-_INF, _INF)]
    if joint_type == 'planar':
        return [(-_INF, _INF), (-_INF, _INF), (-_INF, _INF)]
    if joint_type == 'floating':
        return [(-_INF, _INF)] * 3 + [(-math.pi, math.pi)] * 3
    return []


# =============================================================================
# Joints and links
# =============================================================================

@dataclass
class JointModel:
    """
    One joint of the model.

    Attributes:
        name: Joint name
        joint_type: fixed, revolute, continuous, prismatic, planar or floating
        parent_link: Link the joint is attached to
        child_link: Link moved by the joint
        axis: Unit axis (revolute/continuous/prismatic)
        origin: 4x4 transform parent link -> joint frame at zero position
        variable_names: One name per DOF (joint name for single-DOF joints)
        bounds: (lower, upper) per variable; continuous variables are unbounded
        default_positions: Value per variable used by RobotState.set_to_default_values
    """
    name: str
    joint_type: str
    parent_link: str
    child_link: str
    axis: np.ndarray
    origin: np.ndarray
    variable_names: tuple[str, ...]
    bounds: list[tuple[float, float]]
    default_positions: list[float]
    continuous_variables: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_description(cls, desc: JointDescription) -> JointModel:
        dof = JOINT_TYPE_DOF[desc.type]
        if dof == 1:
            variable_names: tuple[str, ...] = (desc.name,)
        elif dof > 1:
            variable_names = tuple(f'{desc.name}/{suffix}' for suffix in _MULTI_DOF_VARIABLES[desc.type])
        else:
            variable_names = ()

        bounds = [tuple(b) for b in desc.bounds] if desc.bounds is not None else _default_bounds(desc.type)

        continuous: set[str] = set()
        if desc.type == 'continuous':
            continuous.add(desc.name)
        elif desc.type == 'planar':
            continuous.add(f'{desc.name}/theta')

        if desc.default_positions is not None:
            defaults = list(desc.default_positions)
        else:
            # Zero when inside the bounds, otherwise the closest bound
            defaults = [min(max(0.0, lo), hi) for lo, hi in bounds]

        axis = np.asarray(desc.axis, dtype=np.float64)
        return cls(
            name=desc.name,
            joint_type=desc.type,
            parent_link=desc.parent,
            child_link=desc.child,
            axis=axis / np.linalg.norm(axis),
            origin=transform_from_xyz_rpy(desc.origin_xyz, desc.origin_rpy),
            variable_names=variable_names,
            bounds=bounds,
            default_positions=defaults,
            continuous_variables=frozenset(continuous),
        )

    @property
    def variable_count(self) -> int:
        return len(self.variable_names)

    def motion_transform(self, values: Sequence[float]) -> np.ndarray:
        """Transform contributed by the joint variables (applied after `origin`)."""
        if self.joint_type in ('revolute', 'continuous'):
            return make_transform(rotation=Rotation.from_rotvec(self.axis * values[0]))
        if self.joint_type == 'prismatic':
            return make_transform(self.axis * values[0])
        if self.joint_type == 'planar':
            return make_transform((values[0], values[1], 0.0), Rotation.from_rotvec([0.0, 0.0, values[2]]))
        if self.joint_type == 'floating':
            return make_transform(values[0:3], Rotation.from_rotvec(values[3:6]))
        return np.eye(4)


@dataclass
class LinkModel:
    """A rigid body of the model; `parent_joint` is None only for the root link."""
    name: str
    parent_joint: str | None = None
    child_joints: list[str] = field(default_factory=list)


# =============================================================================
# Joint groups
# =============================================================================

class JointModelGroup:
    """
    Named subset of the model's joints, the unit of configuration sampling.

    A group may carry one direct IK solver allocator and may name subgroups;
    subgroups that have their own allocator are reported by
    get_solver_allocators() in declaration order.
    """

    def __init__(
        self,
        name: str,
        robot_model: RobotModel,
        joint_names: Sequence[str],
        subgroup_names: Sequence[str] = (),
    ):
        self.name = name
        self.robot_model = robot_model
        self.joint_names: tuple[str, ...] = tuple(joint_names)
        self.subgroup_names: tuple[str, ...] = tuple(subgroup_names)
        self.solver_allocator: SolverAllocatorFn | None = None
        self._solver: KinematicsSolver | None = None

        joints = [robot_model.get_joint(j) for j in self.joint_names]
        self.variable_names: tuple[str, ...] = tuple(v for j in joints for v in j.variable_names)
        self.link_names: tuple[str, ...] = tuple(j.child_link for j in joints)
        self._link_set = frozenset(self.link_names)
        self._joint_set = frozenset(self.joint_names)
        self._variable_set = frozenset(self.variable_names)
        # Positions of the group variables inside the full model vector
        self.variable_indices = np.array(
            [robot_model.variable_index(v) for v in self.variable_names],
            dtype=np.intp,
        )

    def __repr__(self) -> str:
        return f'JointModelGroup({self.name!r}, variables={len(self.variable_names)}, subgroups={list(self.subgroup_names)})'

    @property
    def variable_count(self) -> int:
        return len(self.variable_names)

    def has_link_model(self, link_name: str) -> bool:
        return link_name in self._link_set

    def has_joint_model(self, joint_name: str) -> bool:
        return joint_name in self._joint_set

    def has_variable(self, variable_name: str) -> bool:
        return variable_name in self._variable_set

    def get_variable_bounds(self) -> list[tuple[float, float]]:
        return [self.robot_model.get_variable_bounds(v) for v in self.variable_names]

    def get_solver_allocators(self) -> tuple[SolverAllocatorFn | None, dict[str, SolverAllocatorFn]]:
        """
        Return (direct allocator or None, {subgroup name: allocator}).

        Only subgroups with an allocator appear in the mapping, in the order
        they were declared on this group.
        """
        subgroup_allocators: dict[str, SolverAllocatorFn] = {}
        for sub_name in self.subgroup_names:
            sub = self.robot_model.get_joint_model_group(sub_name)
            if sub is not None and sub.solver_allocator is not None:
                subgroup_allocators[sub_name] = sub.solver_allocator
        return self.solver_allocator, subgroup_allocators

    def set_solver_allocator(self, allocator: SolverAllocatorFn | None) -> None:
        """Attach (or remove, with None) the direct allocator and build its solver now."""
        self.solver_allocator = allocator
        self._solver = allocator(self) if allocator is not None else None

    def get_solver(self) -> KinematicsSolver | None:
        """IK solver for this group; None without an allocator."""
        return self._solver


# =============================================================================
# Robot model
# =============================================================================

class RobotModel:
    """
    Kinematic tree plus joint groups.

    Raises ValueError at construction when the description is not a single
    rooted tree, references unknown joints or groups, or has a cyclic
    subgroup hierarchy.
    """

    # Half-width of the box used to draw random values for unbounded variables
    UNBOUNDED_SAMPLE_EXTENT: ClassVar[float] = 1.0

    def __init__(
        self,
        description: RobotDescription,
        solver_allocators: dict[str, SolverAllocatorFn] | None = None,
    ):
        self.name = description.name
        self.root_link = description.root_link
        self.description = description

        self._joints: dict[str, JointModel] = {}
        self._links: dict[str, LinkModel] = {description.root_link: LinkModel(description.root_link)}
        self.link_graph = nx.DiGraph()
        self.link_graph.add_node(description.root_link)

        for joint_desc in description.joints:
            joint = JointModel.from_description(joint_desc)
            self._joints[joint.name] = joint
            self._links.setdefault(joint.parent_link, LinkModel(joint.parent_link)).child_joints.append(joint.name)
            child = self._links.setdefault(joint.child_link, LinkModel(joint.child_link))
            if child.parent_joint is not None:
                raise ValueError(
                    f"Link '{joint.child_link}' has two parent joints: '{child.parent_joint}' and '{joint.name}'",
                )
            child.parent_joint = joint.name
            self.link_graph.add_edge(joint.parent_link, joint.child_link, joint=joint.name)

        if self._links[self.root_link].parent_joint is not None:
            raise ValueError(f"Root link '{self.root_link}' cannot be the child of a joint")
        if not nx.is_arborescence(self.link_graph):
            raise ValueError(f"Robot '{self.name}' is not a single tree rooted at '{self.root_link}'")

        # Joints in parent-before-child order; variables follow the same order
        self._fk_order: list[JointModel] = [
            self._joints[self.link_graph.edges[parent, child]['joint']]
            for parent, child in nx.bfs_edges(self.link_graph, self.root_link)
        ]
        self.variable_names: tuple[str, ...] = tuple(v for j in self._fk_order for v in j.variable_names)
        self._variable_index = {v: i for i, v in enumerate(self.variable_names)}
        self._variable_bounds: dict[str, tuple[float, float]] = {}
        self._variable_joint: dict[str, JointModel] = {}
        self._continuous: set[str] = set()
        self._defaults = np.zeros(len(self.variable_names))
        for joint in self._fk_order:
            for i, var in enumerate(joint.variable_names):
                self._variable_bounds[var] = (float(joint.bounds[i][0]), float(joint.bounds[i][1]))
                self._variable_joint[var] = joint
                self._defaults[self._variable_index[var]] = joint.default_positions[i]
            self._continuous.update(joint.continuous_variables)

        self.transforms = Transforms(self.root_link)
        for frame in description.fixed_frames:
            self.transforms.set_transform(frame.name, transform_from_xyz_quat(frame.position, frame.orientation))

        self._groups: dict[str, JointModelGroup] = {}
        self._build_groups(description, solver_allocators or {})

        logger.debug(
            f"Built robot model '{self.name}': {len(self._joints)} joints, "
            f'{len(self.variable_names)} variables, groups={list(self._groups)}',
        )

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    @classmethod
    def from_description(
        cls,
        description: RobotDescription,
        solver_allocators: dict[str, SolverAllocatorFn] | None = None,
    ) -> RobotModel:
        return cls(description, solver_allocators)

    @classmethod
    def from_dict(
        cls,
        data: dict,
        solver_allocators: dict[str, SolverAllocatorFn] | None = None,
    ) -> RobotModel:
        return cls(RobotDescription.model_validate(data), solver_allocators)

    @classmethod
    def from_json_file(
        cls,
        path: str | Path,
        solver_allocators: dict[str, SolverAllocatorFn] | None = None,
    ) -> RobotModel:
        with open(path) as f:
            return cls.from_dict(json.load(f), solver_allocators)

    def _build_groups(
        self,
        description: RobotDescription,
        solver_allocators: dict[str, SolverAllocatorFn],
    ) -> None:
        group_descs = {g.name: g for g in description.groups}

        hierarchy = nx.DiGraph()
        hierarchy.add_nodes_from(group_descs)
        for g in description.groups:
            for sub in g.subgroups:
                if sub not in group_descs:
                    raise ValueError(f"Group '{g.name}' names unknown subgroup '{sub}'")
                hierarchy.add_edge(g.name, sub)
            for j in g.joints:
                if j not in self._joints:
                    raise ValueError(f"Group '{g.name}' names unknown joint '{j}'")
        if not nx.is_directed_acyclic_graph(hierarchy):
            cycle = nx.find_cycle(hierarchy)
            raise ValueError(f'Subgroup hierarchy contains a cycle: {cycle}')

        # Keep model order so variable order is stable across groups
        order = {j.name: i for i, j in enumerate(self._fk_order)}

        # Subgroups first so parents can inherit their joints
        joint_lists: dict[str, list[str]] = {}
        for name in reversed(list(nx.topological_sort(hierarchy))):
            g = group_descs[name]
            joints = list(g.joints)
            for sub in g.subgroups:
                joints.extend(j for j in joint_lists[sub] if j not in joints)
            joint_lists[name] = sorted(joints, key=lambda jn: order[jn])

        allocators = {**SOLVER_ALLOCATORS, **solver_allocators}
        for g in description.groups:
            group = JointModelGroup(g.name, self, joint_lists[g.name], g.subgroups)
            if g.solver is not None:
                if g.solver not in allocators:
                    raise ValueError(f"Group '{g.name}' uses unknown IK solver '{g.solver}'")
                group.set_solver_allocator(allocators[g.solver])
            self._groups[g.name] = group

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def model_frame(self) -> str:
        return self.root_link

    @property
    def variable_count(self) -> int:
        return len(self.variable_names)

    def joint_names(self) -> list[str]:
        return [j.name for j in self._fk_order]

    def link_names(self) -> list[str]:
        return list(self._links)

    def group_names(self) -> list[str]:
        return list(self._groups)

    def has_joint(self, name: str) -> bool:
        return name in self._joints

    def has_link(self, name: str) -> bool:
        return name in self._links

    def has_variable(self, name: str) -> bool:
        return name in self._variable_index

    def get_joint(self, name: str) -> JointModel:
        return self._joints[name]

    def get_link(self, name: str) -> LinkModel:
        return self._links[name]

    def variable_index(self, name: str) -> int:
        return self._variable_index[name]

    def get_variable_bounds(self, name: str) -> tuple[float, float]:
        return self._variable_bounds[name]

    def get_joint_of_variable(self, name: str) -> JointModel:
        return self._variable_joint[name]

    def is_continuous_variable(self, name: str) -> bool:
        return name in self._continuous

    def has_joint_model_group(self, name: str) -> bool:
        return name in self._groups

    def get_joint_model_group(self, name: str) -> JointModelGroup | None:
        """Resolve a group by name; None when the model has no such group."""
        return self._groups.get(name)

    def set_solver_allocator(self, group_name: str, allocator: SolverAllocatorFn | None) -> None:
        """
        Attach (or remove, with None) the direct IK allocator of a group.

        The solver is built here, so sampler selection only ever reads the model.
        """
        self._groups[group_name].set_solver_allocator(allocator)

    def default_values(self) -> np.ndarray:
        return self._defaults.copy()

    # -------------------------------------------------------------------------
    # Variable sampling and bounds
    # -------------------------------------------------------------------------

    def sampling_range(self, name: str) -> tuple[float, float]:
        """Finite range used to draw random values for a variable."""
        if name in self._continuous:
            return (-math.pi, math.pi)
        lower, upper = self._variable_bounds[name]
        extent = self.UNBOUNDED_SAMPLE_EXTENT
        return (max(lower, -extent) if math.isinf(lower) else lower,
                min(upper, extent) if math.isinf(upper) else upper)

    def sample_variable_values(
        self,
        rng: np.random.Generator,
        names: Sequence[str],
    ) -> np.ndarray:
        ranges = np.array([self.sampling_range(n) for n in names], dtype=np.float64).reshape(-1, 2)
        return rng.uniform(ranges[:, 0], ranges[:, 1])

    def enforce_variable_bounds(self, name: str, value: float) -> float:
        if name in self._continuous:
            return normalize_angle(value)
        lower, upper = self._variable_bounds[name]
        return float(min(max(value, lower), upper))

    # -------------------------------------------------------------------------
    # Kinematics
    # -------------------------------------------------------------------------

    def forward_kinematics(self, values: np.ndarray) -> dict[str, np.ndarray]:
        """Global (model frame) transform of every link for the full variable vector."""
        poses: dict[str, np.ndarray] = {self.root_link: np.eye(4)}
        offset = 0
        for joint in self._fk_order:
            n = joint.variable_count
            motion = joint.motion_transform(values[offset:offset + n])
            poses[joint.child_link] = poses[joint.parent_link] @ joint.origin @ motion
            offset += n
        return poses

    def chain_links(self, base_link: str, tip_link: str) -> list[str]:
        """Links from base_link to tip_link inclusive. Raises NetworkXNoPath when tip is not below base."""
        return nx.shortest_path(self.link_graph, base_link, tip_link)


def normalize_angle(angle: float) -> float:
    """Wrap an angle to (-pi, pi]."""
    wrapped = math.remainder(angle, 2.0 * math.pi)
    if wrapped == -math.pi:
        return math.pi
    return wrapped
