"""
constraints.py - Configured kinematic constraint objects.

Each constraint follows a configure-then-use lifecycle:

    jc = JointConstraint(robot_model)
    if jc.configure(spec):              # False -> spec rejected, object stays disabled
        result = jc.decide(state)       # ConstraintEvaluationResult(satisfied, distance)

configure() never raises for bad input: unknown joints/links/frames,
degenerate regions, invalid quaternions and negative tolerances are logged and
reported as False. Once configured, a constraint is not modified by decide()
or by the sampling helpers.

Constraint types:
    - JointConstraint: one variable inside a tolerance band
    - PositionConstraint: a point on a link inside a union of primitives
    - OrientationConstraint: link orientation within per-axis (XYZ Euler) tolerances
"""
from __future__ import annotations

import logging
import math
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from typing import ClassVar
from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial.transform import Rotation

from configs.constraint_models import JointConstraintSpec
from configs.constraint_models import OrientationConstraintSpec
from configs.constraint_models import PositionConstraintSpec
from kinematics_tools.robot_model import normalize_angle
from kinematics_tools.transforms import invert_transform
from kinematics_tools.transforms import quaternion_norm
from kinematics_tools.transforms import transform_from_xyz_quat
from kinematics_tools.transforms import transform_point

if TYPE_CHECKING:
    from kinematics_tools.robot_model import RobotModel
    from kinematics_tools.robot_state import RobotState
    from kinematics_tools.transforms import Transforms

logger = logging.getLogger(__name__)

# Slack used when comparing against tolerance bands and region boundaries
DECISION_EPSILON = 1e-9
# Smallest orientation tolerance; smaller values are raised to this
MIN_ORIENTATION_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ConstraintEvaluationResult:
    satisfied: bool
    distance: float = 0.0


def _finite_non_negative(*values: float) -> bool:
    return all(math.isfinite(v) and v >= 0.0 for v in values)


class KinematicConstraint(ABC):
    """Base class: holds the model, the weight and the enabled flag."""

    constraint_type: ClassVar[str] = 'unknown'

    def __init__(self, robot_model: RobotModel):
        self.robot_model = robot_model
        self.weight = 1.0
        self._enabled = False

    @property
    def enabled(self) -> bool:
        """True once configure() succeeded."""
        return self._enabled

    def clear(self) -> None:
        self._enabled = False

    @abstractmethod
    def configure(self, spec, transforms: Transforms | None = None) -> bool:
        ...

    @abstractmethod
    def decide(self, state: RobotState) -> ConstraintEvaluationResult:
        ...


# =============================================================================
# Joint constraint
# =============================================================================

class JointConstraint(KinematicConstraint):
    """Bound one joint variable to [position - tolerance_below, position + tolerance_above]."""

    constraint_type = 'joint'

    def __init__(self, robot_model: RobotModel):
        super().__init__(robot_model)
        self.joint_variable_name = ''
        self.position = 0.0
        self.tolerance_above = 0.0
        self.tolerance_below = 0.0
        self.lower_bound = 0.0
        self.upper_bound = 0.0
        self.is_continuous = False

    def clear(self) -> None:
        super().clear()
        self.joint_variable_name = ''

    def _resolve_variable(self, name: str) -> str | None:
        model = self.robot_model
        if model.has_joint(name):
            joint = model.get_joint(name)
            if joint.variable_count == 1:
                return joint.variable_names[0]
            logger.debug(f"Joint '{name}' has {joint.variable_count} variables; name one as '{name}/<variable>'")
            return None
        if model.has_variable(name):
            return name
        logger.debug(f"Unknown joint or variable '{name}'")
        return None

    def configure(self, spec: JointConstraintSpec, transforms: Transforms | None = None) -> bool:
        self.clear()
        variable = self._resolve_variable(spec.joint_name)
        if variable is None:
            return False
        if not _finite_non_negative(spec.tolerance_above, spec.tolerance_below) or not math.isfinite(spec.position):
            logger.warning(
                f"Joint constraint on '{variable}' has invalid position/tolerances "
                f'({spec.position}, +{spec.tolerance_above}, -{spec.tolerance_below})',
            )
            return False

        model = self.robot_model
        position = spec.position
        self.is_continuous = model.is_continuous_variable(variable)
        if self.is_continuous:
            position = normalize_angle(position)
            lower = position - spec.tolerance_below
            upper = position + spec.tolerance_above
        else:
            var_lower, var_upper = model.get_variable_bounds(variable)
            lower = max(position - spec.tolerance_below, var_lower)
            upper = min(position + spec.tolerance_above, var_upper)
            if lower > upper:
                logger.warning(
                    f"Joint constraint band [{position - spec.tolerance_below:.4f}, "
                    f"{position + spec.tolerance_above:.4f}] on '{variable}' lies outside "
                    f'bounds [{var_lower:.4f}, {var_upper:.4f}]',
                )
                return False

        self.joint_variable_name = variable
        self.position = position
        self.tolerance_above = spec.tolerance_above
        self.tolerance_below = spec.tolerance_below
        self.lower_bound = lower
        self.upper_bound = upper
        self.weight = spec.weight
        self._enabled = True
        return True

    def decide(self, state: RobotState) -> ConstraintEvaluationResult:
        if not self._enabled:
            return ConstraintEvaluationResult(True, 0.0)
        current = state.get_variable_position(self.joint_variable_name)
        if self.is_continuous:
            dif = normalize_angle(current - self.position)
        else:
            dif = current - self.position
        satisfied = -self.tolerance_below - DECISION_EPSILON <= dif <= self.tolerance_above + DECISION_EPSILON
        return ConstraintEvaluationResult(satisfied, abs(dif) * self.weight)


# =============================================================================
# Position constraint
# =============================================================================

@dataclass(frozen=True)
class _RegionPrimitive:
    """One solid primitive and its pose in the constraint frame."""
    type: str
    dimensions: tuple[float, ...]
    pose: np.ndarray

    def volume(self) -> float:
        if self.type == 'box':
            x, y, z = self.dimensions
            return x * y * z
        if self.type == 'sphere':
            return 4.0 / 3.0 * math.pi * self.dimensions[0] ** 3
        height, radius = self.dimensions
        return math.pi * radius * radius * height

    def contains_local(self, p: np.ndarray) -> bool:
        eps = DECISION_EPSILON
        if self.type == 'box':
            return bool(np.all(np.abs(p) <= np.asarray(self.dimensions) / 2.0 + eps))
        if self.type == 'sphere':
            return float(np.linalg.norm(p)) <= self.dimensions[0] + eps
        height, radius = self.dimensions
        return abs(p[2]) <= height / 2.0 + eps and float(np.hypot(p[0], p[1])) <= radius + eps

    def sample_local(self, rng: np.random.Generator) -> np.ndarray:
        if self.type == 'box':
            half = np.asarray(self.dimensions) / 2.0
            return rng.uniform(-half, half)
        if self.type == 'sphere':
            direction = rng.normal(size=3)
            direction /= max(np.linalg.norm(direction), 1e-12)
            return direction * self.dimensions[0] * rng.uniform() ** (1.0 / 3.0)
        height, radius = self.dimensions
        r = radius * math.sqrt(rng.uniform())
        theta = rng.uniform(-math.pi, math.pi)
        return np.array([r * math.cos(theta), r * math.sin(theta), rng.uniform(-height / 2.0, height / 2.0)])


def _resolve_frame(
    robot_model: RobotModel,
    transforms: Transforms | None,
    frame_id: str,
) -> tuple[bool, np.ndarray | None, str] | None:
    """
    Resolve a constraint frame.

    Returns (mobile, fixed_transform, frame_name) or None when the frame is unknown.
    Fixed frames (including the model frame) return their transform; robot
    links are mobile and resolved per state.
    """
    frame = frame_id.lstrip('/') or robot_model.model_frame
    if transforms is not None and transforms.is_fixed_frame(frame):
        return False, transforms.get_transform(frame), frame
    if frame == robot_model.model_frame:
        return False, np.eye(4), frame
    if robot_model.has_link(frame):
        return True, None, frame
    return None


class PositionConstraint(KinematicConstraint):
    """Constrain a point on a link to lie inside one of several primitives."""

    constraint_type = 'position'

    def __init__(self, robot_model: RobotModel):
        super().__init__(robot_model)
        self.link_name = ''
        self.target_point_offset = np.zeros(3)
        self.frame_id = ''
        self.mobile_frame = False
        self._regions: list[_RegionPrimitive] = []
        self._volumes = np.zeros(0)

    def clear(self) -> None:
        super().clear()
        self.link_name = ''
        self._regions = []
        self._volumes = np.zeros(0)

    def configure(self, spec: PositionConstraintSpec, transforms: Transforms | None = None) -> bool:
        self.clear()
        model = self.robot_model
        if not model.has_link(spec.link_name):
            logger.debug(f"Position constraint on unknown link '{spec.link_name}'")
            return False
        resolved = _resolve_frame(model, transforms, spec.frame_id)
        if resolved is None:
            logger.warning(f"Position constraint on '{spec.link_name}' uses unknown frame '{spec.frame_id}'")
            return False
        mobile, frame_T, frame = resolved

        regions: list[_RegionPrimitive] = []
        region = spec.constraint_region
        for primitive, pose in zip(region.primitives, region.primitive_poses):
            dims = tuple(float(d) for d in primitive.dimensions)
            if not all(math.isfinite(d) and d > 0.0 for d in dims):
                logger.debug(f'Skipping {primitive.type} with degenerate dimensions {dims}')
                continue
            if quaternion_norm(pose.orientation) < 1e-9:
                logger.debug(f'Skipping {primitive.type} with a zero quaternion')
                continue
            T = transform_from_xyz_quat(pose.position, pose.orientation)
            if not mobile:
                T = frame_T @ T
            regions.append(_RegionPrimitive(primitive.type, dims, T))

        if not regions:
            logger.warning(f"Position constraint on '{spec.link_name}' has no usable region")
            return False

        self.link_name = spec.link_name
        self.target_point_offset = np.asarray(spec.target_point_offset, dtype=np.float64)
        self.frame_id = frame
        self.mobile_frame = mobile
        self._regions = regions
        self._volumes = np.array([r.volume() for r in regions])
        self.weight = spec.weight
        self._enabled = True
        return True

    def constraint_region_volume(self) -> float:
        return float(self._volumes.sum())

    def _region_pose(self, region: _RegionPrimitive, state: RobotState | None) -> np.ndarray:
        if not self.mobile_frame:
            return region.pose
        if state is None:
            raise ValueError(f"Position constraint on '{self.link_name}' has mobile frame '{self.frame_id}'; a state is required")
        return state.get_global_link_transform(self.frame_id) @ region.pose

    def decide(self, state: RobotState) -> ConstraintEvaluationResult:
        if not self._enabled:
            return ConstraintEvaluationResult(True, 0.0)
        point = transform_point(state.get_global_link_transform(self.link_name), self.target_point_offset)
        distance = math.inf
        for region in self._regions:
            pose = self._region_pose(region, state)
            local = transform_point(invert_transform(pose), point)
            if region.contains_local(local):
                return ConstraintEvaluationResult(True, 0.0)
            distance = min(distance, float(np.linalg.norm(point - pose[:3, 3])))
        return ConstraintEvaluationResult(False, distance * self.weight)

    def sample_point(self, rng: np.random.Generator, state: RobotState | None = None) -> np.ndarray:
        """Random point (model frame) inside the region, primitives weighted by volume."""
        idx = int(rng.choice(len(self._regions), p=self._volumes / self._volumes.sum()))
        region = self._regions[idx]
        return transform_point(self._region_pose(region, state), region.sample_local(rng))


# =============================================================================
# Orientation constraint
# =============================================================================

class OrientationConstraint(KinematicConstraint):
    """
    Constrain a link orientation around a desired quaternion.

    The deviation is the XYZ Euler decomposition of desired^-1 * actual; each
    angle must stay within its absolute tolerance.
    """

    constraint_type = 'orientation'

    def __init__(self, robot_model: RobotModel):
        super().__init__(robot_model)
        self.link_name = ''
        self.frame_id = ''
        self.mobile_frame = False
        self.tolerances = np.zeros(3)
        self._desired = Rotation.identity()

    def clear(self) -> None:
        super().clear()
        self.link_name = ''

    def configure(self, spec: OrientationConstraintSpec, transforms: Transforms | None = None) -> bool:
        self.clear()
        model = self.robot_model
        if not model.has_link(spec.link_name):
            logger.debug(f"Orientation constraint on unknown link '{spec.link_name}'")
            return False
        resolved = _resolve_frame(model, transforms, spec.frame_id)
        if resolved is None:
            logger.warning(f"Orientation constraint on '{spec.link_name}' uses unknown frame '{spec.frame_id}'")
            return False
        mobile, frame_T, frame = resolved

        if quaternion_norm(spec.orientation) < 1e-9 or not all(math.isfinite(q) for q in spec.orientation):
            logger.warning(f"Orientation constraint on '{spec.link_name}' has a degenerate quaternion {spec.orientation}")
            return False
        tolerances = (
            spec.absolute_x_axis_tolerance,
            spec.absolute_y_axis_tolerance,
            spec.absolute_z_axis_tolerance,
        )
        if not _finite_non_negative(*tolerances):
            logger.warning(f"Orientation constraint on '{spec.link_name}' has invalid tolerances {tolerances}")
            return False
        if min(tolerances) < MIN_ORIENTATION_TOLERANCE:
            logger.warning(
                f"Orientation tolerances {tolerances} on '{spec.link_name}' raised to at least {MIN_ORIENTATION_TOLERANCE}",
            )
            tolerances = tuple(max(t, MIN_ORIENTATION_TOLERANCE) for t in tolerances)

        desired = Rotation.from_quat(spec.orientation)
        if not mobile:
            desired = Rotation.from_matrix(frame_T[:3, :3]) * desired

        self.link_name = spec.link_name
        self.frame_id = frame
        self.mobile_frame = mobile
        self.tolerances = np.array(tolerances, dtype=np.float64)
        self._desired = desired
        self.weight = spec.weight
        self._enabled = True
        return True

    def desired_rotation(self, state: RobotState | None = None) -> Rotation:
        """Desired orientation in the model frame."""
        if not self.mobile_frame:
            return self._desired
        if state is None:
            raise ValueError(f"Orientation constraint on '{self.link_name}' has mobile frame '{self.frame_id}'; a state is required")
        frame_R = Rotation.from_matrix(state.get_global_link_transform(self.frame_id)[:3, :3])
        return frame_R * self._desired

    def decide(self, state: RobotState) -> ConstraintEvaluationResult:
        if not self._enabled:
            return ConstraintEvaluationResult(True, 0.0)
        actual = Rotation.from_matrix(state.get_global_link_transform(self.link_name)[:3, :3])
        angles = np.abs((self.desired_rotation(state).inv() * actual).as_euler('xyz'))
        satisfied = bool(np.all(angles <= self.tolerances + DECISION_EPSILON))
        return ConstraintEvaluationResult(satisfied, float(angles.sum()) * self.weight)

    def sample_rotation(self, rng: np.random.Generator, state: RobotState | None = None) -> Rotation:
        """Random orientation (model frame) within the tolerance box."""
        angles = rng.uniform(-self.tolerances, self.tolerances)
        return self.desired_rotation(state) * Rotation.from_euler('xyz', angles)
