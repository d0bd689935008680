"""
constraint_models.py - Raw (unconfigured) constraint specifications.

A ConstraintsSpec is what a caller hands to the sampler manager: an unordered
bag of joint, position and orientation constraints. Only structure is
validated here; whether a constraint makes sense for a given robot (known
link, non-degenerate region, valid quaternion) is decided later by the
constraint objects in kinematic_constraints, which may reject it.
"""
from __future__ import annotations

from typing import Annotated
from typing import Literal

from pydantic import BaseModel
from pydantic import Field
from pydantic import model_validator

# Dimensions expected per primitive type
PRIMITIVE_DIMENSIONS: dict[str, int] = {
    'box': 3,       # size x, y, z
    'sphere': 1,    # radius
    'cylinder': 2,  # height, radius
}


class JointConstraintSpec(BaseModel):
    """Keep one joint variable within [position - tolerance_below, position + tolerance_above]."""

    joint_name: Annotated[str, Field(min_length=1, description="Joint name, or '<joint>/<variable>' for multi-DOF joints")]
    position: float
    tolerance_above: float = 0.0
    tolerance_below: float = 0.0
    weight: float = 1.0


class PoseSpec(BaseModel):
    """Position plus (x, y, z, w) quaternion."""

    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    orientation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)


class PrimitiveSpec(BaseModel):
    """Solid primitive used to describe a position constraint region."""

    type: Literal['box', 'sphere', 'cylinder']
    dimensions: list[float]

    @model_validator(mode='after')
    def validate_dimension_count(self):
        expected = PRIMITIVE_DIMENSIONS[self.type]
        if len(self.dimensions) != expected:
            raise ValueError(f'{self.type} needs {expected} dimensions, got {len(self.dimensions)}')
        return self


class BoundingVolumeSpec(BaseModel):
    """Union of primitives, each placed by a pose in the constraint frame."""

    primitives: list[PrimitiveSpec] = Field(default_factory=list)
    primitive_poses: list[PoseSpec] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_pose_count(self):
        if len(self.primitives) != len(self.primitive_poses):
            raise ValueError(
                f'{len(self.primitives)} primitives but {len(self.primitive_poses)} primitive poses',
            )
        return self


class PositionConstraintSpec(BaseModel):
    """Keep a point on a link (target_point_offset, link frame) inside a region."""

    link_name: Annotated[str, Field(min_length=1)]
    frame_id: str = ''
    target_point_offset: tuple[float, float, float] = (0.0, 0.0, 0.0)
    constraint_region: BoundingVolumeSpec = Field(default_factory=BoundingVolumeSpec)
    weight: float = 1.0


class OrientationConstraintSpec(BaseModel):
    """Keep a link orientation within per-axis tolerances of a target quaternion."""

    link_name: Annotated[str, Field(min_length=1)]
    frame_id: str = ''
    orientation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    absolute_x_axis_tolerance: float = 0.0
    absolute_y_axis_tolerance: float = 0.0
    absolute_z_axis_tolerance: float = 0.0
    weight: float = 1.0


class ConstraintsSpec(BaseModel):
    """A full set of constraints for one sampling request."""

    name: str = ''
    joint_constraints: list[JointConstraintSpec] = Field(default_factory=list)
    position_constraints: list[PositionConstraintSpec] = Field(default_factory=list)
    orientation_constraints: list[OrientationConstraintSpec] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.joint_constraints or self.position_constraints or self.orientation_constraints)

    def summary(self) -> str:
        """One-line description used in debug logs."""
        links = [c.link_name for c in self.position_constraints] + [c.link_name for c in self.orientation_constraints]
        return (
            f"'{self.name}': {len(self.joint_constraints)} joint, "
            f'{len(self.position_constraints)} position, '
            f'{len(self.orientation_constraints)} orientation constraints'
            + (f' on links {sorted(set(links))}' if links else '')
        )


def sphere_region(
    center: tuple[float, float, float],
    radius: float,
) -> BoundingVolumeSpec:
    """Convenience: a single-sphere constraint region centered at `center`."""
    return BoundingVolumeSpec(
        primitives=[PrimitiveSpec(type='sphere', dimensions=[radius])],
        primitive_poses=[PoseSpec(position=center)],
    )


def box_region(
    center: tuple[float, float, float],
    size: tuple[float, float, float],
) -> BoundingVolumeSpec:
    """Convenience: a single axis-aligned box constraint region."""
    return BoundingVolumeSpec(
        primitives=[PrimitiveSpec(type='box', dimensions=list(size))],
        primitive_poses=[PoseSpec(position=center)],
    )
