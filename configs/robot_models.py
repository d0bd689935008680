"""
robot_models.py - Validated raw robot descriptions.

These pydantic models are the serialized form of a kinematic model: joints,
links, fixed frames and joint groups. kinematics_tools.robot_model builds the
runtime RobotModel from a RobotDescription.

Example (JSON):
    {
        "name": "dual_arm",
        "root_link": "base_link",
        "joints": [
            {"name": "l_shoulder_yaw", "type": "revolute", "parent": "torso",
             "child": "l_upper_arm", "axis": [0, 0, 1],
             "origin_xyz": [0, 0.2, 0.5], "bounds": [[-2.9, 2.9]]}
        ],
        "groups": [
            {"name": "left_arm", "joints": ["l_shoulder_yaw"], "solver": "least_squares"}
        ]
    }
"""
from __future__ import annotations

from typing import Annotated
from typing import Literal

from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

JointType = Literal['fixed', 'revolute', 'continuous', 'prismatic', 'planar', 'floating']

# Number of variables per joint type
JOINT_TYPE_DOF: dict[str, int] = {
    'fixed': 0,
    'revolute': 1,
    'continuous': 1,
    'prismatic': 1,
    'planar': 3,
    'floating': 6,
}


class JointDescription(BaseModel):
    """A joint connecting a parent link to a child link."""

    name: Annotated[str, Field(min_length=1, description='Unique joint name')]
    type: JointType = 'revolute'
    parent: Annotated[str, Field(min_length=1, description='Parent link name')]
    child: Annotated[str, Field(min_length=1, description='Child link name')]
    axis: tuple[float, float, float] = (0.0, 0.0, 1.0)
    origin_xyz: tuple[float, float, float] = (0.0, 0.0, 0.0)
    origin_rpy: tuple[float, float, float] = (0.0, 0.0, 0.0)
    bounds: list[tuple[float, float]] | None = Field(
        default=None,
        description='(lower, upper) per variable; None uses the joint type defaults',
    )
    default_positions: list[float] | None = None

    model_config = {
        'validate_assignment': True,
        'extra': 'forbid',
    }

    @field_validator('axis')
    @classmethod
    def validate_axis(cls, v):
        if sum(c * c for c in v) < 1e-12:
            raise ValueError('axis must be a non-zero vector')
        return v

    @model_validator(mode='after')
    def validate_variable_counts(self):
        dof = JOINT_TYPE_DOF[self.type]
        if self.bounds is not None:
            if len(self.bounds) != dof:
                raise ValueError(f"joint '{self.name}' of type {self.type} needs {dof} bounds, got {len(self.bounds)}")
            for lower, upper in self.bounds:
                if lower > upper:
                    raise ValueError(f"joint '{self.name}' has lower bound {lower} above upper bound {upper}")
        if self.default_positions is not None and len(self.default_positions) != dof:
            raise ValueError(
                f"joint '{self.name}' of type {self.type} needs {dof} default positions, "
                f'got {len(self.default_positions)}',
            )
        return self


class FixedFrameDescription(BaseModel):
    """A frame rigidly attached to the model frame (e.g. a table or a map frame)."""

    name: Annotated[str, Field(min_length=1)]
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    orientation: tuple[float, float, float, float] = Field(
        default=(0.0, 0.0, 0.0, 1.0),
        description='Quaternion (x, y, z, w)',
    )


class GroupDescription(BaseModel):
    """A named joint group, optionally IK capable and composed of subgroups."""

    name: Annotated[str, Field(min_length=1)]
    joints: list[str] = Field(default_factory=list)
    subgroups: list[str] = Field(default_factory=list, description='Names of nested groups, in priority order')
    solver: str | None = Field(default=None, description="IK solver key, e.g. 'least_squares'")

    @model_validator(mode='after')
    def validate_not_empty(self):
        if not self.joints and not self.subgroups:
            raise ValueError(f"group '{self.name}' must list joints or subgroups")
        return self


class RobotDescription(BaseModel):
    """Complete serialized kinematic model."""

    name: str = 'robot'
    root_link: Annotated[str, Field(min_length=1)]
    joints: list[JointDescription] = Field(default_factory=list)
    groups: list[GroupDescription] = Field(default_factory=list)
    fixed_frames: list[FixedFrameDescription] = Field(default_factory=list)

    @field_validator('joints')
    @classmethod
    def validate_unique_joints(cls, v):
        names = [j.name for j in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f'duplicate joint names: {duplicates}')
        return v

    @field_validator('groups')
    @classmethod
    def validate_unique_groups(cls, v):
        names = [g.name for g in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f'duplicate group names: {duplicates}')
        return v
