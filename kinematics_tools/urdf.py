"""
urdf.py - Build a RobotDescription from a URDF file.

URDF carries joints and links but no groups, so groups (and fixed frames)
are passed in separately, the way an SRDF would add them.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from configs.robot_models import FixedFrameDescription
from configs.robot_models import GroupDescription
from configs.robot_models import JointDescription
from configs.robot_models import RobotDescription

logger = logging.getLogger(__name__)

_URDF_TYPES = {
    'fixed': 'fixed',
    'revolute': 'revolute',
    'continuous': 'continuous',
    'prismatic': 'prismatic',
    'planar': 'planar',
    'floating': 'floating',
}


def _parse_floats(s: str | None, n: int, default: float = 0.0) -> tuple[float, ...]:
    if not s:
        return tuple([default] * n)
    parts = s.replace(',', ' ').split()
    vals = []
    for i in range(n):
        try:
            vals.append(float(parts[i]) if i < len(parts) else default)
        except ValueError:
            vals.append(default)
    return tuple(vals)


def _find_root_link(root: ET.Element) -> str:
    links = [link.get('name', '') for link in root.findall('link')]
    children = {j.find('child').get('link', '') for j in root.findall('joint') if j.find('child') is not None}
    roots = [name for name in links if name not in children]
    if len(roots) != 1:
        raise ValueError(f'URDF must have exactly one root link, found {roots}')
    return roots[0]


def parse_urdf(
    urdf_text: str,
    groups: list[GroupDescription | dict] | None = None,
    fixed_frames: list[FixedFrameDescription | dict] | None = None,
) -> RobotDescription:
    """
    Parse URDF XML text into a RobotDescription.

    Joints without <limit> get the joint type's default bounds. Unsupported
    joint types raise ValueError.
    """
    root = ET.fromstring(urdf_text)
    joints: list[JointDescription] = []

    for j in root.findall('joint'):
        name = j.get('name', '')
        urdf_type = j.get('type', '')
        if urdf_type not in _URDF_TYPES:
            raise ValueError(f"Joint '{name}' has unsupported type '{urdf_type}'")

        parent_el = j.find('parent')
        child_el = j.find('child')
        if parent_el is None or child_el is None:
            logger.warning(f"Skipping joint '{name}': missing parent or child")
            continue

        axis_el = j.find('axis')
        axis = _parse_floats(axis_el.get('xyz'), 3) if axis_el is not None else (1.0, 0.0, 0.0)

        origin_el = j.find('origin')
        origin_xyz = (0.0, 0.0, 0.0)
        origin_rpy = (0.0, 0.0, 0.0)
        if origin_el is not None:
            origin_xyz = _parse_floats(origin_el.get('xyz'), 3)
            origin_rpy = _parse_floats(origin_el.get('rpy'), 3)

        bounds = None
        limit_el = j.find('limit')
        if limit_el is not None and urdf_type in ('revolute', 'prismatic'):
            lower, upper = _parse_floats(f"{limit_el.get('lower', '0')} {limit_el.get('upper', '0')}", 2)
            bounds = [(lower, upper)]

        joints.append(JointDescription(
            name=name,
            type=_URDF_TYPES[urdf_type],
            parent=parent_el.get('link', ''),
            child=child_el.get('link', ''),
            axis=axis,
            origin_xyz=origin_xyz,
            origin_rpy=origin_rpy,
            bounds=bounds,
        ))

    return RobotDescription(
        name=root.get('name', 'robot'),
        root_link=_find_root_link(root),
        joints=joints,
        groups=[g if isinstance(g, GroupDescription) else GroupDescription.model_validate(g) for g in groups or []],
        fixed_frames=[
            f if isinstance(f, FixedFrameDescription) else FixedFrameDescription.model_validate(f)
            for f in fixed_frames or []
        ],
    )


def load_urdf_description(
    path: str | Path,
    groups: list[GroupDescription | dict] | None = None,
    fixed_frames: list[FixedFrameDescription | dict] | None = None,
) -> RobotDescription:
    return parse_urdf(Path(path).read_text(encoding='utf-8'), groups=groups, fixed_frames=fixed_frames)
