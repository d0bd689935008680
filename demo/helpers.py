"""
Shared utilities for demo scripts and tests.

This module provides common functions used across demos:
- Robot loading from demo/robots/
- Scene construction
- Formatted output helpers
"""
from __future__ import annotations

import numpy as np

from configs.paths import ROBOTS_DIR
from kinematics_tools.planning_scene import PlanningScene
from kinematics_tools.robot_model import RobotModel
from kinematics_tools.robot_state import RobotState

# =============================================================================
# ROBOT REGISTRY
# =============================================================================
# Available demo robots with their configurations.

ROBOTS = {
    'dual_arm': {
        'file': ROBOTS_DIR / 'dual_arm.json',
        'description': 'Torso with two 3-DOF arms (IK per arm), a continuous head joint and a table frame',
        'default_group': 'both_arms',
    },
}


def load_robot(name: str = 'dual_arm') -> RobotModel:
    """Load a demo robot by registry name."""
    if name not in ROBOTS:
        raise ValueError(f"Unknown demo robot '{name}'. Available: {list(ROBOTS)}")
    return RobotModel.from_json_file(ROBOTS[name]['file'])


def load_scene(name: str = 'dual_arm', positions: dict[str, float] | None = None) -> PlanningScene:
    """
    Build a planning scene for a demo robot.

    Args:
        name: Registry name of the robot
        positions: Optional variable values for the scene's current state

    Returns:
        PlanningScene with the robot's fixed frames
    """
    model = load_robot(name)
    state = RobotState(model)
    if positions:
        state.set_variable_positions(positions)
    return PlanningScene(model, current_state=state, name=name)


def link_position(state: RobotState, link_name: str) -> np.ndarray:
    """Position of a link origin in the model frame."""
    return state.get_global_link_transform(link_name)[:3, 3]


def print_section(title: str):
    """Print a section header."""
    print('\n' + '=' * 70)
    print(f'  {title}')
    print('=' * 70)


def print_state(state: RobotState, variables) -> None:
    """Print selected variable values, one per line."""
    for var in variables:
        print(f'    {var:<20} {state.get_variable_position(var):+.4f}')
