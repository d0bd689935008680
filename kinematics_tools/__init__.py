"""
kinematics_tools - Kinematic model, state and IK collaborators for constraint sampling.

Key components:
  - RobotModel / JointModelGroup: joint tree, variables, groups and IK allocators
  - RobotState: caller-owned variable values with forward kinematics
  - PlanningScene: read-only snapshot (model + fixed frames + current state)
  - LeastSquaresIK: reference numerical IK solver

Example usage:
    from kinematics_tools import PlanningScene, RobotModel

    model = RobotModel.from_json_file('demo/robots/dual_arm.json')
    scene = PlanningScene(model)
    state = scene.get_current_state()
"""
from __future__ import annotations

from kinematics_tools.ik_solver import IKResult
from kinematics_tools.ik_solver import IKTarget
from kinematics_tools.ik_solver import KinematicsSolver
from kinematics_tools.ik_solver import least_squares_allocator
from kinematics_tools.ik_solver import LeastSquaresIK
from kinematics_tools.ik_solver import LeastSquaresIKConfig
from kinematics_tools.ik_solver import SOLVER_ALLOCATORS
from kinematics_tools.planning_scene import PlanningScene
from kinematics_tools.robot_model import JointModel
from kinematics_tools.robot_model import JointModelGroup
from kinematics_tools.robot_model import LinkModel
from kinematics_tools.robot_model import normalize_angle
from kinematics_tools.robot_model import RobotModel
from kinematics_tools.robot_state import RobotState
from kinematics_tools.transforms import Transforms

__all__ = [
    # Model
    'RobotModel',
    'JointModel',
    'LinkModel',
    'JointModelGroup',
    'normalize_angle',
    # State and scene
    'RobotState',
    'PlanningScene',
    'Transforms',
    # IK
    'KinematicsSolver',
    'IKTarget',
    'IKResult',
    'LeastSquaresIK',
    'LeastSquaresIKConfig',
    'least_squares_allocator',
    'SOLVER_ALLOCATORS',
]
