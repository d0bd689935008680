"""
kinematic_constraints - Configured joint, position and orientation constraints.
"""
from kinematic_constraints.constraints import ConstraintEvaluationResult
from kinematic_constraints.constraints import JointConstraint
from kinematic_constraints.constraints import KinematicConstraint
from kinematic_constraints.constraints import OrientationConstraint
from kinematic_constraints.constraints import PositionConstraint
from kinematic_constraints.kinematic_constraint_set import KinematicConstraintSet

__all__ = [
    'ConstraintEvaluationResult',
    'JointConstraint',
    'KinematicConstraint',
    'OrientationConstraint',
    'PositionConstraint',
    'KinematicConstraintSet',
]
