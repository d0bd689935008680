"""
constraint_samplers - Select and compose samplers that produce joint-group
configurations satisfying kinematic constraints.

Key components:
  - ConstraintSamplerManager: allocator registry and default decomposition
  - JointConstraintSampler: draws variables from joint constraint bands
  - IKConstraintSampler: draws link goals and solves them with the group's IK
  - UnionConstraintSampler: runs several samplers in order on one state
  - ConstraintSamplerAllocator: interface for custom allocators

Example usage:
    from constraint_samplers import ConstraintSamplerManager

    manager = ConstraintSamplerManager()
    sampler = manager.select_sampler(scene, 'both_arms', constraints)
    if sampler is not None:
        state = scene.get_current_state()
        sampler.sample(state)
"""
from __future__ import annotations

from constraint_samplers.allocator import ConstraintSamplerAllocator
from constraint_samplers.base import ConstraintSampler
from constraint_samplers.ik_sampler import IKConstraintSampler
from constraint_samplers.ik_sampler import IKSamplingPose
from constraint_samplers.joint_sampler import JointConstraintSampler
from constraint_samplers.manager import ConstraintSamplerManager
from constraint_samplers.manager import first_candidate
from constraint_samplers.manager import IK_CANDIDATE_POLICIES
from constraint_samplers.manager import min_volume_candidate
from constraint_samplers.sampler_config import SamplerConfig
from constraint_samplers.union_sampler import UnionConstraintSampler

__all__ = [
    # Samplers
    'ConstraintSampler',
    'JointConstraintSampler',
    'IKConstraintSampler',
    'IKSamplingPose',
    'UnionConstraintSampler',
    # Selection
    'ConstraintSamplerManager',
    'ConstraintSamplerAllocator',
    'IK_CANDIDATE_POLICIES',
    'min_volume_candidate',
    'first_candidate',
    # Config
    'SamplerConfig',
]
