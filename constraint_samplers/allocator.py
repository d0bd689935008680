"""
allocator.py - Interface for custom sampler allocators.

An allocator registered with ConstraintSamplerManager gets the first say on
every selection request. When can_service() returns True the manager returns
whatever alloc() produces (None included) and the default decomposition is
not run for that request.
"""
from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from configs.constraint_models import ConstraintsSpec
    from constraint_samplers.base import ConstraintSampler
    from kinematics_tools.planning_scene import PlanningScene


class ConstraintSamplerAllocator(ABC):
    """
    Example:
        >>> class HeadAllocator(ConstraintSamplerAllocator):
        ...     def can_service(self, scene, group_name, constraints):
        ...         return group_name == 'head'
        ...     def alloc(self, scene, group_name, constraints):
        ...         return build_head_sampler(scene, constraints)
        >>> manager.register_allocator(HeadAllocator())
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def can_service(self, scene: PlanningScene, group_name: str, constraints: ConstraintsSpec) -> bool:
        """True if this allocator takes responsibility for the request."""

    @abstractmethod
    def alloc(self, scene: PlanningScene, group_name: str, constraints: ConstraintsSpec) -> ConstraintSampler | None:
        """Build a configured sampler, or None if it cannot."""
