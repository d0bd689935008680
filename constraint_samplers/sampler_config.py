"""
sampler_config.py - Configuration dataclass shared by the manager and samplers.

The manager hands its SamplerConfig to every sampler it builds; samplers
created directly accept config=None and fall back to the defaults.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class SamplerConfig:
    """
    Settings for sampler construction and sampling.

    Attributes:
        max_sample_attempts: IK goals tried per sample() call before giving up.
            This is the only retry loop in the samplers and is always finite.
        ik_max_iterations: Residual evaluations allowed per IK solve, passed to
            the solver as max_evaluations.
        random_seed: Seed for the default random generator; None draws fresh
            entropy for every sampler.
        allow_union_overlap: When False, a union whose members control a
            common variable fails to configure. When True, members are
            applied in order and later ones overwrite shared variables.
        ik_candidate_policy: Name of the policy that picks among IK
            candidates on different links (see IK_CANDIDATE_POLICIES).

    Example:
        >>> config = SamplerConfig(max_sample_attempts=5, random_seed=42)
        >>> manager = ConstraintSamplerManager(config=config)
    """
    max_sample_attempts: int = 20
    ik_max_iterations: int = 200
    random_seed: int | None = None
    allow_union_overlap: bool = True
    ik_candidate_policy: str = 'min_volume'

    def __post_init__(self):
        if self.max_sample_attempts < 1:
            raise ValueError(f'max_sample_attempts must be >= 1, got {self.max_sample_attempts}')
        if self.ik_max_iterations < 1:
            raise ValueError(f'ik_max_iterations must be >= 1, got {self.ik_max_iterations}')

    def make_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.random_seed)
