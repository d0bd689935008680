"""Tests for constraint_samplers/joint_sampler.py - sampling from joint constraint bands."""
from __future__ import annotations

import math

import numpy as np
import pytest

from configs.constraint_models import JointConstraintSpec
from constraint_samplers import JointConstraintSampler
from constraint_samplers import SamplerConfig
from kinematic_constraints import JointConstraint


def joint_constraint(model, name, position, tolerance):
    jc = JointConstraint(model)
    assert jc.configure(JointConstraintSpec(
        joint_name=name,
        position=position,
        tolerance_above=tolerance,
        tolerance_below=tolerance,
    ))
    return jc


@pytest.fixture
def arm_constraints(robot_model):
    return [
        joint_constraint(robot_model, 'l_shoulder_yaw', 0.0, 0.2),
        joint_constraint(robot_model, 'l_shoulder_pitch', 0.5, 0.1),
        joint_constraint(robot_model, 'l_elbow', 0.8, 0.1),
    ]


class TestConfigure:
    def test_full_group(self, scene, arm_constraints):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert sampler.configure(arm_constraints)
        assert sampler.is_valid
        assert sampler.controlled_variables == ('l_shoulder_yaw', 'l_shoulder_pitch', 'l_elbow')

    def test_partial_group(self, scene, robot_model):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert sampler.configure([joint_constraint(robot_model, 'l_elbow', 0.8, 0.1)])
        assert sampler.controlled_variables == ('l_elbow',)

    def test_variable_outside_group(self, scene, robot_model):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert not sampler.configure([joint_constraint(robot_model, 'head_pan', 0.0, 0.1)])
        assert not sampler.is_valid

    def test_empty_and_disabled(self, scene, robot_model):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert not sampler.configure([])
        assert not sampler.configure([JointConstraint(robot_model)])

    def test_unknown_group(self, scene, arm_constraints):
        sampler = JointConstraintSampler(scene, 'tail')
        assert sampler.group is None
        assert not sampler.configure(arm_constraints)

    def test_constraints_on_same_variable_intersect(self, scene, robot_model):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert sampler.configure([
            joint_constraint(robot_model, 'l_elbow', 0.2, 0.2),
            joint_constraint(robot_model, 'l_elbow', 0.5, 0.2),
        ])
        assert sampler.bounds == [pytest.approx((0.3, 0.4))]
        assert not sampler.configure([
            joint_constraint(robot_model, 'l_elbow', 0.0, 0.1),
            joint_constraint(robot_model, 'l_elbow', 1.0, 0.1),
        ])

    def test_configure_is_repeatable(self, scene, arm_constraints):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert sampler.configure(arm_constraints)
        first = (sampler.controlled_variables, sampler.bounds)
        assert sampler.configure(arm_constraints)
        assert (sampler.controlled_variables, sampler.bounds) == first


class TestSample:
    def test_values_within_bands(self, scene, arm_constraints, rng):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert sampler.configure(arm_constraints)
        for _ in range(50):
            state = scene.get_current_state()
            assert sampler.sample(state, rng=rng)
            assert all(jc.decide(state).satisfied for jc in arm_constraints)

    def test_uncovered_variables_untouched(self, scene, robot_model, rng):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert sampler.configure([joint_constraint(robot_model, 'l_elbow', 0.8, 0.1)])
        state = scene.get_current_state()
        state.set_variable_positions({'l_shoulder_yaw': 1.234, 'r_elbow': -0.5})
        assert sampler.sample(state, rng=rng)
        assert state.get_variable_position('l_shoulder_yaw') == 1.234
        assert state.get_variable_position('r_elbow') == -0.5
        assert 0.7 <= state.get_variable_position('l_elbow') <= 0.9

    def test_continuous_band_across_pi(self, scene, robot_model, rng):
        jc = joint_constraint(robot_model, 'head_pan', math.pi - 0.05, 0.2)
        sampler = JointConstraintSampler(scene, 'head')
        assert sampler.configure([jc])
        for _ in range(50):
            state = scene.get_current_state()
            assert sampler.sample(state, rng=rng)
            value = state.get_variable_position('head_pan')
            assert -math.pi < value <= math.pi
            assert jc.decide(state).satisfied

    def test_unconfigured_sampler_raises(self, scene):
        sampler = JointConstraintSampler(scene, 'left_arm')
        with pytest.raises(RuntimeError, match='not configured'):
            sampler.sample(scene.get_current_state())

    def test_project(self, scene, arm_constraints):
        sampler = JointConstraintSampler(scene, 'left_arm')
        assert sampler.configure(arm_constraints)
        state = scene.get_current_state()
        assert sampler.project(state)
        assert all(jc.decide(state).satisfied for jc in arm_constraints)

    def test_seeded_samplers_agree(self, scene, arm_constraints):
        config = SamplerConfig(random_seed=3)
        values = []
        for _ in range(2):
            sampler = JointConstraintSampler(scene, 'left_arm', config)
            assert sampler.configure(arm_constraints)
            state = scene.get_current_state()
            sampler.sample(state)
            values.append(np.array(state.values))
        np.testing.assert_array_equal(values[0], values[1])
