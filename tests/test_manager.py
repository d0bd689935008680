"""Tests for constraint_samplers/manager.py - allocator registry and default decomposition."""
from __future__ import annotations

import json
import math

import pytest

from configs.constraint_models import ConstraintsSpec
from configs.constraint_models import sphere_region
from constraint_samplers import ConstraintSamplerAllocator
from constraint_samplers import ConstraintSamplerManager
from constraint_samplers import IKConstraintSampler
from constraint_samplers import JointConstraintSampler
from constraint_samplers import SamplerConfig
from constraint_samplers import UnionConstraintSampler
from demo.helpers import ROBOTS
from kinematic_constraints import KinematicConstraintSet
from kinematics_tools.planning_scene import PlanningScene
from kinematics_tools.robot_model import RobotModel

L_TOOL = (0.75, 0.25, 1.1)
R_TOOL = (0.75, -0.25, 1.1)
L_FOREARM = (0.4, 0.25, 1.1)


def full_arm_joints():
    return [
        {'joint_name': 'l_shoulder_yaw', 'position': 0.0, 'tolerance_above': 0.2, 'tolerance_below': 0.2},
        {'joint_name': 'l_shoulder_pitch', 'position': 0.3, 'tolerance_above': 0.1, 'tolerance_below': 0.1},
        {'joint_name': 'l_elbow', 'position': 0.4, 'tolerance_above': 0.1, 'tolerance_below': 0.1},
    ]


def dual_arm_with_groups(extra_groups):
    """Demo robot description with additional groups appended."""
    with open(ROBOTS['dual_arm']['file']) as f:
        data = json.load(f)
    data['groups'].extend(extra_groups)
    return data


def position(link, center, radius):
    return {'link_name': link, 'constraint_region': sphere_region(center, radius)}


def orientation(link, tolerance=0.3):
    return {
        'link_name': link,
        'orientation': (0.0, 0.0, 0.0, 1.0),
        'absolute_x_axis_tolerance': tolerance,
        'absolute_y_axis_tolerance': tolerance,
        'absolute_z_axis_tolerance': tolerance,
    }


@pytest.fixture
def counting_manager():
    """Manager whose sampler classes record every instance they construct."""
    created = {'joint': [], 'ik': [], 'union': []}

    class CountingJointSampler(JointConstraintSampler):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            created['joint'].append(self)

    class CountingIKSampler(IKConstraintSampler):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            created['ik'].append(self)

    class CountingUnionSampler(UnionConstraintSampler):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            created['union'].append(self)

    class CountingManager(ConstraintSamplerManager):
        joint_sampler_cls = CountingJointSampler
        ik_sampler_cls = CountingIKSampler
        union_sampler_cls = CountingUnionSampler

    manager = CountingManager(SamplerConfig(random_seed=11))
    manager.created = created
    return manager


class StubAllocator(ConstraintSamplerAllocator):
    def __init__(self, claims, sampler=None):
        self.claims = claims
        self.sampler = sampler
        self.can_service_calls = 0
        self.alloc_calls = 0

    def can_service(self, scene, group_name, constraints):
        self.can_service_calls += 1
        return self.claims

    def alloc(self, scene, group_name, constraints):
        self.alloc_calls += 1
        return self.sampler


class TestJointCoverage:
    def test_full_coverage_wins_over_link_constraints(self, scene, counting_manager):
        constraints = ConstraintsSpec(
            joint_constraints=full_arm_joints(),
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
            orientation_constraints=[orientation('l_tool')],
        )
        sampler = counting_manager.select_default_sampler(scene, 'left_arm', constraints)
        assert isinstance(sampler, JointConstraintSampler)
        assert counting_manager.created['ik'] == []
        assert counting_manager.created['union'] == []

    def test_joint_constraints_outside_group_ignored(self, scene, counting_manager):
        constraints = ConstraintsSpec(joint_constraints=[
            {'joint_name': 'head_pan', 'position': 0.0, 'tolerance_above': 0.1, 'tolerance_below': 0.1},
        ])
        assert counting_manager.select_default_sampler(scene, 'left_arm', constraints) is None
        assert counting_manager.created['joint'] == []

    def test_partial_coverage_falls_back_to_joint_sampler(self, scene, counting_manager):
        constraints = ConstraintsSpec(joint_constraints=[full_arm_joints()[2]])
        sampler = counting_manager.select_default_sampler(scene, 'both_arms', constraints)
        assert isinstance(sampler, JointConstraintSampler)
        assert sampler.controlled_variables == ('l_elbow',)

    def test_failing_joint_constraints_dropped(self, scene, counting_manager):
        constraints = ConstraintsSpec(joint_constraints=[
            *full_arm_joints(),
            {'joint_name': 'no_such_joint', 'position': 0.0},
        ])
        assert isinstance(counting_manager.select_default_sampler(scene, 'left_arm', constraints), JointConstraintSampler)


class TestWholeGroupIK:
    def test_single_full_pose_link(self, scene, counting_manager):
        constraints = ConstraintsSpec(
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
            orientation_constraints=[orientation('l_tool')],
        )
        sampler = counting_manager.select_default_sampler(scene, 'left_arm', constraints)
        assert isinstance(sampler, IKConstraintSampler)
        assert sampler.link_name == 'l_tool'
        assert sampler.has_position and sampler.has_orientation
        volume = sampler.sampling_volume()
        assert math.isfinite(volume) and volume > 0.0

    @pytest.mark.parametrize('order', ['small_first', 'large_first'])
    def test_smallest_volume_link_kept(self, scene, counting_manager, order):
        goals = [position('l_tool', L_TOOL, 0.02), position('l_forearm', L_FOREARM, 0.05)]
        if order == 'large_first':
            goals.reverse()
        sampler = counting_manager.select_default_sampler(scene, 'left_arm', ConstraintsSpec(position_constraints=goals))
        assert isinstance(sampler, IKConstraintSampler)
        assert sampler.link_name == 'l_tool'
        links = [s.link_name for s in counting_manager.created['ik']]
        assert sorted(links) == ['l_forearm', 'l_tool']

    def test_equal_volumes_keep_first_link(self, scene, counting_manager):
        goals = [position('l_forearm', L_FOREARM, 0.05), position('l_tool', L_TOOL, 0.05)]
        sampler = counting_manager.select_default_sampler(scene, 'left_arm', ConstraintsSpec(position_constraints=goals))
        assert sampler.link_name == 'l_forearm'

    def test_smaller_goal_on_same_link_replaces(self, scene, counting_manager):
        goals = [position('l_tool', L_TOOL, 0.05), position('l_tool', L_TOOL, 0.01)]
        sampler = counting_manager.select_default_sampler(scene, 'left_arm', ConstraintsSpec(position_constraints=goals))
        assert sampler.sampling_volume() == pytest.approx(4.0 / 3.0 * math.pi * 0.01 ** 3)

    def test_full_pose_link_skips_single_goals(self, scene, counting_manager):
        constraints = ConstraintsSpec(
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
            orientation_constraints=[orientation('l_tool'), orientation('l_tool', tolerance=0.01)],
        )
        sampler = counting_manager.select_default_sampler(scene, 'left_arm', constraints)
        assert sampler.has_position and sampler.has_orientation
        assert sampler.sampling_volume() == pytest.approx(4.0 / 3.0 * math.pi * 0.05 ** 3 * 0.01 ** 3)
        assert all(s.has_position and s.has_orientation for s in counting_manager.created['ik'])

    def test_first_candidate_policy(self, scene):
        manager = ConstraintSamplerManager(ik_candidate_policy='first')
        goals = [position('l_forearm', L_FOREARM, 0.05), position('l_tool', L_TOOL, 0.01)]
        sampler = manager.select_default_sampler(scene, 'left_arm', ConstraintsSpec(position_constraints=goals))
        assert sampler.link_name == 'l_forearm'

    def test_callable_policy(self, scene):
        manager = ConstraintSamplerManager(ik_candidate_policy=lambda candidates: candidates[-1])
        goals = [position('l_forearm', L_FOREARM, 0.01), position('l_tool', L_TOOL, 0.05)]
        sampler = manager.select_default_sampler(scene, 'left_arm', ConstraintsSpec(position_constraints=goals))
        assert sampler.link_name == 'l_tool'

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match='Unknown IK candidate policy'):
            ConstraintSamplerManager(ik_candidate_policy='random')

    def test_partial_joints_combined_with_ik(self, scene, counting_manager):
        constraints = ConstraintsSpec(
            joint_constraints=[full_arm_joints()[0]],
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
        )
        sampler = counting_manager.select_default_sampler(scene, 'left_arm', constraints)
        assert isinstance(sampler, UnionConstraintSampler)
        assert [type(s).__mro__[1] for s in sampler.samplers] == [JointConstraintSampler, IKConstraintSampler]

    def test_strict_mode_falls_back_to_partial_joint_sampler(self, scene):
        manager = ConstraintSamplerManager(SamplerConfig(allow_union_overlap=False))
        constraints = ConstraintsSpec(
            joint_constraints=[full_arm_joints()[0]],
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
        )
        sampler = manager.select_default_sampler(scene, 'left_arm', constraints)
        assert isinstance(sampler, JointConstraintSampler)
        assert sampler.controlled_variables == ('l_shoulder_yaw',)

    def test_bad_link_constraints_dropped(self, scene, counting_manager):
        constraints = ConstraintsSpec(position_constraints=[
            position('gripper', L_TOOL, 0.05),
            position('l_tool', L_TOOL, 0.0),
            position('l_tool', L_TOOL, 0.05),
        ])
        sampler = counting_manager.select_default_sampler(scene, 'left_arm', constraints)
        assert isinstance(sampler, IKConstraintSampler)
        assert sampler.link_name == 'l_tool'


class TestSubgroupDecomposition:
    def test_one_sampler_per_subgroup(self, scene, counting_manager):
        constraints = ConstraintsSpec(position_constraints=[
            position('r_tool', R_TOOL, 0.05),
            position('l_tool', L_TOOL, 0.05),
        ])
        sampler = counting_manager.select_default_sampler(scene, 'both_arms', constraints)
        assert isinstance(sampler, UnionConstraintSampler)
        assert len(sampler.samplers) == 2
        left, right = sampler.samplers
        assert (left.group_name, left.link_name) == ('left_arm', 'l_tool')
        assert (right.group_name, right.link_name) == ('right_arm', 'r_tool')
        assert len(counting_manager.created['ik']) == 2

    def test_constraint_outside_subgroups_dropped(self, scene, counting_manager):
        constraints = ConstraintsSpec(position_constraints=[
            position('l_tool', L_TOOL, 0.05),
            position('head', (0.0, 0.0, 1.1), 0.05),
        ])
        sampler = counting_manager.select_default_sampler(scene, 'both_arms', constraints)
        assert isinstance(sampler, UnionConstraintSampler)
        assert [s.group_name for s in sampler.samplers] == ['left_arm']

    def test_joint_fallback_first_in_union(self, scene, counting_manager):
        constraints = ConstraintsSpec(
            joint_constraints=[{'joint_name': 'r_elbow', 'position': 0.5, 'tolerance_above': 0.1, 'tolerance_below': 0.1}],
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
        )
        sampler = counting_manager.select_default_sampler(scene, 'both_arms', constraints)
        assert isinstance(sampler, UnionConstraintSampler)
        first, second = sampler.samplers
        assert isinstance(first, JointConstraintSampler) and first.group_name == 'both_arms'
        assert isinstance(second, IKConstraintSampler) and second.group_name == 'left_arm'

    def test_strict_mode_subgroup_overlap_falls_back(self, scene):
        manager = ConstraintSamplerManager(SamplerConfig(allow_union_overlap=False))
        constraints = ConstraintsSpec(
            joint_constraints=[{'joint_name': 'l_elbow', 'position': 0.5, 'tolerance_above': 0.1, 'tolerance_below': 0.1}],
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
        )
        sampler = manager.select_default_sampler(scene, 'both_arms', constraints)
        assert isinstance(sampler, JointConstraintSampler)
        assert sampler.group_name == 'both_arms'
        assert sampler.controlled_variables == ('l_elbow',)

    @pytest.mark.parametrize('subgroups, owner', [
        (['left_arm', 'left_elbow_only'], 'left_arm'),
        (['left_elbow_only', 'left_arm'], 'left_elbow_only'),
    ])
    def test_shared_link_goes_to_first_declared_subgroup(self, counting_manager, subgroups, owner):
        scene = PlanningScene(RobotModel.from_dict(dual_arm_with_groups([
            {'name': 'left_elbow_only', 'joints': ['l_elbow', 'l_tool_joint'], 'solver': 'least_squares'},
            {'name': 'left_pair', 'subgroups': subgroups},
        ])))
        constraints = ConstraintsSpec(
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
            orientation_constraints=[orientation('l_tool')],
        )
        sampler = counting_manager.select_default_sampler(scene, 'left_pair', constraints)
        assert isinstance(sampler, UnionConstraintSampler)
        assert [s.group_name for s in sampler.samplers] == [owner]
        assert sampler.samplers[0].has_position and sampler.samplers[0].has_orientation
        assert [s.group_name for s in counting_manager.created['ik']] == [owner]

    def test_no_subgroup_sampler_falls_back(self, scene, counting_manager):
        constraints = ConstraintsSpec(
            joint_constraints=[{'joint_name': 'r_elbow', 'position': 0.5, 'tolerance_above': 0.1, 'tolerance_below': 0.1}],
            position_constraints=[position('l_tool', L_TOOL, 0.0)],
        )
        sampler = counting_manager.select_default_sampler(scene, 'both_arms', constraints)
        assert isinstance(sampler, JointConstraintSampler)

    def test_union_samples_both_arms(self, scene, counting_manager):
        constraints = ConstraintsSpec(position_constraints=[
            position('l_tool', (0.5, 0.3, 1.0), 0.03),
            position('r_tool', (0.45, -0.35, 0.95), 0.03),
        ])
        sampler = counting_manager.select_sampler(scene, 'both_arms', constraints)
        check = KinematicConstraintSet(scene.robot_model)
        assert check.add(constraints, scene.transforms)

        successes = 0
        for _ in range(3):
            state = scene.get_current_state()
            if sampler.sample(state):
                successes += 1
                assert check.decide(state).satisfied
        assert successes >= 1

    def test_cyclic_hierarchy_does_not_recurse_forever(self, scene, monkeypatch):
        both = scene.robot_model.get_joint_model_group('both_arms')
        left = scene.robot_model.get_joint_model_group('left_arm')
        monkeypatch.setattr(both, 'get_solver_allocators', lambda: (None, {'both_arms': left.solver_allocator}))
        constraints = ConstraintsSpec(position_constraints=[position('l_tool', L_TOOL, 0.05)])
        assert ConstraintSamplerManager().select_default_sampler(scene, 'both_arms', constraints) is None


class TestExhaustion:
    def test_group_without_ik_or_subgroups(self, scene, counting_manager):
        constraints = ConstraintsSpec(
            position_constraints=[position('head', (0.0, 0.0, 1.1), 0.05)],
            orientation_constraints=[orientation('head')],
        )
        assert counting_manager.select_default_sampler(scene, 'head', constraints) is None

    def test_unknown_group(self, scene, counting_manager):
        constraints = ConstraintsSpec(joint_constraints=full_arm_joints())
        assert counting_manager.select_sampler(scene, 'tail', constraints) is None

    def test_empty_constraints(self, scene, counting_manager):
        assert counting_manager.select_sampler(scene, 'both_arms', ConstraintsSpec()) is None


class TestDeterministicSelection:
    def test_repeated_selection_matches(self, scene):
        manager = ConstraintSamplerManager()
        constraints = ConstraintsSpec(
            position_constraints=[position('l_tool', L_TOOL, 0.05)],
            orientation_constraints=[orientation('l_tool')],
        )
        first = manager.select_sampler(scene, 'left_arm', constraints)
        second = manager.select_sampler(scene, 'left_arm', constraints)
        assert first is not second
        assert first.controlled_variables == second.controlled_variables
        assert first.sampling_volume() == second.sampling_volume()

    def test_dict_constraints_accepted(self, scene):
        sampler = ConstraintSamplerManager().select_sampler(scene, 'left_arm', {'joint_constraints': full_arm_joints()})
        assert isinstance(sampler, JointConstraintSampler)


class TestAllocatorRegistry:
    def test_claiming_allocator_short_circuits(self, scene, counting_manager, monkeypatch):
        default_calls = []
        monkeypatch.setattr(counting_manager, 'select_default_sampler', lambda *args: default_calls.append(args))
        claiming = StubAllocator(claims=True, sampler=None)
        later = StubAllocator(claims=True)
        counting_manager.register_allocator(claiming)
        counting_manager.register_allocator(later)

        constraints = ConstraintsSpec(joint_constraints=full_arm_joints())
        assert counting_manager.select_sampler(scene, 'left_arm', constraints) is None
        assert (claiming.can_service_calls, claiming.alloc_calls) == (1, 1)
        assert later.can_service_calls == 0
        assert default_calls == []

    def test_declining_allocators_fall_through(self, scene, counting_manager):
        declining = StubAllocator(claims=False)
        counting_manager.register_allocator(declining)
        sampler = counting_manager.select_sampler(scene, 'left_arm', {'joint_constraints': full_arm_joints()})
        assert isinstance(sampler, JointConstraintSampler)
        assert (declining.can_service_calls, declining.alloc_calls) == (1, 0)

    def test_allocated_sampler_returned(self, scene):
        manager = ConstraintSamplerManager()
        custom = JointConstraintSampler(scene, 'head')
        manager.register_allocator(StubAllocator(claims=True, sampler=custom))
        assert manager.select_sampler(scene, 'head', ConstraintsSpec()) is custom

    def test_registration(self):
        manager = ConstraintSamplerManager()
        first, second = StubAllocator(False), StubAllocator(False)
        manager.register_allocator(first)
        manager.register_allocator(second)
        snapshot = manager.allocators
        assert snapshot == (first, second)
        manager.register_allocator(StubAllocator(False))
        assert len(snapshot) == 2
        with pytest.raises(TypeError):
            manager.register_allocator(object())
