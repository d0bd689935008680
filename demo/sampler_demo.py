"""
sampler_demo.py - Walk through sampler selection on the dual-arm robot.

Shows which sampler the manager picks for:
1. Joint constraints covering a whole group  -> joint sampler
2. A position + orientation goal on one tool  -> IK sampler
3. Position goals for both tools              -> union of per-arm IK samplers
4. Link-only constraints on a group without IK -> no sampler

Run from the project root:
    python -m demo.sampler_demo
"""
from __future__ import annotations

import logging

from configs.constraint_models import ConstraintsSpec
from configs.constraint_models import sphere_region
from configs.logging_config import get_logger
from configs.logging_config import log_separator
from configs.logging_config import setup_logging
from constraint_samplers import ConstraintSamplerManager
from constraint_samplers import SamplerConfig
from demo.helpers import link_position
from demo.helpers import load_scene
from demo.helpers import print_section
from demo.helpers import print_state
from kinematic_constraints import KinematicConstraintSet

# =============================================================================
# CONFIGURATION
# =============================================================================

ROBOT = 'dual_arm'
N_SAMPLES = 5
RANDOM_SEED = 7
LOG_LEVEL = logging.INFO  # DEBUG shows every selection decision

logger = get_logger(__name__)


def run_case(manager: ConstraintSamplerManager, scene, group_name: str, constraints: ConstraintsSpec) -> None:
    print_section(f"{constraints.name}: group '{group_name}'")
    sampler = manager.select_sampler(scene, group_name, constraints)
    if sampler is None:
        print('  No sampler for this group/constraint combination')
        return
    print(f'  Selected: {sampler!r}')

    check = KinematicConstraintSet(scene.robot_model)
    check.add(constraints, scene.transforms)

    successes = 0
    for i in range(N_SAMPLES):
        state = scene.get_current_state()
        ok = sampler.sample(state)
        verdict = check.decide(state) if ok else None
        successes += int(ok and verdict.satisfied)
        print(f'  sample {i}: ok={ok} satisfied={verdict.satisfied if verdict else "-"}')
        if ok and i == 0:
            print_state(state, sampler.controlled_variables)
    logger.info(f"{constraints.name}: {successes}/{N_SAMPLES} samples satisfied the constraints")


def main():
    setup_logging(level=LOG_LEVEL)
    log_separator(logger, f"Constraint sampler demo ({ROBOT})")
    scene = load_scene(ROBOT)
    manager = ConstraintSamplerManager(SamplerConfig(random_seed=RANDOM_SEED))

    state = scene.get_current_state()
    state.set_variable_positions({'l_shoulder_pitch': 0.4, 'l_elbow': 0.6})
    l_tool_goal = tuple(link_position(state, 'l_tool'))
    r_tool_goal = (0.45, -0.35, 0.95)

    run_case(manager, scene, 'left_arm', ConstraintsSpec(
        name='joint coverage',
        joint_constraints=[
            {'joint_name': 'l_shoulder_yaw', 'position': 0.0, 'tolerance_above': 0.2, 'tolerance_below': 0.2},
            {'joint_name': 'l_shoulder_pitch', 'position': 0.5, 'tolerance_above': 0.1, 'tolerance_below': 0.1},
            {'joint_name': 'l_elbow', 'position': 0.8, 'tolerance_above': 0.1, 'tolerance_below': 0.1},
        ],
    ))

    run_case(manager, scene, 'left_arm', ConstraintsSpec(
        name='single link goal',
        position_constraints=[{'link_name': 'l_tool', 'constraint_region': sphere_region(l_tool_goal, 0.03)}],
    ))

    run_case(manager, scene, 'both_arms', ConstraintsSpec(
        name='two tool goals',
        position_constraints=[
            {'link_name': 'l_tool', 'constraint_region': sphere_region(l_tool_goal, 0.03)},
            {'link_name': 'r_tool', 'constraint_region': sphere_region(r_tool_goal, 0.03)},
        ],
    ))

    run_case(manager, scene, 'head', ConstraintsSpec(
        name='head link only',
        position_constraints=[{'link_name': 'head', 'constraint_region': sphere_region((0.0, 0.0, 1.1), 0.1)}],
    ))


if __name__ == '__main__':
    main()
