"""
Pytest configuration - runs before test collection.

Adds project root to sys.path so local modules can be imported.
Configures logging for test output and provides the demo robot fixtures.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# Add project root to path for local module imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Configure logging for tests
# Default to INFO level - use pytest -s --log-cli-level=DEBUG for more verbose output
logging.basicConfig(
    level=logging.INFO,
    format='%(levelname)s - %(name)s - %(message)s',
    datefmt='%H:%M:%S',
)

# Set constraint_samplers to DEBUG to see every selection decision
logging.getLogger('constraint_samplers').setLevel(logging.INFO)
logging.getLogger('kinematic_constraints').setLevel(logging.INFO)
logging.getLogger('kinematics_tools').setLevel(logging.WARNING)  # Reduce noise from the IK solver


@pytest.fixture
def robot_model():
    """The dual-arm demo robot."""
    from demo.helpers import load_robot
    return load_robot('dual_arm')


@pytest.fixture
def scene(robot_model):
    from kinematics_tools.planning_scene import PlanningScene
    return PlanningScene(robot_model)


@pytest.fixture
def rng():
    import numpy as np
    return np.random.default_rng(1234)
