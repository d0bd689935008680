"""
transforms.py - Homogeneous transform helpers and the fixed-frame registry.

Poses are 4x4 numpy arrays expressed in the model (root link) frame.
Rotations go through scipy.spatial.transform.Rotation so that quaternion
conventions (x, y, z, w) stay consistent with the constraint messages.
"""
from __future__ import annotations

import logging

import numpy as np
from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)


# =============================================================================
# Pose helpers
# =============================================================================

def make_transform(
    position=(0.0, 0.0, 0.0),
    rotation: Rotation | None = None,
) -> np.ndarray:
    """Build a 4x4 transform from a translation and an optional Rotation."""
    T = np.eye(4)
    if rotation is not None:
        T[:3, :3] = rotation.as_matrix()
    T[:3, 3] = np.asarray(position, dtype=np.float64)
    return T


def transform_from_xyz_rpy(xyz, rpy) -> np.ndarray:
    """URDF-style origin: translation plus fixed-axis roll/pitch/yaw."""
    return make_transform(xyz, Rotation.from_euler('xyz', rpy))


def transform_from_xyz_quat(xyz, quat) -> np.ndarray:
    """Translation plus (x, y, z, w) quaternion. The quaternion must be non-degenerate."""
    return make_transform(xyz, Rotation.from_quat(quat))


def invert_transform(T: np.ndarray) -> np.ndarray:
    """Inverse of a rigid transform without a general matrix inverse."""
    R = T[:3, :3]
    inv = np.eye(4)
    inv[:3, :3] = R.T
    inv[:3, 3] = -R.T @ T[:3, 3]
    return inv


def transform_point(T: np.ndarray, point) -> np.ndarray:
    return T[:3, :3] @ np.asarray(point, dtype=np.float64) + T[:3, 3]


def rotation_of(T: np.ndarray) -> Rotation:
    return Rotation.from_matrix(T[:3, :3])


def quaternion_norm(quat) -> float:
    return float(np.linalg.norm(np.asarray(quat, dtype=np.float64)))


# =============================================================================
# Fixed frames
# =============================================================================

class Transforms:
    """
    Registry of frames that are rigidly attached to the model frame.

    The model frame itself is always known (identity). Constraint frames that
    are neither fixed frames nor robot links cannot be resolved and make the
    constraint fail to configure.
    """

    def __init__(self, model_frame: str):
        self.model_frame = model_frame
        self._frames: dict[str, np.ndarray] = {model_frame: np.eye(4)}

    def is_fixed_frame(self, frame: str) -> bool:
        if not frame:
            return False
        return frame.lstrip('/') in self._frames

    def get_transform(self, frame: str) -> np.ndarray:
        """Transform of `frame` in the model frame. Raises KeyError for unknown frames."""
        key = frame.lstrip('/')
        if key not in self._frames:
            raise KeyError(f"Frame '{frame}' is not a fixed frame of model frame '{self.model_frame}'")
        return self._frames[key].copy()

    def set_transform(self, frame: str, T: np.ndarray) -> None:
        key = frame.lstrip('/')
        if key == self.model_frame:
            raise ValueError(f"Cannot redefine the model frame '{self.model_frame}'")
        self._frames[key] = np.array(T, dtype=np.float64)
        logger.debug(f"Registered fixed frame '{key}'")

    def frame_names(self) -> list[str]:
        return list(self._frames)

    def copy(self) -> Transforms:
        other = Transforms(self.model_frame)
        other._frames = {k: v.copy() for k, v in self._frames.items()}
        return other
