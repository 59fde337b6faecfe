from __future__ import annotations

import math
from typing import Tuple

import numpy as np


# Orientation quaternions are ndarray (4,) ordered [w, x, y, z], rotating
# controller (body) axes into the world frame, world Z up.

IDENTITY = np.array([1.0, 0.0, 0.0, 0.0], dtype=float)


def q_normalize(q: np.ndarray) -> np.ndarray:
    """Unit quaternion; zero-length or non-finite input is returned as a copy."""
    v = np.asarray(q, dtype=float).reshape(4)
    n = float(np.linalg.norm(v))
    if n <= 0.0 or not math.isfinite(n):
        return v.copy()
    return v / n


def gravity_in_body(q: np.ndarray) -> np.ndarray:
    """
    Direction of world +Z seen from the controller for orientation q, i.e. what a
    resting accelerometer should read (normalised). For checking an estimate
    against accelerometer data; the filters do not call it.
    """
    w, x, y, z = q_normalize(q).tolist()
    return np.array([
        2.0*(x*z - w*y),
        2.0*(w*x + y*z),
        w*w - x*x - y*y + z*z,
    ], dtype=float)


def q_to_euler_zyx(q: np.ndarray) -> Tuple[float, float, float]:
    """(roll, pitch, yaw) in radians, yaw-pitch-roll order. Pitch is clamped at +-90 deg."""
    w, x, y, z = np.asarray(q, dtype=float).reshape(4).tolist()

    roll = math.atan2(2.0*(w*x + y*z), 1.0 - 2.0*(x*x + y*y))
    sinp = max(-1.0, min(1.0, 2.0*(w*y - z*x)))
    pitch = math.asin(sinp)
    yaw = math.atan2(2.0*(w*z + x*y), 1.0 - 2.0*(y*y + z*z))
    return roll, pitch, yaw
