from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..quaternion import IDENTITY, q_normalize, q_to_euler_zyx
from ..sensors.imu_base import CalibratedSample
from .base import DEFAULT_MAX_DT, QuaternionState, dt_is_sane


@dataclass
class MadgwickParams:
    beta: float = 0.04  # gradient descent gain, useful range ~0.01..0.1
    max_dt: float = DEFAULT_MAX_DT


class MadgwickFilter:
    """
    Madgwick AHRS, IMU (gyro + accel) variant.
    Quaternion order: [w, x, y, z]
    Inputs:
      - gyr: rad/s
      - acc: any unit, only the direction is used
    """
    name = "madgwick"

    def __init__(self, params: Optional[MadgwickParams] = None, q0: Optional[np.ndarray] = None):
        self.params = params or MadgwickParams()
        self.q = q_normalize(IDENTITY if q0 is None else q0)

    def reset(self, q0: Optional[np.ndarray] = None) -> None:
        self.q = q_normalize(IDENTITY if q0 is None else q0)

    def update(self, sample: CalibratedSample, dt: float) -> bool:
        return self.update_imu(sample.gyro_rad_s(), sample.accel_g(), dt)

    def update_imu(self, gyr_rad_s: np.ndarray, acc: np.ndarray, dt: float) -> bool:
        if not dt_is_sane(dt, self.params.max_dt):
            return False

        q1, q2, q3, q4 = self.q.tolist()  # w x y z
        gx, gy, gz = np.asarray(gyr_rad_s, dtype=float).reshape(3).tolist()
        ax, ay, az = np.asarray(acc, dtype=float).reshape(3).tolist()

        # Rate of change of quaternion from gyroscope: 0.5 * q ⊗ [0, g]
        qDot1 = 0.5*(-q2*gx - q3*gy - q4*gz)
        qDot2 = 0.5*( q1*gx + q3*gz - q4*gy)
        qDot3 = 0.5*( q1*gy - q2*gz + q4*gx)
        qDot4 = 0.5*( q1*gz + q2*gy - q3*gx)

        # Corrective step only with a usable gravity reading
        a_norm = math.sqrt(ax*ax + ay*ay + az*az)
        if a_norm > 0.0 and math.isfinite(a_norm):
            ax, ay, az = ax/a_norm, ay/a_norm, az/a_norm

            # Auxiliary variables to avoid repeated arithmetic
            _2q1 = 2.0*q1
            _2q2 = 2.0*q2
            _2q3 = 2.0*q3
            _2q4 = 2.0*q4
            _4q1 = 4.0*q1
            _4q2 = 4.0*q2
            _4q3 = 4.0*q3
            _8q2 = 8.0*q2
            _8q3 = 8.0*q3
            q1q1 = q1*q1
            q2q2 = q2*q2
            q3q3 = q3*q3
            q4q4 = q4*q4

            # Gradient of the gravity objective function
            s1 = _4q1*q3q3 + _2q3*ax + _4q1*q2q2 - _2q2*ay
            s2 = _4q2*q4q4 - _2q4*ax + 4.0*q1q1*q2 - _2q1*ay - _4q2 + _8q2*q2q2 + _8q2*q3q3 + _4q2*az
            s3 = 4.0*q1q1*q3 + _2q1*ax + _4q3*q4q4 - _2q4*ay - _4q3 + _8q3*q2q2 + _8q3*q3q3 + _4q3*az
            s4 = 4.0*q2q2*q4 - _2q2*ax + 4.0*q3q3*q4 - _2q3*ay
            norm_s = math.sqrt(s1*s1 + s2*s2 + s3*s3 + s4*s4)
            if norm_s > 1e-12:
                beta = self.params.beta
                qDot1 -= beta*s1/norm_s
                qDot2 -= beta*s2/norm_s
                qDot3 -= beta*s3/norm_s
                qDot4 -= beta*s4/norm_s

        # Integrate rate of change
        q = np.array([q1 + qDot1*dt, q2 + qDot2*dt, q3 + qDot3*dt, q4 + qDot4*dt], dtype=float)
        n = float(np.linalg.norm(q))
        if not math.isfinite(n):
            return False
        if n > 1e-12:
            q = q / n
        self.q = q
        return True

    @property
    def quaternion(self) -> np.ndarray:
        return self.q.copy()

    def current_orientation(self) -> QuaternionState:
        w, x, y, z = self.q.tolist()
        return QuaternionState(w=w, x=x, y=y, z=z)

    def euler(self) -> Tuple[float, float, float]:
        """(roll, pitch, yaw) in radians, ZYX convention."""
        return q_to_euler_zyx(self.q)

    def euler_deg(self) -> Tuple[float, float, float]:
        roll, pitch, yaw = self.euler()
        return math.degrees(pitch), math.degrees(roll), math.degrees(yaw)
