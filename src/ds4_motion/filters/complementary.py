from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from ..sensors.imu_base import CalibratedSample
from .base import DEFAULT_MAX_DT, EulerAngles, dt_is_sane


@dataclass
class ComplementaryParams:
    alpha: float = 0.98  # gyro trust, 1-alpha goes to the accel tilt estimate
    max_dt: float = DEFAULT_MAX_DT


class ComplementaryFilter:
    """
    Complementary filter on Euler angles (degrees).
    Pitch/roll blend gyro integration with the gravity tilt from the accelerometer;
    yaw is gyro-only (no magnetometer), so it drifts.
    """
    name = "complementary"

    def __init__(self, params: Optional[ComplementaryParams] = None):
        self.params = params or ComplementaryParams()
        if not 0.0 <= self.params.alpha <= 1.0:
            raise ValueError(f"alpha must be in [0, 1], got {self.params.alpha}")
        self.pitch = 0.0
        self.roll = 0.0
        self.yaw = 0.0

    def reset(self) -> None:
        self.pitch = 0.0
        self.roll = 0.0
        self.yaw = 0.0

    @staticmethod
    def accel_tilt(sample: CalibratedSample) -> Tuple[float, float]:
        """(pitch, roll) in degrees from the gravity direction."""
        ax, ay, az = sample.accel_x_g, sample.accel_y_g, sample.accel_z_g
        pitch = math.degrees(math.atan2(ax, math.sqrt(ay*ay + az*az)))
        roll = math.degrees(math.atan2(ay, math.sqrt(ax*ax + az*az)))
        return pitch, roll

    def update(self, sample: CalibratedSample, dt: float) -> bool:
        if not dt_is_sane(dt, self.params.max_dt):
            return False

        gyro_pitch = self.pitch + sample.pitch_dps * dt
        gyro_roll = self.roll + sample.roll_dps * dt
        gyro_yaw = self.yaw + sample.yaw_dps * dt

        accel_pitch, accel_roll = self.accel_tilt(sample)

        a = self.params.alpha
        self.pitch = a*gyro_pitch + (1.0 - a)*accel_pitch
        self.roll = a*gyro_roll + (1.0 - a)*accel_roll
        self.yaw = gyro_yaw
        return True

    def current_orientation(self) -> EulerAngles:
        return EulerAngles(pitch=self.pitch, roll=self.roll, yaw=self.yaw)

    def euler_deg(self) -> Tuple[float, float, float]:
        return self.pitch, self.roll, self.yaw
