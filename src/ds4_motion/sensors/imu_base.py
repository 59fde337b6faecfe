from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum

import numpy as np


class Transport(Enum):
    USB = "usb"
    BLUETOOTH_EXTENDED = "bt"


@dataclass(frozen=True)
class RawImuSample:
    """Raw 6-axis reading as carried in one input report (signed 16-bit counts)."""
    gyro_x: int  # pitch
    gyro_y: int  # yaw
    gyro_z: int  # roll
    accel_x: int
    accel_y: int
    accel_z: int
    timestamp_ticks: int  # u16, ~5.33 us per tick


@dataclass(frozen=True)
class CalibratedSample:
    pitch_dps: float
    yaw_dps: float
    roll_dps: float
    accel_x_g: float
    accel_y_g: float
    accel_z_g: float

    @classmethod
    def from_vectors(cls, gyro_dps: np.ndarray, accel_g: np.ndarray) -> "CalibratedSample":
        g = np.asarray(gyro_dps, dtype=float).reshape(3)
        a = np.asarray(accel_g, dtype=float).reshape(3)
        return cls(float(g[0]), float(g[1]), float(g[2]), float(a[0]), float(a[1]), float(a[2]))

    def gyro_dps(self) -> np.ndarray:
        return np.array([self.pitch_dps, self.yaw_dps, self.roll_dps], dtype=float)

    def gyro_rad_s(self) -> np.ndarray:
        return np.radians(self.gyro_dps())

    def accel_g(self) -> np.ndarray:
        return np.array([self.accel_x_g, self.accel_y_g, self.accel_z_g], dtype=float)

    def accel_magnitude_g(self) -> float:
        return math.sqrt(self.accel_x_g**2 + self.accel_y_g**2 + self.accel_z_g**2)

    def with_gyro(self, gyro_dps: np.ndarray) -> "CalibratedSample":
        g = np.asarray(gyro_dps, dtype=float).reshape(3)
        return replace(self, pitch_dps=float(g[0]), yaw_dps=float(g[1]), roll_dps=float(g[2]))
