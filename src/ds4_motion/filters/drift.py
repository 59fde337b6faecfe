from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional

import numpy as np

from ..sensors.imu_base import CalibratedSample
from ..sensors.timestamp import NOMINAL_INTERVAL_S

logger = logging.getLogger(__name__)


@dataclass
class DriftParams:
    # The offset averages at most window_count closed windows. The window still
    # being filled only collects samples and feeds nothing until it closes.
    window_count: int = 3
    window_seconds: float = 5.0
    stationary_threshold_g: float = 0.05  # |‖a‖ - 1 g| below this counts as "at rest"
    one_g: float = 1.0                    # 1 g in the units of the magnitude passed to correct()


@dataclass
class _Window:
    gyro_sum: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=float))
    count: int = 0
    seconds: float = 0.0


class DriftCompensator:
    """
    Runtime gyro bias tracking.

    While the accelerometer magnitude stays near 1 g the controller is taken to be
    at rest, and calibrated gyro readings are accumulated into a sliding set of
    fixed-length windows. The bias estimate is the sample-weighted mean over the
    closed windows and only changes when a window closes, so rotation while the
    controller is level is not cancelled as it happens. The estimate is subtracted
    from every sample, moving or not; windows and estimate only clear on reset().
    """

    def __init__(self, params: Optional[DriftParams] = None):
        self.params = params or DriftParams()
        if self.params.window_count < 1:
            raise ValueError("window_count must be >= 1")
        if self.params.window_seconds <= 0.0:
            raise ValueError("window_seconds must be > 0")
        self._closed: Deque[_Window] = deque(maxlen=int(self.params.window_count))
        self._active = _Window()
        self._offset = np.zeros(3, dtype=float)
        self.is_stationary = False

    def reset(self) -> None:
        self._closed.clear()
        self._active = _Window()
        self._offset = np.zeros(3, dtype=float)
        self.is_stationary = False

    @property
    def offset(self) -> np.ndarray:
        """Current bias estimate (pitch, yaw, roll) in deg/s."""
        return self._offset.copy()

    @property
    def windows_filled(self) -> int:
        return len(self._closed)

    def check_stationary(self, accel_magnitude: float) -> bool:
        p = self.params
        return abs(float(accel_magnitude) - p.one_g) < p.stationary_threshold_g * p.one_g

    def correct(self, sample: CalibratedSample, raw_accel_magnitude: float,
                dt: float = NOMINAL_INTERVAL_S) -> CalibratedSample:
        self.is_stationary = self.check_stationary(raw_accel_magnitude)
        if self.is_stationary:
            self._accumulate(sample.gyro_dps(), dt)
        return sample.with_gyro(sample.gyro_dps() - self._offset)

    def _accumulate(self, gyro_dps: np.ndarray, dt: float) -> None:
        w = self._active
        w.gyro_sum += gyro_dps
        w.count += 1
        w.seconds += max(0.0, float(dt))
        if w.seconds >= self.params.window_seconds:
            self._closed.append(w)
            self._active = _Window()
            self._recompute()
            logger.debug("drift window closed (%d samples), offset now %s", w.count, self._offset)

    def _recompute(self) -> None:
        total = np.zeros(3, dtype=float)
        count = 0
        for w in self._closed:
            total += w.gyro_sum
            count += w.count
        if count > 0:
            self._offset = total / count
