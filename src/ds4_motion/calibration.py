"""
Factory IMU calibration.

The controller stores a 37-byte calibration feature report (ID 0x02 over USB,
0x05 over BT). It carries, per gyro axis, a zero-rate bias plus readings taken
at a known positive and negative reference rotation, a shared reference speed,
and per accel axis the readings at +1 g and -1 g. From these we derive one
linear correction per axis:

    corrected = (raw - bias) * numerator / denominator

Corrected gyro values are in 1/16 deg/s, corrected accel values in 1/8192 g.
"""
from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Sequence, Tuple

from .sensors.imu_base import CalibratedSample, RawImuSample, Transport

logger = logging.getLogger(__name__)


GYRO_UNITS_PER_DPS = 16
ACCEL_UNITS_PER_G = 8192

CALIBRATION_REPORT_SIZE = 37
CALIBRATION_MIN_PAYLOAD = 35  # last accel reference ends at byte 34
REPORT_ID_USB = 0x02
REPORT_ID_BT = 0x05


class Axis(Enum):
    PITCH = "pitch"  # gyro X
    YAW = "yaw"      # gyro Y
    ROLL = "roll"    # gyro Z
    ACCEL_X = "accel_x"
    ACCEL_Y = "accel_y"
    ACCEL_Z = "accel_z"


GYRO_AXES: Tuple[Axis, ...] = (Axis.PITCH, Axis.YAW, Axis.ROLL)
ACCEL_AXES: Tuple[Axis, ...] = (Axis.ACCEL_X, Axis.ACCEL_Y, Axis.ACCEL_Z)


class AxisOrdering(Enum):
    """Layout of the gyro plus/minus reference block (bytes 7..18)."""
    INTERLEAVED = "interleaved"  # p+, p-, y+, y-, r+, r-   (USB)
    GROUPED = "grouped"          # p+, y+, r+, p-, y-, r-   (Bluetooth)

    @classmethod
    def for_transport(cls, transport: Transport) -> "AxisOrdering":
        if transport is Transport.BLUETOOTH_EXTENDED:
            return cls.GROUPED
        return cls.INTERLEAVED


class CalibrationError(ValueError):
    pass


def _div_trunc(a: int, b: int) -> int:
    # integer division rounding toward zero, as 32-bit C arithmetic does
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


@dataclass(frozen=True)
class AxisCalibration:
    bias: int
    numerator: int
    denominator: int

    @classmethod
    def identity(cls) -> "AxisCalibration":
        return cls(bias=0, numerator=1, denominator=1)

    def apply(self, raw: int) -> int:
        return _div_trunc((int(raw) - self.bias) * self.numerator, self.denominator)


class CalibrationProfile:
    """
    Per-connection calibration coefficients for the six IMU axes.

    Construction never fails on corrupt coefficients: an axis whose denominator
    is zero is replaced by the identity correction and the profile is flagged
    invalid, so apply() can never divide by zero.
    """

    def __init__(self, axes: Mapping[Axis, AxisCalibration]):
        missing = [a.value for a in Axis if a not in axes]
        if missing:
            raise CalibrationError(f"missing axis calibration: {', '.join(missing)}")
        coeffs: Dict[Axis, AxisCalibration] = {a: axes[a] for a in Axis}

        self.yaw_inverted_fix_applied = False
        if needs_yaw_fix(coeffs):
            yaw = coeffs[Axis.YAW]
            coeffs[Axis.YAW] = AxisCalibration(yaw.bias, yaw.numerator, -yaw.denominator)
            self.yaw_inverted_fix_applied = True
            logger.info("inverted yaw calibration detected, denominator negated")

        self.invalid_axes: Tuple[Axis, ...] = tuple(a for a in Axis if coeffs[a].denominator == 0)
        for a in self.invalid_axes:
            coeffs[a] = AxisCalibration.identity()
        self.valid = len(self.invalid_axes) == 0
        if not self.valid:
            logger.warning("calibration invalid (zero denominator on %s), using raw passthrough",
                           ", ".join(a.value for a in self.invalid_axes))

        self._axes = coeffs

    @classmethod
    def identity(cls) -> "CalibrationProfile":
        """Passthrough profile for a device whose calibration is unknown."""
        prof = cls({a: AxisCalibration.identity() for a in Axis})
        prof.valid = False
        return prof

    @classmethod
    def from_references(cls,
                        gyro_bias: Sequence[int],
                        gyro_plus: Sequence[int],
                        gyro_minus: Sequence[int],
                        speed_plus: int,
                        speed_minus: int,
                        accel_plus: Sequence[int],
                        accel_minus: Sequence[int]) -> "CalibrationProfile":
        """
        Build coefficients from the factory reference readings.
        All sequences are ordered (pitch, yaw, roll) or (x, y, z).
        """
        speed_sum = int(speed_plus) + int(speed_minus)
        axes: Dict[Axis, AxisCalibration] = {}
        for i, axis in enumerate(GYRO_AXES):
            axes[axis] = AxisCalibration(
                bias=int(gyro_bias[i]),
                numerator=speed_sum * GYRO_UNITS_PER_DPS,
                denominator=int(gyro_plus[i]) - int(gyro_minus[i]),
            )
        for i, axis in enumerate(ACCEL_AXES):
            plus, minus = int(accel_plus[i]), int(accel_minus[i])
            rng = plus - minus
            axes[axis] = AxisCalibration(
                bias=plus - _div_trunc(rng, 2),
                numerator=2 * ACCEL_UNITS_PER_G,
                denominator=rng,
            )
        return cls(axes)

    @classmethod
    def from_feature_report(cls, payload: bytes, axis_ordering: AxisOrdering) -> "CalibrationProfile":
        buf = bytes(payload)
        if len(buf) < CALIBRATION_MIN_PAYLOAD:
            raise CalibrationError(
                f"calibration report too short: expected >= {CALIBRATION_MIN_PAYLOAD} bytes, got {len(buf)}")

        usual_id = REPORT_ID_BT if axis_ordering is AxisOrdering.GROUPED else REPORT_ID_USB
        if buf[0] != usual_id:
            logger.debug("calibration report id 0x%02X with %s ordering", buf[0], axis_ordering.value)

        v = struct.unpack_from("<17h", buf, 1)
        gyro_bias = v[0:3]
        refs = v[3:9]
        if axis_ordering is AxisOrdering.INTERLEAVED:
            gyro_plus, gyro_minus = refs[0::2], refs[1::2]
        else:
            gyro_plus, gyro_minus = refs[0:3], refs[3:6]
        speed_plus, speed_minus = v[9], v[10]
        accel = v[11:17]

        return cls.from_references(
            gyro_bias=gyro_bias,
            gyro_plus=gyro_plus,
            gyro_minus=gyro_minus,
            speed_plus=speed_plus,
            speed_minus=speed_minus,
            accel_plus=accel[0::2],
            accel_minus=accel[1::2],
        )

    def axis(self, axis: Axis) -> AxisCalibration:
        return self._axes[axis]

    def apply(self, axis: Axis, raw_value: int) -> int:
        return self._axes[axis].apply(raw_value)

    def to_dps(self, axis: Axis, raw_value: int) -> float:
        return self.apply(axis, raw_value) / GYRO_UNITS_PER_DPS

    def to_g(self, axis: Axis, raw_value: int) -> float:
        return self.apply(axis, raw_value) / ACCEL_UNITS_PER_G

    def calibrate(self, raw: RawImuSample) -> CalibratedSample:
        return CalibratedSample(
            pitch_dps=self.to_dps(Axis.PITCH, raw.gyro_x),
            yaw_dps=self.to_dps(Axis.YAW, raw.gyro_y),
            roll_dps=self.to_dps(Axis.ROLL, raw.gyro_z),
            accel_x_g=self.to_g(Axis.ACCEL_X, raw.accel_x),
            accel_y_g=self.to_g(Axis.ACCEL_Y, raw.accel_y),
            accel_z_g=self.to_g(Axis.ACCEL_Z, raw.accel_z),
        )

    def __repr__(self) -> str:
        return (f"CalibrationProfile(valid={self.valid}, "
                f"yaw_inverted_fix_applied={self.yaw_inverted_fix_applied})")


def needs_yaw_fix(axes: Mapping[Axis, AxisCalibration]) -> bool:
    """Signature of the inverted-yaw defect on early (CUH-ZCT1x) controllers."""
    yaw = axes[Axis.YAW]
    return (yaw.numerator > 0 and yaw.denominator < 0
            and axes[Axis.PITCH].denominator > 0
            and axes[Axis.ROLL].denominator > 0)
