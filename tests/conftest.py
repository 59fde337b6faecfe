"""
Shared test fixtures: byte-exact builders for calibration feature reports and
input reports, plus the factory calibration values of a real controller.
"""

import struct

import pytest

from ds4_motion.calibration import CALIBRATION_REPORT_SIZE, AxisOrdering, CalibrationProfile
from ds4_motion.config import default_config
from ds4_motion.pipeline import MotionPipeline


# Factory calibration read from a CUH-ZCT1 controller (inverted yaw references)
EXAMPLE_CAL = dict(
    gyro_bias=(1, 0, 0),
    gyro_plus=(8839, -8837, 8882),
    gyro_minus=(-8889, 8893, -8893),
    speed_plus=540, speed_minus=540,
    accel_plus=(7807, 8032, 7482),
    accel_minus=(-8402, -8116, -8506),
)

# Symmetric, non-inverted references
CLEAN_CAL = dict(
    gyro_bias=(10, 20, 30),
    gyro_plus=(8000, 8100, 8200),
    gyro_minus=(-8000, -8100, -8200),
    speed_plus=540, speed_minus=540,
    accel_plus=(7800, 8000, 7500),
    accel_minus=(-8400, -8100, -8500),
)

# Raw accel readings that calibrate to exactly (0, 0, 1 g) with EXAMPLE_CAL
EXAMPLE_REST_ACCEL = (-297, -42, 7482)


def make_calibration_report(cal=EXAMPLE_CAL, ordering=AxisOrdering.INTERLEAVED, report_id=None,
                            size=CALIBRATION_REPORT_SIZE):
    if report_id is None:
        report_id = 0x05 if ordering is AxisOrdering.GROUPED else 0x02
    buf = bytearray(size)
    buf[0] = report_id

    def w(off, value):
        struct.pack_into("<h", buf, off, value)

    for i in range(3):
        w(1 + 2*i, cal["gyro_bias"][i])
    if ordering is AxisOrdering.INTERLEAVED:
        for i in range(3):
            w(7 + 4*i, cal["gyro_plus"][i])
            w(9 + 4*i, cal["gyro_minus"][i])
    else:
        for i in range(3):
            w(7 + 2*i, cal["gyro_plus"][i])
            w(13 + 2*i, cal["gyro_minus"][i])
    w(19, cal["speed_plus"])
    w(21, cal["speed_minus"])
    for i in range(3):
        w(23 + 4*i, cal["accel_plus"][i])
        w(25 + 4*i, cal["accel_minus"][i])
    return bytes(buf)


def make_usb_report(gyro=(0, 0, 0), accel=(0, 0, 0), ticks=0, size=64):
    """USB input report: ID 0x01, timestamp @10, gyro @13/15/17, accel @19/21/23."""
    buf = bytearray(size)
    buf[0] = 0x01
    struct.pack_into("<H", buf, 10, ticks & 0xFFFF)
    struct.pack_into("<hhh", buf, 13, *gyro)
    struct.pack_into("<hhh", buf, 19, *accel)
    return bytes(buf)


def make_bt_report(gyro=(0, 0, 0), accel=(0, 0, 0), ticks=0, size=78):
    """BT extended input report: ID 0x11 + two flag bytes, so every IMU offset is +2."""
    buf = bytearray(size)
    buf[0] = 0x11
    buf[1] = 0xC0
    struct.pack_into("<H", buf, 12, ticks & 0xFFFF)
    struct.pack_into("<hhh", buf, 15, *gyro)
    struct.pack_into("<hhh", buf, 21, *accel)
    return bytes(buf)


@pytest.fixture
def example_payload():
    return make_calibration_report(EXAMPLE_CAL, AxisOrdering.INTERLEAVED)


@pytest.fixture
def example_profile(example_payload):
    return CalibrationProfile.from_feature_report(example_payload, AxisOrdering.INTERLEAVED)


@pytest.fixture
def clean_profile():
    return CalibrationProfile.from_references(**CLEAN_CAL)


@pytest.fixture
def pipeline(example_profile):
    return MotionPipeline(default_config(), calibration=example_profile)
