"""
Tests for the per-device motion pipeline (decode -> calibrate -> drift -> fuse).
"""

import numpy as np
import pytest

from ds4_motion.calibration import AxisOrdering, CalibrationProfile
from ds4_motion.config import default_config
from ds4_motion.filters.base import EulerAngles, QuaternionState
from ds4_motion.filters.complementary import ComplementaryFilter
from ds4_motion.filters.madgwick import MadgwickFilter
from ds4_motion.pipeline import MotionPipeline, build_estimator
from ds4_motion.sensors.imu_base import Transport
from ds4_motion.sensors.timestamp import NOMINAL_INTERVAL_S

from conftest import CLEAN_CAL, EXAMPLE_REST_ACCEL, make_bt_report, make_calibration_report, make_usb_report


TICK_STEP = 234  # ~1.248 ms


def feed_resting(pipeline, n, gyro=(1, 0, 0), start_ticks=0, transport=Transport.USB):
    build = make_usb_report if transport is Transport.USB else make_bt_report
    last = None
    for i in range(n):
        rep = build(gyro, EXAMPLE_REST_ACCEL, (start_ticks + i * TICK_STEP) & 0xFFFF)
        out = pipeline.process(rep, transport)
        if out is not None:
            last = out
    return last


class TestProcess:

    def test_first_report(self, pipeline):
        update = pipeline.process(make_usb_report((1, 0, 0), EXAMPLE_REST_ACCEL, 100), Transport.USB)
        assert update is not None
        assert update.dt == NOMINAL_INTERVAL_S
        assert update.calibration_valid is True
        assert update.raw.timestamp_ticks == 100
        assert update.calibrated.accel_z_g == 1.0
        assert update.stationary is True
        assert isinstance(update.orientation, EulerAngles)
        assert pipeline.last_update is update

    def test_bt_reports(self, pipeline):
        update = pipeline.process(make_bt_report((1, 0, 0), EXAMPLE_REST_ACCEL, 100),
                                  Transport.BLUETOOTH_EXTENDED)
        assert update is not None
        assert update.calibrated.accel_z_g == 1.0

    def test_short_report_dropped(self, pipeline):
        assert pipeline.process(b"\x01\x00\x00", Transport.USB) is None
        assert pipeline.stats() == {"processed": 0, "dropped": 1, "skipped": 0}
        assert pipeline.clock.initialized is False

    def test_stale_report_skipped(self, pipeline):
        pipeline.process(make_usb_report((1, 0, 0), EXAMPLE_REST_ACCEL, 0), Transport.USB)
        before = pipeline.current_orientation()
        # 20000 ticks is ~107 ms
        assert pipeline.process(make_usb_report((5000, 0, 0), EXAMPLE_REST_ACCEL, 20000), Transport.USB) is None
        assert pipeline.current_orientation() == before
        assert pipeline.stats()["skipped"] == 1

    def test_repeated_timestamp_skipped(self, pipeline):
        pipeline.process(make_usb_report((1, 0, 0), EXAMPLE_REST_ACCEL, 500), Transport.USB)
        assert pipeline.process(make_usb_report((1, 0, 0), EXAMPLE_REST_ACCEL, 500), Transport.USB) is None

    def test_timestamp_wrap_is_continuous(self, pipeline):
        pipeline.process(make_usb_report((1, 0, 0), EXAMPLE_REST_ACCEL, 65500), Transport.USB)
        update = pipeline.process(make_usb_report((1, 0, 0), EXAMPLE_REST_ACCEL, 198), Transport.USB)
        assert update is not None
        assert update.dt == pytest.approx(234 * 16 / 3 * 1e-6)

    def test_yaw_integrates_rotation(self, pipeline):
        # raw yaw 1000 -> (1000 * 17280) // 17730 = 974 -> 60.875 deg/s
        pipeline.process(make_usb_report((1, 0, 0), EXAMPLE_REST_ACCEL, 0), Transport.USB)
        for i in range(1, 101):
            pipeline.process(make_usb_report((1, 1000, 0), EXAMPLE_REST_ACCEL, i * TICK_STEP), Transport.USB)
        pitch, roll, yaw = pipeline.estimator.euler_deg()
        # well inside the first drift window, so nothing is subtracted yet
        assert yaw == pytest.approx(974 / 16 * (100 * TICK_STEP * 16 / 3 * 1e-6), rel=1e-9)
        assert pitch == pytest.approx(0.0, abs=1e-9)
        assert pipeline.drift.windows_filled == 0


class TestDriftThroughPipeline:

    def test_resting_bias_removed(self, pipeline):
        # raw pitch 101 -> (100 * 17280) // 17728 = 97 -> 6.0625 deg/s
        last = feed_resting(pipeline, 4100, gyro=(101, 0, 0))
        assert last.calibrated.pitch_dps == 6.0625
        assert pipeline.drift.offset[0] == pytest.approx(6.0625)
        assert last.corrected.pitch_dps == pytest.approx(0.0, abs=1e-9)
        assert pipeline.drift.windows_filled == 1

    def test_bias_not_removed_before_window_closes(self, pipeline):
        last = feed_resting(pipeline, 500, gyro=(101, 0, 0))
        assert last.stationary is True
        assert last.corrected.pitch_dps == 6.0625
        np.testing.assert_array_equal(pipeline.drift.offset, np.zeros(3))

    def test_motion_does_not_update_offset(self, pipeline):
        feed_resting(pipeline, 4100, gyro=(101, 0, 0))
        offset = pipeline.drift.offset
        assert offset[0] == pytest.approx(6.0625)
        shaken = (EXAMPLE_REST_ACCEL[0] + 8000, EXAMPLE_REST_ACCEL[1], EXAMPLE_REST_ACCEL[2])
        update = pipeline.process(make_usb_report((5000, 0, 0), shaken, (4100 * TICK_STEP) & 0xFFFF), Transport.USB)
        assert update.stationary is False
        np.testing.assert_array_equal(pipeline.drift.offset, offset)


class TestLifecycle:

    def test_load_calibration(self):
        p = MotionPipeline()
        assert p.calibration.valid is False
        prof = p.load_calibration(make_calibration_report(CLEAN_CAL, AxisOrdering.GROUPED), AxisOrdering.GROUPED)
        assert prof.valid is True
        assert p.calibration is prof

    def test_bad_calibration_falls_back(self):
        p = MotionPipeline()
        prof = p.load_calibration(b"\x02\x00", AxisOrdering.INTERLEAVED)
        assert prof.valid is False
        assert p.process(make_usb_report((16, 0, 0), (0, 0, 8192), 0), Transport.USB).calibrated.pitch_dps == 1.0

    def test_uncalibrated_flag_surfaces(self):
        p = MotionPipeline()
        update = p.process(make_usb_report((0, 0, 0), (0, 0, 8192), 0), Transport.USB)
        assert update.calibration_valid is False

    def test_reset(self, pipeline):
        feed_resting(pipeline, 200, gyro=(101, 500, 0))
        pipeline.reset()
        assert pipeline.clock.initialized is False
        assert pipeline.calibration.valid is False
        np.testing.assert_array_equal(pipeline.drift.offset, np.zeros(3))
        assert pipeline.estimator.euler_deg() == (0.0, 0.0, 0.0)
        assert pipeline.last_update is None

    def test_devices_are_isolated(self, example_profile):
        a = MotionPipeline(calibration=example_profile)
        b = MotionPipeline(calibration=example_profile)
        feed_resting(a, 300, gyro=(1, 2000, 0))
        assert b.estimator.euler_deg() == (0.0, 0.0, 0.0)
        np.testing.assert_array_equal(b.drift.offset, np.zeros(3))
        assert a.estimator is not b.estimator


class TestEstimatorSelection:

    def test_default_is_complementary(self):
        assert isinstance(build_estimator(default_config()), ComplementaryFilter)

    def test_madgwick(self, example_profile):
        cfg = default_config()
        cfg.filters.estimator = "madgwick"
        cfg.filters.madgwick.beta = 0.08
        p = MotionPipeline(cfg, calibration=example_profile)
        assert isinstance(p.estimator, MadgwickFilter)
        assert p.estimator.params.beta == 0.08

        update = feed_resting(p, 50)
        assert isinstance(update.orientation, QuaternionState)
        assert update.orientation.norm_sq == pytest.approx(1.0)

    def test_unknown_estimator(self):
        cfg = default_config()
        cfg.filters.estimator = "kalman"
        with pytest.raises(ValueError):
            build_estimator(cfg)

    def test_explicit_estimator(self):
        est = MadgwickFilter()
        p = MotionPipeline(estimator=est)
        assert p.estimator is est


class TestMounting:

    def test_axis_remap_applies_to_gyro_and_accel(self):
        cfg = default_config()
        cfg.mounting.axis_map = np.array([0, 2, 1])
        cfg.mounting.axis_sign = np.array([1, 1, -1])
        p = MotionPipeline(cfg, calibration=CalibrationProfile.identity())
        update = p.process(make_usb_report((16, 32, 48), (0, 8192, 0), 0), Transport.USB)
        c = update.calibrated
        assert (c.pitch_dps, c.yaw_dps, c.roll_dps) == (1.0, 3.0, -2.0)
        assert (c.accel_x_g, c.accel_y_g, c.accel_z_g) == (0.0, 0.0, -1.0)
