from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .calibration import AxisOrdering, CalibrationError, CalibrationProfile
from .config import ProjectConfig, default_config
from .filters.base import Orientation, OrientationEstimator
from .filters.complementary import ComplementaryFilter, ComplementaryParams
from .filters.drift import DriftCompensator, DriftParams
from .filters.madgwick import MadgwickFilter, MadgwickParams
from .sensors.imu_base import CalibratedSample, RawImuSample, Transport
from .sensors.report_decoder import DecodeError, ReportDecoder
from .sensors.timestamp import TimestampClock
from .utils.axis import remap_sample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MotionUpdate:
    raw: RawImuSample
    calibrated: CalibratedSample  # after calibration and axis mounting
    corrected: CalibratedSample   # drift offset removed, what the estimator saw
    dt: float
    stationary: bool
    orientation: Orientation
    calibration_valid: bool


def build_estimator(cfg: ProjectConfig) -> OrientationEstimator:
    kind = cfg.filters.estimator
    if kind == "madgwick":
        return MadgwickFilter(MadgwickParams(beta=cfg.filters.madgwick.beta, max_dt=cfg.filters.max_dt))
    if kind == "complementary":
        return ComplementaryFilter(ComplementaryParams(alpha=cfg.filters.complementary.alpha,
                                                       max_dt=cfg.filters.max_dt))
    raise ValueError(f"unknown estimator: {kind!r}")


class MotionPipeline:
    """
    Per-device chain: decode -> timestamp delta -> calibrate -> drift correct -> fuse.

    One instance per connected controller; instances share nothing. Bad reports are
    dropped and bad timing is skipped, neither ever raises out of process().
    """

    def __init__(self,
                 config: Optional[ProjectConfig] = None,
                 calibration: Optional[CalibrationProfile] = None,
                 estimator: Optional[OrientationEstimator] = None):
        self.config = config or default_config()
        cfg = self.config
        self.decoder = ReportDecoder(validate_crc=cfg.decoder.validate_crc)
        self.clock = TimestampClock()
        self.calibration = calibration or CalibrationProfile.identity()
        self.drift = DriftCompensator(DriftParams(
            window_count=cfg.drift.window_count,
            window_seconds=cfg.drift.window_seconds,
            stationary_threshold_g=cfg.drift.stationary_threshold_g,
        ))
        self.estimator = estimator or build_estimator(cfg)

        self.processed_reports = 0
        self.dropped_reports = 0
        self.skipped_reports = 0
        self.last_update: Optional[MotionUpdate] = None

    def load_calibration(self, payload: bytes, ordering: AxisOrdering) -> CalibrationProfile:
        try:
            self.calibration = CalibrationProfile.from_feature_report(payload, ordering)
        except CalibrationError as e:
            logger.warning("unusable calibration report (%s), using raw passthrough", e)
            self.calibration = CalibrationProfile.identity()
        return self.calibration

    def reset(self) -> None:
        """Reconnect: forget timing, drift history, orientation and calibration."""
        self.clock.reset()
        self.drift.reset()
        self.estimator.reset()
        self.calibration = CalibrationProfile.identity()
        self.last_update = None
        logger.info("motion pipeline reset")

    def process(self, buffer: bytes, transport: Transport) -> Optional[MotionUpdate]:
        try:
            raw = self.decoder.decode(buffer, transport)
        except DecodeError as e:
            self.dropped_reports += 1
            logger.debug("dropping %s report: %s", transport.value, e)
            return None
        return self.process_sample(raw)

    def process_sample(self, raw: RawImuSample) -> Optional[MotionUpdate]:
        dt = self.clock.elapsed(raw.timestamp_ticks)
        if not 0.0 < dt < self.config.timing.max_report_dt:
            self.skipped_reports += 1
            logger.debug("skipping report with dt=%.6fs", dt)
            return None

        calibrated = remap_sample(self.calibration.calibrate(raw),
                                  self.config.mounting.axis_map, self.config.mounting.axis_sign)
        corrected = self.drift.correct(calibrated, calibrated.accel_magnitude_g(), dt)
        if not self.estimator.update(corrected, dt):
            self.skipped_reports += 1
            return None

        self.processed_reports += 1
        self.last_update = MotionUpdate(
            raw=raw,
            calibrated=calibrated,
            corrected=corrected,
            dt=dt,
            stationary=self.drift.is_stationary,
            orientation=self.estimator.current_orientation(),
            calibration_valid=self.calibration.valid,
        )
        return self.last_update

    def current_orientation(self) -> Orientation:
        return self.estimator.current_orientation()

    def stats(self) -> Dict[str, int]:
        return {
            "processed": self.processed_reports,
            "dropped": self.dropped_reports,
            "skipped": self.skipped_reports,
        }
