from __future__ import annotations

import argparse
import time
from typing import List, Optional

import numpy as np

from ..calibration import CalibrationProfile
from ..config import default_config, load_config
from ..pipeline import MotionPipeline
from ..sensors.imu_base import RawImuSample, Transport
from ..sensors.report_decoder import build_report
from ..sensors.timestamp import NOMINAL_INTERVAL_S, TICK_US
from ..utils.logger import setup_logging

# typical factory values for a CUH-ZCT2 controller
_EXAMPLE_PROFILE = dict(
    gyro_bias=(1, 0, 0),
    gyro_plus=(8839, 8893, 8882),
    gyro_minus=(-8889, -8837, -8893),
    speed_plus=540, speed_minus=540,
    accel_plus=(7807, 8032, 7482),
    accel_minus=(-8402, -8116, -8506),
)


def synth_reports(n: int, transport: Transport, seed: int = 0) -> List[bytes]:
    """Noisy resting controller (gravity on +Z, raw accel at the +1 g reference) reporting every 1.25 ms."""
    rng = np.random.default_rng(seed)
    step = int(round(NOMINAL_INTERVAL_S * 1e6 / TICK_US))
    out = []
    ticks = 0
    for _ in range(n):
        g = rng.normal(0.0, 6.0, 3) + np.array([4.0, -3.0, 2.0])
        a = rng.normal(0.0, 40.0, 3) + np.array([-297.0, -42.0, 7482.0])
        sample = RawImuSample(
            gyro_x=int(g[0]), gyro_y=int(g[1]), gyro_z=int(g[2]),
            accel_x=int(a[0]), accel_y=int(a[1]), accel_z=int(a[2]),
            timestamp_ticks=ticks,
        )
        out.append(build_report(sample, transport))
        ticks = (ticks + step) & 0xFFFF
    return out


def main(argv: Optional[list] = None) -> int:
    ap = argparse.ArgumentParser(description="Measure per-report pipeline cost")
    ap.add_argument("--config", type=str, default=None)
    ap.add_argument("--reports", type=int, default=8000)
    ap.add_argument("--transport", type=str, default="usb", choices=("usb", "bt"))
    ap.add_argument("--estimator", type=str, default=None, choices=("complementary", "madgwick"))
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else default_config()
    if args.estimator:
        cfg.filters.estimator = args.estimator
    setup_logging(cfg.logging.level)

    transport = Transport.USB if args.transport == "usb" else Transport.BLUETOOTH_EXTENDED
    reports = synth_reports(args.reports, transport)
    pipeline = MotionPipeline(cfg, calibration=CalibrationProfile.from_references(**_EXAMPLE_PROFILE))

    t0 = time.perf_counter()
    for rep in reports:
        pipeline.process(rep, transport)
    elapsed = time.perf_counter() - t0

    per_report_us = elapsed / max(1, len(reports)) * 1e6
    budget_us = NOMINAL_INTERVAL_S * 1e6
    print(f"{len(reports)} {transport.value} reports via {pipeline.estimator.name} in {elapsed:.3f}s")
    print(f"per report: {per_report_us:.1f} us (budget {budget_us:.0f} us at 800 Hz) "
          f"{'OK' if per_report_us < budget_us else 'OVER BUDGET'}")
    off = pipeline.drift.offset
    print(f"learned drift offset: {off[0]:.3f} {off[1]:.3f} {off[2]:.3f} deg/s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
