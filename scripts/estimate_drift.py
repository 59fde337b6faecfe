from __future__ import annotations

import argparse

from ds4_motion.calibration import AxisOrdering
from ds4_motion.config import default_config, load_config
from ds4_motion.pipeline import MotionPipeline
from ds4_motion.sensors.capture_reader import CaptureReplay


def main() -> None:
    ap = argparse.ArgumentParser(description="Estimate residual gyro drift from a resting capture")
    ap.add_argument("--config", type=str, default="config/config.yaml")
    ap.add_argument("--capture", type=str, required=True)
    ap.add_argument("--calibration", type=str, default=None, help="calibration feature report as hex")
    args = ap.parse_args()

    cfg = load_config(args.config) if args.config else default_config()
    replay = CaptureReplay(args.capture)
    captured = list(replay.captured())
    pipeline = MotionPipeline(cfg)
    if args.calibration:
        pipeline.load_calibration(bytes.fromhex(args.calibration),
                                  AxisOrdering.for_transport(captured[0].transport))

    print("controller should lie still for the whole capture")
    stationary = 0
    for rep in captured:
        update = pipeline.process(rep.data, rep.transport)
        if update is not None and update.stationary:
            stationary += 1

    off = pipeline.drift.offset
    print(f"stationary reports: {stationary}/{len(captured)}, closed windows: {pipeline.drift.windows_filled}")
    print(f"offset [deg/s]: pitch={off[0]:+.4f} yaw={off[1]:+.4f} roll={off[2]:+.4f}")
    if not pipeline.calibration.valid:
        print("warning: calibration invalid or missing, offsets are in passthrough units")


if __name__ == "__main__":
    main()
