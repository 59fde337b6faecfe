from __future__ import annotations

import argparse
import logging
from typing import Optional

from ..calibration import AxisOrdering
from ..config import default_config, load_config
from ..pipeline import MotionPipeline
from ..sensors.capture_reader import CaptureReplay
from ..utils.logger import RunLogger, setup_logging

logger = logging.getLogger(__name__)


def _pick_ordering(name: str, first_transport) -> AxisOrdering:
    sel = (name or "auto").lower().strip()
    if sel == "interleaved":
        return AxisOrdering.INTERLEAVED
    if sel == "grouped":
        return AxisOrdering.GROUPED
    return AxisOrdering.for_transport(first_transport)


def main(argv: Optional[list] = None) -> int:
    ap = argparse.ArgumentParser(description="Replay captured input reports through the motion pipeline")
    ap.add_argument("--config", type=str, default=None)
    ap.add_argument("--capture", type=str, required=True)
    ap.add_argument("--calibration", type=str, default=None,
                    help="calibration feature report as hex (report ID included)")
    ap.add_argument("--ordering", type=str, default="auto", choices=("auto", "interleaved", "grouped"))
    ap.add_argument("--estimator", type=str, default=None, choices=("complementary", "madgwick"))
    ap.add_argument("--out-dir", type=str, default=None)
    ap.add_argument("--no-record", action="store_true")
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else default_config()
    if args.estimator:
        cfg.filters.estimator = args.estimator
    setup_logging(cfg.logging.level)

    replay = CaptureReplay(args.capture)
    captured = list(replay.captured())
    pipeline = MotionPipeline(cfg)

    if args.calibration:
        ordering = _pick_ordering(args.ordering, captured[0].transport)
        prof = pipeline.load_calibration(bytes.fromhex(args.calibration), ordering)
        logger.info("calibration loaded: %s", prof)
    else:
        logger.warning("no calibration report given, motion output is uncalibrated passthrough")

    recorder = None
    if (cfg.logging.save_csv or args.out_dir is not None) and not args.no_record:
        out_dir = args.out_dir if args.out_dir is not None else cfg.logging.out_dir
        recorder = RunLogger(out_dir, prefix="replay")

    try:
        for rep in captured:
            update = pipeline.process(rep.data, rep.transport)
            if update is not None and recorder is not None:
                recorder.write_update(rep.t, update)
    finally:
        if recorder is not None:
            recorder.close()
            print(f"saved: {recorder.csv_path}")

    s = pipeline.stats()
    print(f"reports: {len(captured)} processed: {s['processed']} dropped: {s['dropped']} skipped: {s['skipped']}")
    pitch, roll, yaw = pipeline.estimator.euler_deg()
    print(f"final orientation ({pipeline.estimator.name}): pitch={pitch:.2f} roll={roll:.2f} yaw={yaw:.2f} deg")
    off = pipeline.drift.offset
    print(f"drift offset: pitch={off[0]:.4f} yaw={off[1]:.4f} roll={off[2]:.4f} deg/s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
