from __future__ import annotations

import csv
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

from ..filters.base import EulerAngles, QuaternionState

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)


@dataclass
class RunLogger:
    """CSV recorder: one row per fused report."""
    out_dir: str
    prefix: str = "run"
    csv_path: Optional[str] = None

    def __post_init__(self) -> None:
        os.makedirs(self.out_dir, exist_ok=True)
        ts = time.strftime("%Y%m%d_%H%M%S")
        self.csv_path = os.path.join(self.out_dir, f"{self.prefix}_{ts}.csv")
        self._f = open(self.csv_path, "w", newline="", encoding="utf-8")
        self._w = csv.writer(self._f)
        self.rows = 0
        self._w.writerow([
            "t", "dt",
            "raw_gx", "raw_gy", "raw_gz", "raw_ax", "raw_ay", "raw_az", "ticks",
            "pitch_dps", "yaw_dps", "roll_dps", "ax_g", "ay_g", "az_g",
            "corr_pitch_dps", "corr_yaw_dps", "corr_roll_dps",
            "stationary", "cal_valid",
            "q_w", "q_x", "q_y", "q_z",
            "pitch_deg", "roll_deg", "yaw_deg",
        ])
        self._f.flush()

    def write_update(self, t: float, update) -> None:
        """`update` is a pipeline.MotionUpdate."""
        r = update.raw
        c = update.calibrated
        k = update.corrected
        o = update.orientation
        if isinstance(o, QuaternionState):
            quat = [o.w, o.x, o.y, o.z]
            euler = ["", "", ""]
        elif isinstance(o, EulerAngles):
            quat = ["", "", "", ""]
            euler = [o.pitch, o.roll, o.yaw]
        else:
            raise TypeError(f"unsupported orientation type: {type(o).__name__}")

        row = [float(t), float(update.dt),
               r.gyro_x, r.gyro_y, r.gyro_z, r.accel_x, r.accel_y, r.accel_z, r.timestamp_ticks,
               c.pitch_dps, c.yaw_dps, c.roll_dps, c.accel_x_g, c.accel_y_g, c.accel_z_g,
               k.pitch_dps, k.yaw_dps, k.roll_dps,
               int(update.stationary), int(update.calibration_valid)]
        row += quat + euler
        self._w.writerow(row)
        self.rows += 1

    def close(self) -> None:
        self._f.flush()
        self._f.close()

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
