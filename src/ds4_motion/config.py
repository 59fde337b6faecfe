from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import yaml


ESTIMATORS = ("complementary", "madgwick")


def _np3i(x: List[int]) -> np.ndarray:
    a = np.asarray(x, dtype=int).reshape(3)
    return a


@dataclass
class DecoderConfig:
    validate_crc: bool = False


@dataclass
class TimingConfig:
    max_report_dt: float = 0.1  # seconds; longer gaps mean a stale or corrupt report


@dataclass
class DriftConfig:
    window_count: int = 3
    window_seconds: float = 5.0
    stationary_threshold_g: float = 0.05


@dataclass
class ComplementaryConfig:
    alpha: float = 0.98


@dataclass
class MadgwickConfig:
    beta: float = 0.04


@dataclass
class FiltersConfig:
    estimator: str = "complementary"  # complementary | madgwick
    max_dt: float = 1.0
    complementary: ComplementaryConfig = field(default_factory=ComplementaryConfig)
    madgwick: MadgwickConfig = field(default_factory=MadgwickConfig)


@dataclass
class MountingConfig:
    axis_map: np.ndarray = field(default_factory=lambda: np.array([0, 1, 2], dtype=int))
    axis_sign: np.ndarray = field(default_factory=lambda: np.array([1, 1, 1], dtype=int))


@dataclass
class LoggingConfig:
    level: str = "INFO"
    save_csv: bool = False
    out_dir: str = "runs"


@dataclass
class ProjectConfig:
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    drift: DriftConfig = field(default_factory=DriftConfig)
    filters: FiltersConfig = field(default_factory=FiltersConfig)
    mounting: MountingConfig = field(default_factory=MountingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def default_config() -> ProjectConfig:
    return ProjectConfig()


def _pick_estimator(name: Optional[str]) -> str:
    sel = (name or "complementary").lower().strip()
    if sel not in ESTIMATORS:
        raise ValueError(f"config.yaml: filters.estimator must be one of {ESTIMATORS}, got {name!r}")
    return sel


def config_from_dict(raw: Optional[dict]) -> ProjectConfig:
    raw = raw or {}

    dec = raw.get("decoder", {}) or {}
    decoder = DecoderConfig(
        validate_crc=bool(dec.get("validate_crc", False)),
    )

    tm = raw.get("timing", {}) or {}
    timing = TimingConfig(
        max_report_dt=float(tm.get("max_report_dt", 0.1)),
    )

    dr = raw.get("drift", {}) or {}
    drift = DriftConfig(
        window_count=int(dr.get("window_count", 3)),
        window_seconds=float(dr.get("window_seconds", 5.0)),
        stationary_threshold_g=float(dr.get("stationary_threshold_g", 0.05)),
    )

    fr = raw.get("filters", {}) or {}
    filters = FiltersConfig(
        estimator=_pick_estimator(fr.get("estimator")),
        max_dt=float(fr.get("max_dt", 1.0)),
        complementary=ComplementaryConfig(
            alpha=float((fr.get("complementary", {}) or {}).get("alpha", 0.98)),
        ),
        madgwick=MadgwickConfig(
            beta=float((fr.get("madgwick", {}) or {}).get("beta", 0.04)),
        ),
    )

    mt = raw.get("mounting", {}) or {}
    mounting = MountingConfig(
        axis_map=_np3i(mt.get("axis_map", [0, 1, 2])),
        axis_sign=_np3i(mt.get("axis_sign", [1, 1, 1])),
    )
    if sorted(mounting.axis_map.tolist()) != [0, 1, 2]:
        raise ValueError("config.yaml: mounting.axis_map must be a permutation of [0, 1, 2]")
    if any(s not in (-1, 1) for s in mounting.axis_sign.tolist()):
        raise ValueError("config.yaml: mounting.axis_sign entries must be +1 or -1")

    lg = raw.get("logging", {}) or {}
    logging = LoggingConfig(
        level=str(lg.get("level", "INFO")).upper(),
        save_csv=bool(lg.get("save_csv", False)),
        out_dir=str(lg.get("out_dir", "runs")),
    )

    return ProjectConfig(
        decoder=decoder,
        timing=timing,
        drift=drift,
        filters=filters,
        mounting=mounting,
        logging=logging,
    )


def load_config(path: str) -> ProjectConfig:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return config_from_dict(raw)
