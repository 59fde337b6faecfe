from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple, Union

from ..sensors.imu_base import CalibratedSample


# updates with dt outside (0, DEFAULT_MAX_DT) are treated as corrupt timing
DEFAULT_MAX_DT = 1.0


@dataclass(frozen=True)
class EulerAngles:
    pitch: float  # deg
    roll: float   # deg
    yaw: float    # deg


@dataclass(frozen=True)
class QuaternionState:
    w: float
    x: float
    y: float
    z: float

    @property
    def norm_sq(self) -> float:
        return self.w*self.w + self.x*self.x + self.y*self.y + self.z*self.z


Orientation = Union[EulerAngles, QuaternionState]


def dt_is_sane(dt: float, max_dt: float = DEFAULT_MAX_DT) -> bool:
    return 0.0 < dt < max_dt


class OrientationEstimator(Protocol):
    name: str

    def update(self, sample: CalibratedSample, dt: float) -> bool:
        """Fuse one drift-corrected sample; False when the step was skipped."""
        ...

    def current_orientation(self) -> Orientation:
        ...

    def euler_deg(self) -> Tuple[float, float, float]:
        """(pitch, roll, yaw) in degrees."""
        ...

    def reset(self) -> None:
        ...
