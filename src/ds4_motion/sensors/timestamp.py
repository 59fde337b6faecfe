from __future__ import annotations

from typing import Optional

# One device tick is 16/3 us (~5.333 us); the counter wraps at 16 bits.
TICK_US = 16.0 / 3.0
TICK_WRAP = 65535
NOMINAL_INTERVAL_S = 0.00125


class TimestampClock:
    """
    Turns the wrapping u16 report timestamp into elapsed seconds between reports.
    The first call has no baseline and reports the nominal 1.25 ms interval.
    """

    def __init__(self) -> None:
        self.previous_ticks: Optional[int] = None

    @property
    def initialized(self) -> bool:
        return self.previous_ticks is not None

    def reset(self) -> None:
        self.previous_ticks = None

    def elapsed(self, current_ticks: int) -> float:
        current_ticks = int(current_ticks) & 0xFFFF
        prev = self.previous_ticks
        self.previous_ticks = current_ticks
        if prev is None:
            return NOMINAL_INTERVAL_S

        if current_ticks < prev:
            delta = (TICK_WRAP - prev) + current_ticks + 1
        else:
            delta = current_ticks - prev
        return delta * 16 / 3 * 1e-6
