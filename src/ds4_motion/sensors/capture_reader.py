from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

from .imu_base import Transport


_TRANSPORT_NAMES = {
    "usb": Transport.USB,
    "bt": Transport.BLUETOOTH_EXTENDED,
    "bluetooth": Transport.BLUETOOTH_EXTENDED,
}


@dataclass
class CapturedReport:
    t: float
    transport: Transport
    data: bytes


def parse_transport(name: str) -> Transport:
    try:
        return _TRANSPORT_NAMES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown transport {name!r} (expected usb or bt)") from None


class CaptureReplay:
    """
    Replays input reports captured from a controller.

    CSV format:
        t,transport,report_hex
        12.000125,usb,01807f7f80...
    `transport` is usb or bt; `report_hex` is the whole report, report ID included.
    """

    REQUIRED = ("t", "transport", "report_hex")

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._rows = self._load_rows()
        if not self._rows:
            raise ValueError(f"capture is empty: {csv_path}")
        missing = [c for c in self.REQUIRED if c not in self._rows[0]]
        if missing:
            raise ValueError(f"capture is missing columns: {', '.join(missing)}")

    def _load_rows(self) -> List[Dict[str, str]]:
        with open(self.csv_path, "r", newline="", encoding="utf-8") as f:
            r = csv.DictReader(f)
            return [row for row in r]

    def __len__(self) -> int:
        return len(self._rows)

    def captured(self) -> Iterator[CapturedReport]:
        for i, row in enumerate(self._rows, start=2):
            try:
                yield CapturedReport(
                    t=float(row["t"]),
                    transport=parse_transport(row["transport"]),
                    data=bytes.fromhex(row["report_hex"].strip()),
                )
            except ValueError as e:
                raise ValueError(f"{self.csv_path}:{i}: {e}") from e

    def reports(self) -> Iterator[Tuple[Transport, bytes]]:
        for rep in self.captured():
            yield rep.transport, rep.data
