from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict

from .imu_base import RawImuSample, Transport


@dataclass(frozen=True)
class ImuOffsets:
    """Byte offsets of the IMU fields, counted from the report ID byte."""
    timestamp: int = 10
    gyro_x: int = 13
    gyro_y: int = 15
    gyro_z: int = 17
    accel_x: int = 19
    accel_y: int = 21
    accel_z: int = 23

    def shifted(self, n: int) -> "ImuOffsets":
        return ImuOffsets(**{f.name: getattr(self, f.name) + n for f in fields(self)})

    @property
    def min_length(self) -> int:
        return max(getattr(self, f.name) for f in fields(self)) + 2


USB_OFFSETS = ImuOffsets()
# BT extended report: report ID, then two BT flag bytes before the USB-equivalent payload
BT_HEADER_SHIFT = 2
BT_EXTENDED_REPORT_SIZE = 78
BT_CRC_SEED = 0xA1
BT_CRC_OFFSET = 74


class DecodeErrorKind(Enum):
    TOO_SHORT = "too_short"
    CRC_MISMATCH = "crc_mismatch"


class DecodeError(ValueError):
    def __init__(self, kind: DecodeErrorKind, expected: int = 0, got: int = 0):
        self.kind = kind
        self.expected = expected
        self.got = got
        if kind is DecodeErrorKind.TOO_SHORT:
            msg = f"report too short: expected >= {expected} bytes, got {got}"
        else:
            msg = f"report CRC mismatch: stored 0x{got:08X}, computed 0x{expected:08X}"
        super().__init__(msg)


def bt_input_crc(report: bytes) -> int:
    """CRC-32 of a BT extended input report (seed byte + first 74 bytes)."""
    return zlib.crc32(bytes([BT_CRC_SEED]) + bytes(report[:BT_CRC_OFFSET])) & 0xFFFFFFFF


class ReportDecoder:
    """
    Pulls the raw gyro/accel/timestamp fields out of an input report.

    - USB input report (ID 0x01): fields at USB_OFFSETS
    - BT extended input report (ID 0x11): same order, every offset +2
    All IMU fields are little-endian; gyro/accel are int16, timestamp uint16.
    """

    def __init__(self, offsets: ImuOffsets = USB_OFFSETS, *, validate_crc: bool = False):
        self.validate_crc = bool(validate_crc)
        self._offsets: Dict[Transport, ImuOffsets] = {
            Transport.USB: offsets,
            Transport.BLUETOOTH_EXTENDED: offsets.shifted(BT_HEADER_SHIFT),
        }

    def offsets_for(self, transport: Transport) -> ImuOffsets:
        return self._offsets[transport]

    def decode(self, buffer: bytes, transport: Transport) -> RawImuSample:
        buf = bytes(buffer)
        off = self._offsets[transport]

        need = off.min_length
        if transport is Transport.BLUETOOTH_EXTENDED and self.validate_crc:
            need = max(need, BT_EXTENDED_REPORT_SIZE)
        if len(buf) < need:
            raise DecodeError(DecodeErrorKind.TOO_SHORT, expected=need, got=len(buf))

        if transport is Transport.BLUETOOTH_EXTENDED and self.validate_crc:
            computed = bt_input_crc(buf)
            (stored,) = struct.unpack_from("<I", buf, BT_CRC_OFFSET)
            if computed != stored:
                raise DecodeError(DecodeErrorKind.CRC_MISMATCH, expected=computed, got=stored)

        return RawImuSample(
            gyro_x=self._s16le(buf, off.gyro_x),
            gyro_y=self._s16le(buf, off.gyro_y),
            gyro_z=self._s16le(buf, off.gyro_z),
            accel_x=self._s16le(buf, off.accel_x),
            accel_y=self._s16le(buf, off.accel_y),
            accel_z=self._s16le(buf, off.accel_z),
            timestamp_ticks=struct.unpack_from("<H", buf, off.timestamp)[0],
        )

    @staticmethod
    def _s16le(b: bytes, off: int) -> int:
        return struct.unpack_from("<h", b, off)[0]


USB_INPUT_REPORT_ID = 0x01
USB_INPUT_REPORT_SIZE = 64
BT_INPUT_REPORT_ID = 0x11


def build_report(sample: RawImuSample, transport: Transport, offsets: ImuOffsets = USB_OFFSETS) -> bytes:
    """Full-size input report carrying `sample`, everything else zeroed (BT gets a valid CRC)."""
    if transport is Transport.BLUETOOTH_EXTENDED:
        buf = bytearray(BT_EXTENDED_REPORT_SIZE)
        buf[0] = BT_INPUT_REPORT_ID
        off = offsets.shifted(BT_HEADER_SHIFT)
    else:
        buf = bytearray(USB_INPUT_REPORT_SIZE)
        buf[0] = USB_INPUT_REPORT_ID
        off = offsets
    struct.pack_into("<H", buf, off.timestamp, sample.timestamp_ticks & 0xFFFF)
    for name in ("gyro_x", "gyro_y", "gyro_z", "accel_x", "accel_y", "accel_z"):
        struct.pack_into("<h", buf, getattr(off, name), getattr(sample, name))
    if transport is Transport.BLUETOOTH_EXTENDED:
        struct.pack_into("<I", buf, BT_CRC_OFFSET, bt_input_crc(bytes(buf)))
    return bytes(buf)
