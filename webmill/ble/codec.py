"""Binary codec for FTMS treadmill notifications and control point commands."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from webmill.ble.constants import (
    FLAG_HEART_RATE_UINT16,
    OP_REQUEST_CONTROL,
    OP_SET_TARGET_INCLINATION,
    OP_SET_TARGET_SPEED,
    OP_START_RESUME,
    OP_STOP_PAUSE,
    START_PARAM,
    STOP_PARAM,
    parse_treadmill_flags,
)
from webmill.core.errors import DecodeError


class ConnectionStatus(str, Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    ERROR = "Error"


class CommandKind(str, Enum):
    REQUEST_CONTROL = "request_control"
    SET_TARGET_SPEED = "set_target_speed"
    SET_TARGET_INCLINE = "set_target_incline"
    START = "start"
    STOP = "stop"


@dataclass(frozen=True)
class TelemetrySample:
    speed_kmh: float = 0.0
    incline_pct: float = 0.0
    distance_km: float = 0.0
    heart_rate_bpm: Optional[int] = None


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    payload: bytes


def _require_bytes(data: bytes, cursor: int, size: int) -> None:
    if cursor + size > len(data):
        raise DecodeError(
            f"Invalid Treadmill Data payload: expected {size} bytes at offset {cursor}"
        )


def decode_telemetry(payload: bytes, *, last_distance_km: float = 0.0) -> TelemetrySample:
    """Parse a Treadmill Data notification.

    Distance is only reported on some frames; when its flag is absent the
    caller's last known distance is carried forward.
    """
    if len(payload) < 2:
        raise DecodeError("Treadmill Data payload too short")

    raw_flags = struct.unpack_from("<H", payload, 0)[0]
    flags = parse_treadmill_flags(raw_flags)
    cursor = 2

    speed_kmh = 0.0
    if flags.speed_present:
        _require_bytes(payload, cursor, 2)
        speed_kmh = struct.unpack_from("<H", payload, cursor)[0] * 0.01
        cursor += 2

    if flags.average_speed_present:
        _require_bytes(payload, cursor, 2)
        cursor += 2

    distance_km = last_distance_km
    if flags.total_distance_present:
        _require_bytes(payload, cursor, 4)
        raw_distance = struct.unpack_from("<I", payload, cursor)[0]
        distance_km = (raw_distance * 0.1) / 1000.0
        cursor += 4

    incline_pct = 0.0
    if flags.inclination_present:
        _require_bytes(payload, cursor, 2)
        incline_pct = struct.unpack_from("<h", payload, cursor)[0] * 0.1
        cursor += 2

    return TelemetrySample(
        speed_kmh=speed_kmh,
        incline_pct=incline_pct,
        distance_km=distance_km,
    )


def decode_heart_rate(payload: bytes) -> int:
    """Parse a Heart Rate Measurement notification (0x2A37) into bpm."""
    if len(payload) < 2:
        raise DecodeError("Heart Rate Measurement payload too short")
    if payload[0] & FLAG_HEART_RATE_UINT16:
        _require_bytes(payload, 1, 2)
        return struct.unpack_from("<H", payload, 1)[0]
    return payload[1]


def encode_command(kind: CommandKind, value: Optional[float] = None) -> Command:
    if kind is CommandKind.REQUEST_CONTROL:
        return Command(kind, bytes([OP_REQUEST_CONTROL]))
    if kind is CommandKind.START:
        return Command(kind, bytes([OP_START_RESUME, START_PARAM]))
    if kind is CommandKind.STOP:
        return Command(kind, bytes([OP_STOP_PAUSE, STOP_PARAM]))

    if value is None:
        raise ValueError(f"{kind.value} requires a value")

    if kind is CommandKind.SET_TARGET_SPEED:
        raw = int(round(value * 100))
        if not 0 <= raw <= 0xFFFF:
            raise ValueError(f"Target speed out of range: {value} km/h")
        return Command(kind, bytes([OP_SET_TARGET_SPEED]) + struct.pack("<H", raw))

    raw = int(round(value * 10))
    if not -0x8000 <= raw <= 0x7FFF:
        raise ValueError(f"Target incline out of range: {value}%")
    return Command(kind, bytes([OP_SET_TARGET_INCLINATION]) + struct.pack("<h", raw))
