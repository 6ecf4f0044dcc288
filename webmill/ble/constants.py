"""FTMS constants and flag helpers for BLE treadmills."""

from __future__ import annotations

from dataclasses import dataclass

FTMS_SERVICE_UUID = "00001826-0000-1000-8000-00805f9b34fb"
TREADMILL_DATA_CHAR_UUID = "00002acd-0000-1000-8000-00805f9b34fb"
FITNESS_MACHINE_CONTROL_POINT_CHAR_UUID = "00002ad9-0000-1000-8000-00805f9b34fb"
HEART_RATE_SERVICE_UUID = "0000180d-0000-1000-8000-00805f9b34fb"
HEART_RATE_MEASUREMENT_CHAR_UUID = "00002a37-0000-1000-8000-00805f9b34fb"

# Fitness Machine Control Point opcodes (FTMS)
OP_REQUEST_CONTROL = 0x00
OP_SET_TARGET_SPEED = 0x02
OP_SET_TARGET_INCLINATION = 0x03
OP_START_RESUME = 0x07
OP_STOP_PAUSE = 0x08

# Parameter bytes sent with OP_START_RESUME / OP_STOP_PAUSE (0x02 = stop, not pause)
START_PARAM = 0x02
STOP_PARAM = 0x02

# Treadmill Data flags as emitted by the supported treadmills
FLAG_SPEED_PRESENT = 1 << 1
FLAG_AVERAGE_SPEED_PRESENT = 1 << 2
FLAG_TOTAL_DISTANCE_PRESENT = 1 << 3
FLAG_INCLINATION_PRESENT = 1 << 4

# Heart Rate Measurement flags
FLAG_HEART_RATE_UINT16 = 1 << 0


@dataclass(frozen=True)
class TreadmillDataFlags:
    speed_present: bool
    average_speed_present: bool
    total_distance_present: bool
    inclination_present: bool


def parse_treadmill_flags(raw_flags: int) -> TreadmillDataFlags:
    """Decode Treadmill Data flags into a typed structure."""
    return TreadmillDataFlags(
        speed_present=bool(raw_flags & FLAG_SPEED_PRESENT),
        average_speed_present=bool(raw_flags & FLAG_AVERAGE_SPEED_PRESENT),
        total_distance_present=bool(raw_flags & FLAG_TOTAL_DISTANCE_PRESENT),
        inclination_present=bool(raw_flags & FLAG_INCLINATION_PRESENT),
    )
