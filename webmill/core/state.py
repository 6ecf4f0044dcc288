"""Shared runtime state for the terminal session."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from webmill.ble.codec import TelemetrySample


@dataclass
class EngineState:
    connected_device: str | None = None
    last_sample: TelemetrySample | None = None
    last_update: datetime | None = None
    target_speed_kmh: float | None = None
    target_incline_pct: float | None = None
