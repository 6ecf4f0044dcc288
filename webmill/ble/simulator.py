"""Simulated treadmill used when no physical device is available."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from typing import Optional

from webmill.ble.codec import ConnectionStatus, TelemetrySample
from webmill.ble.ftms_client import StatusCallback, TelemetryCallback, invoke_callback

logger = logging.getLogger(__name__)

CONNECT_LATENCY_SEC = 0.5
TICK_INTERVAL_SEC = 0.1
RAMP_STEP = 0.1
START_SPEED_KMH = 2.0


def _approach(current: float, target: float) -> float:
    diff = target - current
    if abs(diff) < RAMP_STEP:
        return target
    return current + math.copysign(RAMP_STEP, diff)


class SimulatedTreadmill:
    """Same surface as :class:`FTMSClient`, without codec or command queue.

    Target setters take effect immediately; the tick loop ramps speed and
    incline toward the targets.
    """

    def __init__(
        self,
        *,
        connect_latency: float = CONNECT_LATENCY_SEC,
        tick_interval: float = TICK_INTERVAL_SEC,
    ) -> None:
        self._connect_latency = connect_latency
        self._tick_interval = tick_interval
        self._status = ConnectionStatus.DISCONNECTED
        self._telemetry = TelemetrySample()
        self._target_speed = 0.0
        self._target_incline = 0.0
        self._telemetry_callback: Optional[TelemetryCallback] = None
        self._status_callback: Optional[StatusCallback] = None
        self._sim_task: Optional[asyncio.Task[None]] = None

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def telemetry(self) -> TelemetrySample:
        return self._telemetry

    @property
    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    @property
    def device_label(self) -> str:
        return "Webmill Sim Treadmill (SIM:TM:00:00:00:01)"

    @property
    def target_speed(self) -> float:
        return self._target_speed

    @property
    def target_incline(self) -> float:
        return self._target_incline

    def set_on_telemetry(self, callback: Optional[TelemetryCallback]) -> None:
        self._telemetry_callback = callback

    def set_on_status(self, callback: Optional[StatusCallback]) -> None:
        self._status_callback = callback

    async def connect(self) -> ConnectionStatus:
        if self._status is not ConnectionStatus.DISCONNECTED:
            return self._status
        self._set_status(ConnectionStatus.CONNECTING)
        await asyncio.sleep(self._connect_latency)
        if self._status is not ConnectionStatus.CONNECTING:
            # disconnect() won the race
            return self._status
        self._set_status(ConnectionStatus.CONNECTED)
        self._sim_task = asyncio.create_task(self._simulation_loop())
        return self._status

    async def disconnect(self) -> None:
        if self._sim_task is not None:
            self._sim_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sim_task
            self._sim_task = None
        self._telemetry = TelemetrySample()
        self._set_status(ConnectionStatus.DISCONNECTED)

    def set_target_speed(self, speed_kmh: float) -> None:
        self._target_speed = speed_kmh
        logger.debug("[SIM] target speed %.1f km/h", speed_kmh)

    def set_target_incline(self, incline_pct: float) -> None:
        self._target_incline = incline_pct
        logger.debug("[SIM] target incline %.1f%%", incline_pct)

    def start_workout(self) -> None:
        self._target_speed = START_SPEED_KMH
        logger.debug("[SIM] start workout")

    def stop_workout(self) -> None:
        self._target_speed = 0.0
        self._target_incline = 0.0
        logger.debug("[SIM] stop workout")

    def tick(self) -> TelemetrySample:
        """Advance the simulation by one tick and publish the new sample."""
        speed = round(_approach(self._telemetry.speed_kmh, self._target_speed), 1)
        incline = round(_approach(self._telemetry.incline_pct, self._target_incline), 1)
        distance = self._telemetry.distance_km + (speed / 3600.0) * self._tick_interval
        self._telemetry = TelemetrySample(
            speed_kmh=speed,
            incline_pct=incline,
            distance_km=distance,
        )
        invoke_callback(self._telemetry_callback, self._telemetry)
        return self._telemetry

    async def _simulation_loop(self) -> None:
        while self._status is ConnectionStatus.CONNECTED:
            await asyncio.sleep(self._tick_interval)
            self.tick()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        logger.info("[SIM] connection status: %s -> %s", self._status.value, status.value)
        self._status = status
        invoke_callback(self._status_callback, status)
