"""Async FTMS treadmill client: connection state machine over a Transport."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from webmill.ble.codec import (
    CommandKind,
    ConnectionStatus,
    TelemetrySample,
    decode_heart_rate,
    decode_telemetry,
    encode_command,
)
from webmill.ble.constants import HEART_RATE_MEASUREMENT_CHAR_UUID, TREADMILL_DATA_CHAR_UUID
from webmill.ble.dispatcher import CommandDispatcher
from webmill.ble.transport import Transport
from webmill.core.errors import DecodeError, DiscoveryCancelledError, TransportError

logger = logging.getLogger(__name__)

TelemetryCallback = Callable[[TelemetrySample], Awaitable[None] | None]
StatusCallback = Callable[[ConnectionStatus], Awaitable[None] | None]

ERROR_TIMEOUT_SEC = 3.0


def invoke_callback(callback: Optional[Callable[[Any], Any]], value: Any) -> None:
    if callback is None:
        return
    maybe_coro = callback(value)
    if asyncio.iscoroutine(maybe_coro):
        asyncio.create_task(maybe_coro)


class Treadmill(Protocol):
    """Surface shared by the real FTMS client and the simulator."""

    @property
    def status(self) -> ConnectionStatus: ...

    @property
    def telemetry(self) -> TelemetrySample: ...

    @property
    def is_connected(self) -> bool: ...

    @property
    def device_label(self) -> Optional[str]: ...

    async def connect(self) -> ConnectionStatus: ...

    async def disconnect(self) -> None: ...

    def set_on_telemetry(self, callback: Optional[TelemetryCallback]) -> None: ...

    def set_on_status(self, callback: Optional[StatusCallback]) -> None: ...

    def set_target_speed(self, speed_kmh: float) -> None: ...

    def set_target_incline(self, incline_pct: float) -> None: ...

    def start_workout(self) -> None: ...

    def stop_workout(self) -> None: ...


class FTMSClient:
    """FTMS treadmill over a :class:`Transport`.

    Setter calls only enqueue encoded commands; a :class:`CommandDispatcher`
    writes them one at a time while the client is connected.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        error_timeout: float = ERROR_TIMEOUT_SEC,
    ) -> None:
        self._transport = transport
        self._error_timeout = error_timeout
        self._dispatcher = CommandDispatcher(transport.write)
        self._status = ConnectionStatus.DISCONNECTED
        self._telemetry = TelemetrySample()
        self._heart_rate: Optional[int] = None
        self._device_label: Optional[str] = None
        self._telemetry_callback: Optional[TelemetryCallback] = None
        self._status_callback: Optional[StatusCallback] = None
        self._error_task: Optional[asyncio.Task[None]] = None
        self._closing = False
        self._connect_generation = 0
        transport.set_disconnected_callback(self._handle_transport_disconnected)

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
    def device_label(self) -> Optional[str]:
        return self._device_label

    @property
    def dispatcher(self) -> CommandDispatcher:
        return self._dispatcher

    def set_on_telemetry(self, callback: Optional[TelemetryCallback]) -> None:
        self._telemetry_callback = callback

    def set_on_status(self, callback: Optional[StatusCallback]) -> None:
        self._status_callback = callback

    async def connect(self) -> ConnectionStatus:
        if self._status is not ConnectionStatus.DISCONNECTED:
            return self._status

        self._connect_generation += 1
        generation = self._connect_generation
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            label = await self._transport.discover()
            if generation == self._connect_generation:
                self._device_label = label
                await self._handshake()
        except DiscoveryCancelledError:
            logger.info("Device selection cancelled")
            if generation == self._connect_generation:
                await self._teardown()
                self._set_status(ConnectionStatus.DISCONNECTED)
                return self._status
        except Exception as exc:
            if isinstance(exc, TransportError):
                logger.error("Bluetooth connection failed: %s", exc)
            else:
                logger.exception("Unexpected error while connecting")
            if generation == self._connect_generation:
                await self._teardown()
                self._enter_error()
                return self._status

        if generation != self._connect_generation:
            # disconnect() ran while this attempt was suspended
            return await self._abandon_connect()

        self._dispatcher.set_connected(True)
        self._dispatcher.start()
        self._set_status(ConnectionStatus.CONNECTED)
        return self._status

    async def disconnect(self) -> None:
        if self._closing:
            return
        self._closing = True
        # Invalidates any connect() still awaiting the transport.
        self._connect_generation += 1
        try:
            if self._error_task is not None:
                self._error_task.cancel()
                self._error_task = None
            await self._teardown()
            self._telemetry = TelemetrySample()
            self._heart_rate = None
            self._device_label = None
            self._set_status(ConnectionStatus.DISCONNECTED)
        finally:
            self._closing = False

    def set_target_speed(self, speed_kmh: float) -> None:
        self._dispatcher.enqueue(encode_command(CommandKind.SET_TARGET_SPEED, speed_kmh))

    def set_target_incline(self, incline_pct: float) -> None:
        self._dispatcher.enqueue(encode_command(CommandKind.SET_TARGET_INCLINE, incline_pct))

    def start_workout(self) -> None:
        self._dispatcher.enqueue(encode_command(CommandKind.START))

    def stop_workout(self) -> None:
        self._dispatcher.enqueue(encode_command(CommandKind.STOP))

    async def _subscribe_heart_rate(self) -> None:
        try:
            await self._transport.subscribe(
                HEART_RATE_MEASUREMENT_CHAR_UUID, self._handle_heart_rate
            )
        except TransportError as exc:
            logger.warning("Heart rate service not found on this device: %s", exc)

    async def _handshake(self) -> None:
        await self._transport.subscribe(TREADMILL_DATA_CHAR_UUID, self._handle_treadmill_data)
        await self._subscribe_heart_rate()
        await self._transport.write(encode_command(CommandKind.REQUEST_CONTROL).payload)

    async def _abandon_connect(self) -> ConnectionStatus:
        """Release what a cancelled connect() acquired, unless a newer attempt owns the link."""
        logger.info("Connection attempt abandoned (status %s)", self._status.value)
        if self._status is ConnectionStatus.DISCONNECTED and not self._closing:
            await self._teardown()
        return self._status

    async def _teardown(self) -> None:
        self._dispatcher.set_connected(False)
        self._dispatcher.clear()
        await self._dispatcher.stop()
        await self._transport.unsubscribe(TREADMILL_DATA_CHAR_UUID)
        await self._transport.unsubscribe(HEART_RATE_MEASUREMENT_CHAR_UUID)
        await self._transport.close()

    def _enter_error(self) -> None:
        self._set_status(ConnectionStatus.ERROR)
        self._error_task = asyncio.create_task(self._clear_error_later())

    async def _clear_error_later(self) -> None:
        await asyncio.sleep(self._error_timeout)
        self._error_task = None
        if self._status is ConnectionStatus.ERROR:
            self._set_status(ConnectionStatus.DISCONNECTED)

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        logger.info("Connection status: %s -> %s", self._status.value, status.value)
        self._status = status
        invoke_callback(self._status_callback, status)

    def _handle_transport_disconnected(self) -> None:
        if self._closing or self._status is ConnectionStatus.DISCONNECTED:
            return
        asyncio.create_task(self.disconnect())

    def _handle_treadmill_data(self, payload: bytes) -> None:
        try:
            sample = decode_telemetry(
                payload, last_distance_km=self._telemetry.distance_km
            )
        except DecodeError as exc:
            logger.debug("Dropped Treadmill Data frame %s: %s", payload.hex(" "), exc)
            return

        logger.debug(
            "[FTMS] payload=%s speed=%.2f incline=%.1f distance=%.3f",
            payload.hex(" "),
            sample.speed_kmh,
            sample.incline_pct,
            sample.distance_km,
        )
        self._telemetry = TelemetrySample(
            speed_kmh=sample.speed_kmh,
            incline_pct=sample.incline_pct,
            distance_km=max(sample.distance_km, self._telemetry.distance_km),
            heart_rate_bpm=self._heart_rate,
        )
        invoke_callback(self._telemetry_callback, self._telemetry)

    def _handle_heart_rate(self, payload: bytes) -> None:
        try:
            self._heart_rate = decode_heart_rate(payload)
        except DecodeError as exc:
            logger.debug("Dropped Heart Rate frame %s: %s", payload.hex(" "), exc)
