from __future__ import annotations

import asyncio
import struct
from typing import Callable, Optional

from webmill.ble.codec import ConnectionStatus, TelemetrySample
from webmill.ble.constants import HEART_RATE_MEASUREMENT_CHAR_UUID, TREADMILL_DATA_CHAR_UUID
from webmill.ble.ftms_client import FTMSClient
from webmill.core.errors import DiscoveryCancelledError, TransportError


class FakeTransport:
    def __init__(
        self,
        *,
        discover_error: Optional[Exception] = None,
        heart_rate: bool = True,
        write_delay: float = 0.0,
        write_error: Optional[BaseException] = None,
        discover_delay: float = 0.0,
    ) -> None:
        self.discover_error = discover_error
        self.heart_rate = heart_rate
        self.write_delay = write_delay
        self.write_error = write_error
        self.discover_delay = discover_delay
        self.writes: list[bytes] = []
        self.subscriptions: dict[str, Callable[[bytes], None]] = {}
        self.closed = 0
        self.disconnected_callback: Optional[Callable[[], None]] = None

    async def discover(self) -> str:
        await asyncio.sleep(self.discover_delay)
        if self.discover_error is not None:
            raise self.discover_error
        return "Fake Treadmill (AA:BB)"

    async def write(self, payload: bytes) -> None:
        await asyncio.sleep(self.write_delay)
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(payload)

    async def subscribe(self, char_uuid: str, callback: Callable[[bytes], None]) -> None:
        if char_uuid == HEART_RATE_MEASUREMENT_CHAR_UUID and not self.heart_rate:
            raise TransportError("heart rate service missing")
        self.subscriptions[char_uuid] = callback

    async def unsubscribe(self, char_uuid: str) -> None:
        self.subscriptions.pop(char_uuid, None)

    async def close(self) -> None:
        self.closed += 1

    def set_disconnected_callback(self, callback: Optional[Callable[[], None]]) -> None:
        self.disconnected_callback = callback

    def notify(self, char_uuid: str, payload: bytes) -> None:
        self.subscriptions[char_uuid](payload)


def test_connect_subscribes_and_requests_control() -> None:
    async def _run() -> None:
        transport = FakeTransport()
        client = FTMSClient(transport)
        statuses: list[ConnectionStatus] = []
        client.set_on_status(statuses.append)

        status = await client.connect()

        assert status is ConnectionStatus.CONNECTED
        assert statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
        assert transport.writes == [b"\x00"]
        assert TREADMILL_DATA_CHAR_UUID in transport.subscriptions
        assert HEART_RATE_MEASUREMENT_CHAR_UUID in transport.subscriptions
        assert client.device_label == "Fake Treadmill (AA:BB)"
        await client.disconnect()

    asyncio.run(_run())


def test_missing_heart_rate_does_not_fail_connect() -> None:
    async def _run() -> None:
        transport = FakeTransport(heart_rate=False)
        client = FTMSClient(transport)

        assert await client.connect() is ConnectionStatus.CONNECTED
        assert HEART_RATE_MEASUREMENT_CHAR_UUID not in transport.subscriptions
        await client.disconnect()

    asyncio.run(_run())


def test_cancelled_discovery_returns_to_disconnected() -> None:
    async def _run() -> None:
        client = FTMSClient(FakeTransport(discover_error=DiscoveryCancelledError("cancelled")))
        statuses: list[ConnectionStatus] = []
        client.set_on_status(statuses.append)

        assert await client.connect() is ConnectionStatus.DISCONNECTED
        assert ConnectionStatus.ERROR not in statuses

    asyncio.run(_run())


def test_failed_discovery_enters_error_then_recovers() -> None:
    async def _run() -> None:
        client = FTMSClient(
            FakeTransport(discover_error=TransportError("no device")),
            error_timeout=0.05,
        )

        assert await client.connect() is ConnectionStatus.ERROR
        await asyncio.sleep(0.1)
        assert client.status is ConnectionStatus.DISCONNECTED

    asyncio.run(_run())


def test_unexpected_handshake_error_enters_error_and_allows_retry() -> None:
    async def _run() -> None:
        transport = FakeTransport(write_error=asyncio.TimeoutError())
        client = FTMSClient(transport, error_timeout=0.05)

        assert await client.connect() is ConnectionStatus.ERROR
        assert transport.subscriptions == {}
        assert transport.closed >= 1

        await asyncio.sleep(0.1)
        assert client.status is ConnectionStatus.DISCONNECTED

        transport.write_error = None
        assert await client.connect() is ConnectionStatus.CONNECTED
        await client.disconnect()

    asyncio.run(_run())


def test_disconnect_during_discovery_wins() -> None:
    async def _run() -> None:
        transport = FakeTransport(discover_delay=0.05)
        client = FTMSClient(transport)
        statuses: list[ConnectionStatus] = []
        client.set_on_status(statuses.append)

        connecting = asyncio.create_task(client.connect())
        await asyncio.sleep(0.01)
        assert client.status is ConnectionStatus.CONNECTING
        await client.disconnect()

        assert await connecting is ConnectionStatus.DISCONNECTED
        assert client.status is ConnectionStatus.DISCONNECTED
        assert ConnectionStatus.CONNECTED not in statuses
        assert transport.subscriptions == {}
        assert transport.writes == []
        assert client.dispatcher.is_running is False
        assert client.device_label is None

    asyncio.run(_run())


def test_device_disconnect_during_discovery_wins() -> None:
    async def _run() -> None:
        transport = FakeTransport(discover_delay=0.05)
        client = FTMSClient(transport)

        connecting = asyncio.create_task(client.connect())
        await asyncio.sleep(0.01)
        assert transport.disconnected_callback is not None
        transport.disconnected_callback()

        assert await connecting is ConnectionStatus.DISCONNECTED
        assert transport.subscriptions == {}

    asyncio.run(_run())


def test_setters_are_written_in_order_after_connect() -> None:
    async def _run() -> None:
        transport = FakeTransport(write_delay=0.005)
        client = FTMSClient(transport)

        client.set_target_speed(6.0)
        await client.connect()
        client.set_target_incline(1.5)
        client.start_workout()
        client.stop_workout()
        await asyncio.sleep(0.1)

        assert transport.writes == [
            b"\x00",
            b"\x02" + struct.pack("<H", 600),
            b"\x03" + struct.pack("<h", 15),
            b"\x07\x02",
            b"\x08\x02",
        ]
        await client.disconnect()

    asyncio.run(_run())


def test_disconnect_clears_queue_and_unsubscribes() -> None:
    async def _run() -> None:
        transport = FakeTransport(write_delay=0.05)
        client = FTMSClient(transport)
        await client.connect()

        for speed in (5.0, 6.0, 7.0):
            client.set_target_speed(speed)
        await asyncio.sleep(0.01)
        await client.disconnect()

        assert client.status is ConnectionStatus.DISCONNECTED
        assert client.dispatcher.pending == ()
        assert client.dispatcher.in_flight is False
        assert transport.subscriptions == {}
        assert transport.closed >= 1
        assert client.telemetry == TelemetrySample()

    asyncio.run(_run())


def test_device_initiated_disconnect_runs_teardown() -> None:
    async def _run() -> None:
        transport = FakeTransport()
        client = FTMSClient(transport)
        await client.connect()
        client.set_target_speed(9.0)

        assert transport.disconnected_callback is not None
        transport.disconnected_callback()
        await asyncio.sleep(0.01)

        assert client.status is ConnectionStatus.DISCONNECTED
        assert transport.subscriptions == {}

    asyncio.run(_run())


def test_telemetry_notifications_update_sample_and_callback() -> None:
    async def _run() -> None:
        transport = FakeTransport()
        client = FTMSClient(transport)
        samples: list[TelemetrySample] = []
        client.set_on_telemetry(samples.append)
        await client.connect()

        transport.notify(HEART_RATE_MEASUREMENT_CHAR_UUID, bytes([0x00, 141]))
        transport.notify(
            TREADMILL_DATA_CHAR_UUID,
            struct.pack("<HHIh", 0x001A, 1000, 12000, 20),
        )
        # Distance omitted: previous distance is carried forward.
        transport.notify(TREADMILL_DATA_CHAR_UUID, struct.pack("<HH", 0x0002, 1100))
        # Malformed frame is dropped.
        transport.notify(TREADMILL_DATA_CHAR_UUID, b"\x02")

        assert len(samples) == 2
        assert abs(samples[0].speed_kmh - 10.0) < 1e-9
        assert abs(samples[0].distance_km - 1.2) < 1e-9
        assert abs(samples[0].incline_pct - 2.0) < 1e-9
        assert samples[0].heart_rate_bpm == 141
        assert abs(samples[1].distance_km - 1.2) < 1e-9
        assert client.telemetry == samples[1]
        await client.disconnect()

    asyncio.run(_run())


def test_async_telemetry_callback_is_scheduled() -> None:
    async def _run() -> None:
        transport = FakeTransport()
        client = FTMSClient(transport)
        received: list[TelemetrySample] = []

        async def on_telemetry(sample: TelemetrySample) -> None:
            received.append(sample)

        client.set_on_telemetry(on_telemetry)
        await client.connect()
        transport.notify(TREADMILL_DATA_CHAR_UUID, struct.pack("<HH", 0x0002, 500))
        await asyncio.sleep(0)

        assert len(received) == 1
        await client.disconnect()

    asyncio.run(_run())
