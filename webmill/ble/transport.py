"""Transport capability used by the FTMS client, with a bleak-backed implementation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from webmill.ble.constants import (
    FITNESS_MACHINE_CONTROL_POINT_CHAR_UUID,
    FTMS_SERVICE_UUID,
    TREADMILL_DATA_CHAR_UUID,
)
from webmill.core.errors import DiscoveryCancelledError, TransportError

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[bytes], None]
DisconnectedCallback = Callable[[], None]


@dataclass(frozen=True)
class ScannedDevice:
    name: str
    address: str
    rssi: int
    has_ftms: bool


DeviceChooser = Callable[[list[ScannedDevice]], Optional[ScannedDevice]]


class Transport(Protocol):
    """What the FTMS client needs from a device link.

    ``discover`` finds and connects a device and resolves the treadmill data
    and control point characteristics. ``write`` targets the control point and
    returns once the device acknowledged the write.
    """

    async def discover(self) -> str: ...

    async def write(self, payload: bytes) -> None: ...

    async def subscribe(self, char_uuid: str, callback: NotificationCallback) -> None: ...

    async def unsubscribe(self, char_uuid: str) -> None: ...

    async def close(self) -> None: ...

    def set_disconnected_callback(self, callback: Optional[DisconnectedCallback]) -> None: ...


def first_ftms_device(devices: list[ScannedDevice]) -> Optional[ScannedDevice]:
    return next((device for device in devices if device.has_ftms), None)


class BleakTransport:
    """Bleak implementation of :class:`Transport`."""

    def __init__(
        self,
        target: Optional[str] = None,
        *,
        scan_timeout: float = 10.0,
        chooser: DeviceChooser = first_ftms_device,
    ) -> None:
        self._target = target
        self._scan_timeout = scan_timeout
        self._chooser = chooser
        self._client: Optional[BleakClient] = None
        self._scan_cache: dict[str, Any] = {}
        self._subscriptions: set[str] = set()
        self._disconnected_callback: Optional[DisconnectedCallback] = None

    def set_disconnected_callback(self, callback: Optional[DisconnectedCallback]) -> None:
        self._disconnected_callback = callback

    async def scan(self) -> list[ScannedDevice]:
        try:
            discovered = await BleakScanner.discover(
                timeout=self._scan_timeout, return_adv=True
            )
        except (BleakError, OSError) as exc:
            raise TransportError(f"BLE scan failed: {exc}") from exc

        devices: list[ScannedDevice] = []
        self._scan_cache = {}
        for _, (device, adv_data) in discovered.items():
            uuids = {u.lower() for u in (adv_data.service_uuids or [])}
            self._scan_cache[device.address.lower()] = device
            devices.append(
                ScannedDevice(
                    name=device.name or "Unknown",
                    address=device.address,
                    rssi=adv_data.rssi,
                    has_ftms=FTMS_SERVICE_UUID in uuids,
                )
            )

        devices.sort(key=lambda d: d.rssi, reverse=True)
        return devices

    async def discover(self) -> str:
        device = await self._resolve_device()
        client = BleakClient(device, disconnected_callback=self._on_bleak_disconnect)
        try:
            await client.connect()
        except (BleakError, OSError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Unable to connect to {device.address}: {exc}") from exc
        self._client = client

        for char_uuid in (TREADMILL_DATA_CHAR_UUID, FITNESS_MACHINE_CONTROL_POINT_CHAR_UUID):
            if client.services.get_characteristic(char_uuid) is None:
                await self.close()
                raise TransportError(f"Characteristic {char_uuid} not found on device")

        logger.info("Connected to %s (%s)", device.name or "Unknown", device.address)
        return f"{device.name or 'Unknown'} ({device.address})"

    async def write(self, payload: bytes) -> None:
        client = self._require_client()
        try:
            await client.write_gatt_char(
                FITNESS_MACHINE_CONTROL_POINT_CHAR_UUID, payload, response=True
            )
        except (BleakError, OSError) as exc:
            raise TransportError(f"Control point write failed: {exc}") from exc

    async def subscribe(self, char_uuid: str, callback: NotificationCallback) -> None:
        client = self._require_client()
        if char_uuid in self._subscriptions:
            return

        def _handler(_sender: object, data: bytearray) -> None:
            callback(bytes(data))

        try:
            await client.start_notify(char_uuid, _handler)
        except (BleakError, OSError, ValueError) as exc:
            raise TransportError(f"Unable to subscribe to {char_uuid}: {exc}") from exc
        self._subscriptions.add(char_uuid)

    async def unsubscribe(self, char_uuid: str) -> None:
        if self._client is None or char_uuid not in self._subscriptions:
            return
        self._subscriptions.discard(char_uuid)
        try:
            await self._client.stop_notify(char_uuid)
        except (BleakError, OSError) as exc:
            logger.debug("stop_notify(%s) failed: %s", char_uuid, exc)

    async def close(self) -> None:
        client = self._client
        self._client = None
        self._subscriptions.clear()
        if client is not None and client.is_connected:
            try:
                await client.disconnect()
            except (BleakError, OSError) as exc:
                logger.debug("BLE disconnect failed: %s", exc)

    async def _resolve_device(self) -> Any:
        if self._target and self._target != "auto":
            cached = self._scan_cache.get(self._target.lower())
            if cached is not None:
                return cached
            target = self._target.lower()
            try:
                device = await BleakScanner.find_device_by_filter(
                    lambda d, _: d.address.lower() == target
                    or (d.name or "").lower() == target,
                    timeout=self._scan_timeout,
                )
            except (BleakError, OSError) as exc:
                raise TransportError(f"BLE scan failed: {exc}") from exc
            if device is None:
                raise TransportError(f"Device {self._target!r} not found")
            return device

        devices = await self.scan()
        chosen = self._chooser(devices)
        if chosen is None:
            if any(device.has_ftms for device in devices):
                raise DiscoveryCancelledError("No device selected")
            raise TransportError("No FTMS device found")
        return self._scan_cache[chosen.address.lower()]

    def _require_client(self) -> BleakClient:
        if self._client is None:
            raise TransportError("Not connected")
        return self._client

    def _on_bleak_disconnect(self, _client: BleakClient) -> None:
        if self._client is None:
            return
        logger.info("Device disconnected")
        if self._disconnected_callback is not None:
            self._disconnected_callback()
