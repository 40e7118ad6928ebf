"""Bleak-backed BLE transport."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError
from bleak_retry_connector import BleakClientWithServiceCache, establish_connection

from ..exceptions import BLEConnectionError, BLETimeoutError
from ..models.devices import DiscoveredDevice, default_device_name
from .base import AdvertisementCallback, NotificationHandler

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice
    from bleak.backends.scanner import AdvertisementData

_LOGGER = logging.getLogger(__name__)


class BleakTransport:
    """BleTransport implementation on top of bleak.

    Features:
    - Automatic retry logic with bleak-retry-connector
    - Service caching for faster reconnections
    - Scanning filtered by service UUID
    """

    def __init__(
            self,
            timeout: float = 10.0,
            max_attempts: int = 4,
            use_services_cache: bool = True,
    ):
        """Initialize bleak transport.

        Args:
            timeout: Connection timeout in seconds (default: 10)
            max_attempts: Maximum connection attempts for bleak-retry-connector (default: 4)
            use_services_cache: Enable GATT service caching for faster reconnections (default: True)
        """
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.use_services_cache = use_services_cache

        self._client: BleakClient | None = None
        self._scanner: BleakScanner | None = None
        self._known_devices: dict[str, BLEDevice] = {}

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to device."""
        return self._client is not None and self._client.is_connected

    async def start_scan(
            self,
            callback: AdvertisementCallback,
            service_uuids: list[str] | None = None,
    ) -> None:
        if self._scanner is not None:
            return

        def detection_callback(device: BLEDevice, advertisement: AdvertisementData) -> None:
            self._known_devices[device.address] = device
            callback(DiscoveredDevice(
                address=device.address,
                name=default_device_name(device.address),
                rssi=advertisement.rssi,
                last_seen=time.time(),
            ))

        self._scanner = BleakScanner(
            detection_callback=detection_callback,
            service_uuids=service_uuids,
        )
        try:
            await self._scanner.start()
        except BleakError as e:
            self._scanner = None
            raise BLEConnectionError(f"Failed to start scan: {e}") from e

    async def stop_scan(self) -> None:
        scanner = self._scanner
        self._scanner = None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except BleakError as e:
            _LOGGER.warning("Error stopping scan: %s", e)

    async def connect(
            self,
            address: str,
            on_disconnect: Callable[[], None] | None = None,
    ) -> None:
        """Establish BLE connection to device.

        Raises:
            BLEConnectionError: If connection fails
            BLETimeoutError: If connection times out
        """
        try:
            _LOGGER.debug(
                "Connecting to %s with bleak-retry-connector (max_attempts=%d)",
                address,
                self.max_attempts
            )

            device = self._known_devices.get(address)
            if device is None:
                device = await BleakScanner.find_device_by_address(address, timeout=self.timeout)
                if device is None:
                    raise BLEConnectionError(f"Device {address} not found during scan")

            def disconnected_callback(_client: BleakClient) -> None:
                if on_disconnect is not None:
                    on_disconnect()

            self._client = await establish_connection(
                client_class=BleakClientWithServiceCache,
                device=device,
                name=device.name or default_device_name(address),
                disconnected_callback=disconnected_callback,
                max_attempts=self.max_attempts,
                use_services_cache=self.use_services_cache,
                timeout=self.timeout,
            )

            _LOGGER.debug("Connected to %s", address)

        except BLEConnectionError:
            raise
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(f"Connection timeout after {self.timeout}s") from e
        except Exception as e:
            raise BLEConnectionError(f"Failed to connect: {e}") from e

    async def disconnect(self) -> None:
        """Disconnect from device."""
        client = self._client
        self._client = None
        if client is not None and client.is_connected:
            try:
                await client.disconnect()
            except Exception as e:
                _LOGGER.warning("Error during disconnect: %s", e)

    def _require_client(self) -> BleakClient:
        if not self._client or not self._client.is_connected:
            raise BLEConnectionError("Not connected")
        return self._client

    async def has_service(self, service_uuid: str) -> bool:
        client = self._require_client()
        return client.services.get_service(service_uuid) is not None

    async def has_characteristic(self, service_uuid: str, char_uuid: str) -> bool:
        client = self._require_client()
        service = client.services.get_service(service_uuid)
        if service is None:
            return False
        return service.get_characteristic(char_uuid) is not None

    async def start_notify(self, char_uuid: str, handler: NotificationHandler) -> bool:
        client = self._require_client()

        def callback(_sender, data: bytearray) -> None:
            handler(bytes(data))

        try:
            await client.start_notify(char_uuid, callback)
        except BleakError as e:
            _LOGGER.debug("start_notify on %s failed: %s", char_uuid, e)
            return False
        return True

    async def stop_notify(self, char_uuid: str) -> None:
        client = self._require_client()
        try:
            await client.stop_notify(char_uuid)
        except BleakError as e:
            raise BLEConnectionError(f"stop_notify on {char_uuid} failed: {e}") from e

    async def write(self, char_uuid: str, data: bytes) -> None:
        """Write to a characteristic with response.

        Raises:
            BLEConnectionError: If not connected or write fails
        """
        client = self._require_client()
        try:
            await client.write_gatt_char(char_uuid, data, response=True)
        except Exception as e:
            raise BLEConnectionError(f"Write failed: {e}") from e

    async def read(self, char_uuid: str) -> bytes:
        client = self._require_client()
        try:
            return bytes(await client.read_gatt_char(char_uuid))
        except Exception as e:
            raise BLEConnectionError(f"Read failed: {e}") from e
