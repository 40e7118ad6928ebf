"""Transport interface consumed by the protocol engine."""

from __future__ import annotations

from typing import Callable, Protocol

from ..models.devices import DiscoveredDevice

NotificationHandler = Callable[[bytes], None]
AdvertisementCallback = Callable[[DiscoveredDevice], None]


class BleTransport(Protocol):
    """Scan/connect/discover/subscribe/write primitives of a BLE stack.

    Notification handlers and advertisement callbacks may be invoked on any
    thread. Only one peripheral is connected at a time.
    """

    @property
    def is_connected(self) -> bool:
        """Whether a peripheral link is currently up."""

    async def start_scan(
        self,
        callback: AdvertisementCallback,
        service_uuids: list[str] | None = None,
    ) -> None:
        """Start delivering advertisements to callback."""

    async def stop_scan(self) -> None:
        """Stop an active scan (no-op if not scanning)."""

    async def connect(
        self,
        address: str,
        on_disconnect: Callable[[], None] | None = None,
    ) -> None:
        """Resolve and connect to a peripheral."""

    async def disconnect(self) -> None:
        """Release the peripheral (no-op if not connected)."""

    async def has_service(self, service_uuid: str) -> bool:
        """Return True if the connected peripheral exposes the service."""

    async def has_characteristic(self, service_uuid: str, char_uuid: str) -> bool:
        """Return True if the service exposes the characteristic."""

    async def start_notify(self, char_uuid: str, handler: NotificationHandler) -> bool:
        """Register handler and enable notifications; return success."""

    async def stop_notify(self, char_uuid: str) -> None:
        """Disable notifications and drop the handler."""

    async def write(self, char_uuid: str, data: bytes) -> None:
        """Write a value to a characteristic."""

    async def read(self, char_uuid: str) -> bytes:
        """Read a characteristic value."""
