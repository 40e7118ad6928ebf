"""BLE transport layer."""

from .base import AdvertisementCallback, BleTransport, NotificationHandler
from .bleak_transport import BleakTransport
from .connection import ConnectionManager, ConnectionState

__all__ = [
    "AdvertisementCallback",
    "BleTransport",
    "BleakTransport",
    "ConnectionManager",
    "ConnectionState",
    "NotificationHandler",
]
