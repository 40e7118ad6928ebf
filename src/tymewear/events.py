"""Outward events and a thread-safe emitter.

Notifications arrive on transport threads, so listeners may be invoked from
any thread. A failing listener is logged and never interrupts the caller.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from .models.devices import DiscoveredDevice

_LOGGER = logging.getLogger(__name__)

Listener = Callable[[Any], None]


@dataclass(frozen=True)
class Connected:
    address: str


@dataclass(frozen=True)
class Disconnected:
    address: str


@dataclass(frozen=True)
class BatteryStatus:
    """Unsolicited battery push from the control characteristic.

    Attributes:
        elapsed_minutes: Minutes since the first push of this session,
            rounded to the nearest minute
        charge: Raw charge counter reported by firmware
        battery_percent: Battery Level (0x2A19) read alongside, if available
    """

    elapsed_minutes: int
    charge: int
    battery_percent: int | None = None

    @property
    def elapsed(self) -> str:
        """Elapsed time formatted as HH:MM."""
        hours, minutes = divmod(self.elapsed_minutes, 60)
        return f"{hours:02d}:{minutes:02d}"


@dataclass(frozen=True)
class BatteryLevelChanged:
    percent: int


@dataclass(frozen=True)
class DownloadComplete:
    timestamp: int
    records: int
    desyncs: int = 0


@dataclass(frozen=True)
class DeviceDiscovered:
    device: DiscoveredDevice


class EventEmitter:
    """Dispatch events to listeners registered per event type."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[tuple[type | None, Listener]] = []

    def subscribe(self, event_type: type | None, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Args:
            event_type: Event class to receive, or None for every event
            listener: Callable invoked with the event

        Returns:
            Callable that removes the listener
        """
        entry = (event_type, listener)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def emit(self, event: Any) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for event_type, listener in listeners:
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception:
                _LOGGER.exception("Listener %r failed on %s", listener, type(event).__name__)
