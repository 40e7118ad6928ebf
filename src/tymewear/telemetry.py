"""Data stream demultiplexer."""

from __future__ import annotations

import logging
from typing import Callable

from .events import EventEmitter
from .exceptions import RecordTooShortError
from .models.telemetry import StretchRecord
from .protocol.telemetry import decode_telemetry
from .session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class TelemetryDecoder:
    """Decode data stream notifications and emit one event per record.

    Stateless per notification: a short packet is dropped silently, an
    unknown type byte is logged and skipped, and the stream continues either
    way. Records are emitted in arrival order.
    """

    def __init__(
            self,
            events: EventEmitter,
            session_provider: Callable[[], DeviceSession | None] | None = None,
    ):
        self._events = events
        self._session_provider = session_provider
        self.latest_stretch_value: int | None = None

    def _count(self, name: str) -> None:
        session = self._session_provider() if self._session_provider else None
        if session is not None:
            session.diagnostics.increment(name)

    def handle_notification(self, data: bytes) -> None:
        """Handle one data stream notification. May be called from any thread."""
        result = decode_telemetry(data)

        if isinstance(result, RecordTooShortError):
            _LOGGER.debug("Dropping short telemetry packet: %s", result)
            self._count("telemetry_too_short")
            return
        if isinstance(result, Exception):
            _LOGGER.warning("%s, ignoring packet", result)
            self._count("telemetry_unknown_type")
            return

        if isinstance(result, StretchRecord):
            self.latest_stretch_value = result.value

        _LOGGER.debug("Decoded %s", result)
        self._count("telemetry_records")
        self._events.emit(result)
