"""Per-session diagnostic counters."""

from __future__ import annotations

import logging
import threading
from collections import Counter

_LOGGER = logging.getLogger(__name__)


class SessionDiagnostics:
    """Counters for one device session.

    Created when a session starts and closed at teardown, which logs a
    summary. Increments after close are ignored.
    """

    def __init__(self, address: str) -> None:
        self.address = address
        self._lock = threading.Lock()
        self._counts: Counter[str] = Counter()
        self._closed = False

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            if not self._closed:
                self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            counts = dict(self._counts)
        _LOGGER.info("Session %s diagnostics: %s", self.address, counts)
