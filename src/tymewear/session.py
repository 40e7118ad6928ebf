"""Per-connection session state."""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from .diagnostics import SessionDiagnostics
from .exceptions import NotConnectedError
from .protocol.commands import MAX_TAG

_LOGGER = logging.getLogger(__name__)


def _set_result(future: asyncio.Future, value: Any) -> None:
    if not future.done():
        future.set_result(value)


def _set_exception(future: asyncio.Future, exc: BaseException) -> None:
    if not future.done():
        future.set_exception(exc)


@dataclass
class PendingCommand:
    """A sent command waiting for its tagged response."""

    tag: int
    opcode: int
    future: asyncio.Future
    loop: asyncio.AbstractEventLoop

    def resolve(self, value: Any) -> None:
        """Complete the waiting future from any thread."""
        self.loop.call_soon_threadsafe(_set_result, self.future, value)

    def fail(self, exc: BaseException) -> None:
        self.loop.call_soon_threadsafe(_set_exception, self.future, exc)


class DeviceSession:
    """Mutable state for one connected peripheral.

    Every field is accessed under a single lock because notification
    callbacks run on transport threads concurrently with caller operations.
    """

    def __init__(
            self,
            address: str,
            diagnostics: SessionDiagnostics | None = None,
            clock: Callable[[], float] = time.time,
    ):
        self.address = address
        self.diagnostics = diagnostics or SessionDiagnostics(address)

        self._clock = clock
        self._lock = threading.Lock()
        self._next_tag = 1
        self._pending: dict[int, PendingCommand] = {}
        self._battery_origin: float | None = None
        self._close_callbacks: list[Callable[[], None]] = []
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def _allocate_tag(self) -> int:
        # Caller holds the lock. Tags still pending are skipped on wraparound.
        for _ in range(MAX_TAG):
            tag = self._next_tag
            self._next_tag = 1 if tag >= MAX_TAG else tag + 1
            if tag not in self._pending:
                return tag
        raise RuntimeError("All command tags are pending")

    def register_command(self, opcode: int, loop: asyncio.AbstractEventLoop) -> PendingCommand:
        """Allocate a tag and record a pending command for it.

        Raises:
            NotConnectedError: If the session has been closed
        """
        with self._lock:
            if not self._active:
                raise NotConnectedError(f"Session {self.address} is closed")
            tag = self._allocate_tag()
            pending = PendingCommand(tag=tag, opcode=opcode, future=loop.create_future(), loop=loop)
            self._pending[tag] = pending
            return pending

    def pop_pending(self, tag: int) -> PendingCommand | None:
        """Remove and return the pending command for a tag, if any."""
        with self._lock:
            return self._pending.pop(tag, None)

    def discard_pending(self, tag: int) -> None:
        with self._lock:
            self._pending.pop(tag, None)

    def pending_tags(self) -> list[int]:
        with self._lock:
            return sorted(self._pending)

    def battery_elapsed_minutes(self) -> int:
        """Minutes since the first battery push of this session, rounded."""
        now = self._clock()
        with self._lock:
            if self._battery_origin is None:
                self._battery_origin = now
            elapsed = max(0.0, now - self._battery_origin)
        return int(math.floor(elapsed / 60.0 + 0.5))

    def on_close(self, callback: Callable[[], None]) -> None:
        """Register a callback run once when the session closes."""
        with self._lock:
            self._close_callbacks.append(callback)

    def close(self) -> None:
        """Fail every pending command and release session resources.

        Safe to call more than once.
        """
        with self._lock:
            if not self._active:
                return
            self._active = False
            pending = list(self._pending.values())
            self._pending.clear()
            callbacks = list(self._close_callbacks)
            self._close_callbacks.clear()

        for command in pending:
            command.fail(NotConnectedError(
                f"Disconnected while waiting for 0x{command.opcode:04x} (tag {command.tag})"
            ))
        if pending:
            _LOGGER.debug("Failed %d pending command(s) on close", len(pending))

        for callback in callbacks:
            try:
                callback()
            except Exception:
                _LOGGER.exception("Session close callback failed")

        self.diagnostics.close()
