"""File download reassembly.

The device signals nothing when a dump ends. A transfer is considered
complete once the download characteristic has been quiet for the quiet
window, so correctness depends on the peripheral never pausing that long
mid-transfer.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, TextIO

from .events import DownloadComplete, EventEmitter
from .models.files import FileEntry
from .models.telemetry import RecordType
from .protocol.download import SECTION_HEADERS, DownloadBuffer, DownloadRecord
from .session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class _Transfer:
    """State of one open file download."""

    def __init__(self, entry: FileEntry, output: TextIO, done: asyncio.Future):
        self.entry = entry
        self.output = output
        self.done = done
        self.records = 0
        self.desyncs = 0
        self.headers_written: set[RecordType] = set()


class DownloadReassembler:
    """Rebuild download-characteristic records into a text output stream.

    Records are grouped by kind; each kind gets a one-time section header
    ([Breathing], [IMU], [HR]) followed by one CSV line per record.
    """

    def __init__(
            self,
            events: EventEmitter,
            quiet_window: float = 1.0,
            session_provider: Callable[[], DeviceSession | None] | None = None,
    ):
        """Initialize download reassembler.

        Args:
            events: Emitter for DownloadComplete
            quiet_window: Silence in seconds that completes a transfer (default: 1.0)
            session_provider: Returns the active session for diagnostics
        """
        self._events = events
        self.quiet_window = quiet_window
        self._session_provider = session_provider

        self._lock = threading.Lock()
        self._buffer = DownloadBuffer()
        self._transfer: _Transfer | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._transfer is not None

    @property
    def buffered(self) -> int:
        """Bytes held back waiting for the rest of a record."""
        with self._lock:
            return len(self._buffer)

    def _count(self, name: str, amount: int = 1) -> None:
        session = self._session_provider() if self._session_provider else None
        if session is not None:
            session.diagnostics.increment(name, amount)

    def begin(self, entry: FileEntry, output: TextIO) -> asyncio.Future:
        """Open a transfer and arm the quiet-window timer.

        Any transfer still open is aborted first.

        Returns:
            Future resolved with the DownloadComplete event
        """
        self.abort()
        loop = asyncio.get_running_loop()
        with self._lock:
            self._loop = loop
            self._buffer.clear()
            self._transfer = _Transfer(entry, output, loop.create_future())
            done = self._transfer.done
        self._restart_timer()
        _LOGGER.info("Downloading file [%d]", entry.timestamp)
        return done

    def handle_notification(self, data: bytes) -> None:
        """Append a download notification and drain complete records.

        May be called from any thread. Ignored when no transfer is open.
        """
        with self._lock:
            transfer = self._transfer
            if transfer is None:
                _LOGGER.debug("Download data with no open transfer ignored (%d bytes)", len(data))
                return

            records, desync = self._buffer.feed(data)
            for record in records:
                self._write(transfer, record)
            transfer.records += len(records)
            if desync is not None:
                transfer.desyncs += 1
            loop = self._loop

        if desync is not None:
            _LOGGER.warning("%s", desync)
            self._count("download_desyncs")
        self._count("download_records", len(records))

        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._restart_timer)

    def _write(self, transfer: _Transfer, record: DownloadRecord) -> None:
        if record.record_type not in transfer.headers_written:
            transfer.output.write(SECTION_HEADERS[record.record_type] + "\n")
            transfer.headers_written.add(record.record_type)
        transfer.output.write(record.as_csv() + "\n")

    def _restart_timer(self) -> None:
        # Runs on the owning event loop
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._transfer is None or self._loop is None:
            return
        self._timer = self._loop.call_later(self.quiet_window, self._on_quiet)

    def _on_quiet(self) -> None:
        self._timer = None
        with self._lock:
            transfer = self._transfer
            self._transfer = None
            self._buffer.clear()
        if transfer is None:
            return

        transfer.output.close()
        event = DownloadComplete(
            timestamp=transfer.entry.timestamp,
            records=transfer.records,
            desyncs=transfer.desyncs,
        )
        _LOGGER.info("File download complete: %d records", transfer.records)
        if not transfer.done.done():
            transfer.done.set_result(event)
        self._events.emit(event)

    def abort(self, exc: BaseException | None = None) -> None:
        """Close any open transfer without emitting DownloadComplete.

        Args:
            exc: Exception delivered to the download waiter; the waiter is
                cancelled when omitted
        """
        with self._lock:
            transfer = self._transfer
            self._transfer = None
            self._buffer.clear()
            timer = self._timer
            self._timer = None
        if transfer is None:
            return

        if timer is not None:
            timer.cancel()
        transfer.output.close()
        if not transfer.done.done():
            if exc is not None:
                transfer.done.set_exception(exc)
            else:
                transfer.done.cancel()
        _LOGGER.info("Download of file [%d] aborted", transfer.entry.timestamp)
