"""Main Tyme Wear BLE device class."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, TextIO

from .channel import CommandChannel, ControlResponse
from .config import DEFAULT_CONFIG, SessionConfig
from .download import DownloadReassembler
from .events import DownloadComplete, EventEmitter
from .exceptions import CommandRejectedError, NotConnectedError
from .models.files import FileEntry
from .models.hardware import HardwareInfo
from .protocol import (
    CONTROL_CHAR_UUID,
    DATA_STREAM_CHAR_UUID,
    DOWNLOAD_CHAR_UUID,
    OpCode,
    parse_file_list,
    parse_hardware_info,
)
from .session import DeviceSession
from .telemetry import TelemetryDecoder
from .transport import BleakTransport, BleTransport, ConnectionManager, ConnectionState

if TYPE_CHECKING:
    from .diagnostics import SessionDiagnostics
    from .scanner import Scanner

_LOGGER = logging.getLogger(__name__)


class TymewearDevice:
    """Tyme Wear BLE sensor.

    Main API for talking to one sensor: connection lifecycle, control
    commands, live telemetry events and file downloads.

    Usage:
        async with TymewearDevice("AA:BB:CC:DD:EE:FF") as device:
            device.events.subscribe(BreathingRecord, print)
            await device.start_activity()

        # Download every stored file
        async with TymewearDevice(address) as device:
            for entry in await device.list_files():
                with open(f"{entry.timestamp}.txt", "w") as output:
                    await device.download_file(entry, output)
    """

    def __init__(
            self,
            address: str,
            transport: BleTransport | None = None,
            config: SessionConfig = DEFAULT_CONFIG,
            events: EventEmitter | None = None,
            scanner: Scanner | None = None,
    ):
        """Initialize Tyme Wear device.

        Args:
            address: Device BLE address
            transport: BLE transport (default: BleakTransport)
            config: Session timing configuration
            events: Event emitter shared with the caller (default: new emitter)
            scanner: Optional scanner, stopped before connecting
        """
        self.address = address
        self.config = config
        self.events = events or EventEmitter()
        self._transport = transport or BleakTransport(
            timeout=config.connect_timeout,
            max_attempts=config.connect_max_attempts,
        )

        self.telemetry = TelemetryDecoder(self.events, session_provider=self._current_session)
        self.downloads = DownloadReassembler(
            self.events,
            quiet_window=config.download_quiet_window,
            session_provider=self._current_session,
        )
        self._connection = ConnectionManager(
            self._transport,
            handlers={
                CONTROL_CHAR_UUID: self._on_control,
                DATA_STREAM_CHAR_UUID: self.telemetry.handle_notification,
                DOWNLOAD_CHAR_UUID: self.downloads.handle_notification,
            },
            events=self.events,
            config=config,
            scanner=scanner,
            on_session=self._on_session,
        )
        self._channel = CommandChannel(
            self._transport,
            self.events,
            timeout=config.command_timeout,
            battery_reader=self._connection.read_battery_level,
        )
        self._file_list: list[FileEntry] = []

    async def __aenter__(self) -> TymewearDevice:
        """Connect to device (context manager entry)."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Disconnect from device (context manager exit)."""
        await self.disconnect()

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def session(self) -> DeviceSession | None:
        return self._connection.session

    @property
    def diagnostics(self) -> SessionDiagnostics | None:
        session = self._connection.session
        return session.diagnostics if session else None

    @property
    def file_list(self) -> list[FileEntry]:
        """Entries from the most recent list_files() call."""
        return list(self._file_list)

    def _current_session(self) -> DeviceSession | None:
        return self._connection.session

    def _on_session(self, session: DeviceSession) -> None:
        self._channel.attach(session)
        session.on_close(self._on_session_closed)

    def _on_session_closed(self) -> None:
        self._channel.detach()
        self.downloads.abort(NotConnectedError("Disconnected during file download"))

    def _on_control(self, data: bytes) -> None:
        self._channel.handle_notification(data)

    async def connect(self) -> None:
        """Connect and subscribe to the sensor's characteristics."""
        await self._connection.connect(self.address)

    async def disconnect(self) -> None:
        await self._connection.disconnect()

    async def send_command(self, opcode: int, param: int | None = None) -> ControlResponse:
        """Send a raw control command and wait for its response."""
        return await self._channel.send(opcode, param)

    async def get_hardware_info(self) -> HardwareInfo:
        """Read the hardware info block.

        Raises:
            InvalidResponseError: If the response is too short
        """
        response = await self._channel.send(OpCode.GET_INFO)
        info = parse_hardware_info(response.payload)
        _LOGGER.info(
            "Hardware info: sw %s, hw %d, status 0x%02x",
            info.version_string,
            info.hw_version,
            info.hw_status,
        )
        return info

    async def start_activity(self) -> ControlResponse:
        return await self._channel.send(OpCode.START_ACTIVITY)

    async def stop_activity(self) -> ControlResponse:
        return await self._channel.send(OpCode.STOP_ACTIVITY)

    async def erase_files(self) -> ControlResponse:
        response = await self._channel.send(OpCode.ERASE_FILES)
        if response.succeeded:
            self._file_list = []
        return response

    async def sync_rtc(self, timestamp: int | None = None) -> ControlResponse:
        """Set the device clock.

        Args:
            timestamp: Unix seconds (default: current time)
        """
        if timestamp is None:
            timestamp = int(time.time())
        return await self._channel.send(OpCode.SYNC_RTC, timestamp)

    async def start_stretch(self) -> ControlResponse:
        """Start raw stretch streaming (StretchRecord events)."""
        return await self._channel.send(OpCode.START_STRETCH)

    async def stop_stretch(self) -> ControlResponse:
        return await self._channel.send(OpCode.STOP_STRETCH)

    async def factory_calibration(self) -> ControlResponse:
        return await self._channel.send(OpCode.FACTORY_CALIBRATION)

    async def list_files(self) -> list[FileEntry]:
        """Read the list of stored activity files."""
        response = await self._channel.send(OpCode.LIST_FILES)
        entries, leftover = parse_file_list(response.payload)
        if leftover:
            _LOGGER.warning("File list has %d trailing bytes, ignored", leftover)
        self._file_list = entries
        _LOGGER.info("File list: %d", len(entries))
        return list(entries)

    async def download_file(self, entry: FileEntry, output: TextIO) -> DownloadComplete:
        """Download one stored file as decoded text.

        The output stream is closed when the transfer completes or fails.
        Completion is inferred from a quiet download characteristic.

        Args:
            entry: File to download (identified by its timestamp)
            output: Writable text stream for the decoded records

        Returns:
            The DownloadComplete event

        Raises:
            NotConnectedError: If not connected or the link drops mid-transfer
            CommandTimeoutError: If the DATA_DUMP command is not acknowledged
            CommandRejectedError: If the device refuses the DATA_DUMP command
        """
        if self._connection.session is None:
            output.close()
            raise NotConnectedError("Not connected")

        done: asyncio.Future | None = None

        def open_transfer() -> None:
            # Runs while DATA_DUMP owns the channel, so the quiet window
            # cannot expire while queued behind another command
            nonlocal done
            done = self.downloads.begin(entry, output)

        try:
            response = await self._channel.send(
                OpCode.DATA_DUMP,
                entry.timestamp,
                before_write=open_transfer,
            )
            if not response.succeeded:
                raise CommandRejectedError(response.opcode, response.code, response.code_name)
            return await done
        except asyncio.CancelledError:
            _LOGGER.info("Download of file [%d] cancelled", entry.timestamp)
            if done is None:
                output.close()
                raise
            self.downloads.abort()
            await asyncio.shield(self._connection.disconnect())
            raise
        except BaseException:
            if done is None:
                output.close()
            else:
                self.downloads.abort()
            raise
