"""Tagged request/response channel over the control characteristic."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from .events import BatteryStatus, EventEmitter
from .exceptions import CommandTimeoutError, NotConnectedError, RecordTooShortError
from .protocol.commands import (
    CONTROL_CHAR_UUID,
    build_command,
    opcode_name,
    response_name,
)
from .protocol.responses import is_success, parse_battery_charge, parse_control_message
from .session import DeviceSession
from .transport.base import BleTransport

_LOGGER = logging.getLogger(__name__)

BatteryReader = Callable[[], Awaitable["int | None"]]


@dataclass(frozen=True)
class ControlResponse:
    """Response matched to a sent command by tag."""

    code: int
    tag: int
    opcode: int
    payload: bytes

    @property
    def succeeded(self) -> bool:
        return is_success(self.code)

    @property
    def code_name(self) -> str:
        return response_name(self.code)


class CommandChannel:
    """Send control commands and match their responses by tag.

    Only one command is in flight at a time; further callers queue on the
    gate. Responses are matched strictly by tag, so a reply that arrives
    after its command timed out is dropped.
    """

    def __init__(
            self,
            transport: BleTransport,
            events: EventEmitter,
            timeout: float = 10.0,
            battery_reader: BatteryReader | None = None,
    ):
        """Initialize command channel.

        Args:
            transport: BLE transport used to write the control characteristic
            events: Emitter for BatteryStatus events
            timeout: Seconds to wait for each response (default: 10)
            battery_reader: Optional coroutine reading Battery Level percent
        """
        self._transport = transport
        self._events = events
        self.timeout = timeout
        self._battery_reader = battery_reader

        self._gate = asyncio.Lock()
        self._session: DeviceSession | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def attach(self, session: DeviceSession) -> None:
        """Bind the channel to a newly connected session."""
        self._session = session
        self._loop = asyncio.get_running_loop()

    def detach(self) -> None:
        self._session = None

    async def send(
            self,
            opcode: int,
            param: int | None = None,
            before_write: Callable[[], None] | None = None,
    ) -> ControlResponse:
        """Send a command and wait for its tagged response.

        Args:
            opcode: Command opcode
            param: Optional u32 parameter
            before_write: Called once this command owns the channel, just
                before the envelope is written

        Returns:
            The matching response

        Raises:
            NotConnectedError: If no session is active (or it closes while waiting)
            CommandTimeoutError: If no matching response arrives in time
        """
        async with self._gate:
            session = self._session
            if session is None or not session.active:
                raise NotConnectedError("Control characteristic is not available (not connected)")

            pending = session.register_command(opcode, asyncio.get_running_loop())
            envelope = build_command(opcode, pending.tag, param)

            try:
                if before_write is not None:
                    before_write()
                await self._transport.write(CONTROL_CHAR_UUID, envelope)
            except BaseException:
                session.discard_pending(pending.tag)
                raise

            _LOGGER.debug("Sent %s (0x%04x) tag %d", opcode_name(opcode), opcode, pending.tag)
            session.diagnostics.increment("commands_sent")

            try:
                return await asyncio.wait_for(pending.future, timeout=self.timeout)
            except asyncio.TimeoutError as e:
                session.discard_pending(pending.tag)
                session.diagnostics.increment("command_timeouts")
                raise CommandTimeoutError(opcode, pending.tag, self.timeout) from e
            except asyncio.CancelledError:
                session.discard_pending(pending.tag)
                raise

    def handle_notification(self, data: bytes) -> None:
        """Handle a control characteristic notification.

        May be called from any thread.
        """
        session = self._session
        message = parse_control_message(data)
        if isinstance(message, RecordTooShortError):
            _LOGGER.warning("Ignoring control notification: %s", message)
            return

        if message.is_battery_status:
            self._handle_battery_status(session, message.payload)
            return

        if session is None:
            _LOGGER.debug("Response %s with no active session", response_name(message.code))
            return

        pending = session.pop_pending(message.tag)
        if pending is None:
            _LOGGER.info(
                "Response %s for unknown tag %d dropped",
                response_name(message.code),
                message.tag,
            )
            session.diagnostics.increment("responses_dropped")
            return

        _LOGGER.debug(
            "Response to %s: %s",
            opcode_name(pending.opcode),
            response_name(message.code),
        )
        session.diagnostics.increment("responses_matched")
        pending.resolve(ControlResponse(
            code=message.code,
            tag=message.tag,
            opcode=pending.opcode,
            payload=message.payload,
        ))

    def _handle_battery_status(self, session: DeviceSession | None, payload: bytes) -> None:
        charge = parse_battery_charge(payload)
        if charge is None:
            _LOGGER.warning("Battery status received but payload too short (length=%d)", len(payload))
            return
        if session is None or self._loop is None:
            _LOGGER.debug("Battery status with no active session ignored")
            return

        session.diagnostics.increment("battery_status")
        elapsed = session.battery_elapsed_minutes()
        asyncio.run_coroutine_threadsafe(self._report_battery(elapsed, charge), self._loop)

    async def _report_battery(self, elapsed_minutes: int, charge: int) -> None:
        percent: int | None = None
        if self._battery_reader is not None:
            try:
                percent = await self._battery_reader()
            except Exception as e:
                _LOGGER.debug("Battery level read failed: %s", e)

        status = BatteryStatus(
            elapsed_minutes=elapsed_minutes,
            charge=charge,
            battery_percent=percent,
        )
        _LOGGER.info(
            "Battery status: charge=%d battery=%s%%",
            charge,
            "-" if percent is None else percent,
        )
        self._events.emit(status)
