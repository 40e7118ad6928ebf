"""BLE connection management."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable

from ..config import DEFAULT_CONFIG, SessionConfig
from ..diagnostics import SessionDiagnostics
from ..events import BatteryLevelChanged, Connected, Disconnected, EventEmitter
from ..exceptions import (
    CharacteristicNotFoundError,
    NotifyEnableError,
    ServiceNotFoundError,
)
from ..protocol import (
    BATTERY_LEVEL_CHAR_UUID,
    BATTERY_SERVICE_UUID,
    CONTROL_CHAR_UUID,
    DATA_STREAM_CHAR_UUID,
    DOWNLOAD_CHAR_UUID,
    SERVICE_UUID,
)
from ..session import DeviceSession
from .base import BleTransport, NotificationHandler

if TYPE_CHECKING:
    from ..scanner import Scanner

_LOGGER = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    DISCOVERING_SERVICE = "discovering_service"
    SETTING_UP_CHARACTERISTICS = "setting_up_characteristics"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class ConnectionManager:
    """Owns the single device session.

    Drives connect -> discover service -> subscribe to the control, data
    stream and download characteristics, and tears everything down again.
    Reconnecting always builds a fresh session.
    """

    def __init__(
            self,
            transport: BleTransport,
            handlers: dict[str, NotificationHandler],
            events: EventEmitter | None = None,
            config: SessionConfig = DEFAULT_CONFIG,
            scanner: Scanner | None = None,
            on_session: Callable[[DeviceSession], None] | None = None,
    ):
        """Initialize connection manager.

        Args:
            transport: BLE transport port
            handlers: Notification handler per characteristic UUID (control,
                data stream and download are required)
            events: Emitter for Connected/Disconnected/BatteryLevelChanged
            config: Session timing configuration
            scanner: Optional scanner to stop before connecting
            on_session: Called with each new session before Connected is emitted
        """
        missing = {CONTROL_CHAR_UUID, DATA_STREAM_CHAR_UUID, DOWNLOAD_CHAR_UUID} - set(handlers)
        if missing:
            raise ValueError(f"Missing notification handlers for {sorted(missing)}")

        self._transport = transport
        self._handlers = handlers
        self.events = events or EventEmitter()
        self.config = config
        self.scanner = scanner
        self._on_session = on_session

        self._state = ConnectionState.DISCONNECTED
        self._session: DeviceSession | None = None
        self._address: str | None = None
        self._subscribed: list[str] = []
        self._battery_available = False
        self._battery_subscribed = False
        self._generation = 0
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> DeviceSession | None:
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            _LOGGER.debug("Connection state %s -> %s", self._state.value, state.value)
            self._state = state

    async def connect(self, address: str) -> DeviceSession:
        """Connect to a sensor and subscribe to its characteristics.

        Raises:
            BLEConnectionError: If the link, service or a characteristic fails
                (ServiceNotFoundError, CharacteristicNotFoundError,
                NotifyEnableError are subclasses)
        """
        async with self._lock:
            self._loop = asyncio.get_running_loop()

            if self.scanner is not None and self.scanner.is_scanning:
                await self.scanner.stop()

            await self._teardown()

            self._address = address
            self._generation += 1
            generation = self._generation
            try:
                self._set_state(ConnectionState.CONNECTING)
                await self._transport.connect(
                    address,
                    on_disconnect=lambda: self._on_link_lost(generation),
                )
                await asyncio.sleep(self.config.settle_delay)

                self._set_state(ConnectionState.DISCOVERING_SERVICE)
                await self._discover_service()

                self._set_state(ConnectionState.SETTING_UP_CHARACTERISTICS)
                for char_uuid in (CONTROL_CHAR_UUID, DATA_STREAM_CHAR_UUID, DOWNLOAD_CHAR_UUID):
                    await self._setup_characteristic(char_uuid)
            except BaseException:
                _LOGGER.debug("Connect to %s failed in state %s", address, self._state.value)
                await self._teardown()
                raise

            session = DeviceSession(address, SessionDiagnostics(address))
            self._session = session
            if self._on_session is not None:
                self._on_session(session)
            self._set_state(ConnectionState.CONNECTED)

        _LOGGER.info("Connected to %s", address)
        self.events.emit(Connected(address))
        await self._subscribe_battery()
        return session

    async def disconnect(self) -> None:
        """Unsubscribe, release the device and clear session state.

        Always ends in DISCONNECTED, whatever failed along the way.
        """
        async with self._lock:
            await self._teardown()

    async def _discover_service(self) -> None:
        attempts = self.config.service_discovery_attempts
        for attempt in range(1, attempts + 1):
            if await self._transport.has_service(SERVICE_UUID):
                return
            _LOGGER.debug("Service %s not found (attempt %d/%d)", SERVICE_UUID, attempt, attempts)
            if attempt < attempts:
                await asyncio.sleep(self.config.service_discovery_delay)
        raise ServiceNotFoundError(f"Service {SERVICE_UUID} not found")

    async def _setup_characteristic(self, char_uuid: str) -> None:
        if not await self._transport.has_characteristic(SERVICE_UUID, char_uuid):
            raise CharacteristicNotFoundError(char_uuid)

        handler = self._handlers[char_uuid]
        if not await self._transport.start_notify(char_uuid, handler):
            await asyncio.sleep(self.config.notify_retry_delay)
            if not await self._transport.start_notify(char_uuid, handler):
                raise NotifyEnableError(char_uuid)

        self._subscribed.append(char_uuid)
        _LOGGER.debug("Notifications enabled on %s", char_uuid)

    async def _subscribe_battery(self) -> None:
        handler = self._handlers.get(BATTERY_LEVEL_CHAR_UUID, self._on_battery_level)
        try:
            if not await self._transport.has_characteristic(BATTERY_SERVICE_UUID, BATTERY_LEVEL_CHAR_UUID):
                _LOGGER.debug("Battery service not available")
                return
            self._battery_available = True
            if await self._transport.start_notify(BATTERY_LEVEL_CHAR_UUID, handler):
                self._battery_subscribed = True
            else:
                _LOGGER.debug("Battery level notifications not supported")
            level = await self.read_battery_level()
        except Exception as e:
            _LOGGER.warning("Battery service subscription failed: %s", e)
            return

        if level is not None:
            self.events.emit(BatteryLevelChanged(level))

    async def read_battery_level(self) -> int | None:
        """Read the standard Battery Level characteristic.

        Returns:
            Percent charge, or None if unavailable
        """
        if not self._battery_available or not self.is_connected:
            return None
        data = await self._transport.read(BATTERY_LEVEL_CHAR_UUID)
        return data[0] if data else None

    def _on_battery_level(self, data: bytes) -> None:
        if data:
            self.events.emit(BatteryLevelChanged(data[0]))

    def _on_link_lost(self, generation: int) -> None:
        # Called from the transport, possibly on another thread
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_link_teardown, generation)

    def _schedule_link_teardown(self, generation: int) -> None:
        if generation != self._generation or self._session is None:
            return
        _LOGGER.info("Link to %s lost", self._address)
        task = asyncio.get_running_loop().create_task(self._handle_link_lost(generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_link_lost(self, generation: int) -> None:
        async with self._lock:
            if generation == self._generation:
                await self._teardown()

    async def _teardown(self) -> None:
        """Best-effort release of whatever is currently held. Idempotent."""
        had_session = self._session is not None
        if self._state is ConnectionState.DISCONNECTED and not had_session and not self._subscribed:
            return

        self._set_state(ConnectionState.DISCONNECTING)

        subscribed = self._subscribed + ([BATTERY_LEVEL_CHAR_UUID] if self._battery_subscribed else [])
        self._subscribed = []
        self._battery_available = False
        self._battery_subscribed = False
        for char_uuid in subscribed:
            try:
                await self._transport.stop_notify(char_uuid)
            except Exception as e:
                _LOGGER.debug("Error unsubscribing %s: %s", char_uuid, e)

        try:
            await self._transport.disconnect()
        except Exception as e:
            _LOGGER.warning("Error during disconnect: %s", e)

        session = self._session
        self._session = None
        if session is not None:
            session.close()

        self._set_state(ConnectionState.DISCONNECTED)

        if had_session and self._address is not None:
            _LOGGER.info("Disconnected from %s", self._address)
            self.events.emit(Disconnected(self._address))
