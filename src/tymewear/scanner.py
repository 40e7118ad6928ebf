"""Advertisement scanning with a stall watchdog."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable

from .config import DEFAULT_CONFIG, SessionConfig
from .events import DeviceDiscovered, EventEmitter
from .models.devices import DiscoveredDevice
from .protocol import SERVICE_UUID
from .transport.base import BleTransport

_LOGGER = logging.getLogger(__name__)


class DeviceRegistry:
    """Discovered devices keyed by address.

    Written from the scan callback thread, readable from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._devices: dict[str, DiscoveredDevice] = {}

    def update(self, device: DiscoveredDevice) -> bool:
        """Record a sighting.

        Returns:
            True if the address was not known before
        """
        with self._lock:
            known = self._devices.get(device.address)
            if known is None:
                self._devices[device.address] = device
                return True
            known.rssi = device.rssi
            known.last_seen = device.last_seen
            return False

    def get(self, address: str) -> DiscoveredDevice | None:
        with self._lock:
            return self._devices.get(address)

    def snapshot(self) -> list[DiscoveredDevice]:
        with self._lock:
            return list(self._devices.values())

    def clear(self) -> None:
        with self._lock:
            self._devices.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)


class ScanWatchdog:
    """Restart a scan that has gone quiet.

    Some radios/drivers stop delivering advertisements while the scan still
    reports as running. Every `interval` seconds the watchdog compares the
    time of the last advertisement to now; past `silence_threshold` it
    invokes `restart`.
    """

    def __init__(
            self,
            restart: Callable[[], Awaitable[None]],
            interval: float = 5.0,
            silence_threshold: float = 8.0,
            clock: Callable[[], float] = time.monotonic,
    ):
        self._restart = restart
        self.interval = interval
        self.silence_threshold = silence_threshold
        self._clock = clock
        self._last_seen = clock()
        self._task: asyncio.Task | None = None
        self.restarts = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def touch(self) -> None:
        """Mark an advertisement as received now. Thread-safe."""
        self._last_seen = self._clock()

    def silent_for(self) -> float:
        return self._clock() - self._last_seen

    async def check(self) -> bool:
        """Run one watchdog tick.

        Returns:
            True if the scan was restarted
        """
        silent = self.silent_for()
        if silent <= self.silence_threshold:
            return False

        _LOGGER.info("No advertisements for %.1fs, restarting scan", silent)
        try:
            await self._restart()
        except Exception as e:
            _LOGGER.warning("Scan restart failed, retrying next tick: %s", e)
            return False
        self.touch()
        self.restarts += 1
        return True

    def start(self) -> None:
        if self.running:
            return
        self.touch()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.check()


class Scanner:
    """Scan for sensors advertising the custom service."""

    def __init__(
            self,
            transport: BleTransport,
            events: EventEmitter | None = None,
            config: SessionConfig = DEFAULT_CONFIG,
            clock: Callable[[], float] = time.monotonic,
    ):
        self._transport = transport
        self.events = events or EventEmitter()
        self.registry = DeviceRegistry()
        self.watchdog = ScanWatchdog(
            self._restart,
            interval=config.scan_watchdog_interval,
            silence_threshold=config.scan_silence_threshold,
            clock=clock,
        )
        self._scanning = False

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    @property
    def devices(self) -> list[DiscoveredDevice]:
        return self.registry.snapshot()

    async def start(self) -> None:
        """Start a fresh scan; the device registry is cleared."""
        if self._scanning:
            return
        self.registry.clear()
        await self._transport.start_scan(self._on_advertisement, [SERVICE_UUID])
        self._scanning = True
        self.watchdog.start()
        _LOGGER.info("BLE scan started")

    async def stop(self) -> None:
        """Stop scanning and disable the watchdog."""
        if not self._scanning:
            return
        self._scanning = False
        await self.watchdog.stop()
        await self._transport.stop_scan()
        _LOGGER.info("BLE scan stopped")

    async def _restart(self) -> None:
        if not self._scanning:
            return
        await self._transport.stop_scan()
        await self._transport.start_scan(self._on_advertisement, [SERVICE_UUID])

    def _on_advertisement(self, device: DiscoveredDevice) -> None:
        # May run on a transport thread
        self.watchdog.touch()
        if self.registry.update(device):
            _LOGGER.info("Discovered device: %s (RSSI %s)", device.name, device.rssi)
            self.events.emit(DeviceDiscovered(device))


async def discover_devices(
        timeout: float = 10.0,
        transport: BleTransport | None = None,
) -> list[DiscoveredDevice]:
    """Scan for sensors for a fixed time.

    Args:
        timeout: Scan duration in seconds (default: 10)
        transport: Transport to scan with (default: a new BleakTransport)

    Returns:
        Every device seen during the scan
    """
    if transport is None:
        from .transport.bleak_transport import BleakTransport
        transport = BleakTransport()

    scanner = Scanner(transport)
    await scanner.start()
    try:
        await asyncio.sleep(timeout)
    finally:
        await scanner.stop()
    return scanner.devices
