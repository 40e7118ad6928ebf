"""Test scanning, the device registry and the stall watchdog."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeTransport

from tymewear.config import SessionConfig
from tymewear.events import DeviceDiscovered, EventEmitter
from tymewear.models.devices import DiscoveredDevice
from tymewear.scanner import DeviceRegistry, Scanner, ScanWatchdog, discover_devices


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestDeviceRegistry:
    def test_new_then_known(self):
        registry = DeviceRegistry()
        assert registry.update(DiscoveredDevice("A", "TYME-000A", -70, 1.0))
        assert not registry.update(DiscoveredDevice("A", "TYME-000A", -50, 2.0))

        device = registry.get("A")
        assert device.rssi == -50
        assert device.last_seen == 2.0
        assert len(registry) == 1

    def test_clear(self):
        registry = DeviceRegistry()
        registry.update(DiscoveredDevice("A", "TYME-000A", -70, 1.0))
        registry.clear()
        assert registry.snapshot() == []


class TestScanWatchdog:
    """Silence beyond the threshold restarts the scan."""

    @pytest.mark.asyncio
    async def test_restart_after_silence(self):
        clock = _Clock()
        restarts = []

        async def restart():
            restarts.append(clock.now)

        watchdog = ScanWatchdog(restart, interval=5.0, silence_threshold=8.0, clock=clock)

        clock.now += 5
        assert not await watchdog.check()
        clock.now += 4
        assert await watchdog.check()
        assert len(restarts) == 1

        # Still silent: one restart per silent period
        clock.now += 5
        assert not await watchdog.check()
        clock.now += 5
        assert await watchdog.check()
        assert watchdog.restarts == 2

    @pytest.mark.asyncio
    async def test_advertisements_keep_scan_alive(self):
        clock = _Clock()

        async def restart():
            raise AssertionError("unexpected restart")

        watchdog = ScanWatchdog(restart, clock=clock)
        for _ in range(5):
            clock.now += 5
            watchdog.touch()
            assert not await watchdog.check()

    @pytest.mark.asyncio
    async def test_failed_restart_retried_next_tick(self):
        clock = _Clock()
        attempts = []

        async def restart():
            attempts.append(clock.now)
            if len(attempts) == 1:
                raise OSError("adapter busy")

        watchdog = ScanWatchdog(restart, clock=clock)
        clock.now += 9
        assert not await watchdog.check()
        clock.now += 5
        assert await watchdog.check()
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_start_stop_task(self):
        async def restart():
            pass

        watchdog = ScanWatchdog(restart, interval=0.01)
        watchdog.start()
        assert watchdog.running
        await asyncio.sleep(0.03)
        await watchdog.stop()
        assert not watchdog.running


class TestScanner:
    @pytest.mark.asyncio
    async def test_discovery_events(self):
        transport = FakeTransport()
        events = EventEmitter()
        discovered = []
        events.subscribe(DeviceDiscovered, discovered.append)
        scanner = Scanner(transport, events=events)

        await scanner.start()
        transport.advertise("AA:BB:CC:DD:00:01", rssi=-70)
        transport.advertise("AA:BB:CC:DD:00:01", rssi=-55)
        transport.advertise("AA:BB:CC:DD:00:02")
        await scanner.stop()

        assert [event.device.address for event in discovered] == ["AA:BB:CC:DD:00:01", "AA:BB:CC:DD:00:02"]
        assert scanner.registry.get("AA:BB:CC:DD:00:01").rssi == -55
        assert len(scanner.devices) == 2
        assert not transport.scanning

    @pytest.mark.asyncio
    async def test_start_clears_registry(self):
        transport = FakeTransport()
        scanner = Scanner(transport)
        await scanner.start()
        transport.advertise("AA:BB:CC:DD:00:01")
        await scanner.stop()

        await scanner.start()
        assert scanner.devices == []
        await scanner.stop()

    @pytest.mark.asyncio
    async def test_watchdog_restarts_stalled_scan(self):
        transport = FakeTransport()
        clock = _Clock()
        scanner = Scanner(transport, config=SessionConfig(), clock=clock)
        await scanner.start()
        await scanner.watchdog.stop()

        clock.now += 9
        assert await scanner.watchdog.check()

        assert transport.scan_starts == 2
        assert transport.scan_stops == 1
        assert transport.scanning
        await scanner.stop()

    @pytest.mark.asyncio
    async def test_stop_disables_watchdog(self):
        transport = FakeTransport()
        scanner = Scanner(transport)
        await scanner.start()
        assert scanner.watchdog.running

        await scanner.stop()

        assert not scanner.watchdog.running
        assert not scanner.is_scanning


class TestDiscoverDevices:
    @pytest.mark.asyncio
    async def test_scan_for_timeout(self):
        transport = FakeTransport()

        async def advertise_later():
            await asyncio.sleep(0.01)
            transport.advertise("AA:BB:CC:DD:12:34")

        task = asyncio.create_task(advertise_later())
        devices = await discover_devices(timeout=0.05, transport=transport)
        await task

        assert [device.address for device in devices] == ["AA:BB:CC:DD:12:34"]
        assert transport.scan_starts == 1
        assert not transport.scanning
