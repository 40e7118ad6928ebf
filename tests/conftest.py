"""Shared fixtures: an in-memory BLE transport."""

from __future__ import annotations

import struct
from typing import Callable

import pytest

from tymewear.models.devices import DiscoveredDevice
from tymewear.protocol import (
    BATTERY_LEVEL_CHAR_UUID,
    BATTERY_SERVICE_UUID,
    CONTROL_CHAR_UUID,
    DATA_STREAM_CHAR_UUID,
    DOWNLOAD_CHAR_UUID,
    SERVICE_UUID,
)


class FakeTransport:
    """BleTransport double that records traffic and replays notifications."""

    def __init__(self) -> None:
        self.connected = False
        self.connect_calls: list[str] = []
        self.disconnect_calls = 0
        self.written: list[tuple[str, bytes]] = []
        self.handlers: dict[str, Callable[[bytes], None]] = {}
        self.notify_calls: list[str] = []
        self.stopped_notify: list[str] = []
        self.on_disconnect: Callable[[], None] | None = None

        self.services = {SERVICE_UUID, BATTERY_SERVICE_UUID}
        self.characteristics = {
            SERVICE_UUID: {CONTROL_CHAR_UUID, DATA_STREAM_CHAR_UUID, DOWNLOAD_CHAR_UUID},
            BATTERY_SERVICE_UUID: {BATTERY_LEVEL_CHAR_UUID},
        }
        self.service_found_after = 1
        self.service_checks = 0
        self.notify_failures: dict[str, int] = {}
        self.connect_error: BaseException | None = None
        self.write_error: BaseException | None = None
        self.battery_level = b"\x57"
        self.auto_reply: Callable[[bytes], bytes | None] | None = None

        self.scanning = False
        self.scan_callback: Callable[[DiscoveredDevice], None] | None = None
        self.scan_starts = 0
        self.scan_stops = 0

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def start_scan(self, callback, service_uuids=None) -> None:
        self.scanning = True
        self.scan_callback = callback
        self.scan_starts += 1

    async def stop_scan(self) -> None:
        self.scanning = False
        self.scan_stops += 1

    async def connect(self, address: str, on_disconnect=None) -> None:
        self.connect_calls.append(address)
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        self.on_disconnect = on_disconnect

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False
        self.handlers.clear()

    async def has_service(self, service_uuid: str) -> bool:
        self.service_checks += 1
        if service_uuid == SERVICE_UUID and self.service_checks < self.service_found_after:
            return False
        return service_uuid in self.services

    async def has_characteristic(self, service_uuid: str, char_uuid: str) -> bool:
        return service_uuid in self.services and char_uuid in self.characteristics.get(service_uuid, set())

    async def start_notify(self, char_uuid: str, handler) -> bool:
        self.notify_calls.append(char_uuid)
        if self.notify_failures.get(char_uuid, 0) > 0:
            self.notify_failures[char_uuid] -= 1
            return False
        self.handlers[char_uuid] = handler
        return True

    async def stop_notify(self, char_uuid: str) -> None:
        self.stopped_notify.append(char_uuid)
        self.handlers.pop(char_uuid, None)

    async def write(self, char_uuid: str, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.written.append((char_uuid, bytes(data)))
        if self.auto_reply is not None:
            reply = self.auto_reply(bytes(data))
            if reply is not None:
                self.notify(CONTROL_CHAR_UUID, reply)

    async def read(self, char_uuid: str) -> bytes:
        return self.battery_level

    def notify(self, char_uuid: str, data: bytes) -> None:
        """Deliver a notification as the peripheral would."""
        self.handlers[char_uuid](data)

    def drop_link(self) -> None:
        self.connected = False
        if self.on_disconnect is not None:
            self.on_disconnect()

    def advertise(self, address: str, rssi: int = -60, last_seen: float = 0.0) -> None:
        assert self.scan_callback is not None
        self.scan_callback(DiscoveredDevice(address=address, name=f"TYME-{address[-5:].replace(':', '')}",
                                            rssi=rssi, last_seen=last_seen))

    def written_commands(self) -> list[tuple[int, int, int | None]]:
        """Decode control writes into (opcode, tag, param)."""
        commands = []
        for char_uuid, data in self.written:
            if char_uuid != CONTROL_CHAR_UUID:
                continue
            opcode, tag = struct.unpack_from("<HH", data)
            param = struct.unpack_from("<I", data, 4)[0] if len(data) == 8 else None
            commands.append((opcode, tag, param))
        return commands


def response(code: int, tag: int, payload: bytes = b"") -> bytes:
    """Build an inbound control envelope."""
    return struct.pack("<HH", code, tag) + payload


def echo_success(payload: bytes = b"") -> Callable[[bytes], bytes]:
    """auto_reply that answers every command with SUCCESS and its own tag."""

    def reply(data: bytes) -> bytes:
        tag = struct.unpack_from("<H", data, 2)[0]
        return response(0x8000, tag, payload)

    return reply


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
