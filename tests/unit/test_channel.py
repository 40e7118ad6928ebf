"""Test tagged request/response correlation."""

from __future__ import annotations

import asyncio
import struct
import threading

import pytest
from conftest import FakeTransport, echo_success, response

from tymewear.channel import CommandChannel
from tymewear.events import BatteryStatus, EventEmitter
from tymewear.exceptions import CommandTimeoutError, NotConnectedError
from tymewear.protocol import CONTROL_CHAR_UUID, OpCode
from tymewear.session import DeviceSession


class _Clock:
    def __init__(self) -> None:
        self.now = 5000.0

    def __call__(self) -> float:
        return self.now


async def _make_channel(
        transport: FakeTransport,
        timeout: float = 1.0,
        battery_reader=None,
        clock=None,
) -> tuple[CommandChannel, DeviceSession, EventEmitter]:
    events = EventEmitter()
    channel = CommandChannel(transport, events, timeout=timeout, battery_reader=battery_reader)
    session = DeviceSession("AA:BB:CC:DD:EE:FF", clock=clock or _Clock())
    channel.attach(session)
    transport.handlers[CONTROL_CHAR_UUID] = channel.handle_notification
    return channel, session, events


class TestSend:
    """Commands resolve only with responses carrying their tag."""

    @pytest.mark.asyncio
    async def test_matching_response(self):
        transport = FakeTransport()
        transport.auto_reply = echo_success(b'\x01\x02')
        channel, session, _ = await _make_channel(transport)

        result = await channel.send(OpCode.START_ACTIVITY)

        assert transport.written == [(CONTROL_CHAR_UUID, b'\x20\x00\x01\x00')]
        assert result.tag == 1
        assert result.opcode == OpCode.START_ACTIVITY
        assert result.succeeded
        assert result.code_name == "SUCCESS"
        assert result.payload == b'\x01\x02'
        assert session.pending_tags() == []
        assert session.diagnostics.get("responses_matched") == 1

    @pytest.mark.asyncio
    async def test_param_is_sent(self):
        transport = FakeTransport()
        transport.auto_reply = echo_success()
        channel, _, _ = await _make_channel(transport)

        await channel.send(OpCode.SYNC_RTC, 1700000000)

        assert transport.written_commands() == [(OpCode.SYNC_RTC, 1, 1700000000)]

    @pytest.mark.asyncio
    async def test_non_success_code_is_returned(self):
        """Error codes are reported, not raised."""
        transport = FakeTransport()
        transport.auto_reply = lambda data: response(0x8500, struct.unpack_from("<H", data, 2)[0])
        channel, _, _ = await _make_channel(transport)

        result = await channel.send(OpCode.ERASE_FILES)

        assert not result.succeeded
        assert result.code_name == "BUSY"

    @pytest.mark.asyncio
    async def test_unrelated_response_does_not_complete(self):
        """A response with another tag is dropped; the real one completes the command."""
        transport = FakeTransport()
        channel, session, _ = await _make_channel(transport)

        task = asyncio.create_task(channel.send(OpCode.GET_INFO))
        await asyncio.sleep(0.01)
        assert session.pending_tags() == [1]

        channel.handle_notification(response(0x8000, 99))
        await asyncio.sleep(0.01)
        assert not task.done()
        assert session.diagnostics.get("responses_dropped") == 1

        channel.handle_notification(response(0x8000, 1, b'\xaa'))
        result = await task
        assert result.payload == b'\xaa'

    @pytest.mark.asyncio
    async def test_timeout_then_stray_response(self):
        """After a timeout the late reply is dropped and the next command gets a new tag."""
        transport = FakeTransport()
        channel, session, _ = await _make_channel(transport, timeout=0.05)

        with pytest.raises(CommandTimeoutError) as exc_info:
            await channel.send(OpCode.LIST_FILES)
        assert exc_info.value.tag == 1
        assert exc_info.value.opcode == OpCode.LIST_FILES
        assert session.pending_tags() == []
        assert session.diagnostics.get("command_timeouts") == 1

        channel.handle_notification(response(0x8000, 1))
        assert session.diagnostics.get("responses_dropped") == 1

        transport.auto_reply = echo_success()
        result = await channel.send(OpCode.LIST_FILES)
        assert result.tag == 2

    @pytest.mark.asyncio
    async def test_one_command_in_flight(self):
        """A second caller waits for the first command's response before writing."""
        transport = FakeTransport()
        channel, _, _ = await _make_channel(transport)

        first = asyncio.create_task(channel.send(OpCode.START_ACTIVITY))
        second = asyncio.create_task(channel.send(OpCode.STOP_ACTIVITY))
        await asyncio.sleep(0.01)
        assert len(transport.written) == 1

        channel.handle_notification(response(0x8000, 1))
        await first
        await asyncio.sleep(0.01)
        assert len(transport.written) == 2

        channel.handle_notification(response(0x8000, 2))
        assert (await second).opcode == OpCode.STOP_ACTIVITY

    @pytest.mark.asyncio
    async def test_not_connected(self):
        channel = CommandChannel(FakeTransport(), EventEmitter())
        with pytest.raises(NotConnectedError):
            await channel.send(OpCode.GET_INFO)

    @pytest.mark.asyncio
    async def test_session_close_fails_waiter(self):
        transport = FakeTransport()
        channel, session, _ = await _make_channel(transport, timeout=5.0)

        task = asyncio.create_task(channel.send(OpCode.GET_INFO))
        await asyncio.sleep(0.01)
        session.close()

        with pytest.raises(NotConnectedError):
            await task

    @pytest.mark.asyncio
    async def test_write_failure_releases_tag(self):
        transport = FakeTransport()
        transport.write_error = OSError("link down")
        channel, session, _ = await _make_channel(transport)

        with pytest.raises(OSError):
            await channel.send(OpCode.GET_INFO)
        assert session.pending_tags() == []

    @pytest.mark.asyncio
    async def test_short_notification_ignored(self):
        transport = FakeTransport()
        channel, session, _ = await _make_channel(transport)
        channel.handle_notification(b'\x00\x80')
        assert session.diagnostics.snapshot() == {}


class TestBatteryStatus:
    """Unsolicited 0x4002 pushes."""

    @pytest.mark.asyncio
    async def test_battery_status_event(self):
        transport = FakeTransport()
        clock = _Clock()

        async def read_battery():
            return 87

        channel, _, events = await _make_channel(transport, battery_reader=read_battery, clock=clock)
        statuses: list[BatteryStatus] = []
        events.subscribe(BatteryStatus, statuses.append)

        channel.handle_notification(response(0x4002, 1, struct.pack("<I", 4100)))
        await asyncio.sleep(0.01)
        clock.now += 150
        channel.handle_notification(response(0x4002, 2, struct.pack("<I", 4050)))
        await asyncio.sleep(0.01)

        assert statuses == [
            BatteryStatus(elapsed_minutes=0, charge=4100, battery_percent=87),
            BatteryStatus(elapsed_minutes=3, charge=4050, battery_percent=87),
        ]
        assert statuses[1].elapsed == "00:03"

    @pytest.mark.asyncio
    async def test_battery_status_does_not_resolve_command(self):
        """A push sharing a pending command's tag is still a battery status."""
        transport = FakeTransport()
        channel, session, events = await _make_channel(transport)
        statuses = []
        events.subscribe(BatteryStatus, statuses.append)

        task = asyncio.create_task(channel.send(OpCode.GET_INFO))
        await asyncio.sleep(0.01)
        channel.handle_notification(response(0x4002, 1, struct.pack("<I", 10)))
        await asyncio.sleep(0.01)

        assert not task.done()
        assert statuses[0].battery_percent is None
        channel.handle_notification(response(0x8000, 1))
        await task

    @pytest.mark.asyncio
    async def test_battery_read_failure_still_reports(self):
        transport = FakeTransport()

        async def read_battery():
            raise OSError("read failed")

        channel, _, events = await _make_channel(transport, battery_reader=read_battery)
        statuses = []
        events.subscribe(BatteryStatus, statuses.append)

        channel.handle_notification(response(0x4002, 1, struct.pack("<I", 10)))
        await asyncio.sleep(0.01)

        assert statuses == [BatteryStatus(elapsed_minutes=0, charge=10, battery_percent=None)]

    @pytest.mark.asyncio
    async def test_short_battery_payload(self):
        transport = FakeTransport()
        channel, session, events = await _make_channel(transport)
        statuses = []
        events.subscribe(BatteryStatus, statuses.append)

        channel.handle_notification(response(0x4002, 1, b'\x01'))
        await asyncio.sleep(0.01)

        assert statuses == []


class TestThreadDelivery:
    """Notifications arrive on a transport thread, not the event loop."""

    @pytest.mark.asyncio
    async def test_response_from_other_thread(self):
        transport = FakeTransport()
        channel, session, _ = await _make_channel(transport)

        task = asyncio.create_task(channel.send(OpCode.GET_INFO))
        await asyncio.sleep(0.01)
        worker = threading.Thread(
            target=channel.handle_notification,
            args=(response(0x8000, 1, b'\x07'),),
        )
        worker.start()
        worker.join()

        result = await asyncio.wait_for(task, 1.0)
        assert result.payload == b'\x07'
        assert session.pending_tags() == []

    @pytest.mark.asyncio
    async def test_battery_status_from_other_thread(self):
        transport = FakeTransport()

        async def read_battery():
            return 64

        channel, _, events = await _make_channel(transport, battery_reader=read_battery)
        statuses: list[BatteryStatus] = []
        events.subscribe(BatteryStatus, statuses.append)

        worker = threading.Thread(
            target=channel.handle_notification,
            args=(response(0x4002, 1, struct.pack("<I", 3900)),),
        )
        worker.start()
        worker.join()
        await asyncio.sleep(0.05)

        assert statuses == [BatteryStatus(elapsed_minutes=0, charge=3900, battery_percent=64)]
