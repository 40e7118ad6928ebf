"""Test the data stream demultiplexer."""

import struct

from tymewear.events import EventEmitter
from tymewear.models.telemetry import BreathingRecord, HeartRateRecord, StretchRecord
from tymewear.session import DeviceSession
from tymewear.telemetry import TelemetryDecoder


def _decoder():
    events = EventEmitter()
    seen = []
    events.subscribe(None, seen.append)
    session = DeviceSession("A")
    return TelemetryDecoder(events, session_provider=lambda: session), seen, session


class TestTelemetryDecoder:
    def test_emits_records_in_order(self):
        decoder, seen, session = _decoder()

        decoder.handle_notification(bytes([0x05]) + struct.pack("<IH", 1, 120))
        decoder.handle_notification(bytes([0x01]) + struct.pack("<IHHHHHH", 2, 150, 155, 300, 310, 5, 6))

        assert isinstance(seen[0], HeartRateRecord)
        assert isinstance(seen[1], BreathingRecord)
        assert session.diagnostics.get("telemetry_records") == 2

    def test_bad_packets_are_skipped(self):
        """Short and unknown packets produce no event and do not stop the stream."""
        decoder, seen, session = _decoder()

        decoder.handle_notification(b'')
        decoder.handle_notification(bytes([0x01]) + b'\x00' * 4)
        decoder.handle_notification(b'\x2a\x00\x00')
        decoder.handle_notification(bytes([0x03]) + struct.pack("<IH", 9, 321))

        assert seen == [StretchRecord(9, 321)]
        assert session.diagnostics.get("telemetry_too_short") == 2
        assert session.diagnostics.get("telemetry_unknown_type") == 1

    def test_latest_stretch_value(self):
        decoder, _, _ = _decoder()
        assert decoder.latest_stretch_value is None

        decoder.handle_notification(bytes([0x03]) + struct.pack("<IH", 1, 500))
        decoder.handle_notification(bytes([0x03]) + struct.pack("<IH", 2, 510))

        assert decoder.latest_stretch_value == 510

    def test_without_session(self):
        events = EventEmitter()
        seen = []
        events.subscribe(StretchRecord, seen.append)
        decoder = TelemetryDecoder(events)

        decoder.handle_notification(bytes([0x03]) + struct.pack("<IH", 1, 2))

        assert seen == [StretchRecord(1, 2)]
