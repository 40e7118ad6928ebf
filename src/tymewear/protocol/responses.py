"""Control response parsing."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ..exceptions import InvalidResponseError, RecordTooShortError
from ..models.files import FILE_ENTRY_SIZE, FileEntry
from ..models.hardware import HARDWARE_INFO_SIZE, HardwareInfo
from .commands import BATTERY_STATUS_CODE, ENVELOPE_HEADER_SIZE, ResponseCode


@dataclass(frozen=True)
class ControlMessage:
    """Inbound control envelope.

    For command responses `tag` echoes the outbound tag; for unsolicited
    status pushes it is a device-side counter.
    """

    code: int
    tag: int
    payload: bytes

    @property
    def is_battery_status(self) -> bool:
        return self.code == BATTERY_STATUS_CODE


def parse_control_message(data: bytes) -> ControlMessage | RecordTooShortError:
    """Split a control notification into code, tag and payload.

    Format: [code:2][tag:2][payload...] (little-endian)

    Returns:
        The parsed message, or a RecordTooShortError when fewer than 4 bytes
        arrived.
    """
    if len(data) < ENVELOPE_HEADER_SIZE:
        return RecordTooShortError(None, len(data), ENVELOPE_HEADER_SIZE)

    code, tag = struct.unpack_from("<HH", data, 0)
    return ControlMessage(code=code, tag=tag, payload=bytes(data[ENVELOPE_HEADER_SIZE:]))


def parse_battery_charge(payload: bytes) -> int | None:
    """Raw charge counter from a battery status payload, if long enough."""
    if len(payload) < 4:
        return None
    return struct.unpack_from("<I", payload, 0)[0]


def parse_file_list(payload: bytes) -> tuple[list[FileEntry], int]:
    """Parse a LIST_FILES payload.

    The payload is a packed array of 12-byte entries.

    Returns:
        (entries, leftover) where leftover counts trailing bytes that did not
        form a complete entry
    """
    entries = [
        FileEntry.from_bytes(payload[offset:offset + FILE_ENTRY_SIZE])
        for offset in range(0, len(payload) - FILE_ENTRY_SIZE + 1, FILE_ENTRY_SIZE)
    ]
    return entries, len(payload) % FILE_ENTRY_SIZE


def parse_hardware_info(payload: bytes) -> HardwareInfo:
    """Parse a GET_INFO response payload.

    Raises:
        InvalidResponseError: If payload is shorter than the info block
    """
    if len(payload) < HARDWARE_INFO_SIZE:
        raise InvalidResponseError(
            f"Hardware info too short: {len(payload)} bytes (need {HARDWARE_INFO_SIZE})"
        )
    return HardwareInfo.from_bytes(payload)


def is_success(code: int) -> bool:
    """Check whether a response code reports success."""
    return code == ResponseCode.SUCCESS
