"""BLE protocol commands for Tyme Wear sensors."""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import Final


class OpCode(IntEnum):
    """Control characteristic opcodes."""

    GET_INFO = 0x0001             # Hardware info block
    START_ACTIVITY = 0x0020       # Start recording an activity
    STOP_ACTIVITY = 0x0021        # Stop the current activity
    ERASE_FILES = 0x002B          # Erase all stored files
    SYNC_RTC = 0x002C             # Set device clock (param: unix seconds)
    START_STRETCH = 0x002D        # Start raw stretch streaming
    STOP_STRETCH = 0x002E         # Stop raw stretch streaming
    DATA_DUMP = 0x0108            # Download a file (param: file timestamp)
    LIST_FILES = 0x0109           # List stored files
    FACTORY_CALIBRATION = 0x010A  # Run factory calibration


class ResponseCode(IntEnum):
    """Response and status codes carried in inbound control envelopes."""

    SUCCESS = 0x8000
    INVALID_REQ = 0x8100
    INVALID_PARAM = 0x8200
    NOT_FOUND = 0x8300
    ERROR = 0x8400
    BUSY = 0x8500
    LOCKED = 0x8600
    FORBIDDEN = 0x8700
    NO_MEM = 0x8800

    # Streaming status codes
    STAT_NO_MEM = 0x4000
    STAT_FITTING = 0x4001


# Unsolicited battery charge push, shares the control characteristic
BATTERY_STATUS_CODE: Final = 0x4002

# Protocol constants
SERVICE_UUID = "40b50000-30b5-11e5-a151-feff819cdc90"
DOWNLOAD_CHAR_UUID = "40b50001-30b5-11e5-a151-feff819cdc90"
DATA_STREAM_CHAR_UUID = "40b50004-30b5-11e5-a151-feff819cdc90"
CONTROL_CHAR_UUID = "40b50007-30b5-11e5-a151-feff819cdc90"

BATTERY_SERVICE_UUID = "0000180f-0000-1000-8000-00805f9b34fb"
BATTERY_LEVEL_CHAR_UUID = "00002a19-0000-1000-8000-00805f9b34fb"

MAX_TAG = 0xFFFF
ENVELOPE_HEADER_SIZE = 4

_HEADER = struct.Struct("<HH")
_HEADER_WITH_PARAM = struct.Struct("<HHI")


def opcode_name(opcode: int) -> str:
    """Human-readable opcode name for log lines."""
    try:
        return OpCode(opcode).name
    except ValueError:
        return f"0x{opcode:04X}"


def response_name(code: int) -> str:
    """Human-readable response code name for log lines."""
    if code == BATTERY_STATUS_CODE:
        return "BATTERY_STATUS"
    try:
        return ResponseCode(code).name
    except ValueError:
        return "UNKNOWN"


def build_command(opcode: int, tag: int, param: int | None = None) -> bytes:
    """Build an outbound control envelope.

    Args:
        opcode: Command opcode (u16)
        tag: Correlation tag echoed by the device (1-65535)
        param: Optional u32 parameter

    Returns:
        Command bytes: [opcode:2][tag:2] or [opcode:2][tag:2][param:4],
        all little-endian

    Raises:
        ValueError: If a field is out of range
    """
    if not 0 <= opcode <= 0xFFFF:
        raise ValueError(f"Opcode out of range: {opcode}")
    if not 1 <= tag <= MAX_TAG:
        raise ValueError(f"Tag out of range: {tag} (must be 1-{MAX_TAG})")

    if param is None:
        return _HEADER.pack(opcode, tag)

    if not 0 <= param <= 0xFFFFFFFF:
        raise ValueError(f"Param out of range: {param} (must fit in u32)")
    return _HEADER_WITH_PARAM.pack(opcode, tag, param)
