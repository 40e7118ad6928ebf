"""BLE protocol implementation."""

from .commands import (
    BATTERY_LEVEL_CHAR_UUID,
    BATTERY_SERVICE_UUID,
    BATTERY_STATUS_CODE,
    CONTROL_CHAR_UUID,
    DATA_STREAM_CHAR_UUID,
    DOWNLOAD_CHAR_UUID,
    MAX_TAG,
    SERVICE_UUID,
    OpCode,
    ResponseCode,
    build_command,
    opcode_name,
    response_name,
)
from .download import DOWNLOAD_RECORD_LENGTHS, DownloadBuffer, DownloadRecord
from .responses import (
    ControlMessage,
    is_success,
    parse_battery_charge,
    parse_control_message,
    parse_file_list,
    parse_hardware_info,
)
from .telemetry import decode_telemetry, record_length

__all__ = [
    "OpCode",
    "ResponseCode",
    "SERVICE_UUID",
    "CONTROL_CHAR_UUID",
    "DATA_STREAM_CHAR_UUID",
    "DOWNLOAD_CHAR_UUID",
    "BATTERY_SERVICE_UUID",
    "BATTERY_LEVEL_CHAR_UUID",
    "BATTERY_STATUS_CODE",
    "MAX_TAG",
    "build_command",
    "opcode_name",
    "response_name",
    "ControlMessage",
    "parse_control_message",
    "parse_battery_charge",
    "parse_file_list",
    "parse_hardware_info",
    "is_success",
    "decode_telemetry",
    "record_length",
    "DownloadBuffer",
    "DownloadRecord",
    "DOWNLOAD_RECORD_LENGTHS",
]
