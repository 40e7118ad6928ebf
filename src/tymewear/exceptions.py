"""Exception hierarchy for the Tyme Wear BLE protocol engine."""

from __future__ import annotations


class TymewearError(Exception):
    """Base exception for all tymewear errors."""


class BLEConnectionError(TymewearError):
    """Raised when a BLE connection cannot be established or used."""


class ServiceNotFoundError(BLEConnectionError):
    """Raised when the custom sensor service is missing after all attempts."""


class CharacteristicNotFoundError(BLEConnectionError):
    """Raised when a required characteristic is missing from the service."""

    def __init__(self, uuid: str):
        super().__init__(f"Characteristic {uuid} not found")
        self.uuid = uuid


class NotifyEnableError(BLEConnectionError):
    """Raised when notifications cannot be enabled on a characteristic."""

    def __init__(self, uuid: str):
        super().__init__(f"Could not enable notifications on {uuid}")
        self.uuid = uuid


class BLETimeoutError(TymewearError):
    """Raised when a BLE transport operation times out."""


class CommandError(TymewearError):
    """Base class for control command failures."""


class NotConnectedError(CommandError):
    """Raised when a command needs a session and none is active."""


class CommandTimeoutError(CommandError):
    """Raised when no response with a matching tag arrives in time."""

    def __init__(self, opcode: int, tag: int, timeout: float):
        super().__init__(
            f"No response to 0x{opcode:04x} (tag {tag}) within {timeout}s"
        )
        self.opcode = opcode
        self.tag = tag
        self.timeout = timeout


class CommandRejectedError(CommandError):
    """Raised when the device answers a command with a non-success code."""

    def __init__(self, opcode: int, code: int, code_name: str):
        super().__init__(f"Command 0x{opcode:04x} rejected: {code_name} (0x{code:04x})")
        self.opcode = opcode
        self.code = code
        self.code_name = code_name


class ProtocolError(TymewearError):
    """Raised when device data violates the wire protocol."""


class InvalidResponseError(ProtocolError):
    """Raised when a command response payload cannot be interpreted."""


class DecodeError(ProtocolError):
    """Base class for telemetry decode failures.

    Decoders return instances of this class instead of raising them so a
    malformed packet never interrupts a telemetry session.
    """


class RecordTooShortError(DecodeError):
    """Notification is shorter than the layout of its declared record type."""

    def __init__(self, record_type: int | None, length: int, required: int):
        super().__init__(
            f"Record type {record_type} too short: {length} bytes (need {required})"
        )
        self.record_type = record_type
        self.length = length
        self.required = required


class UnknownRecordTypeError(DecodeError):
    """Leading type byte does not name a known record layout."""

    def __init__(self, record_type: int):
        super().__init__(f"Unknown record type 0x{record_type:02x}")
        self.record_type = record_type


class DownloadDesyncError(ProtocolError):
    """Download stream contained an unknown record type; buffer was discarded."""

    def __init__(self, record_type: int, discarded: int):
        super().__init__(
            f"Download desync on type 0x{record_type:02x}, discarded {discarded} bytes"
        )
        self.record_type = record_type
        self.discarded = discarded
