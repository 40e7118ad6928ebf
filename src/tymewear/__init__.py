"""Tyme Wear BLE Protocol Package.

  Pure Python package for communicating with Tyme Wear breathing/IMU sensors.
  """

from .channel import CommandChannel, ControlResponse
from .config import DEFAULT_CONFIG, SessionConfig
from .device import TymewearDevice
from .diagnostics import SessionDiagnostics
from .download import DownloadReassembler
from .events import (
    BatteryLevelChanged,
    BatteryStatus,
    Connected,
    DeviceDiscovered,
    Disconnected,
    DownloadComplete,
    EventEmitter,
)
from .exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    CharacteristicNotFoundError,
    CommandError,
    CommandRejectedError,
    CommandTimeoutError,
    DecodeError,
    DownloadDesyncError,
    InvalidResponseError,
    NotConnectedError,
    NotifyEnableError,
    ProtocolError,
    RecordTooShortError,
    ServiceNotFoundError,
    TymewearError,
    UnknownRecordTypeError,
)
from .models.devices import DiscoveredDevice
from .models.files import FileEntry
from .models.hardware import HardwareInfo
from .models.telemetry import (
    BreathingRecord,
    BreathTimestampsRecord,
    ExtendedRecord,
    HeartRateRecord,
    ImuProcessedRecord,
    ImuSample,
    PressureTempRecord,
    RecordType,
    StretchRecord,
    TelemetryRecord,
)
from .protocol import SERVICE_UUID, OpCode, ResponseCode, decode_telemetry
from .scanner import Scanner, ScanWatchdog, discover_devices
from .session import DeviceSession
from .telemetry import TelemetryDecoder
from .transport import BleakTransport, BleTransport, ConnectionManager, ConnectionState

__version__ = "0.1.0"

__all__ = [
    # Main API
    "TymewearDevice",
    "discover_devices",
    "Scanner",
    "ScanWatchdog",
    # Components
    "ConnectionManager",
    "ConnectionState",
    "CommandChannel",
    "ControlResponse",
    "TelemetryDecoder",
    "DownloadReassembler",
    "DeviceSession",
    "SessionDiagnostics",
    "SessionConfig",
    "DEFAULT_CONFIG",
    # Transport
    "BleTransport",
    "BleakTransport",
    # Events
    "EventEmitter",
    "Connected",
    "Disconnected",
    "BatteryStatus",
    "BatteryLevelChanged",
    "DownloadComplete",
    "DeviceDiscovered",
    # Exceptions
    "TymewearError",
    "BLEConnectionError",
    "BLETimeoutError",
    "ServiceNotFoundError",
    "CharacteristicNotFoundError",
    "NotifyEnableError",
    "CommandError",
    "NotConnectedError",
    "CommandTimeoutError",
    "CommandRejectedError",
    "ProtocolError",
    "InvalidResponseError",
    "DecodeError",
    "RecordTooShortError",
    "UnknownRecordTypeError",
    "DownloadDesyncError",
    # Models
    "DiscoveredDevice",
    "FileEntry",
    "HardwareInfo",
    "RecordType",
    "ImuSample",
    "ExtendedRecord",
    "BreathingRecord",
    "ImuProcessedRecord",
    "StretchRecord",
    "PressureTempRecord",
    "HeartRateRecord",
    "BreathTimestampsRecord",
    "TelemetryRecord",
    # Utilities
    "decode_telemetry",
    # Constants
    "OpCode",
    "ResponseCode",
    "SERVICE_UUID",
]
