"""Data models for Tyme Wear sensors."""

from .devices import DiscoveredDevice, default_device_name
from .files import FILE_ENTRY_SIZE, FileEntry
from .hardware import HARDWARE_INFO_SIZE, HardwareInfo
from .telemetry import (
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

__all__ = [
    "BreathingRecord",
    "BreathTimestampsRecord",
    "DiscoveredDevice",
    "ExtendedRecord",
    "FILE_ENTRY_SIZE",
    "FileEntry",
    "HARDWARE_INFO_SIZE",
    "HardwareInfo",
    "HeartRateRecord",
    "ImuProcessedRecord",
    "ImuSample",
    "PressureTempRecord",
    "RecordType",
    "StretchRecord",
    "TelemetryRecord",
    "default_device_name",
]
