"""Hardware info block returned by GET_INFO."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import datetime, timezone

_HARDWARE_INFO = struct.Struct("<HBHHBHHIIH")
HARDWARE_INFO_SIZE = _HARDWARE_INFO.size

# hw_status bits
STATUS_EXTENDED_MODE = 1 << 0
STATUS_STRETCH_SENSOR = 1 << 1
STATUS_CALIBRATED = 1 << 2
STATUS_IMU_SENSORS = 1 << 4
STATUS_ALTITUDE_SENSOR = 1 << 5
STATUS_ACTIVITIES_AVAILABLE = 1 << 6


@dataclass(frozen=True)
class HardwareInfo:
    """Device hardware/firmware information.

    Format (22 bytes, packed, little-endian):
    - [0-1]: Software version (low byte is the minor version)
    - [2]: Hardware version
    - [3-4]: IMU sampling period in ms
    - [5-6]: Data point period in ms
    - [7]: Hardware status flags
    - [8-9]: Base calibration
    - [10-11]: User tidal volume calibration
    - [12-15]: Current RTC (unix seconds)
    - [16-19]: Last activity start timestamp (unix seconds)
    - [20-21]: Activity threshold
    """

    sw_version: int
    hw_version: int
    imu_period_ms: int
    data_point_period_ms: int
    hw_status: int
    base_calibration: int
    user_vt_calibration: int
    current_rtc: int
    activity_start_timestamp: int
    activity_threshold: int

    @classmethod
    def from_bytes(cls, data: bytes) -> HardwareInfo:
        """Parse the packed info block (extra trailing bytes are ignored)."""
        return cls(*_HARDWARE_INFO.unpack_from(data, 0))

    @property
    def version_string(self) -> str:
        return f"0.{self.sw_version & 0xFF:02X}"

    @property
    def extended_mode(self) -> bool:
        return bool(self.hw_status & STATUS_EXTENDED_MODE)

    @property
    def stretch_sensor(self) -> bool:
        return bool(self.hw_status & STATUS_STRETCH_SENSOR)

    @property
    def calibrated(self) -> bool:
        return bool(self.hw_status & STATUS_CALIBRATED)

    @property
    def imu_sensors(self) -> bool:
        return bool(self.hw_status & STATUS_IMU_SENSORS)

    @property
    def altitude_sensor(self) -> bool:
        return bool(self.hw_status & STATUS_ALTITUDE_SENSOR)

    @property
    def activities_available(self) -> bool:
        return bool(self.hw_status & STATUS_ACTIVITIES_AVAILABLE)

    @property
    def rtc_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.current_rtc, tz=timezone.utc)

    @property
    def activity_start_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.activity_start_timestamp, tz=timezone.utc)
