"""Decoded telemetry records from the data stream characteristic."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Union


class RecordType(IntEnum):
    """Leading type byte of a data stream notification."""

    EXTENDED = 0
    BREATHING = 1
    IMU_PROCESSED = 2
    STRETCH = 3
    PRESSURE_TEMP = 4
    HEART_RATE = 5
    BREATH_TIMESTAMPS = 6


@dataclass(frozen=True)
class ImuSample:
    """Raw accelerometer and gyroscope axes."""

    acc_x: int
    acc_y: int
    acc_z: int
    gyr_x: int
    gyr_y: int
    gyr_z: int


@dataclass(frozen=True)
class ExtendedRecord:
    """Extended-mode data point: chest, 5 IMU samples, load, pressure."""

    counter: int
    chest_raw: int
    chest_normalized: int
    imu: tuple[ImuSample, ...]
    player_load: tuple[int, ...]
    pressure: int
    temperature: int

    record_type = RecordType.EXTENDED


@dataclass(frozen=True)
class BreathingRecord:
    """Processed breathing metrics.

    Breathing rates are transmitted in tenths of a breath per minute.
    """

    counter: int
    raw_breath_rate: float
    processed_breath_rate: float
    raw_tidal_volume: int
    processed_tidal_volume: int
    raw_minute_ventilation: int
    processed_minute_ventilation: int

    record_type = RecordType.BREATHING


@dataclass(frozen=True)
class ImuProcessedRecord:
    counter: int
    cadence: int
    step_time: int
    player_load: int

    record_type = RecordType.IMU_PROCESSED


@dataclass(frozen=True)
class StretchRecord:
    counter: int
    value: int

    record_type = RecordType.STRETCH


@dataclass(frozen=True)
class PressureTempRecord:
    counter: int
    pressure: int
    temperature: int

    record_type = RecordType.PRESSURE_TEMP


@dataclass(frozen=True)
class HeartRateRecord:
    timestamp: int
    heart_rate: int

    record_type = RecordType.HEART_RATE


@dataclass(frozen=True)
class BreathTimestampsRecord:
    """Tidal volume valley/peak positions of the last breath."""

    counter: int
    valley_time_index: int
    valley_value: int
    peak_time_index: int
    peak_value: int

    record_type = RecordType.BREATH_TIMESTAMPS


TelemetryRecord = Union[
    ExtendedRecord,
    BreathingRecord,
    ImuProcessedRecord,
    StretchRecord,
    PressureTempRecord,
    HeartRateRecord,
    BreathTimestampsRecord,
]
