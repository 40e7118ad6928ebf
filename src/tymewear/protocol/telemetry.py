"""Data stream record decoding.

Every data stream notification carries exactly one record:
[type:1][fields...] with all fields little-endian. Layouts:

    0 Extended          counter:u32 chest:u16 chest_norm:u16
                        5 x (acc xyz, gyr xyz):i16 5 x load:u16
                        pressure:u32 temp:i16                      (85 bytes)
    1 Breathing         counter:u32 raw_br:u16 proc_br:u16 raw_tv:u16
                        proc_tv:u16 raw_mv:u16 proc_mv:u16         (17 bytes)
    2 IMU processed     counter:u32 cadence:u16 step_time:u32 load:u16 (13 bytes)
    3 Stretch           counter:u32 value:u16                      (7 bytes)
    4 Pressure/temp     counter:u32 pressure:u32 temp:i16          (11 bytes)
    5 Heart rate        timestamp:u32 hr:u16                       (7 bytes)
    6 Breath timestamps counter:u32 valley_idx:u32 valley:u16
                        peak_idx:u32 peak:u16                      (17 bytes)

Decoders return error instances rather than raising them; callers decide
whether to log and continue.
"""

from __future__ import annotations

import struct
from typing import Callable, Final, Union

from ..exceptions import DecodeError, RecordTooShortError, UnknownRecordTypeError
from ..models.telemetry import (
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

IMU_SAMPLES_PER_RECORD = 5
BREATH_RATE_SCALE = 10.0

LAYOUTS: Final[dict[RecordType, struct.Struct]] = {
    RecordType.EXTENDED: struct.Struct(f"<IHH{IMU_SAMPLES_PER_RECORD * 6}h{IMU_SAMPLES_PER_RECORD}HIh"),
    RecordType.BREATHING: struct.Struct("<IHHHHHH"),
    RecordType.IMU_PROCESSED: struct.Struct("<IHIH"),
    RecordType.STRETCH: struct.Struct("<IH"),
    RecordType.PRESSURE_TEMP: struct.Struct("<IIh"),
    RecordType.HEART_RATE: struct.Struct("<IH"),
    RecordType.BREATH_TIMESTAMPS: struct.Struct("<IIHIH"),
}


def record_length(record_type: RecordType) -> int:
    """Minimum notification length for a record type, type byte included."""
    return 1 + LAYOUTS[record_type].size


def _build_extended(values: tuple[int, ...]) -> ExtendedRecord:
    counter, chest_raw, chest_norm = values[:3]
    axes = values[3:3 + IMU_SAMPLES_PER_RECORD * 6]
    imu = tuple(ImuSample(*axes[i:i + 6]) for i in range(0, len(axes), 6))
    tail = values[3 + IMU_SAMPLES_PER_RECORD * 6:]
    return ExtendedRecord(
        counter=counter,
        chest_raw=chest_raw,
        chest_normalized=chest_norm,
        imu=imu,
        player_load=tuple(tail[:IMU_SAMPLES_PER_RECORD]),
        pressure=tail[IMU_SAMPLES_PER_RECORD],
        temperature=tail[IMU_SAMPLES_PER_RECORD + 1],
    )


def _build_breathing(values: tuple[int, ...]) -> BreathingRecord:
    counter, raw_br, proc_br, raw_tv, proc_tv, raw_mv, proc_mv = values
    return BreathingRecord(
        counter=counter,
        raw_breath_rate=raw_br / BREATH_RATE_SCALE,
        processed_breath_rate=proc_br / BREATH_RATE_SCALE,
        raw_tidal_volume=raw_tv,
        processed_tidal_volume=proc_tv,
        raw_minute_ventilation=raw_mv,
        processed_minute_ventilation=proc_mv,
    )


_BUILDERS: Final[dict[RecordType, Callable[[tuple[int, ...]], TelemetryRecord]]] = {
    RecordType.EXTENDED: _build_extended,
    RecordType.BREATHING: _build_breathing,
    RecordType.IMU_PROCESSED: lambda v: ImuProcessedRecord(*v),
    RecordType.STRETCH: lambda v: StretchRecord(*v),
    RecordType.PRESSURE_TEMP: lambda v: PressureTempRecord(*v),
    RecordType.HEART_RATE: lambda v: HeartRateRecord(*v),
    RecordType.BREATH_TIMESTAMPS: lambda v: BreathTimestampsRecord(*v),
}

DecodeResult = Union[TelemetryRecord, DecodeError]


def unpack_fields(record_type: RecordType, payload: bytes) -> tuple[int, ...]:
    """Unpack the raw field values of a record payload (type byte excluded)."""
    return LAYOUTS[record_type].unpack_from(payload, 0)


def build_record(record_type: RecordType, values: tuple[int, ...]) -> TelemetryRecord:
    """Build a typed record from unpacked field values."""
    return _BUILDERS[record_type](values)


def decode_telemetry(data: bytes) -> DecodeResult:
    """Decode one data stream notification.

    Bytes beyond the layout length are ignored.

    Args:
        data: Raw notification bytes

    Returns:
        The decoded record, or a RecordTooShortError / UnknownRecordTypeError
    """
    if not data:
        return RecordTooShortError(None, 0, 1)

    try:
        record_type = RecordType(data[0])
    except ValueError:
        return UnknownRecordTypeError(data[0])

    required = record_length(record_type)
    if len(data) < required:
        return RecordTooShortError(int(record_type), len(data), required)

    values = LAYOUTS[record_type].unpack_from(data, 1)
    return build_record(record_type, values)
