"""Download stream framing.

During a file dump the download characteristic carries a concatenated
stream of [type:1][payload] records. Record boundaries do not line up with
notification boundaries, so bytes are buffered until a whole record is
available.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from ..exceptions import DownloadDesyncError
from ..models.telemetry import RecordType
from .telemetry import unpack_fields

# Payload lengths, type byte excluded
DOWNLOAD_RECORD_LENGTHS: Final[dict[RecordType, int]] = {
    RecordType.BREATHING: 16,
    RecordType.IMU_PROCESSED: 12,
    RecordType.HEART_RATE: 6,
}

SECTION_HEADERS: Final[dict[RecordType, str]] = {
    RecordType.BREATHING: "[Breathing]",
    RecordType.IMU_PROCESSED: "[IMU]",
    RecordType.HEART_RATE: "[HR]",
}


@dataclass(frozen=True)
class DownloadRecord:
    """One record recovered from the download stream, raw field values."""

    record_type: RecordType
    values: tuple[int, ...]

    def as_csv(self) -> str:
        return ",".join(str(value) for value in self.values)


class DownloadBuffer:
    """Append-only byte queue that yields complete download records.

    After every feed() the buffer holds at most one incomplete trailing
    record. Not thread-safe; the owner serializes access.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def feed(self, data: bytes) -> tuple[list[DownloadRecord], DownloadDesyncError | None]:
        """Append data and extract every complete record.

        An unknown type byte means framing is lost: the whole buffer,
        including bytes not yet parsed, is discarded.

        Returns:
            (records, error) where error is set if the buffer was discarded
        """
        self._buffer.extend(data)
        records: list[DownloadRecord] = []
        offset = 0

        while offset < len(self._buffer):
            type_byte = self._buffer[offset]
            try:
                record_type = RecordType(type_byte)
                length = DOWNLOAD_RECORD_LENGTHS[record_type]
            except (ValueError, KeyError):
                discarded = len(self._buffer) - offset
                self._buffer.clear()
                return records, DownloadDesyncError(type_byte, discarded)

            end = offset + 1 + length
            if end > len(self._buffer):
                break

            payload = bytes(self._buffer[offset + 1:end])
            records.append(DownloadRecord(record_type, unpack_fields(record_type, payload)))
            offset = end

        if offset:
            del self._buffer[:offset]
        return records, None
