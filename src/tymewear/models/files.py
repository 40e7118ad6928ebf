"""Stored activity file model."""

from __future__ import annotations

import struct
from dataclasses import dataclass

FILE_ENTRY_SIZE = 12
_FILE_ENTRY = struct.Struct("<III")


@dataclass(frozen=True)
class FileEntry:
    """One entry from the LIST_FILES response.

    Format (12 bytes, little-endian):
    - [0-3]: Activity start timestamp (unix seconds), identifies the file
    - [4-7]: Start address in device flash
    - [8-11]: End address in device flash
    """

    timestamp: int
    start_addr: int
    end_addr: int

    @property
    def size(self) -> int:
        """File size in bytes."""
        return self.end_addr - self.start_addr

    @property
    def filename(self) -> str:
        return f"file_{self.timestamp}.bin"

    @classmethod
    def from_bytes(cls, data: bytes) -> FileEntry:
        """Parse one packed 12-byte entry."""
        if len(data) != FILE_ENTRY_SIZE:
            raise ValueError(f"File entry must be exactly {FILE_ENTRY_SIZE} bytes, got {len(data)}")
        timestamp, start_addr, end_addr = _FILE_ENTRY.unpack(data)
        return cls(timestamp=timestamp, start_addr=start_addr, end_addr=end_addr)

    def to_bytes(self) -> bytes:
        return _FILE_ENTRY.pack(self.timestamp, self.start_addr, self.end_addr)

    def __str__(self) -> str:
        return f"{self.timestamp} - {self.size} bytes"
