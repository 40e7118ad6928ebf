"""Scan result model."""

from __future__ import annotations

from dataclasses import dataclass


def default_device_name(address: str) -> str:
    """Build the TYME-XXXX display name from the last four hex digits."""
    digits = "".join(ch for ch in address if ch.isalnum()).upper()
    return f"TYME-{digits[-4:].rjust(4, '0')}"


@dataclass
class DiscoveredDevice:
    """A sensor seen during scanning."""

    address: str
    name: str
    rssi: int | None
    last_seen: float

    def __str__(self) -> str:
        return f"{self.name} [{self.address}] RSSI={self.rssi}"
