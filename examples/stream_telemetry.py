"""Scan for Tyme Wear sensors, stream telemetry and optionally download files.

Usage:
    uv run python examples/stream_telemetry.py --scan 10
    uv run python examples/stream_telemetry.py --address AA:BB:CC:DD:EE:FF --duration 60
    uv run python examples/stream_telemetry.py --address AA:BB:CC:DD:EE:FF --download ./files
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path

from tymewear import (
    BatteryStatus,
    BreathingRecord,
    DeviceDiscovered,
    HeartRateRecord,
    ImuProcessedRecord,
    StretchRecord,
    TymewearDevice,
    discover_devices,
)


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _print_record(record) -> None:
    """Print one decoded telemetry record."""
    if isinstance(record, BreathingRecord):
        print(
            f"[{_timestamp()}] BR={record.processed_breath_rate:.1f} "
            f"VT={record.processed_tidal_volume} VE={record.processed_minute_ventilation}"
        )
    elif isinstance(record, HeartRateRecord):
        print(f"[{_timestamp()}] HR={record.heart_rate}")
    elif isinstance(record, ImuProcessedRecord):
        print(f"[{_timestamp()}] cadence={record.cadence} load={record.player_load}")
    elif isinstance(record, StretchRecord):
        print(f"[{_timestamp()}] stretch={record.value}")


async def scan(duration: float) -> None:
    """Scan and print every sensor seen."""
    print(f"Scanning for Tyme Wear sensors for {duration:.1f}s...")
    devices = await discover_devices(timeout=duration)
    for device in devices:
        print(f"  {device}")
    if not devices:
        print("  none found")


async def stream(address: str, duration: float, download_dir: Path | None) -> None:
    """Connect, print live telemetry for a while and download stored files."""
    record_counts: Counter[str] = Counter()

    def on_event(event) -> None:
        if isinstance(event, BatteryStatus):
            print(f"[{_timestamp()}] battery charge={event.charge} at {event.elapsed}")
            return
        if isinstance(event, DeviceDiscovered):
            return
        record_counts[type(event).__name__] += 1
        _print_record(event)

    async with TymewearDevice(address) as device:
        device.events.subscribe(None, on_event)

        info = await device.get_hardware_info()
        print(
            f"Connected to {address}: firmware {info.version_string}, hw {info.hw_version}, "
            f"calibrated={info.calibrated}"
        )
        await device.sync_rtc()

        if download_dir is not None:
            download_dir.mkdir(parents=True, exist_ok=True)
            for entry in await device.list_files():
                path = download_dir / f"{entry.timestamp}.txt"
                print(f"Downloading {entry} -> {path}")
                with open(path, "w") as output:
                    result = await device.download_file(entry, output)
                print(f"  {result.records} records, {result.desyncs} desyncs")

        if duration > 0:
            await device.start_activity()
            try:
                await asyncio.sleep(duration)
            finally:
                await device.stop_activity()

    print("\nSummary:")
    for name, count in sorted(record_counts.items()):
        print(f"  {name}={count}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scan for Tyme Wear sensors or stream telemetry from one."
    )
    parser.add_argument(
        "--scan",
        type=float,
        default=0.0,
        help="Scan for this many seconds and exit.",
    )
    parser.add_argument("--address", help="Sensor BLE address to connect to.")
    parser.add_argument(
        "--duration",
        type=float,
        default=30.0,
        help="Stream telemetry for this many seconds (0 = skip). Default: 30",
    )
    parser.add_argument(
        "--download",
        type=Path,
        help="Download every stored file into this directory.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    try:
        if args.scan > 0 or not args.address:
            asyncio.run(scan(args.scan or 10.0))
        else:
            asyncio.run(stream(args.address, args.duration, args.download))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
