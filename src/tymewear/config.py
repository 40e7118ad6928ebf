"""Session timing configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionConfig:
    """Timing constants for one device session.

    Attributes:
        command_timeout: Seconds to wait for a tagged response (default: 10)
        connect_timeout: Transport connection timeout in seconds (default: 10)
        connect_max_attempts: Attempts passed to bleak-retry-connector (default: 4)
        settle_delay: Pause after connecting before discovery (default: 0.2)
        service_discovery_attempts: Custom service lookups before giving up (default: 3)
        service_discovery_delay: Pause between service lookups (default: 0.2)
        notify_retry_delay: Pause before the single notify-enable retry (default: 0.1)
        download_quiet_window: Silence that marks a file download complete (default: 1.0)
        scan_watchdog_interval: Seconds between scan watchdog checks (default: 5)
        scan_silence_threshold: Advertisement silence that restarts the scan (default: 8)
    """

    command_timeout: float = 10.0
    connect_timeout: float = 10.0
    connect_max_attempts: int = 4
    settle_delay: float = 0.2
    service_discovery_attempts: int = 3
    service_discovery_delay: float = 0.2
    notify_retry_delay: float = 0.1
    download_quiet_window: float = 1.0
    scan_watchdog_interval: float = 5.0
    scan_silence_threshold: float = 8.0

    def __post_init__(self) -> None:
        if self.service_discovery_attempts < 1:
            raise ValueError("service_discovery_attempts must be at least 1")
        for name in ("command_timeout", "download_quiet_window", "scan_watchdog_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


DEFAULT_CONFIG = SessionConfig()
