"""Runtime settings for lpm.

There is no configuration file; defaults can be overridden from the
environment.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from lpm.errors import InvalidArgument

MIN_REFRESH_INTERVAL = 0.1


@dataclass
class Settings:
    """Session and engine settings."""

    refresh_interval: float = 2.0  # Seconds between snapshots
    poll_interval: float = 0.05  # Seconds between keystroke/timer polls
    proc_root: Path = Path("/proc")
    log_file: Path | None = None  # No logging unless set
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.refresh_interval = max(MIN_REFRESH_INTERVAL, self.refresh_interval)
        self.proc_root = Path(self.proc_root)
        if self.log_file is not None:
            self.log_file = Path(self.log_file)
        self.log_level = self.log_level.upper()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from ``LPM_*`` environment variables.

        Raises:
            InvalidArgument: LPM_REFRESH_INTERVAL is not a number.
        """
        env = os.environ if environ is None else environ
        settings = cls()

        interval = env.get("LPM_REFRESH_INTERVAL")
        if interval:
            try:
                settings.refresh_interval = max(MIN_REFRESH_INTERVAL, float(interval))
            except ValueError:
                raise InvalidArgument(f"LPM_REFRESH_INTERVAL is not a number: {interval!r}") from None
        if env.get("LPM_PROC_ROOT"):
            settings.proc_root = Path(env["LPM_PROC_ROOT"])
        if env.get("LPM_LOG_FILE"):
            settings.log_file = Path(env["LPM_LOG_FILE"])
        if env.get("LPM_LOG_LEVEL"):
            settings.log_level = env["LPM_LOG_LEVEL"].upper()
        return settings
