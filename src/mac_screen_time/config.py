"""Settings for the screen time menu bar app and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class ScreenTimeSettings:
    """How often to refresh and how much of the power log to read."""

    refresh_interval: timedelta = timedelta(minutes=15)
    ui_poll_interval: timedelta = timedelta(seconds=5)
    tail_lines: int = 5000

    @classmethod
    def from_values(
        cls,
        refresh_minutes: float | None = None,
        tail_lines: int | None = None,
    ) -> "ScreenTimeSettings":
        settings = cls()
        if refresh_minutes is not None:
            settings.refresh_interval = timedelta(minutes=refresh_minutes)
        if tail_lines is not None:
            settings.tail_lines = tail_lines
        return settings
