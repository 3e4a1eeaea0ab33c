"""Refresh throttle for remote snapshot checks.

Records when the published snapshot was last checked so repeated commands
within a short window do not hit the network again. Correctness never
depends on it: a missing or unreadable stamp simply means "check now".
"""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

import yaml
from pydantic import BaseModel

# Stamp file name within the registry home
STAMP_FILENAME = ".refresh-stamp.yaml"

# Default window between remote checks: 5 minutes
DEFAULT_INTERVAL_SECONDS = 5 * 60


class RefreshStamp(BaseModel):
    """Schema for the refresh stamp file."""

    checked_at: float
    generated_at: str = ""


class RefreshThrottle:
    """Decides whether a remote freshness check is due."""

    def __init__(
        self,
        home: Path,
        interval: int = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = home / STAMP_FILENAME
        self._interval = interval
        self._clock = clock

    def should_check(self) -> bool:
        """True unless a check was recorded less than ``interval`` seconds ago."""
        if self._interval <= 0:
            return True
        stamp = self._load()
        if stamp is None:
            return True
        return self._clock() - stamp.checked_at >= self._interval

    def mark_checked(self, generated_at: str = "") -> None:
        """Record a completed remote check."""
        stamp = RefreshStamp(checked_at=self._clock(), generated_at=generated_at)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            yaml.dump(stamp.model_dump(), default_flow_style=False, sort_keys=False)
        )

    def reset(self) -> None:
        self._path.unlink(missing_ok=True)

    def _load(self) -> RefreshStamp | None:
        if not self._path.exists():
            return None
        try:
            raw = yaml.safe_load(self._path.read_text())
            return RefreshStamp.model_validate(raw)
        except (OSError, yaml.YAMLError, ValueError, TypeError):
            return None
