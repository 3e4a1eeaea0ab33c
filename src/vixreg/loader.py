"""Cache-first snapshot loading with background refresh.

``load()`` answers from the snapshot cache when it can and only then looks
for a newer published snapshot on a background thread. With an empty cache
it fetches synchronously and fails loudly.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from typing import Any, Literal, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from vixreg import __version__
from vixreg.cache import SnapshotCache
from vixreg.freshness import RefreshThrottle

logger = logging.getLogger(__name__)

BACKGROUND_TIMEOUT = 2.5
COLD_TIMEOUT = 6.0


class SnapshotFetchError(Exception):
    """Raised when the published snapshot cannot be fetched or decoded."""


class SnapshotInvalidError(SnapshotFetchError):
    """Raised when a fetched document is not a usable snapshot."""


class SnapshotSource(Protocol):
    """Protocol for fetching the published snapshot document."""

    def fetch(self, timeout: float) -> dict[str, Any]:
        """Return the decoded snapshot, raising SnapshotFetchError on failure."""
        ...


class HttpSnapshotSource:
    """Fetches ``all.min.json`` over HTTP(S) or from a ``file://`` URL."""

    def __init__(self, url: str) -> None:
        self.url = url

    def fetch(self, timeout: float) -> dict[str, Any]:
        request = Request(  # noqa: S310
            self.url,
            headers={
                "Cache-Control": "no-cache",
                "Accept": "application/json",
                "User-Agent": f"vix-registry/{__version__}",
            },
        )
        try:
            with urlopen(request, timeout=timeout) as response:  # noqa: S310
                status = getattr(response, "status", None) or 200
                if not 200 <= status < 300:
                    msg = f"http_{status}"
                    raise SnapshotFetchError(msg)
                body = response.read()
        except HTTPError as e:
            msg = f"http_{e.code}"
            raise SnapshotFetchError(msg) from e
        except (URLError, TimeoutError, OSError) as e:
            msg = f"Cannot reach {self.url}: {e}"
            raise SnapshotFetchError(msg) from e

        try:
            data = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            msg = f"Malformed snapshot from {self.url}: {e}"
            raise SnapshotInvalidError(msg) from e

        if not isinstance(data, dict):
            msg = f"Malformed snapshot from {self.url}: expected a JSON object"
            raise SnapshotInvalidError(msg)
        return require_entries(data, self.url)


def has_entries(data: Any) -> bool:
    return isinstance(data, dict) and isinstance(data.get("entries"), list)


def require_entries(data: dict[str, Any], origin: str) -> dict[str, Any]:
    """Return *data* if it carries an ``entries`` list.

    Raises:
        SnapshotInvalidError: If it does not.
    """
    if not has_entries(data):
        msg = f"Malformed snapshot from {origin}: no entries list"
        raise SnapshotInvalidError(msg)
    return data


def snapshot_version(data: dict[str, Any] | None) -> str:
    """The ``meta.generatedAt`` freshness token of a snapshot, or ``""``."""
    meta = data.get("meta") if isinstance(data, dict) else None
    if isinstance(meta, dict) and isinstance(meta.get("generatedAt"), str):
        return meta["generatedAt"]
    return ""


def _snapshot_meta(data: dict[str, Any]) -> dict[str, Any] | None:
    meta = data.get("meta")
    return meta if isinstance(meta, dict) else None


@dataclass(frozen=True)
class LoadResult:
    """Snapshot handed to the caller and where it came from."""

    source: Literal["cache", "network"]
    data: dict[str, Any]

    @property
    def version(self) -> str:
        return snapshot_version(self.data)


class IndexLoader:
    """Serves the cached snapshot immediately and keeps it eventually fresh."""

    def __init__(
        self,
        cache: SnapshotCache,
        source: SnapshotSource,
        throttle: RefreshThrottle | None = None,
        background_timeout: float = BACKGROUND_TIMEOUT,
        cold_timeout: float = COLD_TIMEOUT,
    ) -> None:
        self._cache = cache
        self._source = source
        self._throttle = throttle
        self._background_timeout = background_timeout
        self._cold_timeout = cold_timeout
        self._refresh_thread: threading.Thread | None = None

    def load(self) -> LoadResult:
        """Return a snapshot without waiting on the network when a cache exists.

        Raises:
            SnapshotFetchError: If nothing is cached and the fetch fails.
        """
        cached = self._cache.get()
        if cached is not None and not has_entries(cached.data):
            logger.warning("Cached snapshot has no entries list, fetching a fresh copy")
            cached = None
        if cached is not None:
            self.refresh_in_background(cached.generated_at)
            return LoadResult(source="cache", data=cached.data)

        data = self._fetch(self._cold_timeout)
        self._cache.put(_snapshot_meta(data), data)
        if self._throttle is not None:
            self._throttle.mark_checked(snapshot_version(data))
        return LoadResult(source="network", data=data)

    def _fetch(self, timeout: float) -> dict[str, Any]:
        return require_entries(self._source.fetch(timeout), "snapshot source")

    def refresh_in_background(self, current_version: str) -> threading.Thread | None:
        """Start a fire-and-forget refresh; returns the thread, or None if throttled."""
        if self._throttle is not None and not self._throttle.should_check():
            logger.debug("Skipping snapshot refresh: checked recently")
            return None

        thread = threading.Thread(
            target=self.refresh,
            args=(current_version,),
            name="vixreg-refresh",
            daemon=True,
        )
        self._refresh_thread = thread
        thread.start()
        return thread

    def refresh(self, current_version: str) -> bool:
        """Fetch the published snapshot and overwrite the cache if it differs.

        Never raises; returns True only when the cache was replaced.
        """
        try:
            data = self._fetch(self._background_timeout)
        except SnapshotFetchError as e:
            logger.debug("Background refresh failed: %s", e)
            return False

        version = snapshot_version(data)
        try:
            if self._throttle is not None:
                self._throttle.mark_checked(version)
            if not version or version == current_version:
                return False
            self._cache.put(_snapshot_meta(data), data)
        except (sqlite3.Error, OSError):
            logger.debug("Background refresh could not update the cache", exc_info=True)
            return False

        logger.info("Snapshot cache updated to %s", version)
        return True

    def wait_for_refresh(self, timeout: float | None = None) -> None:
        """Block until a pending background refresh settles or *timeout* expires."""
        thread = self._refresh_thread
        if thread is not None:
            thread.join(timeout)
