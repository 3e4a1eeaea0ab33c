"""Isolated search worker.

Runs the search engine on its own thread. Callers talk to it only through
messages: requests go into an inbox queue, responses come back on an outbox
queue in the order the requests were posted. The worker thread is the only
owner of the loaded snapshot, so no locking is involved.
"""

from __future__ import annotations

import logging
import queue
import threading
from types import TracebackType
from typing import Any

from vixreg.search import WorkerState, dispatch

logger = logging.getLogger(__name__)

_STOP = object()

INTERNAL_ERROR = "internal_error"


def _message_type(message: Any) -> str:
    return str(message.get("type")) if isinstance(message, dict) else type(message).__name__


class WorkerTimeoutError(Exception):
    """Raised when no response arrives within the requested time."""


class SearchWorker:
    """Single consumer thread answering load/search/browse/getPackage messages.

    Usage:
        with SearchWorker() as worker:
            worker.request({"type": "load", "data": snapshot})
            result = worker.request({"type": "search", "query": "json"})
    """

    def __init__(self, name: str = "vixreg-search") -> None:
        self._inbox: queue.Queue[Any] = queue.Queue()
        self._outbox: queue.Queue[dict[str, Any]] = queue.Queue()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> SearchWorker:
        if not self._thread.is_alive():
            self._thread.start()
        return self

    def stop(self, timeout: float | None = 5.0) -> None:
        """Ask the worker to exit after the messages already posted."""
        if self._thread.is_alive():
            self._inbox.put(_STOP)
            self._thread.join(timeout)

    def post(self, message: dict[str, Any]) -> None:
        """Queue a request without waiting for its response."""
        self._inbox.put(message)

    def receive(self, timeout: float | None = None) -> dict[str, Any]:
        """Take the next response.

        Raises:
            WorkerTimeoutError: If nothing arrives within *timeout* seconds.
        """
        try:
            return self._outbox.get(timeout=timeout)
        except queue.Empty as e:
            msg = f"No response from search worker within {timeout}s"
            raise WorkerTimeoutError(msg) from e

    def request(self, message: dict[str, Any], timeout: float | None = 10.0) -> dict[str, Any]:
        """Post *message* and wait for its response.

        Assumes no other responses are pending on the outbox.
        """
        self.post(message)
        return self.receive(timeout)

    def _run(self) -> None:
        state = WorkerState()
        while True:
            message = self._inbox.get()
            if message is _STOP:
                break
            try:
                response = dispatch(state, message)
            except Exception:
                logger.exception("Search worker failed to handle %r", _message_type(message))
                response = {"type": "error", "error": INTERNAL_ERROR}
            self._outbox.put(response)
        logger.debug("Search worker stopped")

    def __enter__(self) -> SearchWorker:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()
