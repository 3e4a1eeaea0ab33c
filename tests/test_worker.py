"""Tests for the threaded search worker."""

from typing import Any

import pytest

from tests.conftest import make_snapshot
from vixreg import worker as worker_module
from vixreg.search import REGISTRY_NOT_LOADED
from vixreg.worker import INTERNAL_ERROR, SearchWorker, WorkerTimeoutError


class TestSearchWorker:
    """Message round trips through the worker thread."""

    def test_load_then_search(self, sample_entries: list[dict[str, Any]]) -> None:
        """A loaded worker answers searches."""
        with SearchWorker() as worker:
            loaded = worker.request({"type": "load", "data": make_snapshot(sample_entries)})
            result = worker.request({"type": "search", "query": "json"})

        assert loaded["ok"] is True
        assert loaded["entryCount"] == 3
        assert result["ok"] is True
        assert [hit["id"] for hit in result["hits"]] == ["acme/json", "vix/jsonkit", "zeta/config"]

    def test_search_before_load(self) -> None:
        """A search before load reports registry_not_loaded."""
        with SearchWorker() as worker:
            result = worker.request({"type": "search", "query": "json"})

        assert result["ok"] is False
        assert result["error"] == REGISTRY_NOT_LOADED

    def test_responses_arrive_in_post_order(self, sample_entries: list[dict[str, Any]]) -> None:
        """Responses come back in the order requests were posted."""
        # Given
        with SearchWorker() as worker:
            worker.post({"type": "load", "data": make_snapshot(sample_entries)})
            worker.post({"type": "getPackage", "id": "vix/jsonkit"})
            worker.post({"type": "browse"})

            # When
            responses = [worker.receive(timeout=5) for _ in range(3)]

        # Then
        assert [r["type"] for r in responses] == ["loaded", "packageResult", "searchResult"]

    def test_receive_times_out_without_requests(self) -> None:
        """receive raises when nothing arrives in time."""
        with SearchWorker() as worker, pytest.raises(WorkerTimeoutError):
            worker.receive(timeout=0.05)

    def test_stop_ends_thread(self) -> None:
        """stop ends the worker thread."""
        worker = SearchWorker().start()
        assert worker.is_running

        worker.stop()

        assert not worker.is_running

    def test_start_is_idempotent(self) -> None:
        """Starting twice keeps one running thread."""
        worker = SearchWorker()
        try:
            assert worker.start() is worker
            assert worker.start() is worker
        finally:
            worker.stop()

    def test_handler_failure_does_not_kill_worker(
        self,
        monkeypatch: pytest.MonkeyPatch,
        sample_entries: list[dict[str, Any]],
    ) -> None:
        """A handler crash answers internal_error and the worker keeps serving."""
        # Given - the first dispatch blows up
        real_dispatch = worker_module.dispatch
        calls = {"count": 0}

        def flaky_dispatch(state: Any, message: Any) -> dict[str, Any]:
            calls["count"] += 1
            if calls["count"] == 1:
                raise RuntimeError("boom")
            return real_dispatch(state, message)

        monkeypatch.setattr(worker_module, "dispatch", flaky_dispatch)

        with SearchWorker() as worker:
            # When
            failed = worker.request({"type": "search", "query": "json"})
            loaded = worker.request({"type": "load", "data": make_snapshot(sample_entries)})

        # Then
        assert failed == {"type": "error", "error": INTERNAL_ERROR}
        assert loaded["ok"] is True
