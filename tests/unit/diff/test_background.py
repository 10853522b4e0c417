"""Tests for diff/background.py -- offloading, timeouts and memoisation."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

import deckmerge.diff.background as background_module
from deckmerge.cache import LRUCache
from deckmerge.config import DeckMergeConfig
from deckmerge.diff.background import BackgroundDiffRunner
from deckmerge.diff.calculator import diff
from deckmerge.errors import DiffTimeoutError, SnapshotValidationError
from deckmerge.models import CardEntry, DeckDiff, DeckSnapshot
from deckmerge.snapshot import make_snapshot

SMALL_OLD = make_snapshot({"a": 1})
SMALL_NEW = make_snapshot({"a": 2})
LARGE_OLD = make_snapshot({f"card-{i}": 4 for i in range(30)})
LARGE_NEW = make_snapshot({f"card-{i}": 3 for i in range(30)})


def _offload_tags(metrics) -> list[str]:
    return [
        call["tags"]["offloaded"]
        for call in metrics.increments
        if call["name"] == "deckmerge.diffs_total"
    ]


@pytest.fixture
def blocking_diff(monkeypatch):
    """Replace the worker's diff function with one that waits for release."""
    release = threading.Event()

    def slow(old, new, **kwargs):
        release.wait(5)
        return DeckDiff()

    monkeypatch.setattr(background_module, "compute_diff", slow)
    yield release
    release.set()


class TestPlacement:
    def test_is_large_uses_total_cards(self):
        runner = BackgroundDiffRunner(DeckMergeConfig(large_deck_threshold=100))
        assert runner.is_large(LARGE_OLD)
        assert not runner.is_large(SMALL_OLD, SMALL_NEW)

    def test_small_deck_runs_inline(self, config, metrics):
        with BackgroundDiffRunner(config) as runner:
            assert runner.diff(SMALL_OLD, SMALL_NEW) == diff(SMALL_OLD, SMALL_NEW)
            assert runner._executor is None
        assert _offload_tags(metrics) == ["false"]

    def test_large_deck_offloaded(self, config, metrics):
        with BackgroundDiffRunner(config) as runner:
            assert runner.diff(LARGE_OLD, LARGE_NEW) == diff(LARGE_OLD, LARGE_NEW)
        assert _offload_tags(metrics) == ["true"]
        assert metrics.counted("deckmerge.diff_offloaded_total") == 1

    def test_shutdown_releases_owned_executor(self, config):
        runner = BackgroundDiffRunner(config)
        runner.diff(LARGE_OLD, LARGE_NEW)
        assert runner._executor is not None
        runner.shutdown()
        assert runner._executor is None

    def test_external_executor_left_running(self, config):
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            runner = BackgroundDiffRunner(config, executor=executor)
            runner.diff(LARGE_OLD, LARGE_NEW)
            runner.shutdown()
            assert executor.submit(lambda: 42).result() == 42
        finally:
            executor.shutdown()

    def test_invalid_input_rejected_on_calling_thread(self, config):
        bad = DeckSnapshot((CardEntry("x", -1),) + LARGE_OLD.entries)
        with BackgroundDiffRunner(config) as runner:
            with pytest.raises(SnapshotValidationError):
                runner.diff(bad, LARGE_NEW)
            assert runner._executor is None


class TestTimeout:
    def test_offloaded_diff_times_out(self, blocking_diff):
        config = DeckMergeConfig(large_deck_threshold=1, diff_timeout_seconds=0.05)
        runner = BackgroundDiffRunner(config)
        with pytest.raises(DiffTimeoutError) as exc_info:
            runner.diff(SMALL_OLD, SMALL_NEW)
        blocking_diff.set()
        runner.shutdown()
        assert exc_info.value.context["timeout_seconds"] == 0.05
        assert exc_info.value.context["total_cards"] == 2

    def test_timed_out_result_not_cached(self, blocking_diff):
        config = DeckMergeConfig(large_deck_threshold=1, diff_timeout_seconds=0.05)
        runner = BackgroundDiffRunner(config)
        with pytest.raises(DiffTimeoutError):
            runner.diff(SMALL_OLD, SMALL_NEW)
        blocking_diff.set()
        runner.shutdown()
        assert len(runner._cache) == 0

    @pytest.mark.asyncio
    async def test_async_timeout(self, blocking_diff):
        config = DeckMergeConfig(large_deck_threshold=1, diff_timeout_seconds=0.05)
        runner = BackgroundDiffRunner(config)
        with pytest.raises(DiffTimeoutError):
            await runner.diff_async(SMALL_OLD, SMALL_NEW)
        blocking_diff.set()
        runner.shutdown()


class TestCaching:
    def test_repeat_call_hits_cache(self, config, metrics):
        runner = BackgroundDiffRunner(config)
        first = runner.diff(SMALL_OLD, SMALL_NEW)
        second = runner.diff(SMALL_OLD, SMALL_NEW)
        assert first is second
        assert metrics.counted("deckmerge.diff_cache_hits_total") == 1
        assert metrics.counted("deckmerge.diffs_total") == 1

    def test_reordered_snapshot_hits_cache(self, config, metrics):
        runner = BackgroundDiffRunner(config)
        runner.diff(make_snapshot({"a": 1, "b": 2}), SMALL_NEW)
        runner.diff(make_snapshot({"b": 2, "a": 1}), SMALL_NEW)
        assert metrics.counted("deckmerge.diff_cache_hits_total") == 1

    def test_reordered_battlefields_miss_cache(self, config, metrics):
        runner = BackgroundDiffRunner(config)
        old = make_snapshot(battlefields=["bf-1", "bf-2"])
        runner.diff(old, make_snapshot(battlefields=["bf-3", "bf-4"]))
        reordered = make_snapshot(battlefields=["bf-4", "bf-3"])
        second = runner.diff(old, reordered)
        assert second == diff(old, reordered)
        assert metrics.counted("deckmerge.diff_cache_hits_total") == 0

    def test_direction_matters(self, config, metrics):
        runner = BackgroundDiffRunner(config)
        forward = runner.diff(SMALL_OLD, SMALL_NEW)
        backward = runner.diff(SMALL_NEW, SMALL_OLD)
        assert forward != backward
        assert metrics.counted("deckmerge.diff_cache_hits_total") == 0

    def test_cache_disabled(self, metrics):
        runner = BackgroundDiffRunner(DeckMergeConfig(diff_cache_capacity=0, metrics=metrics))
        runner.diff(SMALL_OLD, SMALL_NEW)
        runner.diff(SMALL_OLD, SMALL_NEW)
        assert metrics.counted("deckmerge.diffs_total") == 2

    def test_injected_cache_used(self, config):
        cache: LRUCache = LRUCache(4)
        runner = BackgroundDiffRunner(config, cache=cache)
        result = runner.diff(SMALL_OLD, SMALL_NEW)
        assert list(cache._entries.values())[0][1] is result


class TestAsync:
    @pytest.mark.asyncio
    async def test_small_deck(self, config):
        runner = BackgroundDiffRunner(config)
        assert await runner.diff_async(SMALL_OLD, SMALL_NEW) == diff(SMALL_OLD, SMALL_NEW)

    @pytest.mark.asyncio
    async def test_large_deck(self, config, metrics):
        runner = BackgroundDiffRunner(config)
        try:
            result = await runner.diff_async(LARGE_OLD, LARGE_NEW)
        finally:
            runner.shutdown()
        assert len(result.modified) == 30
        assert _offload_tags(metrics) == ["true"]
