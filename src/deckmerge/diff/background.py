"""Run the diff calculator off the calling thread for large decks.

Diffing is pure and synchronous; this module only decides *where* it runs.
When either snapshot reaches ``DeckMergeConfig.large_deck_threshold`` total
cards the work is submitted to a worker thread and the caller waits at
most ``diff_timeout_seconds``.  Snapshots and diffs are frozen, so nothing
is shared mutably across the boundary; on timeout the in-flight result is
simply discarded.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from functools import partial

from deckmerge.cache import LRUCache
from deckmerge.config import DeckMergeConfig
from deckmerge.errors import DiffTimeoutError
from deckmerge.models import DeckDiff, DeckSnapshot
from deckmerge.observability import get_logger, log_event, resolve_metrics
from deckmerge.snapshot import snapshot_fingerprint, validate_snapshot

from .calculator import diff as compute_diff

log = get_logger("deckmerge.diff")


class BackgroundDiffRunner:
    """Diff snapshots inline or on a worker thread, with memoisation.

    Parameters
    ----------
    config:
        Engine configuration (threshold, timeout, cache sizing, metrics).
    executor:
        Optional externally owned executor.  When omitted the runner
        creates its own on first use and shuts it down in
        :meth:`shutdown`.
    cache:
        Optional externally owned cache.  When omitted one is built from
        ``diff_cache_capacity`` / ``diff_cache_ttl_seconds``.
    """

    def __init__(
        self,
        config: DeckMergeConfig | None = None,
        *,
        executor: ThreadPoolExecutor | None = None,
        cache: LRUCache[tuple[str, str], DeckDiff] | None = None,
    ) -> None:
        self._config = config or DeckMergeConfig()
        self._metrics = resolve_metrics(self._config.metrics)
        self._executor = executor
        self._owns_executor = executor is None
        if cache is None and self._config.diff_cache_capacity > 0:
            cache = LRUCache(
                self._config.diff_cache_capacity,
                ttl_seconds=self._config.diff_cache_ttl_seconds,
            )
        self._cache = cache

    # ── Public API ─────────────────────────────────────────────────────

    def is_large(self, *snapshots: DeckSnapshot) -> bool:
        """``True`` if any snapshot reaches the offload threshold."""
        threshold = self._config.large_deck_threshold
        return any(s.total_cards() >= threshold for s in snapshots)

    def diff(self, old: DeckSnapshot, new: DeckSnapshot) -> DeckDiff:
        """Compute ``diff(old, new)``, offloading large inputs.

        Raises
        ------
        SnapshotValidationError
            If either snapshot is malformed (checked on the calling thread).
        DiffTimeoutError
            If an offloaded diff does not finish in time.
        """
        key = self._prepare(old, new)
        cached = self._cached(key)
        if cached is not None:
            return cached

        started = time.perf_counter()
        offloaded = self.is_large(old, new)
        if offloaded:
            future: Future[DeckDiff] = self._get_executor().submit(
                compute_diff, old, new, validate=False
            )
            try:
                result = future.result(timeout=self._config.diff_timeout_seconds)
            except FuturesTimeoutError as exc:
                future.cancel()
                raise self._timeout_error(old, new) from exc
        else:
            result = compute_diff(old, new, validate=False)

        self._record(key, result, started, offloaded)
        return result

    async def diff_async(self, old: DeckSnapshot, new: DeckSnapshot) -> DeckDiff:
        """Awaitable variant of :meth:`diff` for event-loop callers.

        Small decks are diffed inline; large ones run on the worker thread
        without blocking the loop.
        """
        key = self._prepare(old, new)
        cached = self._cached(key)
        if cached is not None:
            return cached

        started = time.perf_counter()
        offloaded = self.is_large(old, new)
        if offloaded:
            loop = asyncio.get_running_loop()
            pending = loop.run_in_executor(
                self._get_executor(), partial(compute_diff, old, new, validate=False)
            )
            try:
                result = await asyncio.wait_for(
                    pending, timeout=self._config.diff_timeout_seconds
                )
            except asyncio.TimeoutError as exc:
                raise self._timeout_error(old, new) from exc
        else:
            result = compute_diff(old, new, validate=False)

        self._record(key, result, started, offloaded)
        return result

    def shutdown(self, wait: bool = True) -> None:
        """Release the worker thread if this runner created it."""
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None

    def __enter__(self) -> BackgroundDiffRunner:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # ── Internals ──────────────────────────────────────────────────────

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._config.diff_workers,
                thread_name_prefix="deckmerge-diff",
            )
        return self._executor

    def _prepare(self, old: DeckSnapshot, new: DeckSnapshot) -> tuple[str, str]:
        rules = self._config.rules
        validate_snapshot(old, rules, label="old snapshot")
        validate_snapshot(new, rules, label="new snapshot")
        return (snapshot_fingerprint(old), snapshot_fingerprint(new))

    def _cached(self, key: tuple[str, str]) -> DeckDiff | None:
        if self._cache is None:
            return None
        hit = self._cache.get(key)
        if hit is not None:
            self._metrics.increment("deckmerge.diff_cache_hits_total")
        return hit

    def _record(
        self,
        key: tuple[str, str],
        result: DeckDiff,
        started: float,
        offloaded: bool,
    ) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        tags = {"offloaded": str(offloaded).lower()}
        self._metrics.increment("deckmerge.diffs_total", tags=tags)
        self._metrics.timing("deckmerge.diff_duration_ms", elapsed_ms, tags=tags)
        if offloaded:
            self._metrics.increment("deckmerge.diff_offloaded_total")
        if self._cache is not None:
            self._cache.set(key, result)
        log_event(
            log,
            logging.DEBUG,
            "diff computed",
            offloaded=offloaded,
            elapsed_ms=round(elapsed_ms, 3),
            added=len(result.added),
            removed=len(result.removed),
            modified=len(result.modified),
            slot_changes=len(result.special_slot_changes),
        )

    def _timeout_error(self, old: DeckSnapshot, new: DeckSnapshot) -> DiffTimeoutError:
        total = max(old.total_cards(), new.total_cards())
        log_event(
            log,
            logging.WARNING,
            "offloaded diff timed out",
            timeout_seconds=self._config.diff_timeout_seconds,
            total_cards=total,
        )
        return DiffTimeoutError(
            f"Diff of a {total}-card deck did not finish within "
            f"{self._config.diff_timeout_seconds}s",
            context={
                "timeout_seconds": self._config.diff_timeout_seconds,
                "total_cards": total,
            },
        )
