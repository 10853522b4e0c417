"""High-level entry point tying the pure engine functions to configuration.

:class:`DeckReconciler` is what an application holds on to: it owns the
background diff runner, applies the configured format rules and message
limits, and reports through the configured logger and metrics hook.  Every
operation is also available as a plain function in the subpackages.

Usage::

    from deckmerge import DeckReconciler, snapshot_from_dict

    with DeckReconciler(rules="riftbound") as engine:
        preview = engine.preview_merge(ancestor, source, target)
        resolutions = {key: "keep-source" for key in preview.conflict_keys}
        merged = engine.merge(ancestor, source, target, resolutions)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from deckmerge.config import DeckMergeConfig
from deckmerge.diff.background import BackgroundDiffRunner
from deckmerge.diff.calculator import diff_to_dict
from deckmerge.diff.summary import auto_save_message, summarize
from deckmerge.errors import DeckMergeError
from deckmerge.history.codec import format_message, parse_message
from deckmerge.merge.conflict import detect_conflicts
from deckmerge.merge.resolver import resolve
from deckmerge.models import (
    CardChangeAnnotation,
    DeckDiff,
    DeckSnapshot,
    HistoryMessage,
    MergeConflict,
    MergePreview,
    ResolutionPolicy,
)
from deckmerge.observability import get_logger, log_event, resolve_metrics

log = get_logger("deckmerge.engine")


class DeckReconciler:
    """Configured facade over diffing, history messages and merging.

    Parameters
    ----------
    config:
        A ready-made :class:`DeckMergeConfig`.
    **kwargs:
        Used to build a :class:`DeckMergeConfig` when *config* is omitted.
    """

    def __init__(self, config: DeckMergeConfig | None = None, **kwargs: Any) -> None:
        if config is None:
            config = DeckMergeConfig(**kwargs)
        elif kwargs:
            raise TypeError("pass either a DeckMergeConfig or keyword options, not both")
        self._config = config
        self._metrics = resolve_metrics(config.metrics)
        self._runner = BackgroundDiffRunner(config)

    @property
    def config(self) -> DeckMergeConfig:
        return self._config

    # ------------------------------------------------------------------
    # Diffing
    # ------------------------------------------------------------------

    def diff(self, old: DeckSnapshot, new: DeckSnapshot) -> DeckDiff:
        """Validated, memoised diff; large decks run on a worker thread."""
        result = self._runner.diff(old, new)
        self._dump(result)
        return result

    async def diff_async(self, old: DeckSnapshot, new: DeckSnapshot) -> DeckDiff:
        result = await self._runner.diff_async(old, new)
        self._dump(result)
        return result

    def summarize(self, changes: DeckDiff) -> str:
        return summarize(changes)

    def auto_save_message(self, changes: DeckDiff) -> str:
        return auto_save_message(changes, self._config.auto_save_prefix)

    # ------------------------------------------------------------------
    # History messages
    # ------------------------------------------------------------------

    def format_message(
        self,
        primary_message: str,
        annotations: Iterable[CardChangeAnnotation] = (),
    ) -> str:
        return format_message(
            primary_message, annotations, max_length=self._config.message_max_length
        )

    def parse_message(self, raw: str) -> HistoryMessage:
        message = parse_message(raw)
        if message.dropped_lines:
            self._metrics.increment(
                "deckmerge.annotations_dropped_total", value=message.dropped_lines
            )
        return message

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def detect_conflicts(
        self,
        ancestor: DeckSnapshot,
        source_diff: DeckDiff,
        target_diff: DeckDiff,
    ) -> list[MergeConflict]:
        conflicts = detect_conflicts(ancestor, source_diff, target_diff)
        if conflicts:
            self._metrics.increment("deckmerge.conflicts_total", value=len(conflicts))
        return conflicts

    def resolve(
        self,
        ancestor: DeckSnapshot,
        source_diff: DeckDiff,
        target_diff: DeckDiff,
        conflicts: Sequence[MergeConflict],
        resolutions: Mapping[str, ResolutionPolicy | str] | None = None,
    ) -> DeckSnapshot:
        return resolve(
            ancestor,
            source_diff,
            target_diff,
            conflicts,
            resolutions,
            rules=self._config.rules,
        )

    def preview_merge(
        self,
        ancestor: DeckSnapshot,
        source: DeckSnapshot,
        target: DeckSnapshot,
    ) -> MergePreview:
        """Diff both branch heads against *ancestor* and list the conflicts."""
        source_diff = self.diff(ancestor, source)
        target_diff = self.diff(ancestor, target)
        conflicts = self.detect_conflicts(ancestor, source_diff, target_diff)
        return MergePreview(source_diff, target_diff, tuple(conflicts))

    def merge(
        self,
        ancestor: DeckSnapshot,
        source: DeckSnapshot,
        target: DeckSnapshot,
        resolutions: Mapping[str, ResolutionPolicy | str] | None = None,
    ) -> DeckSnapshot:
        """Three-way merge of *source* and *target* from *ancestor*.

        Raises
        ------
        MissingResolutionError, InvalidResolutionError
            If a conflict is not resolved with a usable policy.
        SnapshotValidationError, CopyLimitExceededError
            If an input or the merged result breaks the format rules.
        """
        preview = self.preview_merge(ancestor, source, target)
        try:
            merged = self.resolve(
                ancestor,
                preview.source_diff,
                preview.target_diff,
                preview.conflicts,
                resolutions,
            )
        except DeckMergeError as exc:
            self._metrics.increment("deckmerge.merges_total", tags={"outcome": "failed"})
            log_event(
                log,
                logging.WARNING,
                "merge rejected",
                code=exc.code,
                card_id=exc.context.get("card_id"),
            )
            raise
        self._metrics.increment("deckmerge.merges_total", tags={"outcome": "merged"})
        return merged

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop the background diff worker, if one was started."""
        self._runner.shutdown()

    def __enter__(self) -> DeckReconciler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _dump(self, changes: DeckDiff) -> None:
        if self._config.debug_dump_diff:
            log_event(log, logging.DEBUG, "diff", diff=diff_to_dict(changes))
