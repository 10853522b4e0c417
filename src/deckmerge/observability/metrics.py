"""Metrics hook protocol and no-op default implementation.

deckmerge emits counters and timings at key points of the reconciliation
pipeline.  By default a :class:`NoopMetricsHook` is used so there is zero
overhead; callers can route the data points to any backend by passing an
object that satisfies :class:`MetricsHook` as ``DeckMergeConfig.metrics``.

Emitted metric names:

* ``deckmerge.diffs_total``               -- counter
* ``deckmerge.diff_duration_ms``          -- timing
* ``deckmerge.diff_offloaded_total``      -- counter
* ``deckmerge.diff_cache_hits_total``     -- counter
* ``deckmerge.conflicts_total``           -- counter
* ``deckmerge.merges_total``              -- counter
* ``deckmerge.annotations_dropped_total`` -- counter
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that discards all data points."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


def resolve_metrics(hook: Any | None) -> MetricsHook:
    """Return *hook*, or a :class:`NoopMetricsHook` when it is ``None``.

    Raises
    ------
    TypeError
        If *hook* does not implement the :class:`MetricsHook` protocol.
    """
    if hook is None:
        return NoopMetricsHook()
    if not isinstance(hook, MetricsHook):
        raise TypeError(
            f"metrics hook must implement increment/timing/gauge, got {type(hook).__name__}"
        )
    return hook
