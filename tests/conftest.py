"""Shared test fixtures for the deckmerge test suite."""

from __future__ import annotations

from typing import Any

import pytest

from deckmerge.config import DeckMergeConfig
from deckmerge.engine import DeckReconciler
from deckmerge.models import DeckSnapshot
from deckmerge.snapshot import make_snapshot


class RecordingMetricsHook:
    """A metrics backend that records all calls for assertion."""

    def __init__(self) -> None:
        self.increments: list[dict[str, Any]] = []
        self.timings: list[dict[str, Any]] = []
        self.gauges: list[dict[str, Any]] = []

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.gauges.append({"name": name, "value": value, "tags": tags})

    def counted(self, name: str) -> int:
        """Sum of all increments recorded under *name*."""
        return sum(call["value"] for call in self.increments if call["name"] == name)


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()


@pytest.fixture
def config(metrics: RecordingMetricsHook) -> DeckMergeConfig:
    """Default configuration wired to a recording metrics hook."""
    return DeckMergeConfig(metrics=metrics)


@pytest.fixture
def engine(config: DeckMergeConfig):
    reconciler = DeckReconciler(config)
    yield reconciler
    reconciler.close()


@pytest.fixture
def ancestor() -> DeckSnapshot:
    """A small commander-style deck used as a common merge base."""
    return make_snapshot(
        {"sol-ring": 2, "island": 10, "counterspell": 1},
        sideboard={"negate": 2},
        commander="atraxa",
        battlefields=["bf-1", "bf-2"],
    )
