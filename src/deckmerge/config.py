"""Engine configuration for deckmerge.

:class:`DeckMergeConfig` is a dataclass that captures every tuneable knob
of the engine.  Instances are passed to :class:`DeckReconciler` and
:class:`BackgroundDiffRunner`.

Format-specific limits live in the frozen :class:`FormatRules`; a few
ready-made rule sets are available in :data:`FORMAT_PRESETS`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from deckmerge.models import Zone

# ---------------------------------------------------------------------------
# Format rules
# ---------------------------------------------------------------------------

DEFAULT_ZONE_CAPS: Mapping[Zone, int] = MappingProxyType({Zone.BATTLEFIELD: 3})
"""Caps applied when no format is specified."""


@dataclass(frozen=True)
class FormatRules:
    """Per-format limits checked on snapshots.

    Parameters
    ----------
    name:
        Format label, used only for diagnostics.
    zone_caps:
        Upper bound per zone.  For identity zones (battlefield) the cap
        limits the number of cards; for count-bearing zones (rune) it
        limits the summed count.
    max_copies:
        Per-card copy limit across count-bearing zones, or ``None`` for
        no limit.  Only checked by the post-merge copy-limit step.
    """

    name: str = "default"
    zone_caps: Mapping[Zone, int] = field(default_factory=lambda: DEFAULT_ZONE_CAPS)
    max_copies: int | None = None

    def __post_init__(self) -> None:
        caps = {Zone(z): cap for z, cap in self.zone_caps.items()}
        for zone, cap in caps.items():
            if cap < 0:
                raise ValueError(f"zone cap for {zone.value} must be >= 0, got {cap}")
        if self.max_copies is not None and self.max_copies < 1:
            raise ValueError(f"max_copies must be >= 1, got {self.max_copies}")
        object.__setattr__(self, "zone_caps", MappingProxyType(caps))

    def cap_for(self, zone: Zone | str) -> int | None:
        return self.zone_caps.get(Zone(zone))


FORMAT_PRESETS: Mapping[str, FormatRules] = MappingProxyType({
    "default": FormatRules(),
    "riftbound": FormatRules(
        name="riftbound",
        zone_caps={Zone.BATTLEFIELD: 3, Zone.RUNE: 12},
        max_copies=3,
    ),
    "commander": FormatRules(name="commander", zone_caps={}),
})
"""Rule sets for the formats the surrounding application knows about."""


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class DeckMergeConfig:
    """Complete configuration for the reconciliation engine.

    Every parameter has a sensible default.

    Parameters
    ----------
    rules:
        Format limits applied when validating input and merge output.
    large_deck_threshold:
        Total card count at which :class:`BackgroundDiffRunner` moves the
        diff off the calling thread.
    diff_timeout_seconds:
        Upper bound on waiting for an offloaded diff.
    diff_workers:
        Worker threads owned by a :class:`BackgroundDiffRunner`.
    diff_cache_capacity:
        Number of diff results memoised by a runner.  ``0`` disables the
        cache.
    diff_cache_ttl_seconds:
        Optional expiry for memoised diffs.
    auto_save_prefix:
        Literal prefix that marks unattended saves in history.
    message_max_length:
        Upper bound on the primary part of a history message.
    metrics:
        Optional :class:`~deckmerge.observability.MetricsHook` backend.
    debug_dump_diff:
        Log every computed diff at DEBUG level.
    """

    # ── Format ──────────────────────────────────────────────────────────
    rules: FormatRules = field(default_factory=FormatRules)

    # ── Diff execution ──────────────────────────────────────────────────
    large_deck_threshold: int = 100

    diff_timeout_seconds: float = 30.0

    diff_workers: int = 1

    diff_cache_capacity: int = 32

    diff_cache_ttl_seconds: float | None = None

    # ── History messages ────────────────────────────────────────────────
    auto_save_prefix: str = "Auto-save: "

    message_max_length: int = 500

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_diff: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if isinstance(self.rules, str):
            if self.rules not in FORMAT_PRESETS:
                raise ValueError(
                    f"unknown format {self.rules!r}; expected one of {sorted(FORMAT_PRESETS)}"
                )
            self.rules = FORMAT_PRESETS[self.rules]

        if self.large_deck_threshold < 1:
            raise ValueError(f"large_deck_threshold must be >= 1, got {self.large_deck_threshold}")
        if self.diff_timeout_seconds <= 0:
            raise ValueError(f"diff_timeout_seconds must be > 0, got {self.diff_timeout_seconds}")
        if self.diff_workers < 1:
            raise ValueError(f"diff_workers must be >= 1, got {self.diff_workers}")
        if self.diff_cache_capacity < 0:
            raise ValueError(f"diff_cache_capacity must be >= 0, got {self.diff_cache_capacity}")
        if self.diff_cache_ttl_seconds is not None and self.diff_cache_ttl_seconds <= 0:
            raise ValueError(
                f"diff_cache_ttl_seconds must be > 0, got {self.diff_cache_ttl_seconds}"
            )
        if not self.auto_save_prefix.strip():
            raise ValueError("auto_save_prefix must not be blank")
        if self.message_max_length < 1:
            raise ValueError(f"message_max_length must be >= 1, got {self.message_max_length}")
