"""Public data models for the deckmerge engine.

This module contains every enum and dataclass exchanged through the public
API: snapshots, diffs, annotations, history envelopes and merge conflicts.
Snapshots and diffs are frozen so they can cross a thread boundary without
aliasing hazards; the only behaviour here is what is needed for lookup,
equality, and creation-time validation of annotations.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from deckmerge.errors import AnnotationValidationError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Zone(str, Enum):
    """Named area of a deck that a card entry lives in."""

    MAIN = "main"
    SIDEBOARD = "sideboard"
    RUNE = "rune"
    COMMANDER = "commander"
    LEGEND = "legend"
    BATTLEFIELD = "battlefield"


class ZoneRole(str, Enum):
    """Closed set of roles a zone can play during diffing and merging."""

    STACK = "stack"
    """Count-bearing list; entries are compared by count."""

    SINGLETON = "singleton"
    """Holds at most one card; compared by identity."""

    BOUNDED = "bounded"
    """Holds a format-capped list of single cards; compared by identity."""


class ChangeType(str, Enum):
    """Kind of change a diff entry (or annotation) describes."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class ResolutionPolicy(str, Enum):
    """How a single merge conflict should be settled."""

    KEEP_SOURCE = "keep-source"
    KEEP_TARGET = "keep-target"
    KEEP_BOTH = "keep-both"


ZONE_ROLES: dict[Zone, ZoneRole] = {
    Zone.MAIN: ZoneRole.STACK,
    Zone.SIDEBOARD: ZoneRole.STACK,
    Zone.RUNE: ZoneRole.STACK,
    Zone.COMMANDER: ZoneRole.SINGLETON,
    Zone.LEGEND: ZoneRole.SINGLETON,
    Zone.BATTLEFIELD: ZoneRole.BOUNDED,
}

STACK_ZONES: tuple[Zone, ...] = (Zone.MAIN, Zone.SIDEBOARD, Zone.RUNE)
SPECIAL_ZONES: tuple[Zone, ...] = (Zone.COMMANDER, Zone.LEGEND, Zone.BATTLEFIELD)


def role_of(zone: Zone | str) -> ZoneRole:
    """Return the :class:`ZoneRole` of *zone*."""
    return ZONE_ROLES[Zone(zone)]


def is_special(zone: Zone | str) -> bool:
    """``True`` for zones compared by card identity rather than count."""
    return role_of(zone) is not ZoneRole.STACK


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CardEntry:
    """One card line of a snapshot.

    Identity is ``(zone, id)``; ``count`` is the only mutable scalar.
    Special-zone entries always carry ``count=1``.
    """

    id: str
    count: int = 1
    zone: Zone = Zone.MAIN

    def __post_init__(self) -> None:
        object.__setattr__(self, "zone", Zone(self.zone))


@dataclass(frozen=True)
class DeckSnapshot:
    """Canonical representation of a deck at one point in time.

    The snapshot is a flat tuple of :class:`CardEntry` values across every
    zone.  Entries with ``count == 0`` are treated as absent.  Construction
    does not validate; see :func:`deckmerge.snapshot.validate_snapshot`.
    """

    entries: tuple[CardEntry, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))

    def zone_entries(self, zone: Zone | str) -> list[CardEntry]:
        zone = Zone(zone)
        return [e for e in self.entries if e.zone is zone and e.count > 0]

    def counts(self, zone: Zone | str = Zone.MAIN) -> dict[str, int]:
        """Return an ordered ``{card_id: count}`` map for *zone*."""
        return {e.id: e.count for e in self.zone_entries(zone)}

    def slot_cards(self, zone: Zone | str) -> tuple[str, ...]:
        """Card ids held by a special zone, in snapshot order."""
        return tuple(e.id for e in self.zone_entries(zone))

    def slot(self, zone: Zone | str) -> str | None:
        """The card id in a singleton slot, or ``None`` when empty."""
        cards = self.slot_cards(zone)
        return cards[0] if cards else None

    def total_cards(self) -> int:
        """Sum of all positive counts across every zone."""
        return sum(e.count for e in self.entries if e.count > 0)

    def zones(self) -> list[Zone]:
        """Zones that hold at least one card, in declaration order."""
        present = {e.zone for e in self.entries if e.count > 0}
        return [z for z in Zone if z in present]


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CountChange:
    """A card present in both snapshots whose count changed."""

    card_id: str
    old_count: int
    new_count: int
    zone: Zone = Zone.MAIN

    def __post_init__(self) -> None:
        object.__setattr__(self, "zone", Zone(self.zone))

    @property
    def delta(self) -> int:
        return self.new_count - self.old_count


@dataclass(frozen=True)
class SpecialSlotChange:
    """An identity change in a special zone.

    ``old_card_id`` is ``None`` when a card was placed into an empty slot;
    ``new_card_id`` is ``None`` when the slot was emptied.
    """

    slot: Zone
    old_card_id: str | None = None
    new_card_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "slot", Zone(self.slot))


@dataclass(frozen=True)
class DeckDiff:
    """Structured differences between two snapshots.

    Within a zone, a card id appears in at most one of ``added``,
    ``removed`` and ``modified``.
    """

    added: tuple[CardEntry, ...] = ()
    removed: tuple[CardEntry, ...] = ()
    modified: tuple[CountChange, ...] = ()
    special_slot_changes: tuple[SpecialSlotChange, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "added", tuple(self.added))
        object.__setattr__(self, "removed", tuple(self.removed))
        object.__setattr__(self, "modified", tuple(self.modified))
        object.__setattr__(
            self, "special_slot_changes", tuple(self.special_slot_changes)
        )

    @property
    def is_empty(self) -> bool:
        return not (
            self.added or self.removed or self.modified or self.special_slot_changes
        )

    def touched_cards(self) -> set[tuple[Zone, str]]:
        """``(zone, card_id)`` pairs changed in count-bearing zones."""
        touched = {(e.zone, e.id) for e in self.added}
        touched.update((e.zone, e.id) for e in self.removed)
        touched.update((m.zone, m.card_id) for m in self.modified)
        return touched

    def touched_slots(self) -> set[Zone]:
        return {c.slot for c in self.special_slot_changes}


# ---------------------------------------------------------------------------
# Annotations and history envelope
# ---------------------------------------------------------------------------

ANNOTATION_REASON_MAX_LENGTH = 200
"""Upper bound on the length of a single annotation reason."""

_COUNT_SUFFIX_RE = re.compile(r"\(\d+ (?:→|->) \d+\)$")


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@dataclass(frozen=True)
class CardChangeAnnotation:
    """An operator-supplied reason attached to one changed card.

    Validated at creation time so that every instance can be written to,
    and read back from, a history message without loss.

    Raises
    ------
    AnnotationValidationError
        If the card id or reason cannot be represented on a single
        annotation line, the reason exceeds
        :data:`ANNOTATION_REASON_MAX_LENGTH`, or counts are supplied
        inconsistently.
    """

    card_id: str
    change_type: ChangeType
    reason: str
    old_count: int | None = None
    new_count: int | None = None

    def __post_init__(self) -> None:
        card_id = self.card_id
        try:
            object.__setattr__(self, "change_type", ChangeType(self.change_type))
        except ValueError as exc:
            raise AnnotationValidationError(
                f"Unknown change type {self.change_type!r} for card {card_id!r}",
                context={"card_id": card_id, "field": "change_type", "constraint": "enum"},
                cause=exc,
            ) from exc

        if not isinstance(card_id, str) or not card_id.strip():
            raise AnnotationValidationError(
                "Annotation card id must be a non-empty string",
                context={"card_id": card_id, "field": "card_id", "constraint": "non_empty"},
            )
        if (
            card_id != card_id.strip()
            or "\n" in card_id
            or "\r" in card_id
            or ": " in card_id
            or _COUNT_SUFFIX_RE.search(card_id)
        ):
            raise AnnotationValidationError(
                f"Card id {card_id!r} cannot be written on an annotation line",
                context={"card_id": card_id, "field": "card_id", "constraint": "single_line"},
            )

        reason = self.reason
        if not isinstance(reason, str) or not reason.strip():
            raise AnnotationValidationError(
                f"Annotation for {card_id!r} needs a non-blank reason",
                context={"card_id": card_id, "field": "reason", "constraint": "non_empty"},
            )
        if "\n" in reason or "\r" in reason:
            raise AnnotationValidationError(
                f"Annotation reason for {card_id!r} must not contain line breaks",
                context={"card_id": card_id, "field": "reason", "constraint": "single_line"},
            )
        if len(reason) > ANNOTATION_REASON_MAX_LENGTH:
            raise AnnotationValidationError(
                f"Annotation reason for {card_id!r} is {len(reason)} characters; "
                f"the limit is {ANNOTATION_REASON_MAX_LENGTH}",
                context={
                    "card_id": card_id,
                    "field": "reason",
                    "constraint": "max_length",
                    "length": len(reason),
                    "limit": ANNOTATION_REASON_MAX_LENGTH,
                },
            )

        has_old = self.old_count is not None
        has_new = self.new_count is not None
        if has_old != has_new:
            raise AnnotationValidationError(
                f"Annotation for {card_id!r} must give both counts or neither",
                context={"card_id": card_id, "field": "old_count", "constraint": "paired"},
            )
        if has_old:
            if self.change_type is not ChangeType.MODIFIED:
                raise AnnotationValidationError(
                    f"Only modified annotations carry counts (card {card_id!r})",
                    context={"card_id": card_id, "field": "old_count", "constraint": "modified_only"},
                )
            if not (_is_count(self.old_count) and _is_count(self.new_count)):
                raise AnnotationValidationError(
                    f"Annotation counts for {card_id!r} must be non-negative integers",
                    context={"card_id": card_id, "field": "old_count", "constraint": "non_negative"},
                )


@dataclass
class HistoryMessage:
    """The parsed form of one history entry's text.

    Never stored on its own: it is built per save, written as the literal
    entry text, and rebuilt by parsing on read.
    """

    primary_message: str
    annotations: list[CardChangeAnnotation] = field(default_factory=list)
    dropped_lines: int = field(default=0, compare=False, repr=False)
    """Annotation lines skipped while parsing; not part of equality."""


# ---------------------------------------------------------------------------
# Validation results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SnapshotIssue:
    """One invariant violation found in a snapshot.

    Attributes
    ----------
    kind:
        Machine-readable issue kind (``"duplicate_card"``,
        ``"negative_count"``, ``"invalid_count"``, ``"invalid_card_id"``,
        ``"slot_overfilled"``, ``"zone_cap_exceeded"``).
    zone:
        The zone the issue was found in.
    card_id:
        The offending card, when the issue concerns a single card.
    message:
        Human-readable description.
    """

    kind: str
    zone: Zone
    card_id: str | None
    message: str

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "zone": self.zone.value,
            "card_id": self.card_id,
            "message": self.message,
        }


@dataclass(frozen=True)
class CopyLimitViolation:
    """A card whose total copies exceed the format's per-card limit."""

    card_id: str
    count: int
    limit: int


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

SLOT_KEY_PREFIX = "@"
"""Marks resolution keys that name a special slot rather than a card."""


def conflict_key(zone: Zone | str, card_id: str | None = None) -> str:
    """Build the resolution key for a conflict.

    Main-zone cards are keyed by their bare id and other count-bearing
    zones by ``"<zone>:<id>"``.  Singleton slots are keyed ``"@<zone>"``
    and battlefield cards ``"@battlefield:<id>"``.  A main-zone id that
    could be mistaken for another key is written ``"main:<id>"``, so
    distinct conflicts never share a key.
    """
    zone = Zone(zone)
    role = role_of(zone)
    if role is ZoneRole.SINGLETON or (role is ZoneRole.BOUNDED and card_id is None):
        return f"{SLOT_KEY_PREFIX}{zone.value}"
    if role is ZoneRole.BOUNDED:
        return f"{SLOT_KEY_PREFIX}{zone.value}:{card_id}"
    if card_id is None:
        return zone.value
    if zone is Zone.MAIN and not _is_ambiguous_main_id(card_id):
        return card_id
    return f"{zone.value}:{card_id}"


def _is_ambiguous_main_id(card_id: str) -> bool:
    if card_id.startswith(SLOT_KEY_PREFIX):
        return True
    return any(card_id.startswith(f"{zone.value}:") for zone in STACK_ZONES)


@dataclass(frozen=True)
class BranchChange:
    """What one branch did to a contested card or slot, relative to the
    common ancestor.

    Count-bearing zones use ``old_count``/``new_count`` (``0`` meaning
    absent); special zones use ``old_cards``/``new_cards``.
    """

    change_type: ChangeType
    old_count: int = 0
    new_count: int = 0
    old_cards: tuple[str, ...] = ()
    new_cards: tuple[str, ...] = ()


@dataclass
class MergeConflict:
    """A card (or special slot) changed incompatibly on both branches."""

    card_id: str
    zone: Zone
    source_change: BranchChange
    target_change: BranchChange
    resolution_policy: ResolutionPolicy | None = None

    @property
    def key(self) -> str:
        return conflict_key(self.zone, self.card_id)

    @property
    def allowed_policies(self) -> tuple[ResolutionPolicy, ...]:
        """Policies that are defined for this conflict's shape.

        ``keep-both`` needs a stackable card that survives on both sides.
        """
        if is_special(self.zone):
            return (ResolutionPolicy.KEEP_SOURCE, ResolutionPolicy.KEEP_TARGET)
        if self.source_change.new_count == 0 or self.target_change.new_count == 0:
            return (ResolutionPolicy.KEEP_SOURCE, ResolutionPolicy.KEEP_TARGET)
        return (
            ResolutionPolicy.KEEP_SOURCE,
            ResolutionPolicy.KEEP_TARGET,
            ResolutionPolicy.KEEP_BOTH,
        )


@dataclass(frozen=True)
class MergePreview:
    """Everything a caller needs to prompt for resolutions.

    Attributes
    ----------
    source_diff, target_diff:
        Each branch's diff against the common ancestor.
    conflicts:
        The conflicts that need a policy before :meth:`DeckReconciler.merge`
        can succeed.
    """

    source_diff: DeckDiff
    target_diff: DeckDiff
    conflicts: tuple[MergeConflict, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def conflict_keys(self) -> list[str]:
        return [c.key for c in self.conflicts]
