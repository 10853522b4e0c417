"""Snapshot construction, validation and JSON conversion.

Snapshots cross the engine boundary as plain JSON-serialisable dicts::

    {
        "cards": [{"id": "sol-ring", "count": 1}, ...],
        "sideboard": [{"id": ..., "count": ...}],
        "runeDeck": [{"id": ..., "count": ...}],
        "commander": {"id": ...},
        "legend": {"id": ...},
        "battlefields": [{"id": ...}, ...]
    }

Every key except ``cards`` is optional and unknown keys (deck name,
metadata, ...) are ignored.  The legacy single ``battlefield`` object is
folded into the battlefield list.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any

from deckmerge.config import FormatRules
from deckmerge.errors import SnapshotValidationError
from deckmerge.models import (
    CardEntry,
    DeckSnapshot,
    SnapshotIssue,
    Zone,
    ZoneRole,
    role_of,
)

# JSON key for each zone.  Singleton zones map to a single object.
_ZONE_KEYS: dict[Zone, str] = {
    Zone.MAIN: "cards",
    Zone.SIDEBOARD: "sideboard",
    Zone.RUNE: "runeDeck",
    Zone.COMMANDER: "commander",
    Zone.LEGEND: "legend",
    Zone.BATTLEFIELD: "battlefields",
}

_LEGACY_BATTLEFIELD_KEY = "battlefield"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def make_snapshot(
    cards: Mapping[str, int] | None = None,
    *,
    sideboard: Mapping[str, int] | None = None,
    runes: Mapping[str, int] | None = None,
    commander: str | None = None,
    legend: str | None = None,
    battlefields: Iterable[str] = (),
) -> DeckSnapshot:
    """Build a snapshot from plain ``{card_id: count}`` mappings.

    >>> snap = make_snapshot({"island": 10}, commander="atraxa")
    >>> snap.counts()
    {'island': 10}
    >>> snap.slot("commander")
    'atraxa'
    """
    entries: list[CardEntry] = []
    for zone, counts in (
        (Zone.MAIN, cards),
        (Zone.SIDEBOARD, sideboard),
        (Zone.RUNE, runes),
    ):
        for card_id, count in (counts or {}).items():
            entries.append(CardEntry(card_id, count, zone))
    for zone, card_id in ((Zone.COMMANDER, commander), (Zone.LEGEND, legend)):
        if card_id is not None:
            entries.append(CardEntry(card_id, 1, zone))
    entries.extend(CardEntry(card_id, 1, Zone.BATTLEFIELD) for card_id in battlefields)
    return DeckSnapshot(tuple(entries))


def _card_id(raw: Any, key: str) -> str:
    if not isinstance(raw, Mapping) or "id" not in raw:
        raise SnapshotValidationError(
            f"Every entry under {key!r} must be an object with an 'id'",
            context={"key": key, "value": raw},
        )
    return raw["id"]


def _stack_entries(raw: Any, zone: Zone, key: str) -> list[CardEntry]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise SnapshotValidationError(
            f"{key!r} must be a list of cards",
            context={"key": key, "value": raw},
        )
    return [CardEntry(_card_id(item, key), item.get("count", 1), zone) for item in raw]


def snapshot_from_dict(data: Mapping[str, Any]) -> DeckSnapshot:
    """Parse the JSON snapshot shape into a :class:`DeckSnapshot`.

    Structural problems (wrong container types, entries without an id) are
    raised immediately as :class:`SnapshotValidationError`.  Invariant
    violations such as duplicate ids are kept in the result so that
    :func:`validate_snapshot` can report them all at once.
    """
    if not isinstance(data, Mapping):
        raise SnapshotValidationError(
            "Snapshot must be a JSON object",
            context={"type": type(data).__name__},
        )

    entries: list[CardEntry] = []
    for zone in (Zone.MAIN, Zone.SIDEBOARD, Zone.RUNE):
        key = _ZONE_KEYS[zone]
        entries.extend(_stack_entries(data.get(key), zone, key))

    for zone in (Zone.COMMANDER, Zone.LEGEND):
        key = _ZONE_KEYS[zone]
        raw = data.get(key)
        if raw is not None:
            entries.append(CardEntry(_card_id(raw, key), 1, zone))

    key = _ZONE_KEYS[Zone.BATTLEFIELD]
    battlefields = data.get(key)
    if battlefields is None:
        legacy = data.get(_LEGACY_BATTLEFIELD_KEY)
        battlefields = [legacy] if legacy is not None else []
        key = _LEGACY_BATTLEFIELD_KEY
    if not isinstance(battlefields, list):
        raise SnapshotValidationError(
            f"{key!r} must be a list of cards",
            context={"key": key, "value": battlefields},
        )
    entries.extend(CardEntry(_card_id(item, key), 1, Zone.BATTLEFIELD) for item in battlefields)

    return DeckSnapshot(tuple(entries))


def snapshot_to_dict(snapshot: DeckSnapshot) -> dict[str, Any]:
    """Render *snapshot* in the canonical JSON shape.

    Empty optional zones are omitted; ``cards`` is always present.
    """
    result: dict[str, Any] = {"cards": []}
    for zone in Zone:
        key = _ZONE_KEYS[zone]
        entries = snapshot.zone_entries(zone)
        role = role_of(zone)
        if role is ZoneRole.STACK:
            if entries or zone is Zone.MAIN:
                result[key] = [{"id": e.id, "count": e.count} for e in entries]
        elif role is ZoneRole.SINGLETON:
            if entries:
                result[key] = {"id": entries[0].id}
        elif entries:
            result[key] = [{"id": e.id} for e in entries]
    return result


def snapshot_fingerprint(snapshot: DeckSnapshot) -> str:
    """MD5 digest of a snapshot's zone contents, used as a cache key.

    Count-bearing zones are hashed in sorted order, so reordering their
    entries keeps the fingerprint.  Special zones keep snapshot order
    because slot changes are paired by position.  Not for security use.
    """
    canonical: dict[str, Any] = {}
    for zone in snapshot.zones():
        if role_of(zone) is ZoneRole.STACK:
            canonical[zone.value] = sorted(
                [e.id, e.count] for e in snapshot.zone_entries(zone)
            )
        else:
            canonical[zone.value] = list(snapshot.slot_cards(zone))
    payload = json.dumps(canonical, sort_keys=True, ensure_ascii=False)
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def find_snapshot_issues(
    snapshot: DeckSnapshot,
    rules: FormatRules | None = None,
) -> list[SnapshotIssue]:
    """Return every invariant violation in *snapshot*.

    Checks, in order: card ids are non-empty strings, counts are
    non-negative integers (special zones hold exactly one copy), no id
    repeats within a zone, singleton slots hold at most one card, and no
    zone exceeds its cap in *rules*.
    """
    rules = rules or FormatRules()
    issues: list[SnapshotIssue] = []
    seen: set[tuple[Zone, str]] = set()
    sound: list[CardEntry] = []

    for entry in snapshot.entries:
        zone = entry.zone
        if not isinstance(entry.id, str) or not entry.id.strip():
            issues.append(SnapshotIssue(
                "invalid_card_id", zone, None,
                f"Card id {entry.id!r} in {zone.value} must be a non-empty string",
            ))
            continue
        count = entry.count
        if not isinstance(count, int) or isinstance(count, bool):
            issues.append(SnapshotIssue(
                "invalid_count", zone, entry.id,
                f"{entry.id!r} in {zone.value} has non-integer count {count!r}",
            ))
            continue
        if count < 0:
            issues.append(SnapshotIssue(
                "negative_count", zone, entry.id,
                f"{entry.id!r} in {zone.value} has negative count {count}",
            ))
            continue
        if role_of(zone) is not ZoneRole.STACK and count > 1:
            issues.append(SnapshotIssue(
                "invalid_count", zone, entry.id,
                f"{entry.id!r} in {zone.value} must hold a single copy, got {count}",
            ))
            continue
        if (zone, entry.id) in seen:
            issues.append(SnapshotIssue(
                "duplicate_card", zone, entry.id,
                f"{entry.id!r} appears more than once in {zone.value}",
            ))
            continue
        seen.add((zone, entry.id))
        sound.append(entry)

    for zone in Zone:
        present = [e for e in sound if e.zone is zone and e.count > 0]
        role = role_of(zone)
        if role is ZoneRole.SINGLETON and len(present) > 1:
            issues.append(SnapshotIssue(
                "slot_overfilled", zone, present[1].id,
                f"{zone.value} holds {len(present)} cards; at most one is allowed",
            ))
        cap = rules.cap_for(zone)
        if cap is None:
            continue
        size = len(present) if role is not ZoneRole.STACK else sum(e.count for e in present)
        if size > cap:
            issues.append(SnapshotIssue(
                "zone_cap_exceeded", zone, None,
                f"{zone.value} holds {size} cards; the {rules.name} cap is {cap}",
            ))

    return issues


def validate_snapshot(
    snapshot: DeckSnapshot,
    rules: FormatRules | None = None,
    *,
    label: str = "snapshot",
) -> DeckSnapshot:
    """Return *snapshot* unchanged if it satisfies every invariant.

    Raises
    ------
    SnapshotValidationError
        Listing every issue found; the message names the first one.
    """
    issues = find_snapshot_issues(snapshot, rules)
    if issues:
        first = issues[0]
        raise SnapshotValidationError(
            f"Invalid {label}: {first.message}"
            + (f" (and {len(issues) - 1} more)" if len(issues) > 1 else ""),
            context={
                "label": label,
                "card_id": first.card_id,
                "issues": [issue.to_dict() for issue in issues],
            },
        )
    return snapshot
