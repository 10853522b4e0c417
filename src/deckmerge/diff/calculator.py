"""Diff calculator: structured differences between two deck snapshots.

Count-bearing zones are compared through ``{card_id: count}`` maps; special
zones are compared by card identity so that swapping a commander yields a
single :class:`SpecialSlotChange` rather than a remove/add pair.
"""

from __future__ import annotations

from itertools import zip_longest
from typing import Any

from deckmerge.config import FormatRules
from deckmerge.models import (
    STACK_ZONES,
    CardEntry,
    CountChange,
    DeckDiff,
    DeckSnapshot,
    SpecialSlotChange,
    Zone,
    ZoneRole,
    role_of,
)
from deckmerge.snapshot import validate_snapshot


def diff(
    old: DeckSnapshot,
    new: DeckSnapshot,
    *,
    rules: FormatRules | None = None,
    validate: bool = True,
) -> DeckDiff:
    """Compute the :class:`DeckDiff` that turns *old* into *new*.

    Deterministic and side-effect free.  Output order follows the
    snapshots: added and modified cards in *new*'s order, removed cards in
    *old*'s order, zones in :class:`Zone` declaration order.

    A count dropping to ``0`` is reported as a removal.  Identical
    snapshots yield an empty diff.

    Parameters
    ----------
    old, new:
        The snapshots to compare.
    rules:
        Format limits used when validating the inputs.
    validate:
        Reject malformed input before diffing.  Callers that already
        validated (the merge pipeline) may skip the second pass.

    Raises
    ------
    SnapshotValidationError
        If either snapshot violates the data-model invariants.
    """
    if validate:
        validate_snapshot(old, rules, label="old snapshot")
        validate_snapshot(new, rules, label="new snapshot")

    added: list[CardEntry] = []
    removed: list[CardEntry] = []
    modified: list[CountChange] = []
    slot_changes: list[SpecialSlotChange] = []

    for zone in Zone:
        if role_of(zone) is ZoneRole.STACK:
            _diff_counts(zone, old.counts(zone), new.counts(zone), added, removed, modified)
        else:
            slot_changes.extend(_diff_slot(zone, old.slot_cards(zone), new.slot_cards(zone)))

    return DeckDiff(
        added=tuple(added),
        removed=tuple(removed),
        modified=tuple(modified),
        special_slot_changes=tuple(slot_changes),
    )


def _diff_counts(
    zone: Zone,
    old_counts: dict[str, int],
    new_counts: dict[str, int],
    added: list[CardEntry],
    removed: list[CardEntry],
    modified: list[CountChange],
) -> None:
    for card_id, new_count in new_counts.items():
        old_count = old_counts.get(card_id)
        if old_count is None:
            added.append(CardEntry(card_id, new_count, zone))
        elif old_count != new_count:
            modified.append(CountChange(card_id, old_count, new_count, zone))
    for card_id, old_count in old_counts.items():
        if card_id not in new_counts:
            removed.append(CardEntry(card_id, old_count, zone))


def _diff_slot(
    zone: Zone,
    old_cards: tuple[str, ...],
    new_cards: tuple[str, ...],
) -> list[SpecialSlotChange]:
    """Identity changes for a special zone.

    Departing and arriving cards are paired in snapshot order, so replacing
    one battlefield produces one change; unpaired leftovers become
    placements into (or removals from) an empty position.
    """
    new_set = set(new_cards)
    old_set = set(old_cards)
    departed = [c for c in old_cards if c not in new_set]
    arrived = [c for c in new_cards if c not in old_set]
    return [
        SpecialSlotChange(zone, old_id, new_id)
        for old_id, new_id in zip_longest(departed, arrived)
    ]


def replay_slot_changes(
    cards: tuple[str, ...] | list[str],
    changes: DeckDiff,
    zone: Zone,
) -> list[str]:
    """Apply the slot changes of *changes* for *zone* to *cards*.

    A replaced card keeps its position; a card placed into an empty
    position is appended.
    """
    result = list(cards)
    for change in changes.special_slot_changes:
        if change.slot is not zone:
            continue
        if change.old_card_id is not None and change.old_card_id in result:
            position = result.index(change.old_card_id)
            if change.new_card_id is None:
                del result[position]
            else:
                result[position] = change.new_card_id
        elif change.new_card_id is not None and change.new_card_id not in result:
            result.append(change.new_card_id)
    return result


def apply_diff(snapshot: DeckSnapshot, changes: DeckDiff) -> DeckSnapshot:
    """Replay *changes* onto *snapshot*.

    ``apply_diff(a, diff(a, b))`` holds the same zone contents as ``b``.
    Existing entries keep their position; new ones are appended in diff
    order.
    """
    counts = {zone: snapshot.counts(zone) for zone in STACK_ZONES}
    for entry in changes.removed:
        counts[entry.zone].pop(entry.id, None)
    for entry in changes.added:
        counts[entry.zone][entry.id] = entry.count
    for change in changes.modified:
        counts[change.zone][change.card_id] = change.new_count

    slots = {
        zone: replay_slot_changes(snapshot.slot_cards(zone), changes, zone)
        for zone in Zone
        if zone not in counts
    }

    entries: list[CardEntry] = []
    for zone in Zone:
        if zone in counts:
            entries.extend(CardEntry(cid, n, zone) for cid, n in counts[zone].items() if n > 0)
        else:
            entries.extend(CardEntry(cid, 1, zone) for cid in slots[zone])
    return DeckSnapshot(tuple(entries))


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------

def diff_to_dict(changes: DeckDiff) -> dict[str, Any]:
    """Render a diff in the JSON boundary shape."""
    return {
        "added": [{"id": e.id, "count": e.count, "zone": e.zone.value} for e in changes.added],
        "removed": [{"id": e.id, "count": e.count, "zone": e.zone.value} for e in changes.removed],
        "modified": [
            {
                "id": m.card_id,
                "zone": m.zone.value,
                "oldCount": m.old_count,
                "newCount": m.new_count,
            }
            for m in changes.modified
        ],
        "specialSlotChanges": [
            {
                "slot": c.slot.value,
                "oldCardId": c.old_card_id,
                "newCardId": c.new_card_id,
            }
            for c in changes.special_slot_changes
        ],
    }


def diff_from_dict(data: dict[str, Any]) -> DeckDiff:
    """Inverse of :func:`diff_to_dict`.  Missing ``zone`` keys mean main."""
    return DeckDiff(
        added=tuple(
            CardEntry(item["id"], item.get("count", 1), item.get("zone", Zone.MAIN))
            for item in data.get("added", [])
        ),
        removed=tuple(
            CardEntry(item["id"], item.get("count", 1), item.get("zone", Zone.MAIN))
            for item in data.get("removed", [])
        ),
        modified=tuple(
            CountChange(
                item["id"],
                item["oldCount"],
                item["newCount"],
                item.get("zone", Zone.MAIN),
            )
            for item in data.get("modified", [])
        ),
        special_slot_changes=tuple(
            SpecialSlotChange(item["slot"], item.get("oldCardId"), item.get("newCardId"))
            for item in data.get("specialSlotChanges", [])
        ),
    )
