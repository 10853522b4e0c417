"""Three-way conflict detection between two branches of a deck.

Both branches are described by their diff against the common ancestor.  A
card conflicts only when *both* diffs touch it and the states they lead to
disagree; a card changed on one side, or changed identically on both, is
carried forward by the resolver without being flagged.

Singleton slots (commander, legend) are contested as a whole.  The
battlefield list is contested card by card: two branches conflict there
only when they move the same ancestor card to different places, or bring
in the same new card from different origins.
"""

from __future__ import annotations

from deckmerge.config import FormatRules
from deckmerge.diff.calculator import diff, replay_slot_changes
from deckmerge.models import (
    STACK_ZONES,
    BranchChange,
    ChangeType,
    DeckDiff,
    DeckSnapshot,
    MergeConflict,
    Zone,
    ZoneRole,
    role_of,
)

SlotMove = tuple[str | None, str | None]
"""``(old_card_id, new_card_id)`` of one special-slot change."""


def branch_diffs(
    ancestor: DeckSnapshot,
    source: DeckSnapshot,
    target: DeckSnapshot,
    *,
    rules: FormatRules | None = None,
) -> tuple[DeckDiff, DeckDiff]:
    """Return ``(diff(ancestor, source), diff(ancestor, target))``.

    *rules* are the format limits the three snapshots are validated
    against.
    """
    return diff(ancestor, source, rules=rules), diff(ancestor, target, rules=rules)


def resulting_counts(changes: DeckDiff, zone: Zone) -> dict[str, int]:
    """Count each touched card of *zone* ends with; ``0`` means removed."""
    result: dict[str, int] = {}
    for entry in changes.added:
        if entry.zone is zone:
            result[entry.id] = entry.count
    for entry in changes.removed:
        if entry.zone is zone:
            result[entry.id] = 0
    for change in changes.modified:
        if change.zone is zone:
            result[change.card_id] = change.new_count
    return result


def resulting_slot(ancestor: DeckSnapshot, changes: DeckDiff, zone: Zone) -> tuple[str, ...]:
    """Cards a special zone holds after replaying *changes* onto *ancestor*."""
    return tuple(replay_slot_changes(ancestor.slot_cards(zone), changes, zone))


def slot_moves(changes: DeckDiff, zone: Zone) -> list[SlotMove]:
    """The ``(old, new)`` pairs *changes* makes in *zone*, deduplicated."""
    moves: list[SlotMove] = []
    for change in changes.special_slot_changes:
        move = (change.old_card_id, change.new_card_id)
        if change.slot is zone and move not in moves:
            moves.append(move)
    return moves


def move_of(change: BranchChange) -> SlotMove:
    """Recover the slot move a battlefield :class:`BranchChange` describes."""
    old = change.old_cards[0] if change.old_cards else None
    new = change.new_cards[0] if change.new_cards else None
    return old, new


def _count_change(old: int, new: int) -> BranchChange:
    if old == 0:
        change_type = ChangeType.ADDED
    elif new == 0:
        change_type = ChangeType.REMOVED
    else:
        change_type = ChangeType.MODIFIED
    return BranchChange(change_type, old_count=old, new_count=new)


def _slot_change(old: tuple[str, ...], new: tuple[str, ...]) -> BranchChange:
    if not old:
        change_type = ChangeType.ADDED
    elif not new:
        change_type = ChangeType.REMOVED
    else:
        change_type = ChangeType.MODIFIED
    return BranchChange(
        change_type,
        old_count=len(old),
        new_count=len(new),
        old_cards=old,
        new_cards=new,
    )


def _move_change(move: SlotMove) -> BranchChange:
    old, new = move
    return _slot_change(
        (old,) if old is not None else (),
        (new,) if new is not None else (),
    )


def _index_moves(moves: list[SlotMove], side: int) -> dict[str, SlotMove]:
    """Index *moves* by their old (``side=0``) or new (``side=1``) card."""
    return {move[side]: move for move in moves if move[side] is not None}


def _bounded_conflicts(
    zone: Zone,
    source_moves: list[SlotMove],
    target_moves: list[SlotMove],
) -> list[MergeConflict]:
    conflicts: list[MergeConflict] = []

    source_by_old = _index_moves(source_moves, 0)
    target_by_old = _index_moves(target_moves, 0)
    for card_id in sorted(source_by_old.keys() & target_by_old.keys()):
        if source_by_old[card_id] != target_by_old[card_id]:
            conflicts.append(
                MergeConflict(
                    card_id=card_id,
                    zone=zone,
                    source_change=_move_change(source_by_old[card_id]),
                    target_change=_move_change(target_by_old[card_id]),
                )
            )

    contested = {conflict.card_id for conflict in conflicts}
    source_by_new = _index_moves(source_moves, 1)
    target_by_new = _index_moves(target_moves, 1)
    for card_id in sorted(source_by_new.keys() & target_by_new.keys()):
        if card_id not in contested and source_by_new[card_id] != target_by_new[card_id]:
            conflicts.append(
                MergeConflict(
                    card_id=card_id,
                    zone=zone,
                    source_change=_move_change(source_by_new[card_id]),
                    target_change=_move_change(target_by_new[card_id]),
                )
            )
    return sorted(conflicts, key=lambda conflict: conflict.card_id)


def detect_conflicts(
    ancestor: DeckSnapshot,
    source_diff: DeckDiff,
    target_diff: DeckDiff,
) -> list[MergeConflict]:
    """Find every card or special slot changed incompatibly on both sides.

    Parameters
    ----------
    ancestor:
        The common ancestor both diffs were computed against.
    source_diff, target_diff:
        ``diff(ancestor, source_head)`` and ``diff(ancestor, target_head)``.

    Returns
    -------
    list[MergeConflict]
        One conflict per contested key, zones in declaration order and
        card ids sorted within a zone.  A singleton slot is reported as
        one conflict whose ``card_id`` is the zone name.  Battlefield
        conflicts name the contested ancestor card, or the arriving card
        when both sides bring it in from different origins.  Both branches
        ending with the same set of cards in a special zone is never a
        conflict.
    """
    conflicts: list[MergeConflict] = []

    for zone in STACK_ZONES:
        source_counts = resulting_counts(source_diff, zone)
        target_counts = resulting_counts(target_diff, zone)
        base = ancestor.counts(zone)
        for card_id in sorted(source_counts.keys() & target_counts.keys()):
            source_count = source_counts[card_id]
            target_count = target_counts[card_id]
            if source_count == target_count:
                continue
            old = base.get(card_id, 0)
            conflicts.append(
                MergeConflict(
                    card_id=card_id,
                    zone=zone,
                    source_change=_count_change(old, source_count),
                    target_change=_count_change(old, target_count),
                )
            )

    source_slots = source_diff.touched_slots()
    target_slots = target_diff.touched_slots()
    for zone in Zone:
        role = role_of(zone)
        if role is ZoneRole.STACK:
            continue
        if zone not in source_slots or zone not in target_slots:
            continue
        source_cards = resulting_slot(ancestor, source_diff, zone)
        target_cards = resulting_slot(ancestor, target_diff, zone)
        if set(source_cards) == set(target_cards):
            continue
        if role is ZoneRole.BOUNDED:
            conflicts.extend(
                _bounded_conflicts(
                    zone,
                    slot_moves(source_diff, zone),
                    slot_moves(target_diff, zone),
                )
            )
            continue
        old = ancestor.slot_cards(zone)
        conflicts.append(
            MergeConflict(
                card_id=zone.value,
                zone=zone,
                source_change=_slot_change(old, source_cards),
                target_change=_slot_change(old, target_cards),
            )
        )

    return conflicts
