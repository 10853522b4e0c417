"""Change summarizer: short, stable human sentences for a diff.

The same sentence serves as the live preview shown before an operator
writes a message and as the whole body of unattended saves, which carry
an extra literal prefix (``"Auto-save: "`` by default).
"""

from __future__ import annotations

from deckmerge.models import SPECIAL_ZONES, DeckDiff, SpecialSlotChange, Zone

NO_CHANGES = "No changes"
"""Summary of an empty diff."""

AUTO_SAVE_PREFIX = "Auto-save: "

AUTO_SAVE_FALLBACK = "Deck updated"
"""Auto-save body used when nothing changed."""

_SLOT_LABELS: dict[Zone, str] = {
    Zone.COMMANDER: "commander",
    Zone.LEGEND: "legend",
    Zone.BATTLEFIELD: "battlefield",
}


def pluralize(count: int, noun: str) -> str:
    """``pluralize(1, "card") == "1 card"``; any other count gets an ``s``."""
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def _card_clause(diff: DeckDiff) -> str:
    parts: list[str] = []
    for verb, count in (
        ("added", len(diff.added)),
        ("removed", len(diff.removed)),
        ("modified", len(diff.modified)),
    ):
        if count:
            parts.append(f"{verb} {pluralize(count, 'card')}")
    return _capitalize(", ".join(parts))


def _slot_phrase(zone: Zone, changes: list[SpecialSlotChange]) -> str:
    label = _SLOT_LABELS[zone]
    if len(changes) > 1:
        return f"{pluralize(len(changes), label)} changed"
    change = changes[0]
    if change.old_card_id is None:
        return f"{label} set"
    if change.new_card_id is None:
        return f"{label} removed"
    return f"{label} changed"


def summarize(diff: DeckDiff) -> str:
    """Describe *diff* in one stable sentence.

    Card counts are the number of entries in each list, pluralised for
    0/1/N, with zero-valued categories omitted.  Special-slot changes follow
    as a separate sentence.

    >>> from deckmerge.models import CardEntry, DeckDiff, SpecialSlotChange, Zone
    >>> summarize(DeckDiff(
    ...     added=(CardEntry("a", 2), CardEntry("b", 1)),
    ...     removed=(CardEntry("c", 1),),
    ...     special_slot_changes=(SpecialSlotChange(Zone.COMMANDER, "x", "y"),),
    ... ))
    'Added 2 cards, removed 1 card. Commander changed'
    """
    sentences: list[str] = []

    card_clause = _card_clause(diff)
    if card_clause:
        sentences.append(card_clause)

    slot_phrases: list[str] = []
    for zone in SPECIAL_ZONES:
        changes = [c for c in diff.special_slot_changes if c.slot is zone]
        if changes:
            slot_phrases.append(_slot_phrase(zone, changes))
    if slot_phrases:
        sentences.append(_capitalize(", ".join(slot_phrases)))

    if not sentences:
        return NO_CHANGES
    return ". ".join(sentences)


def auto_save_message(diff: DeckDiff, prefix: str = AUTO_SAVE_PREFIX) -> str:
    """History text for an unattended save: *prefix* plus the summary."""
    if diff.is_empty:
        return f"{prefix}{AUTO_SAVE_FALLBACK}"
    return f"{prefix}{summarize(diff)}"


def is_auto_save_message(text: str, prefix: str = AUTO_SAVE_PREFIX) -> bool:
    """``True`` if *text* was written by :func:`auto_save_message`."""
    return text.startswith(prefix)


def restoration_message(sha: str, original_message: str) -> str:
    """History text for restoring an earlier version.

    Only the first line of *original_message* is kept, so a restored
    entry's annotation block is not copied into the new entry.
    """
    first_line = original_message.strip().splitlines()[0] if original_message.strip() else ""
    return f"Restore version from {sha[:7]}: {first_line}".rstrip()
