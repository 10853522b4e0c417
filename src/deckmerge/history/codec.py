"""Annotation codec: per-card reasons inside a history message body.

History entries are immutable, append-only free text, so per-card metadata
travels inside the text itself using a small line grammar::

    <primary message>

    --- Card Changes ---
    + lightning-bolt: Testing this card
    - shock: Card underperformed in testing
    ~ island-1 (10 → 12): Need more blue sources

* The block is only written when there is at least one annotation.
* Each line is ``<marker> <card id>[ (<old> → <new>)]: <reason>`` with the
  markers ``+`` (added), ``-`` (removed) and ``~`` (modified).
* Text without the delimiter line is a message from before annotations
  existed and parses to an empty annotation list.
* Lines that do not match the grammar are dropped, never raised.

The delimiter and markers are a versioned format: entries written today
must stay readable by every later release.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping

from deckmerge.errors import AnnotationValidationError, MessageValidationError
from deckmerge.models import (
    ANNOTATION_REASON_MAX_LENGTH,
    CardChangeAnnotation,
    ChangeType,
    DeckDiff,
    HistoryMessage,
)
from deckmerge.observability import get_logger, log_event

from .templates import COMMIT_MESSAGE_MAX_LENGTH, validate_commit_message

log = get_logger("deckmerge.history")

ANNOTATION_DELIMITER = "--- Card Changes ---"
"""Line separating the primary message from the annotation block."""

CHANGE_MARKERS: dict[ChangeType, str] = {
    ChangeType.ADDED: "+",
    ChangeType.REMOVED: "-",
    ChangeType.MODIFIED: "~",
}

_MARKER_TYPES: dict[str, ChangeType] = {v: k for k, v in CHANGE_MARKERS.items()}

# ``->`` is accepted on read for entries typed by hand.
_LINE_RE = re.compile(
    r"^(?P<marker>[+\-~]) (?P<card_id>.+?)"
    r"(?: \((?P<old>\d+) (?:→|->) (?P<new>\d+)\))?"
    r": (?P<reason>.*)$"
)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def format_annotation_line(annotation: CardChangeAnnotation) -> str:
    """Render one annotation as a single grammar line."""
    marker = CHANGE_MARKERS[annotation.change_type]
    suffix = ""
    if annotation.old_count is not None and annotation.new_count is not None:
        suffix = f" ({annotation.old_count} → {annotation.new_count})"
    return f"{marker} {annotation.card_id}{suffix}: {annotation.reason}"


def format_message(
    primary_message: str,
    annotations: Iterable[CardChangeAnnotation] = (),
    *,
    max_length: int = COMMIT_MESSAGE_MAX_LENGTH,
) -> str:
    """Encode *primary_message* and *annotations* as history text.

    The primary message is trimmed.  Without annotations the result is
    exactly the trimmed message.

    Raises
    ------
    MessageValidationError
        If the trimmed message is empty, longer than *max_length*, or
        contains the delimiter line.
    AnnotationValidationError
        If two annotations describe the same card and change type.
    """
    message = validate_commit_message(primary_message, max_length=max_length)
    if any(line.strip() == ANNOTATION_DELIMITER for line in message.splitlines()):
        raise MessageValidationError(
            "Message must not contain the annotation delimiter line",
            context={"constraint": "reserved_line", "delimiter": ANNOTATION_DELIMITER},
        )

    annotations = list(annotations)
    if not annotations:
        return message

    seen: set[tuple[str, ChangeType]] = set()
    for annotation in annotations:
        entry = (annotation.card_id, annotation.change_type)
        if entry in seen:
            raise AnnotationValidationError(
                f"More than one {annotation.change_type.value} annotation for "
                f"{annotation.card_id!r}",
                context={
                    "card_id": annotation.card_id,
                    "field": "card_id",
                    "constraint": "unique",
                },
            )
        seen.add(entry)

    lines = [message, "", ANNOTATION_DELIMITER]
    lines.extend(format_annotation_line(a) for a in annotations)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def parse_annotation_line(line: str) -> CardChangeAnnotation | None:
    """Parse one grammar line, or return ``None`` if it is malformed."""
    match = _LINE_RE.match(line.rstrip("\r"))
    if match is None:
        return None
    old, new = match.group("old"), match.group("new")
    try:
        return CardChangeAnnotation(
            card_id=match.group("card_id"),
            change_type=_MARKER_TYPES[match.group("marker")],
            reason=match.group("reason"),
            old_count=int(old) if old is not None else None,
            new_count=int(new) if new is not None else None,
        )
    except AnnotationValidationError:
        return None


def parse_message(raw: str) -> HistoryMessage:
    """Decode history text into its primary message and annotations.

    Parsing is lenient: text without the delimiter is returned whole as
    the primary message, and malformed or repeated annotation lines are
    skipped.
    """
    lines = raw.split("\n")
    try:
        start = next(
            i for i, line in enumerate(lines) if line.strip() == ANNOTATION_DELIMITER
        )
    except StopIteration:
        return HistoryMessage(primary_message=raw, annotations=[])

    primary = "\n".join(lines[:start]).rstrip()
    annotations: list[CardChangeAnnotation] = []
    seen: set[tuple[str, ChangeType]] = set()
    dropped = 0
    for line in lines[start + 1:]:
        if not line.strip():
            continue
        annotation = parse_annotation_line(line)
        if annotation is None or (annotation.card_id, annotation.change_type) in seen:
            dropped += 1
            continue
        seen.add((annotation.card_id, annotation.change_type))
        annotations.append(annotation)

    if dropped:
        log_event(log, logging.DEBUG, "dropped unparseable annotation lines", dropped=dropped)
    return HistoryMessage(
        primary_message=primary, annotations=annotations, dropped_lines=dropped
    )


# ---------------------------------------------------------------------------
# Building annotations from a diff
# ---------------------------------------------------------------------------

def _clean_reason(reason: str) -> str:
    return " ".join(reason.splitlines()).strip()[:ANNOTATION_REASON_MAX_LENGTH]


def annotations_for_diff(
    diff: DeckDiff,
    reasons: Mapping[str, str],
) -> list[CardChangeAnnotation]:
    """One annotation per diff entry whose card has a non-blank reason.

    *reasons* maps card ids to operator text.  Line breaks are folded into
    spaces and over-long reasons are cut to the length limit, mirroring
    what an editor would accept.  Entries without a reason are skipped.
    """
    result: list[CardChangeAnnotation] = []
    seen: set[tuple[str, ChangeType]] = set()

    def add(card_id: str, change_type: ChangeType, **counts: int) -> None:
        reason = _clean_reason(reasons.get(card_id, ""))
        if not reason or (card_id, change_type) in seen:
            return
        seen.add((card_id, change_type))
        result.append(CardChangeAnnotation(card_id, change_type, reason, **counts))

    for entry in diff.added:
        add(entry.id, ChangeType.ADDED)
    for entry in diff.removed:
        add(entry.id, ChangeType.REMOVED)
    for change in diff.modified:
        add(
            change.card_id,
            ChangeType.MODIFIED,
            old_count=change.old_count,
            new_count=change.new_count,
        )
    return result
