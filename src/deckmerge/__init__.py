"""deckmerge -- Deck-state reconciliation engine.

Public re-exports
-----------------

* **Facade:** :class:`DeckReconciler`
* **Configuration:** :class:`DeckMergeConfig`, :class:`FormatRules`
* **Errors:** Every :class:`DeckMergeError` subclass and :class:`ErrorCode`
* **Models:** Snapshots, diffs, annotations and merge types
* **Functions:** the pure diff / history / merge operations

Usage::

    from deckmerge import DeckReconciler, snapshot_from_dict

    engine = DeckReconciler()
    old = snapshot_from_dict({"cards": [{"id": "sol-ring", "count": 1}]})
    new = snapshot_from_dict({"cards": [{"id": "sol-ring", "count": 2}]})
    print(engine.summarize(engine.diff(old, new)))   # "Modified 1 card"
"""

from __future__ import annotations

# ── Cache ───────────────────────────────────────────────────────────────
from deckmerge.cache import LRUCache

# ── Configuration ───────────────────────────────────────────────────────
from deckmerge.config import FORMAT_PRESETS, DeckMergeConfig, FormatRules

# ── Diff ────────────────────────────────────────────────────────────────
from deckmerge.diff import (
    AUTO_SAVE_PREFIX,
    NO_CHANGES,
    BackgroundDiffRunner,
    apply_diff,
    auto_save_message,
    diff_from_dict,
    diff_to_dict,
    is_auto_save_message,
    restoration_message,
    summarize,
)

# ── Facade ──────────────────────────────────────────────────────────────
from deckmerge.engine import DeckReconciler

# ── Errors ──────────────────────────────────────────────────────────────
from deckmerge.errors import (
    AnnotationValidationError,
    CopyLimitExceededError,
    DeckMergeError,
    DiffTimeoutError,
    ErrorCode,
    InvalidResolutionError,
    MergeResolutionError,
    MessageValidationError,
    MissingResolutionError,
    SnapshotValidationError,
)

# ── History messages ────────────────────────────────────────────────────
from deckmerge.history import (
    ANNOTATION_DELIMITER,
    annotations_for_diff,
    format_message,
    parse_message,
    validate_commit_message,
)

# ── Merge ───────────────────────────────────────────────────────────────
from deckmerge.merge import (
    branch_diffs,
    detect_conflicts,
    find_copy_limit_violations,
    resolve,
    validate_copy_limits,
)

# ── Models ──────────────────────────────────────────────────────────────
from deckmerge.models import (
    BranchChange,
    CardChangeAnnotation,
    CardEntry,
    ChangeType,
    CopyLimitViolation,
    CountChange,
    DeckDiff,
    DeckSnapshot,
    HistoryMessage,
    MergeConflict,
    MergePreview,
    ResolutionPolicy,
    SnapshotIssue,
    SpecialSlotChange,
    Zone,
    ZoneRole,
    role_of,
)

# ── Snapshots ───────────────────────────────────────────────────────────
from deckmerge.snapshot import (
    find_snapshot_issues,
    make_snapshot,
    snapshot_fingerprint,
    snapshot_from_dict,
    snapshot_to_dict,
    validate_snapshot,
)

__all__ = [
    # Facade
    "DeckReconciler",
    # Configuration
    "FORMAT_PRESETS",
    "DeckMergeConfig",
    "FormatRules",
    # Errors
    "AnnotationValidationError",
    "CopyLimitExceededError",
    "DeckMergeError",
    "DiffTimeoutError",
    "ErrorCode",
    "InvalidResolutionError",
    "MergeResolutionError",
    "MessageValidationError",
    "MissingResolutionError",
    "SnapshotValidationError",
    # Models
    "BranchChange",
    "CardChangeAnnotation",
    "CardEntry",
    "ChangeType",
    "CopyLimitViolation",
    "CountChange",
    "DeckDiff",
    "DeckSnapshot",
    "HistoryMessage",
    "MergeConflict",
    "MergePreview",
    "ResolutionPolicy",
    "SnapshotIssue",
    "SpecialSlotChange",
    "Zone",
    "ZoneRole",
    "role_of",
    # Snapshots
    "find_snapshot_issues",
    "make_snapshot",
    "snapshot_fingerprint",
    "snapshot_from_dict",
    "snapshot_to_dict",
    "validate_snapshot",
    # Diff
    "AUTO_SAVE_PREFIX",
    "NO_CHANGES",
    "BackgroundDiffRunner",
    "apply_diff",
    "auto_save_message",
    "diff_from_dict",
    "diff_to_dict",
    "is_auto_save_message",
    "restoration_message",
    "summarize",
    # History messages
    "ANNOTATION_DELIMITER",
    "annotations_for_diff",
    "format_message",
    "parse_message",
    "validate_commit_message",
    # Merge
    "branch_diffs",
    "detect_conflicts",
    "find_copy_limit_violations",
    "resolve",
    "validate_copy_limits",
    # Cache
    "LRUCache",
]
