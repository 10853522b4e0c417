"""Diff engine for deck snapshots.

Exports
-------
diff
    Compute the structured differences between two snapshots.
apply_diff
    Replay a diff onto a snapshot.
summarize
    Describe a diff in one stable sentence.
auto_save_message
    History text for unattended saves.
BackgroundDiffRunner
    Offload large diffs to a worker thread with a timeout.
"""

from .background import BackgroundDiffRunner
from .calculator import apply_diff, diff, diff_from_dict, diff_to_dict
from .summary import (
    AUTO_SAVE_PREFIX,
    NO_CHANGES,
    auto_save_message,
    is_auto_save_message,
    pluralize,
    restoration_message,
    summarize,
)

__all__ = [
    "AUTO_SAVE_PREFIX",
    "NO_CHANGES",
    "BackgroundDiffRunner",
    "apply_diff",
    "auto_save_message",
    "diff",
    "diff_from_dict",
    "diff_to_dict",
    "is_auto_save_message",
    "pluralize",
    "restoration_message",
    "summarize",
]
