"""Three-way merge of deck branches: conflict detection and resolution."""

from .conflict import branch_diffs, detect_conflicts
from .resolver import (
    find_copy_limit_violations,
    resolve,
    resolve_policies,
    validate_copy_limits,
)

__all__ = [
    "branch_diffs",
    "detect_conflicts",
    "find_copy_limit_violations",
    "resolve",
    "resolve_policies",
    "validate_copy_limits",
]
