"""Apply per-conflict resolutions to produce a merged snapshot.

The resolver never guesses: every conflict needs an explicit policy, and
any policy that is undefined for the conflict's shape is rejected with the
offending card named.  Changes made on only one branch are applied as-is.

After merging, the snapshot is re-validated against the data-model
invariants and, when the format defines a per-card copy limit, checked
against it as a separate step.  Over-limit results are rejected rather
than clamped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from deckmerge.config import FormatRules
from deckmerge.errors import (
    CopyLimitExceededError,
    InvalidResolutionError,
    MissingResolutionError,
)
from deckmerge.models import (
    STACK_ZONES,
    CardEntry,
    CopyLimitViolation,
    DeckDiff,
    DeckSnapshot,
    MergeConflict,
    ResolutionPolicy,
    SpecialSlotChange,
    Zone,
    ZoneRole,
    conflict_key,
    role_of,
)
from deckmerge.observability import get_logger, log_event
from deckmerge.snapshot import validate_snapshot

from .conflict import SlotMove, move_of, resulting_counts, resulting_slot, slot_moves

log = get_logger("deckmerge.merge")

COPY_LIMIT_ZONES: tuple[Zone, ...] = (Zone.MAIN, Zone.SIDEBOARD)
"""Zones whose counts add up towards a card's copy limit."""


# ---------------------------------------------------------------------------
# Copy limits
# ---------------------------------------------------------------------------

def find_copy_limit_violations(
    snapshot: DeckSnapshot,
    rules: FormatRules,
) -> list[CopyLimitViolation]:
    """Cards whose main plus sideboard copies exceed ``rules.max_copies``.

    Returns an empty list when the format has no copy limit.
    """
    if rules.max_copies is None:
        return []
    totals: dict[str, int] = {}
    for zone in COPY_LIMIT_ZONES:
        for card_id, count in snapshot.counts(zone).items():
            totals[card_id] = totals.get(card_id, 0) + count
    return [
        CopyLimitViolation(card_id, count, rules.max_copies)
        for card_id, count in totals.items()
        if count > rules.max_copies
    ]


def validate_copy_limits(snapshot: DeckSnapshot, rules: FormatRules) -> None:
    """Raise if any card exceeds the format's copy limit.

    Raises
    ------
    CopyLimitExceededError
        Naming the first offending card; every violation is listed under
        ``context["violations"]``.
    """
    violations = find_copy_limit_violations(snapshot, rules)
    if not violations:
        return
    first = violations[0]
    raise CopyLimitExceededError(
        f"Card {first.card_id!r} has {first.count} copies; "
        f"{rules.name} allows at most {first.limit}",
        context={
            "card_id": first.card_id,
            "count": first.count,
            "limit": first.limit,
            "violations": [
                {"card_id": v.card_id, "count": v.count, "limit": v.limit} for v in violations
            ],
        },
    )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def _policy_for(
    conflict: MergeConflict,
    resolutions: Mapping[str, ResolutionPolicy | str] | None,
) -> ResolutionPolicy:
    key = conflict.key
    if resolutions is not None and key in resolutions:
        raw = resolutions[key]
    else:
        raw = conflict.resolution_policy
    if raw is None:
        raise MissingResolutionError(
            f"No resolution given for conflict on {conflict.card_id!r}",
            context={"card_id": conflict.card_id, "key": key},
        )

    allowed = conflict.allowed_policies
    try:
        policy = ResolutionPolicy(raw)
    except ValueError as exc:
        raise InvalidResolutionError(
            f"Unknown resolution {raw!r} for {conflict.card_id!r}",
            context={
                "card_id": conflict.card_id,
                "key": key,
                "policy": raw,
                "allowed": [p.value for p in allowed],
            },
            cause=exc,
        ) from exc
    if policy not in allowed:
        raise InvalidResolutionError(
            f"Resolution {policy.value!r} is not valid for the conflict on "
            f"{conflict.card_id!r}",
            context={
                "card_id": conflict.card_id,
                "key": key,
                "policy": policy.value,
                "allowed": [p.value for p in allowed],
            },
        )
    return policy


def resolve_policies(
    conflicts: Iterable[MergeConflict],
    resolutions: Mapping[str, ResolutionPolicy | str] | None = None,
) -> dict[str, ResolutionPolicy]:
    """Check that each conflict has exactly one usable policy.

    Returns the policies keyed by :attr:`MergeConflict.key`.  Resolution
    keys that match no conflict are ignored.

    Raises
    ------
    MissingResolutionError
        If a conflict has no policy in *resolutions* nor on the conflict.
    InvalidResolutionError
        If a policy is unknown or undefined for the conflict's shape.
    """
    policies = {conflict.key: _policy_for(conflict, resolutions) for conflict in conflicts}
    if resolutions is not None:
        unused = sorted(set(resolutions) - set(policies))
        if unused:
            log_event(log, logging.DEBUG, "ignoring resolutions for unknown keys", keys=unused)
    return policies


def _merged_counts(
    ancestor: DeckSnapshot,
    source_diff: DeckDiff,
    target_diff: DeckDiff,
    conflicts: Mapping[str, MergeConflict],
    policies: Mapping[str, ResolutionPolicy],
    zone: Zone,
) -> dict[str, int]:
    base = ancestor.counts(zone)
    source_counts = resulting_counts(source_diff, zone)
    target_counts = resulting_counts(target_diff, zone)

    merged = dict(base)
    for card_id in source_counts.keys() | target_counts.keys():
        conflict = conflicts.get(conflict_key(zone, card_id))
        if conflict is not None:
            policy = policies[conflict.key]
            if policy is ResolutionPolicy.KEEP_SOURCE:
                count = conflict.source_change.new_count
            elif policy is ResolutionPolicy.KEEP_TARGET:
                count = conflict.target_change.new_count
            else:
                count = conflict.source_change.new_count + conflict.target_change.new_count
        elif card_id in source_counts:
            count = source_counts[card_id]
        else:
            count = target_counts[card_id]
        merged[card_id] = count

    # Ancestor cards keep their position; new ones follow in id order.
    ordered = {cid: merged[cid] for cid in base}
    ordered.update((cid, merged[cid]) for cid in sorted(merged.keys() - base.keys()))
    return {cid: n for cid, n in ordered.items() if n > 0}


def _merged_slot(
    ancestor: DeckSnapshot,
    source_diff: DeckDiff,
    target_diff: DeckDiff,
    conflicts: Mapping[str, MergeConflict],
    policies: Mapping[str, ResolutionPolicy],
    zone: Zone,
) -> tuple[str, ...]:
    conflict = conflicts.get(conflict_key(zone))
    if conflict is not None:
        if policies[conflict.key] is ResolutionPolicy.KEEP_SOURCE:
            return conflict.source_change.new_cards
        return conflict.target_change.new_cards
    if zone in source_diff.touched_slots():
        return resulting_slot(ancestor, source_diff, zone)
    if zone in target_diff.touched_slots():
        return resulting_slot(ancestor, target_diff, zone)
    return ancestor.slot_cards(zone)


def _merged_bounded_slot(
    ancestor: DeckSnapshot,
    source_diff: DeckDiff,
    target_diff: DeckDiff,
    conflicts: Mapping[str, MergeConflict],
    policies: Mapping[str, ResolutionPolicy],
    zone: Zone,
) -> tuple[str, ...]:
    """Union of both branches' slot moves, minus the losing side of each
    battlefield conflict.

    Moves that replace or remove an ancestor card keep its position;
    placements into an empty position follow in id order, so the result
    does not depend on which branch is the source.  The zone cap is left
    to the post-merge validation.
    """
    if zone not in target_diff.touched_slots():
        return resulting_slot(ancestor, source_diff, zone)
    if zone not in source_diff.touched_slots():
        return resulting_slot(ancestor, target_diff, zone)
    source_cards = resulting_slot(ancestor, source_diff, zone)
    if set(source_cards) == set(resulting_slot(ancestor, target_diff, zone)):
        return source_cards

    dropped_source: set[SlotMove] = set()
    dropped_target: set[SlotMove] = set()
    for conflict in conflicts.values():
        if conflict.zone is not zone:
            continue
        if policies[conflict.key] is ResolutionPolicy.KEEP_SOURCE:
            dropped_target.add(move_of(conflict.target_change))
        else:
            dropped_source.add(move_of(conflict.source_change))

    applied = [m for m in slot_moves(source_diff, zone) if m not in dropped_source]
    for move in slot_moves(target_diff, zone):
        if move not in dropped_target and move not in applied:
            applied.append(move)
    applied.sort(key=lambda move: (move[0] is None, move[1] or "", move[0] or ""))

    changes = DeckDiff(
        special_slot_changes=tuple(SpecialSlotChange(zone, old, new) for old, new in applied)
    )
    return resulting_slot(ancestor, changes, zone)


def resolve(
    ancestor: DeckSnapshot,
    source_diff: DeckDiff,
    target_diff: DeckDiff,
    conflicts: Sequence[MergeConflict],
    resolutions: Mapping[str, ResolutionPolicy | str] | None = None,
    *,
    rules: FormatRules | None = None,
) -> DeckSnapshot:
    """Merge two branches into one snapshot.

    Parameters
    ----------
    ancestor:
        The common ancestor of both branches.
    source_diff, target_diff:
        Each branch's diff against *ancestor*.
    conflicts:
        Output of :func:`~deckmerge.merge.conflict.detect_conflicts`.
    resolutions:
        Policy per :attr:`MergeConflict.key` (``"keep-source"``,
        ``"keep-target"`` or ``"keep-both"``, as strings or
        :class:`ResolutionPolicy`).  A conflict missing from the mapping
        falls back to its own ``resolution_policy``.
    rules:
        Format limits for re-validating the result.  Defaults to
        :class:`FormatRules`'s defaults.

    Returns
    -------
    DeckSnapshot
        Stack zones list ancestor cards first, in ancestor order, then
        newly added cards sorted by id, so the result does not depend on
        which branch is called the source.  Battlefield changes from both
        branches are combined; only the contested cards follow a policy.

    Raises
    ------
    MissingResolutionError, InvalidResolutionError
        If a conflict is unresolved or resolved with an unusable policy.
    SnapshotValidationError
        If the merged snapshot breaks a data-model invariant (for example
        a battlefield cap overflow).
    CopyLimitExceededError
        If ``rules.max_copies`` is set and a card exceeds it.
    """
    rules = rules or FormatRules()
    policies = resolve_policies(conflicts, resolutions)
    by_key = {conflict.key: conflict for conflict in conflicts}

    entries: list[CardEntry] = []
    for zone in Zone:
        if zone in STACK_ZONES:
            counts = _merged_counts(ancestor, source_diff, target_diff, by_key, policies, zone)
            entries.extend(CardEntry(cid, n, zone) for cid, n in counts.items())
        else:
            merge_slot = (
                _merged_bounded_slot if role_of(zone) is ZoneRole.BOUNDED else _merged_slot
            )
            cards = merge_slot(ancestor, source_diff, target_diff, by_key, policies, zone)
            entries.extend(CardEntry(cid, 1, zone) for cid in cards)
    merged = DeckSnapshot(tuple(entries))

    validate_snapshot(merged, rules, label="merged snapshot")
    if rules.max_copies is not None:
        validate_copy_limits(merged, rules)

    log_event(
        log,
        logging.INFO,
        "merge resolved",
        conflicts=len(policies),
        total_cards=merged.total_cards(),
    )
    return merged
