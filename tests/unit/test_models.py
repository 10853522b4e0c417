"""Tests for models.py -- enums, snapshot helpers, annotations, conflicts."""

import pytest

from deckmerge.errors import AnnotationValidationError
from deckmerge.models import (
    ANNOTATION_REASON_MAX_LENGTH,
    BranchChange,
    CardChangeAnnotation,
    CardEntry,
    ChangeType,
    CountChange,
    DeckDiff,
    DeckSnapshot,
    HistoryMessage,
    MergeConflict,
    MergePreview,
    ResolutionPolicy,
    SpecialSlotChange,
    Zone,
    ZoneRole,
    conflict_key,
    is_special,
    role_of,
)


class TestZoneRoles:
    def test_stack_zones(self):
        for zone in (Zone.MAIN, Zone.SIDEBOARD, Zone.RUNE):
            assert role_of(zone) is ZoneRole.STACK
            assert not is_special(zone)

    def test_singleton_zones(self):
        assert role_of(Zone.COMMANDER) is ZoneRole.SINGLETON
        assert role_of(Zone.LEGEND) is ZoneRole.SINGLETON

    def test_battlefield_is_bounded(self):
        assert role_of("battlefield") is ZoneRole.BOUNDED
        assert is_special("battlefield")

    def test_unknown_zone_raises(self):
        with pytest.raises(ValueError):
            role_of("graveyard")


class TestCardEntry:
    def test_defaults(self):
        entry = CardEntry("island")
        assert entry.count == 1
        assert entry.zone is Zone.MAIN

    def test_zone_string_coerced(self):
        assert CardEntry("x", 2, "sideboard").zone is Zone.SIDEBOARD

    def test_frozen(self):
        entry = CardEntry("x")
        with pytest.raises(AttributeError):
            entry.count = 3  # type: ignore[misc]


class TestDeckSnapshot:
    def _snapshot(self) -> DeckSnapshot:
        return DeckSnapshot((
            CardEntry("island", 10),
            CardEntry("bolt", 0),
            CardEntry("negate", 2, Zone.SIDEBOARD),
            CardEntry("atraxa", 1, Zone.COMMANDER),
            CardEntry("bf-1", 1, Zone.BATTLEFIELD),
            CardEntry("bf-2", 1, Zone.BATTLEFIELD),
        ))

    def test_counts_skip_zero(self):
        assert self._snapshot().counts() == {"island": 10}

    def test_counts_by_zone(self):
        assert self._snapshot().counts(Zone.SIDEBOARD) == {"negate": 2}

    def test_slot(self):
        snap = self._snapshot()
        assert snap.slot(Zone.COMMANDER) == "atraxa"
        assert snap.slot(Zone.LEGEND) is None

    def test_slot_cards_keep_order(self):
        assert self._snapshot().slot_cards("battlefield") == ("bf-1", "bf-2")

    def test_total_cards(self):
        assert self._snapshot().total_cards() == 10 + 2 + 1 + 2

    def test_zones(self):
        assert self._snapshot().zones() == [
            Zone.MAIN, Zone.SIDEBOARD, Zone.COMMANDER, Zone.BATTLEFIELD,
        ]

    def test_entries_list_becomes_tuple(self):
        snap = DeckSnapshot([CardEntry("a")])  # type: ignore[arg-type]
        assert isinstance(snap.entries, tuple)
        assert hash(snap) == hash(DeckSnapshot((CardEntry("a"),)))


class TestDeckDiff:
    def test_empty(self):
        assert DeckDiff().is_empty

    def test_not_empty_with_slot_change(self):
        d = DeckDiff(special_slot_changes=(SpecialSlotChange(Zone.LEGEND, None, "jinx"),))
        assert not d.is_empty
        assert d.touched_slots() == {Zone.LEGEND}

    def test_touched_cards(self):
        d = DeckDiff(
            added=(CardEntry("a"),),
            removed=(CardEntry("b", 1, Zone.SIDEBOARD),),
            modified=(CountChange("c", 1, 3),),
        )
        assert d.touched_cards() == {
            (Zone.MAIN, "a"), (Zone.SIDEBOARD, "b"), (Zone.MAIN, "c"),
        }

    def test_count_change_delta(self):
        assert CountChange("c", 4, 1).delta == -3


class TestCardChangeAnnotation:
    def test_valid_modified(self):
        a = CardChangeAnnotation("island-1", "modified", "More blue", 10, 12)
        assert a.change_type is ChangeType.MODIFIED
        assert (a.old_count, a.new_count) == (10, 12)

    def test_reason_at_limit_accepted(self):
        CardChangeAnnotation("x", ChangeType.ADDED, "r" * ANNOTATION_REASON_MAX_LENGTH)

    def test_reason_over_limit_rejected(self):
        with pytest.raises(AnnotationValidationError) as exc_info:
            CardChangeAnnotation("x", ChangeType.ADDED, "r" * (ANNOTATION_REASON_MAX_LENGTH + 1))
        assert exc_info.value.context["constraint"] == "max_length"
        assert exc_info.value.context["card_id"] == "x"

    @pytest.mark.parametrize("reason", ["", "   ", "line one\nline two", "a\rb"])
    def test_bad_reasons_rejected(self, reason):
        with pytest.raises(AnnotationValidationError):
            CardChangeAnnotation("x", ChangeType.ADDED, reason)

    @pytest.mark.parametrize(
        "card_id",
        ["", " padded", "two\nlines", "weird: id", "island (1 → 2)", "island (1 -> 2)"],
    )
    def test_unwritable_card_ids_rejected(self, card_id):
        with pytest.raises(AnnotationValidationError):
            CardChangeAnnotation(card_id, ChangeType.ADDED, "reason")

    def test_unknown_change_type(self):
        with pytest.raises(AnnotationValidationError) as exc_info:
            CardChangeAnnotation("x", "renamed", "reason")  # type: ignore[arg-type]
        assert exc_info.value.context["field"] == "change_type"

    def test_counts_must_be_paired(self):
        with pytest.raises(AnnotationValidationError):
            CardChangeAnnotation("x", ChangeType.MODIFIED, "reason", old_count=1)

    def test_counts_only_on_modified(self):
        with pytest.raises(AnnotationValidationError):
            CardChangeAnnotation("x", ChangeType.ADDED, "reason", 0, 2)

    def test_negative_counts_rejected(self):
        with pytest.raises(AnnotationValidationError):
            CardChangeAnnotation("x", ChangeType.MODIFIED, "reason", -1, 2)

    def test_modified_without_counts_allowed(self):
        CardChangeAnnotation("x", ChangeType.MODIFIED, "reason")


class TestHistoryMessage:
    def test_dropped_lines_not_compared(self):
        assert HistoryMessage("m", [], dropped_lines=3) == HistoryMessage("m", [])


class TestConflictKeys:
    def test_main_zone_uses_bare_id(self):
        assert conflict_key(Zone.MAIN, "Sol Ring") == "Sol Ring"

    def test_other_stack_zone_is_prefixed(self):
        assert conflict_key(Zone.SIDEBOARD, "negate") == "sideboard:negate"

    def test_singleton_slot_uses_prefixed_zone_name(self):
        assert conflict_key(Zone.COMMANDER, "atraxa") == "@commander"
        assert conflict_key(Zone.LEGEND) == "@legend"

    def test_battlefield_keyed_per_card(self):
        assert conflict_key(Zone.BATTLEFIELD, "bf-1") == "@battlefield:bf-1"

    def test_main_ids_that_look_like_keys_are_qualified(self):
        assert conflict_key(Zone.MAIN, "commander") == "commander"
        assert conflict_key(Zone.MAIN, "@commander") == "main:@commander"
        assert conflict_key(Zone.MAIN, "sideboard:negate") == "main:sideboard:negate"
        assert conflict_key(Zone.MAIN, "main:x") == "main:main:x"

    def _conflict(self, zone, source_new, target_new) -> MergeConflict:
        return MergeConflict(
            card_id="x",
            zone=zone,
            source_change=BranchChange(ChangeType.MODIFIED, 2, source_new),
            target_change=BranchChange(ChangeType.MODIFIED, 2, target_new),
        )

    def test_keep_both_allowed_when_both_sides_keep_card(self):
        conflict = self._conflict(Zone.MAIN, 3, 4)
        assert ResolutionPolicy.KEEP_BOTH in conflict.allowed_policies

    def test_keep_both_not_allowed_when_one_side_removes(self):
        conflict = self._conflict(Zone.MAIN, 3, 0)
        assert ResolutionPolicy.KEEP_BOTH not in conflict.allowed_policies

    def test_keep_both_never_allowed_for_special_zone(self):
        conflict = self._conflict(Zone.LEGEND, 1, 1)
        assert conflict.allowed_policies == (
            ResolutionPolicy.KEEP_SOURCE,
            ResolutionPolicy.KEEP_TARGET,
        )
        assert conflict.key == "@legend"


class TestMergePreview:
    def test_conflict_keys(self):
        conflict = MergeConflict(
            "negate",
            Zone.SIDEBOARD,
            BranchChange(ChangeType.MODIFIED, 2, 3),
            BranchChange(ChangeType.REMOVED, 2, 0),
        )
        preview = MergePreview(DeckDiff(), DeckDiff(), (conflict,))
        assert preview.has_conflicts
        assert preview.conflict_keys == ["sideboard:negate"]

    def test_no_conflicts(self):
        assert not MergePreview(DeckDiff(), DeckDiff()).has_conflicts
