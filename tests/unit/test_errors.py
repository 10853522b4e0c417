"""Tests for errors.py -- codes, hierarchy and context plumbing."""

import pytest

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


class TestErrorCodes:
    @pytest.mark.parametrize(
        ("cls", "code"),
        [
            (SnapshotValidationError, ErrorCode.SNAPSHOT_INVALID),
            (AnnotationValidationError, ErrorCode.ANNOTATION_INVALID),
            (MessageValidationError, ErrorCode.MESSAGE_INVALID),
            (MissingResolutionError, ErrorCode.MISSING_RESOLUTION),
            (InvalidResolutionError, ErrorCode.INVALID_RESOLUTION),
            (CopyLimitExceededError, ErrorCode.COPY_LIMIT_EXCEEDED),
            (DiffTimeoutError, ErrorCode.DIFF_TIMEOUT),
        ],
    )
    def test_subclass_sets_code(self, cls, code):
        err = cls("boom")
        assert err.code == code
        assert isinstance(err, DeckMergeError)

    def test_codes_compare_as_strings(self):
        assert ErrorCode.MISSING_RESOLUTION == "MISSING_RESOLUTION"


class TestMergeResolutionErrors:
    @pytest.mark.parametrize(
        "cls", [MissingResolutionError, InvalidResolutionError, CopyLimitExceededError]
    )
    def test_share_base_class(self, cls):
        assert issubclass(cls, MergeResolutionError)

    def test_card_id_from_context(self):
        err = MissingResolutionError("missing", context={"card_id": "Sol Ring"})
        assert err.card_id == "Sol Ring"

    def test_card_id_absent(self):
        assert InvalidResolutionError("bad").card_id is None

    def test_base_defaults(self):
        err = MergeResolutionError()
        assert err.code == ErrorCode.MERGE_ERROR
        assert str(err) == "Merge error"


class TestDeckMergeError:
    def test_context_defaults_to_empty_dict(self):
        assert SnapshotValidationError("bad").context == {}

    def test_cause_is_chained(self):
        cause = ValueError("inner")
        err = AnnotationValidationError("outer", cause=cause)
        assert err.cause is cause
        assert err.__cause__ is cause

    def test_repr_includes_context(self):
        err = DiffTimeoutError("slow", context={"timeout_seconds": 1.0})
        text = repr(err)
        assert text.startswith("DiffTimeoutError(")
        assert "timeout_seconds" in text

    def test_repr_without_context(self):
        assert "context" not in repr(MessageValidationError("empty"))

    def test_str_is_message(self):
        assert str(MessageValidationError("too long")) == "too long"
