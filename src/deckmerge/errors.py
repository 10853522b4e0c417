"""Full error hierarchy for the deckmerge engine.

Every public error class inherits from DeckMergeError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Error codes are defined as a :class:`str` enum so that they serialise
naturally to JSON and can be matched with simple ``==`` comparisons.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the engine can raise."""

    SNAPSHOT_INVALID = "SNAPSHOT_INVALID"
    ANNOTATION_INVALID = "ANNOTATION_INVALID"
    MESSAGE_INVALID = "MESSAGE_INVALID"
    MERGE_ERROR = "MERGE_ERROR"
    MISSING_RESOLUTION = "MISSING_RESOLUTION"
    INVALID_RESOLUTION = "INVALID_RESOLUTION"
    COPY_LIMIT_EXCEEDED = "COPY_LIMIT_EXCEEDED"
    DIFF_TIMEOUT = "DIFF_TIMEOUT"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class DeckMergeError(Exception):
    """Base exception for all deckmerge errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Input validation errors
# ---------------------------------------------------------------------------

class SnapshotValidationError(DeckMergeError):
    """A deck snapshot violates the data-model invariants.

    Raised before diffing begins and again on merge output.

    Context keys: ``issues`` (list of :class:`SnapshotIssue` dicts).
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.SNAPSHOT_INVALID,
            message=message,
            context=context,
            cause=cause,
        )


class AnnotationValidationError(DeckMergeError):
    """A card change annotation was constructed with invalid fields.

    Context keys: ``card_id``, ``field``, ``constraint``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.ANNOTATION_INVALID,
            message=message,
            context=context,
            cause=cause,
        )


class MessageValidationError(DeckMergeError):
    """A history message is empty, too long, or collides with the
    annotation grammar.

    Context keys: ``length``, ``limit``, ``constraint``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.MESSAGE_INVALID,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Merge errors
# ---------------------------------------------------------------------------

class MergeResolutionError(DeckMergeError):
    """Base class for errors while applying merge resolutions.

    Every subclass names the offending card (or special slot) through
    :attr:`card_id`, which is also stored in ``context["card_id"]``.
    """

    def __init__(
        self,
        code: str = ErrorCode.MERGE_ERROR,
        message: str = "Merge error",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )

    @property
    def card_id(self) -> str | None:
        return self.context.get("card_id")


class MissingResolutionError(MergeResolutionError):
    """A detected conflict was not given a resolution.

    Context keys: ``card_id``, ``key``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.MISSING_RESOLUTION,
            message=message,
            context=context,
            cause=cause,
        )


class InvalidResolutionError(MergeResolutionError):
    """A resolution policy is unknown or not applicable to the conflict
    shape (e.g. ``keep-both`` on a singleton slot).

    Context keys: ``card_id``, ``key``, ``policy``, ``allowed``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INVALID_RESOLUTION,
            message=message,
            context=context,
            cause=cause,
        )


class CopyLimitExceededError(MergeResolutionError):
    """A merged snapshot holds more copies of a card than the format allows.

    Context keys: ``card_id``, ``count``, ``limit``, ``violations``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.COPY_LIMIT_EXCEEDED,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Execution errors
# ---------------------------------------------------------------------------

class DiffTimeoutError(DeckMergeError):
    """An offloaded diff did not finish within the configured timeout.

    The caller may discard the in-flight result and retry synchronously.

    Context keys: ``timeout_seconds``, ``total_cards``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.DIFF_TIMEOUT,
            message=message,
            context=context,
            cause=cause,
        )
