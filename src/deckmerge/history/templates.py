"""Reusable wording for history messages and annotation reasons.

Two template families exist:

* :class:`CommitTemplate` -- a primary message with ``{placeholder}`` slots
  the operator fills in (``"Testing new card: {cardName}"``).
* :class:`AnnotationTemplate` -- a ready-made per-card reason.

Also home to :func:`validate_commit_message`, the length check every
primary message passes before it is encoded.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from deckmerge.errors import MessageValidationError
from deckmerge.models import ANNOTATION_REASON_MAX_LENGTH

COMMIT_MESSAGE_MIN_LENGTH = 1
COMMIT_MESSAGE_MAX_LENGTH = 500

_PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")

COMMIT_CATEGORIES = ("testing", "optimization", "meta", "custom")
ANNOTATION_CATEGORIES = ("testing", "meta", "performance", "synergy", "cost")


@dataclass(frozen=True)
class CommitTemplate:
    id: str
    label: str
    template: str
    category: str

    @property
    def placeholders(self) -> list[str]:
        return extract_placeholders(self.template)


@dataclass(frozen=True)
class AnnotationTemplate:
    id: str
    label: str
    reason: str
    category: str


DEFAULT_COMMIT_TEMPLATES: tuple[CommitTemplate, ...] = (
    CommitTemplate("testing-new-card", "Testing new card", "Testing new card: {cardName}", "testing"),
    CommitTemplate("testing-card-swap", "Testing card swap", "Testing {newCard} in place of {oldCard}", "testing"),
    CommitTemplate("testing-strategy", "Testing new strategy", "Testing new strategy: {strategyDescription}", "testing"),
    CommitTemplate("optimization-mana-curve", "Mana curve adjustment", "Mana curve adjustment", "optimization"),
    CommitTemplate(
        "optimization-removed-underperforming",
        "Removed underperforming cards",
        "Removed underperforming cards",
        "optimization",
    ),
    CommitTemplate("optimization-consistency", "Improving consistency", "Improving deck consistency", "optimization"),
    CommitTemplate("optimization-synergy", "Adding synergy", "Adding synergy with {cardOrTheme}", "optimization"),
    CommitTemplate("meta-adaptation", "Meta adaptation", "Meta adaptation", "meta"),
    CommitTemplate("meta-counter", "Adding counter to meta deck", "Adding counter to {metaDeck}", "meta"),
    CommitTemplate("meta-sideboard", "Sideboard adjustment", "Sideboard adjustment for {matchup}", "meta"),
    CommitTemplate("custom-initial", "Initial deck creation", "Initial deck creation", "custom"),
    CommitTemplate("custom-major-revision", "Major revision", "Major revision: {description}", "custom"),
    CommitTemplate("custom-budget", "Budget optimization", "Budget optimization", "custom"),
)

DEFAULT_ANNOTATION_TEMPLATES: tuple[AnnotationTemplate, ...] = (
    AnnotationTemplate("testing-new-card", "Testing", "Testing this card", "testing"),
    AnnotationTemplate("testing-replacement", "Testing replacement", "Testing as replacement", "testing"),
    AnnotationTemplate("meta-shift", "Meta shift", "Adapting to meta shift", "meta"),
    AnnotationTemplate("meta-counter", "Counter strategy", "Counter to popular deck", "meta"),
    AnnotationTemplate(
        "performance-underperforming", "Underperforming", "Card underperformed in testing", "performance"
    ),
    AnnotationTemplate(
        "performance-overperforming", "Strong performer", "Card performed well in testing", "performance"
    ),
    AnnotationTemplate("performance-win-rate", "Win rate improvement", "Improving win rate", "performance"),
    AnnotationTemplate("synergy-combo", "Combo piece", "Part of combo strategy", "synergy"),
    AnnotationTemplate("synergy-theme", "Theme synergy", "Better fits deck theme", "synergy"),
    AnnotationTemplate("synergy-tribal", "Tribal synergy", "Tribal synergy", "synergy"),
    AnnotationTemplate("cost-mana-curve", "Mana curve", "Mana curve adjustment", "cost"),
    AnnotationTemplate("cost-budget", "Budget constraint", "Budget optimization", "cost"),
    AnnotationTemplate("cost-efficiency", "Cost efficiency", "More cost-efficient option", "cost"),
)

_PLACEHOLDER_PROMPTS: dict[str, str] = {
    "cardName": "Card name",
    "newCard": "New card",
    "oldCard": "Old card",
    "strategyDescription": "Strategy description",
    "cardOrTheme": "Card or theme",
    "metaDeck": "Meta deck name",
    "matchup": "Matchup",
    "description": "Description",
}


# ---------------------------------------------------------------------------
# Message validation
# ---------------------------------------------------------------------------

def validate_commit_message(
    message: str,
    min_length: int = COMMIT_MESSAGE_MIN_LENGTH,
    max_length: int = COMMIT_MESSAGE_MAX_LENGTH,
) -> str:
    """Return *message* trimmed, or raise if its length is out of bounds.

    Raises
    ------
    MessageValidationError
        With ``context["constraint"]`` set to ``"min_length"`` or
        ``"max_length"``.
    """
    trimmed = message.strip()
    if len(trimmed) < min_length:
        plural = "s" if min_length > 1 else ""
        raise MessageValidationError(
            f"Commit message must be at least {min_length} character{plural}",
            context={"length": len(trimmed), "limit": min_length, "constraint": "min_length"},
        )
    if len(trimmed) > max_length:
        raise MessageValidationError(
            f"Commit message must be at most {max_length} characters",
            context={"length": len(trimmed), "limit": max_length, "constraint": "max_length"},
        )
    return trimmed


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

def extract_placeholders(template: str) -> list[str]:
    """Placeholder names in *template*, in order of appearance."""
    return _PLACEHOLDER_RE.findall(template)


def fill_placeholders(template: str, values: Mapping[str, str]) -> str:
    """Substitute ``{name}`` slots from *values*.

    Missing or empty values leave the placeholder in place so the caller
    can detect it with :func:`has_unfilled_placeholders`.
    """
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1)) or m.group(0), template)


def has_unfilled_placeholders(message: str) -> bool:
    return _PLACEHOLDER_RE.search(message) is not None


def placeholder_prompt(name: str) -> str:
    """Human label for a placeholder; unknown names are returned as-is."""
    return _PLACEHOLDER_PROMPTS.get(name, name)


def template_preview(template: str) -> str:
    """``"Testing new card: {cardName}"`` -> ``"Testing new card: [Card name]"``."""
    return _PLACEHOLDER_RE.sub(lambda m: f"[{placeholder_prompt(m.group(1))}]", template)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def templates_by_category(
    templates: Iterable[CommitTemplate] | Iterable[AnnotationTemplate],
) -> dict[str, list]:
    grouped: dict[str, list] = {}
    for template in templates:
        grouped.setdefault(template.category, []).append(template)
    return grouped


def _valid_annotation_template(template: object) -> bool:
    if not isinstance(template, AnnotationTemplate):
        return False
    return (
        all(isinstance(v, str) for v in (template.id, template.label, template.reason, template.category))
        and template.category in ANNOTATION_CATEGORIES
        and bool(template.reason.strip())
        and "\n" not in template.reason
        and len(template.reason) <= ANNOTATION_REASON_MAX_LENGTH
    )


def all_annotation_templates(
    custom: Iterable[object] = (),
) -> list[AnnotationTemplate]:
    """Default annotation templates followed by the valid entries of *custom*.

    Custom entries with an unknown category or an unusable reason are
    skipped silently.
    """
    return [*DEFAULT_ANNOTATION_TEMPLATES, *(t for t in custom if _valid_annotation_template(t))]
