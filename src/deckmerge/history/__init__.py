"""History message encoding: annotations and message templates."""

from .codec import (
    ANNOTATION_DELIMITER,
    CHANGE_MARKERS,
    annotations_for_diff,
    format_annotation_line,
    format_message,
    parse_annotation_line,
    parse_message,
)
from .templates import (
    COMMIT_MESSAGE_MAX_LENGTH,
    COMMIT_MESSAGE_MIN_LENGTH,
    DEFAULT_ANNOTATION_TEMPLATES,
    DEFAULT_COMMIT_TEMPLATES,
    AnnotationTemplate,
    CommitTemplate,
    all_annotation_templates,
    extract_placeholders,
    fill_placeholders,
    has_unfilled_placeholders,
    placeholder_prompt,
    template_preview,
    templates_by_category,
    validate_commit_message,
)

__all__ = [
    "ANNOTATION_DELIMITER",
    "CHANGE_MARKERS",
    "COMMIT_MESSAGE_MAX_LENGTH",
    "COMMIT_MESSAGE_MIN_LENGTH",
    "DEFAULT_ANNOTATION_TEMPLATES",
    "DEFAULT_COMMIT_TEMPLATES",
    "AnnotationTemplate",
    "CommitTemplate",
    "all_annotation_templates",
    "annotations_for_diff",
    "extract_placeholders",
    "fill_placeholders",
    "format_annotation_line",
    "format_message",
    "has_unfilled_placeholders",
    "parse_annotation_line",
    "parse_message",
    "placeholder_prompt",
    "template_preview",
    "templates_by_category",
    "validate_commit_message",
]
