"""Custom label sanitization for Graph posts."""

import json
from collections.abc import Iterable

MAX_LABELS = 10
MAX_LABEL_LENGTH = 25


def sanitize_labels(
    labels: Iterable[str] | None,
    max_labels: int = MAX_LABELS,
    max_length: int = MAX_LABEL_LENGTH,
) -> list[str]:
    """Trim labels and drop the ones the platform would reject.

    Entries that are empty after trimming or longer than ``max_length`` are
    dropped silently. At most ``max_labels`` survive, in input order.

    Args:
        labels: Raw labels
        max_labels: Maximum number of labels kept
        max_length: Maximum characters per label

    Returns:
        Sanitized labels
    """
    cleaned: list[str] = []
    for label in labels or []:
        if not isinstance(label, str):
            continue
        label = label.strip()
        if 1 <= len(label) <= max_length:
            cleaned.append(label)
        if len(cleaned) >= max_labels:
            break
    return cleaned


def serialize_labels(
    labels: Iterable[str] | None,
    max_labels: int = MAX_LABELS,
    max_length: int = MAX_LABEL_LENGTH,
) -> str | None:
    """Sanitize labels and encode them as the JSON array form field.

    Returns:
        JSON array string, None when no label survives
    """
    cleaned = sanitize_labels(labels, max_labels, max_length)
    if not cleaned:
        return None
    return json.dumps(cleaned, ensure_ascii=False)


__all__ = ["MAX_LABELS", "MAX_LABEL_LENGTH", "sanitize_labels", "serialize_labels"]
