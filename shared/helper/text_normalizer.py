"""Canonical text blobs for embedding and cheap lexical comparison."""

import re

from shared.models.record import Record, RecordKind

DEFAULT_MAX_TEXT_LENGTH = 1024 # characters sent to the embedding model
FIELD_SEPARATOR = "\n\n"

_WHITESPACE = re.compile(r"\s+")


def normalize_text(*fields: str | None, max_length: int = DEFAULT_MAX_TEXT_LENGTH) -> str:
    """Build the canonical embedding text from an ordered list of fields.

    Each field is trimmed and lowercased, empty or missing fields are dropped,
    the rest are joined by a blank line. The result is cut to ``max_length``
    characters, which may split the last word.

    Args:
        *fields (str | None): Field values in the fixed order of the record kind.
        max_length (int): Maximum length of the returned text.

    Returns:
        str: The normalized text, empty only if every field was empty.
    """
    parts = [(field or "").strip().lower() for field in fields]
    combined = FIELD_SEPARATOR.join(part for part in parts if part)
    if len(combined) > max_length:
        combined = combined[:max_length]
    return combined


def normalize_risk_text(
    title: str,
    threat_description: str | None = None,
    description: str | None = None,
    max_length: int = DEFAULT_MAX_TEXT_LENGTH,
) -> str:
    return normalize_text(title, threat_description, description, max_length=max_length)


def normalize_control_text(
    code: str | None,
    title: str,
    description: str | None = None,
    purpose: str | None = None,
    guidance: str | None = None,
    max_length: int = DEFAULT_MAX_TEXT_LENGTH,
) -> str:
    """Controls lead with their catalogue code (e.g. "A.8.3"); ``control_text`` is not embedded."""
    return normalize_text(code, title, description, purpose, guidance, max_length=max_length)


def normalize_record_text(record: Record, max_length: int = DEFAULT_MAX_TEXT_LENGTH) -> str:
    """Normalize a stored record using the field order of its kind."""
    if record.kind == RecordKind.CONTROL:
        return normalize_control_text(
            record.code,
            record.title,
            record.description,
            record.purpose,
            record.guidance,
            max_length=max_length,
        )
    return normalize_risk_text(record.title, record.threat_description, record.description, max_length=max_length)


def word_overlap(text1: str, text2: str) -> float:
    """Jaccard similarity of the word sets of two texts.

    Words are lowercase whitespace-separated tokens longer than two characters.

    Returns:
        float: 1.0 for identical texts, 0.0 if either side is empty or has no
            qualifying words.
    """
    if not text1 or not text2:
        return 0.0
    if text1 == text2:
        return 1.0

    words1 = {w for w in _WHITESPACE.split(text1.lower()) if len(w) > 2}
    words2 = {w for w in _WHITESPACE.split(text2.lower()) if len(w) > 2}
    if not words1 or not words2:
        return 0.0

    return len(words1 & words2) / len(words1 | words2)
