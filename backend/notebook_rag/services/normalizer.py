from __future__ import annotations

import re

from .errors import InvalidInput

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_DELIMITER_MARKERS = ("===BEGIN DOCUMENT===", "===END DOCUMENT===")


def normalize_text(text: str, max_chars: int = 100_000) -> str:
    """
    Clean extracted text before chunking.

    Strips NUL and non-printable control characters (keeping newlines and tabs),
    unifies line endings, drops the delimiter markers used to fence documents in
    downstream prompts and truncates to ``max_chars``.
    """
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _CONTROL_CHARS_RE.sub("", cleaned)
    for marker in _DELIMITER_MARKERS:
        cleaned = cleaned.replace(marker, "")
    return cleaned[:max_chars]


def is_valid_uuid(value: str | None) -> bool:
    return bool(value) and _UUID_RE.match(value) is not None


def ensure_uuid(value: str | None, name: str) -> str:
    """Return ``value`` unchanged if it is a canonical UUID, else raise InvalidInput."""
    if not is_valid_uuid(value):
        raise InvalidInput(f"Invalid {name}")
    return value
