"""Near-duplicate removal for retrieved passages."""

from __future__ import annotations

import re
from typing import Iterable

from ..models.rag import RetrievedSource

DEFAULT_OVERLAP_THRESHOLD = 0.9

_WHITESPACE_RE = re.compile(r"\s+")


def _word_set(content: str) -> frozenset[str]:
    normalized = _WHITESPACE_RE.sub(" ", content).strip().lower()
    return frozenset(normalized.split(" ")) if normalized else frozenset()


def word_overlap(a: frozenset[str], b: frozenset[str]) -> float:
    """Jaccard overlap of two word sets; two empty sets count as identical."""
    union = a | b
    if not union:
        return 1.0
    return len(a & b) / len(union)


def dedupe_sources(
    sources: Iterable[RetrievedSource],
    threshold: float = DEFAULT_OVERLAP_THRESHOLD,
) -> list[RetrievedSource]:
    """
    Drop passages that nearly repeat an earlier one.

    Input order is significant: a passage is kept unless an already-kept
    passage overlaps it by more than ``threshold``, so the earlier (higher
    similarity) passage always wins.
    """
    kept: list[RetrievedSource] = []
    kept_words: list[frozenset[str]] = []
    for source in sources:
        words = _word_set(source.content)
        if any(word_overlap(words, other) > threshold for other in kept_words):
            continue
        kept.append(source)
        kept_words.append(words)
    return kept


__all__ = ["dedupe_sources", "word_overlap", "DEFAULT_OVERLAP_THRESHOLD"]
