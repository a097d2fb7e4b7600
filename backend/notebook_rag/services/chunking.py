from __future__ import annotations

import re
from typing import Iterable

CHUNK_SIZE = 2000
CHUNK_OVERLAP = 200

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def split_text(text: str, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP) -> list[str]:
    """
    Split text into overlapping passages.

    Paragraphs (blank-line separated) are accumulated until the next one would
    push the buffer past ``chunk_size``; the buffer is then flushed and the next
    one starts with the last ``chunk_overlap`` characters of the flushed buffer,
    unless that overlap would make it too long by itself.
    Buffers that are still too long are split the same way on line boundaries,
    and anything left over (a single unbroken line) is cut into fixed-width
    windows with the same overlap.

    Args:
        text: Normalized document text
        chunk_size: Maximum length of any returned chunk
        chunk_overlap: Characters carried from one chunk into the next

    Returns:
        Ordered chunks, none of them empty after trimming
    """
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK_RE.split(text)]
    buffers = _accumulate((p for p in paragraphs if p), "\n\n", chunk_size, chunk_overlap)

    chunks: list[str] = []
    for buffer in buffers:
        chunks.extend(_split_segment(buffer, chunk_size, chunk_overlap))
    return [chunk.strip() for chunk in chunks if chunk.strip()]


def _accumulate(units: Iterable[str], separator: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    buffers: list[str] = []
    current = ""
    for unit in units:
        candidate = f"{current}{separator}{unit}" if current else unit
        if len(candidate) > chunk_size and current:
            buffers.append(current)
            seeded = f"{_tail(current, chunk_overlap)}{separator}{unit}"
            # Never let the overlap push the next buffer past the limit on its own
            current = seeded if len(seeded) <= chunk_size else unit
        else:
            current = candidate
    if current.strip():
        buffers.append(current)
    return buffers


def _split_segment(segment: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    if len(segment) <= chunk_size:
        return [segment]

    lines = [line for line in segment.split("\n") if line.strip()]
    if len(lines) <= 1:
        return hard_split(segment, chunk_size, chunk_overlap)

    pieces: list[str] = []
    for buffer in _accumulate(lines, "\n", chunk_size, chunk_overlap):
        if len(buffer) <= chunk_size:
            pieces.append(buffer)
        else:
            pieces.extend(hard_split(buffer, chunk_size, chunk_overlap))
    return pieces


def hard_split(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    """Cut ``text`` into fixed-width windows that overlap by ``chunk_overlap``."""
    windows: list[str] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        windows.append(text[start:end])
        if end == len(text):
            break
        start = end - chunk_overlap
    return windows


def _tail(text: str, size: int) -> str:
    return text[-size:].lstrip() if size > 0 else ""
