from __future__ import annotations

import re

import pytest

from notebook_rag.services.chunking import hard_split, split_text


def _paragraph(prefix: str, words: int) -> str:
    return " ".join(f"{prefix}{i}" for i in range(words))


def test_blank_text_produces_no_chunks():
    assert split_text("") == []
    assert split_text("  \n\n \t\n ") == []


def test_short_text_is_a_single_trimmed_chunk():
    assert split_text("  Alpine plants resist frost.\n\nThey grow slowly.  ") == [
        "Alpine plants resist frost.\n\nThey grow slowly."
    ]


def test_paragraphs_accumulate_and_next_chunk_starts_with_overlap():
    paragraphs = [_paragraph(p, 110) for p in ("alpha", "beta", "gamma")]
    chunks = split_text("\n\n".join(paragraphs))

    assert len(chunks) == 2
    assert chunks[0] == f"{paragraphs[0]}\n\n{paragraphs[1]}"
    assert chunks[1].startswith(chunks[0][-200:].lstrip())
    assert chunks[1].endswith(paragraphs[2])


def test_single_unbroken_line_falls_back_to_hard_split():
    text = "x" * 5000
    chunks = split_text(text)

    assert [len(c) for c in chunks] == [2000, 2000, 1400]
    assert all(len(c) <= 2000 for c in chunks)


def test_oversized_paragraph_is_split_on_lines():
    lines = [_paragraph(f"l{n}w", 15) for n in range(40)]
    chunks = split_text("\n".join(lines))

    assert len(chunks) > 1
    assert all(len(c) <= 2000 for c in chunks)
    # Every chunk ends on a complete line
    assert all(c.split("\n")[-1] in lines for c in chunks)


def test_no_chunk_exceeds_bound_for_mixed_pathological_input():
    text = "\n".join(["short line", "y" * 4500, "another short line", "z" * 2100])
    chunks = split_text(text)

    assert chunks
    assert all(len(c) <= 2000 for c in chunks)


def test_chunks_cover_every_word_of_the_input():
    paragraphs = [_paragraph(f"p{n}w", 80) for n in range(25)]
    text = "\n\n".join(paragraphs)
    chunks = split_text(text)

    seen = set()
    for chunk in chunks:
        seen.update(re.findall(r"\S+", chunk))
    assert set(re.findall(r"\S+", text)) <= seen


def test_split_is_deterministic():
    text = "\n\n".join(_paragraph(f"d{n}w", 120) for n in range(10))
    assert split_text(text) == split_text(text)


def test_overlap_must_be_smaller_than_chunk_size():
    with pytest.raises(ValueError):
        split_text("anything", chunk_size=100, chunk_overlap=100)


def test_hard_split_windows_overlap():
    windows = hard_split("abcdefghij", chunk_size=4, chunk_overlap=1)
    assert windows == ["abcd", "defg", "ghij"]


def test_overlap_is_dropped_rather_than_emitted_alone():
    first = ("alpha " * 316).strip()
    second = ("beta " * 370).strip()
    chunks = split_text(f"{first}\n\n{second}")

    assert chunks == [first, second]
