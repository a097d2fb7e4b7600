from __future__ import annotations

from typing import Iterable

from ..models.rag import RetrievedSource

UNKNOWN_SOURCE_NAME = "document"
GROUP_SEPARATOR = "\n\n---\n\n"


def assemble_context(sources: Iterable[RetrievedSource]) -> str:
    """
    Render retrieved passages as a context block grouped by source file.

    ``[Source N]`` labels follow the input order across the whole block, so the
    numbering matches the order of ``sources`` even though passages are printed
    under their file's header.
    """
    groups: dict[str, list[tuple[int, str]]] = {}
    for idx, source in enumerate(sources):
        name = source.file_name or UNKNOWN_SOURCE_NAME
        groups.setdefault(name, []).append((idx + 1, source.content))

    sections = []
    for name, entries in groups.items():
        lines = [f"From {name}:"]
        lines.extend(f"[Source {label}]\n{content}" for label, content in entries)
        sections.append("\n\n".join(lines))
    return GROUP_SEPARATOR.join(sections)
