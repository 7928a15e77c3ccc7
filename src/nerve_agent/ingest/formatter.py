"""Deterministic text rendering of a budget selection."""

from __future__ import annotations

import re
from collections.abc import Iterable

from nerve_agent.types import SelectionResult

_BOUNDARY_BASE = "<<<nerve-context-file"
_BOUNDARY_HEADER = re.compile(r"^Section boundary: (?P<boundary>\S+)$", flags=re.MULTILINE)
_LINE_BREAKS = ("\n", "\r")


def choose_boundary(texts: Iterable[str]) -> str:
    """Pick the first boundary token that occurs in none of `texts`."""

    corpus = list(texts)
    candidate = f"{_BOUNDARY_BASE}>>>"
    counter = 0
    while any(candidate in text for text in corpus):
        counter += 1
        candidate = f"{_BOUNDARY_BASE}-{counter}>>>"
    return candidate


def format_context(selection: SelectionResult) -> str:
    """Render a selection as one document for the model.

    Layout: a stats header that also declares the section boundary, one
    section per selected file opened by `<boundary> <path>`, a closing
    `<boundary>--` line, then the path-only listing. The boundary never occurs
    inside file content or paths, so sections can be split back out exactly.

    Raises:
        ValueError: a path contains a line break and could not be recovered.
    """

    for path in [*selection.selected_paths, *selection.path_only]:
        if any(mark in path for mark in _LINE_BREAKS):
            raise ValueError(f"Path contains a line break: {path!r}")

    boundary = choose_boundary(
        [item.content for item in selection.files]
        + [item.path for item in selection.files]
        + list(selection.path_only)
    )

    lines = [
        "# Codebase Analysis",
        "",
        f"Total files in project: {selection.total_files}",
        f"Files analyzed: {len(selection.files)}",
        f"Files listed by path only: {len(selection.path_only)}",
        f"Estimated tokens: ~{selection.estimated_tokens}",
        f"Section boundary: {boundary}",
        "",
        "## File Contents",
        "",
    ]
    for item in selection.files:
        lines.append(f"{boundary} {item.path}")
        lines.append(item.content)
    lines.append(f"{boundary}--")

    if selection.path_only:
        lines.append("")
        lines.append("## Additional Files (paths only)")
        lines.append("")
        lines.extend(f"- {path}" for path in selection.path_only)

    return "\n".join(lines) + "\n"


def split_sections(document: str) -> list[tuple[str, str]]:
    """Recover `(path, content)` pairs from a `format_context` document."""

    match = _BOUNDARY_HEADER.search(document)
    if match is None:
        return []
    boundary = match.group("boundary")

    sections: list[tuple[str, str]] = []
    for segment in document.split(f"\n{boundary}")[1:]:
        if segment.startswith("--"):
            break
        header, _, content = segment[1:].partition("\n")
        sections.append((header, content))
    return sections
