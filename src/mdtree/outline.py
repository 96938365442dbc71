"""Table of contents and outline projections of the Section tree."""

from __future__ import annotations

from typing import Iterable

from mdtree.nodes import Node, Section
from mdtree.schemas import TocEntry


def build_toc(node: Node) -> list[TocEntry]:
    """Return the nested Section outline under ``node``.

    A Section node yields a single entry for itself. Any other node yields
    entries for the Sections among its children.
    """
    if isinstance(node, Section):
        return [_entry(node)]
    return [_entry(child) for child in node.children if isinstance(child, Section)]


def _entry(section: Section) -> TocEntry:
    return TocEntry(
        level=section.level,
        header_text=section.header_text,
        children=[_entry(child) for child in section.subsections],
    )


def count_sections(entries: Iterable[TocEntry]) -> int:
    """Count total sections in the outline."""
    total = 0
    for entry in entries:
        total += 1
        total += count_sections(entry.children)
    return total


def format_toc(entries: list[TocEntry], indent: int = 0) -> str:
    """Render entries as a nested Markdown bullet list."""
    lines: list[str] = []
    for entry in entries:
        prefix = "  " * indent + "- "
        lines.append(prefix + entry.header_text)
        if entry.children:
            lines.append(format_toc(entry.children, indent + 1))
    return "\n".join(lines)


def format_outline(entries: list[TocEntry], indent: int = 0) -> str:
    """Render entries as an indented tree of ``#``-prefixed titles."""
    lines: list[str] = []
    for entry in entries:
        lines.append(" " * (indent * 4) + f"{'#' * entry.level} {entry.header_text}".rstrip())
        if entry.children:
            lines.append(format_outline(entry.children, indent + 1))
    return "\n".join(lines)
