"""Header-format conversion and the ``normalize`` style policy."""

from __future__ import annotations

import logging

from mdtree.builder import parse
from mdtree.config import check_header_format
from mdtree.nodes import Block, BlockType, Document, Section
from mdtree.serializer import render

logger = logging.getLogger(__name__)


def convert_header_format(source: str, to: str) -> str:
    """Rewrite every header of ``source`` in the ``to`` notation.

    Mixed notations are accepted. Setext headers become ATX headers. All
    other text is kept as written.

    Args:
        source: Markdown text.
        to: Target header format, ``hash`` or ``dot``.

    Returns:
        The converted Markdown.

    Raises:
        ValueError: If ``to`` is not a supported header format.
    """
    check_header_format(to)
    document = parse(source, header_format=to, strict=False)
    document.heading_style = "hash"
    touched = touch_headers(document)
    logger.debug("Converted %d header(s) to %s format", touched, to)
    return render(document)


def touch_headers(document: Document) -> int:
    """Mark every Section and heading block for re-derivation; return the count."""
    count = 0
    for node in document.iter_nodes():
        if isinstance(node, Section) or (
            isinstance(node, Block) and node.block_type is BlockType.HEADING_BLOCK
        ):
            node.touched = True
            count += 1
    return count


def collapse_spacing(document: Document) -> int:
    """Reduce runs of several plain blank lines to a single blank line.

    Blank lines carrying a container prefix (``>``) are left alone.
    Returns the number of nodes whose spacing changed.
    """
    count = 0
    for node in document.iter_nodes(include_self=False):
        spacing = node.style.spacing_before
        lines = spacing.splitlines(keepends=True)
        if len(lines) < 2 or any(line.strip() for line in lines):
            continue
        eol = "\r\n" if lines[0].endswith("\r\n") else "\n"
        node.style.spacing_before = eol
        count += 1
    return count


def normalize_tree(document: Document) -> None:
    """Apply the ``normalize`` style policy in place."""
    headers = touch_headers(document)
    collapsed = collapse_spacing(document)
    logger.debug("Normalized %d header(s) and %d spacing run(s)", headers, collapsed)
