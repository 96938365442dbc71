"""Build a Document tree from block tokens."""

from __future__ import annotations

import logging

from mdtree.config import MDTREE_HEADER_FORMAT, MDTREE_STRICT, check_header_format
from mdtree.nodes import Block, BlockType, Document, ListItem, Node, Section, Style, TaskItem
from mdtree.tokenizer import SECTION, BlockToken, BlockTokenizer

logger = logging.getLogger(__name__)


def parse(source: str, *, header_format: str | None = None, strict: bool | None = None) -> Document:
    """Parse Markdown source into a Document tree.

    Args:
        source: Markdown text.
        header_format: ``hash`` or ``dot``; format used when re-deriving
            touched headers. Defaults to the format detected in the source.
        strict: Reject documents mixing header notations. Defaults to the
            ``MDTREE_STRICT`` setting.

    Returns:
        The parsed Document.

    Raises:
        HeaderFormatMismatchError: If ``strict`` and the source mixes
            ``#`` and ``hN.`` headers.
    """
    if header_format is not None:
        check_header_format(header_format)
    strict = MDTREE_STRICT if strict is None else strict

    tokenizer = BlockTokenizer(strict=strict)
    tokens, trailing = tokenizer.tokenize(source)

    document = Document(
        header_format=header_format or tokenizer.header_format or MDTREE_HEADER_FORMAT,
        heading_style=tokenizer.heading_style or "hash",
        strict=strict,
        trailing_newline=trailing,
        start=0,
        end=len(source),
    )
    build_tree(document, tokens)
    document.register(document)
    logger.debug(
        "Parsed document: %d top-level nodes, %d sections",
        len(document.children),
        len(document.sections),
    )
    return document


def build_tree(document: Document, tokens: list[BlockToken]) -> None:
    """Attach tokens to ``document`` using the section-ownership rules.

    Headers close every open Section of the same or deeper level and open a
    new Section under the innermost remaining scope; other tokens attach to
    the innermost open Section, or to the Document before any header.
    """
    stack: list[Section] = []

    for token in tokens:
        if token.kind == SECTION:
            section = _make_section(token)
            while stack and stack[-1].level >= section.level:
                _close(stack.pop())
            _attach(stack[-1] if stack else document, section)
            stack.append(section)
            continue
        _attach(stack[-1] if stack else document, make_block(token))

    while stack:
        _close(stack.pop())


def _attach(parent: Node, child: Node) -> None:
    child.parent = parent
    parent.children.append(child)


def _close(section: Section) -> None:
    if section.children:
        section.end = max(section.end or 0, section.children[-1].end or 0)


def _make_section(token: BlockToken) -> Section:
    section = Section(
        raw=token.raw,
        start=token.start,
        end=token.end,
        style=Style(spacing_before=token.spacing, indent=token.indent, heading=token.heading),
        level=token.level or 1,
        header_source=token.content or "",
        setext=token.setext,
        eol=token.eol,
    )
    section.touched = token.normalized
    return section


def make_block(token: BlockToken) -> Block:
    """Convert a block token (and its child tokens) into a Block subtree."""
    block_type = BlockType(token.kind)
    style = Style(
        spacing_before=token.spacing,
        indent=token.indent,
        bullet=token.bullet,
        fence=token.fence,
        heading=token.heading if block_type is BlockType.HEADING_BLOCK else None,
    )
    common = {
        "raw": token.raw,
        "start": token.start,
        "end": token.end,
        "style": style,
        "content": token.content,
        "lang": token.lang,
        "level": token.level,
        "ordered": token.ordered,
        "setext": token.setext,
        "eol": token.eol,
        "touched": token.normalized,
    }
    meta = dict(token.meta)
    if block_type is BlockType.TASK_ITEM:
        block: Block = TaskItem(
            **common,
            status=meta.pop("status"),
            raw_marker=meta.pop("raw_marker"),
            marker_offset=meta.pop("marker_offset"),
            meta=meta,
        )
    elif block_type is BlockType.LIST_ITEM:
        block = ListItem(**common, meta=meta)
    else:
        block = Block(**common, block_type=block_type, meta=meta)

    for child_token in token.children:
        _attach(block, make_block(child_token))
    return block
