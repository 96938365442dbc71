"""Tree mutation engine.

Operations parse their Markdown fragment and validate the proposed child
list before anything is modified; a failing operation leaves the tree as it
was. Nodes created by an operation have no source range and every inserted
Section is marked touched, so its header line is re-derived in the
document's header format.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from mdtree.builder import parse
from mdtree.exceptions import FragmentParseError, InvalidOperationError, MdTreeError, StaleHandleError
from mdtree.nodes import Block, BlockType, Document, ListItem, Node, Section, TaskItem

logger = logging.getLogger(__name__)

MAX_LEVEL = 6
POSITIONS = ("before", "after", "first-child", "last-child")


@dataclass
class _Splice:
    """A validated change to one parent's children, applied by ``commit``."""

    parent: Node
    children: list[Node]
    inserted: list[Node] = field(default_factory=list)
    removed: list[Node] = field(default_factory=list)
    spacing: list[tuple[Node, str]] = field(default_factory=list)
    indents: list[tuple[Node, str]] = field(default_factory=list)

    def commit(self, document: Document) -> None:
        for node, spacing in self.spacing:
            node.style.spacing_before = spacing
        for node, indent in self.indents:
            node.style.indent = indent
        self.parent.children = self.children
        for node in self.removed:
            document.unregister(node)
            node.parent = None
        for node in self.inserted:
            node.parent = self.parent
            for item in node.iter_nodes():
                item.start = None
                item.end = None
            document.register(node)


# -----------------------------------------------------------------------------
# Fragments
# -----------------------------------------------------------------------------


def parse_fragment(document: Document, markdown: str) -> list[Node]:
    """Parse ``markdown`` as a standalone document and return its top-level nodes.

    The fragment is parsed with the target document's strictness. Its
    trailing blank lines are dropped.

    Raises:
        FragmentParseError: If the fragment is not a string or fails to parse.
    """
    if not isinstance(markdown, str):
        raise FragmentParseError(f"Fragment must be a string, got {type(markdown).__name__}")
    source = markdown if not markdown or markdown.endswith("\n") else markdown + "\n"
    try:
        fragment = parse(source, header_format=document.header_format, strict=document.strict)
    except MdTreeError as exc:
        raise FragmentParseError(f"Could not parse fragment: {exc}") from exc

    nodes = list(fragment.children)
    for node in nodes:
        node.parent = None
        for item in node.iter_nodes():
            if isinstance(item, Section):
                item.touched = True
    return nodes


def _relevel(nodes: list[Node], level: int) -> None:
    """Shift fragment Sections so the shallowest one sits at ``level``."""
    tops = [node for node in nodes if isinstance(node, Section)]
    if not tops:
        return
    shift = level - min(section.level for section in tops)
    if shift == 0:
        return
    sections = [item for top in tops for item in top.iter_nodes() if isinstance(item, Section)]
    for section in sections:
        if not 1 <= section.level + shift <= MAX_LEVEL:
            raise InvalidOperationError(
                f"Inserted section {section.header_text!r} would need level "
                f"{section.level + shift}; levels must be between 1 and {MAX_LEVEL}"
            )
    for section in sections:
        section.level += shift
        section.touched = True


def _unwrap_items(nodes: list[Node], prefix: str) -> list[Node]:
    """Return the items of a single-list fragment, re-indented with ``prefix``."""
    if len(nodes) != 1 or not _is_list(nodes[0]):
        raise InvalidOperationError("Only list items can be inserted into a list")
    items = list(nodes[0].children)
    items[0].style.spacing_before = nodes[0].style.spacing_before
    for item in items:
        item.parent = None
        _prefix_subtree(item, prefix)
    return items


def _prefix_subtree(node: Node, prefix: str) -> None:
    if not prefix:
        return
    blank_prefix = prefix.rstrip()

    def prefixed(line: str) -> str:
        return (prefix if line.strip() else blank_prefix) + line

    on_marker_line = _marker_line_nodes(node)
    for item in node.iter_nodes():
        # lists and quotes own no text; their children carry the full prefix
        if id(item) not in on_marker_line and not _is_container(item):
            item.style.indent = prefix + item.style.indent
        if item.style.spacing_before:
            item.style.spacing_before = "".join(
                prefixed(line) for line in item.style.spacing_before.splitlines(keepends=True)
            )
        lines = item.raw.splitlines(keepends=True)
        if len(lines) > 1:
            item.raw = lines[0] + "".join(prefixed(line) for line in lines[1:])


def _prefix_nodes(nodes: list[Node], prefix: str) -> None:
    for node in nodes:
        _prefix_subtree(node, prefix)


def _marker_line_nodes(node: Node) -> set[int]:
    """Ids of nodes that start on a list marker's line rather than their own."""
    found: set[int] = set()
    for item in node.iter_nodes():
        if not item.children:
            continue
        if isinstance(item, ListItem) and not item.raw.endswith("\n"):
            found.add(id(item.children[0]))
        elif id(item) in found and not item.raw and not item.style.indent:
            found.add(id(item.children[0]))
    return found


# -----------------------------------------------------------------------------
# Container prefixes
# -----------------------------------------------------------------------------
#
# Children of block quotes and list items carry the full line prefix of their
# container in ``style.indent``. The exception is a "glued" node: the first
# child of a list item whose marker line continues with a block (``- > q``),
# or the first child of an empty container glued there. Its indent is
# relative to the item's content column.

_MARKER_RE = re.compile(r"(\S+)([ \t]*)")


def _is_container(node: Node) -> bool:
    """Lists and block quotes: Blocks that hold children but no text of their own."""
    return isinstance(node, Block) and not isinstance(node, ListItem) and not node.raw and bool(node.children)


def _holds_blocks(node: Node) -> bool:
    return isinstance(node, ListItem) or (isinstance(node, Block) and node.block_type is BlockType.BLOCK_QUOTE)


def _is_glued(node: Node) -> bool:
    parent = node.parent
    if not isinstance(parent, Block) or not parent.children or parent.children[0] is not node:
        return False
    if isinstance(parent, ListItem):
        return not parent.raw.endswith("\n")
    return not parent.raw and not parent.style.indent and _is_glued(parent)


def _glue_chain(node: Node) -> list[Node]:
    """``node`` and the first children that share its line."""
    chain = [node]
    while _is_container(node):
        node = node.children[0]
        chain.append(node)
    return chain


def _glue_base(node: Node) -> str:
    """Content-column prefix of the list item a glued node sits on."""
    parent = node.parent
    while not isinstance(parent, ListItem):
        parent = parent.parent
    return _content_prefix(parent)


def _line_indent(node: Node) -> str:
    """Full line prefix of ``node``, glued or not."""
    base = _glue_base(node) if _is_glued(node) else ""
    return base + node.style.indent


def _content_prefix(container: Node) -> str:
    """Prefix that new lines inside a list item or block quote must carry."""
    base = _glue_base(container) if _is_glued(container) else ""
    if isinstance(container, ListItem):
        match = _MARKER_RE.match(container.raw)
        if match is None:
            return base + container.style.indent + "  "
        width = len(match.group(0)) if 1 <= len(match.group(2)) <= 4 else len(match.group(1)) + 1
        return base + container.style.indent + " " * width

    node, depth = container.children[0], 0
    while _is_container(node):
        if node.block_type is BlockType.BLOCK_QUOTE:
            depth += 1
        node = node.children[0]
    text = node.style.indent
    for _ in range(depth):
        text = text[: text.rfind(">")]
    cut = text.rfind(">")
    if cut == -1:
        return base + text + "> "
    return base + text[: cut + 1] + " "


def _glue(node: Node, base: str) -> None:
    """Make a fully prefixed node's indent relative to a marker line."""
    for item in _glue_chain(node):
        if not _is_container(item) and item.style.indent.startswith(base):
            item.style.indent = item.style.indent[len(base) :]


def _unglued(node: Node, base: str) -> list[tuple[Node, str]]:
    """Indents for a glued node moving onto a line of its own."""
    return [(item, base + item.style.indent) for item in _glue_chain(node) if not _is_container(item)]


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


def _is_list(node: Node | None) -> bool:
    return isinstance(node, Block) and node.block_type is BlockType.LIST


def _validate_children(parent: Node, children: list[Node]) -> None:
    """Check the ownership rules for a proposed child list."""
    if _is_list(parent):
        for child in children:
            if not isinstance(child, ListItem):
                raise InvalidOperationError("A list can only contain list items")
        return
    if isinstance(parent, Block):
        if not _holds_blocks(parent):
            raise InvalidOperationError(f"Cannot insert into a {parent.type_name} block")
        for child in children:
            if isinstance(child, Section):
                raise InvalidOperationError(f"Headers inside a {parent.type_name} cannot open sections")
            if isinstance(child, ListItem):
                raise InvalidOperationError("List items must be inserted next to list items or into a list")
        return

    seen_section = False
    for child in children:
        if isinstance(child, Section):
            seen_section = True
            if isinstance(parent, Section) and child.level <= parent.level:
                raise InvalidOperationError(
                    f"A level-{child.level} section cannot be nested under a level-{parent.level} section"
                )
        elif isinstance(child, ListItem):
            raise InvalidOperationError("List items must be inserted next to list items or into a list")
        elif seen_section:
            raise InvalidOperationError(
                "Blocks cannot follow a sub-section; they would belong to that sub-section"
            )


def _first_section_index(parent: Node) -> int:
    for index, child in enumerate(parent.children):
        if isinstance(child, Section):
            return index
    return len(parent.children)


def _list_gap(node: Node) -> str:
    """Blank text between items of a list (empty for tight lists)."""
    if len(node.children) > 1:
        return node.children[1].style.spacing_before
    return ""


def require_live(node: Node) -> Document:
    """Return the owning document of a live node.

    Raises:
        StaleHandleError: If the node has been removed from its document.
    """
    document = node.document
    if document is None or not document.is_live(node):
        raise StaleHandleError(f"{node.type_name} node is no longer part of a document")
    return document


def _require_section(node: Node, action: str) -> Section:
    if not isinstance(node, Section):
        raise InvalidOperationError(f"Cannot {action} a {node.type_name} node; only sections support it")
    return node


# -----------------------------------------------------------------------------
# Section edits
# -----------------------------------------------------------------------------


def _clean_header(text: str) -> str:
    if not isinstance(text, str):
        raise InvalidOperationError(f"Header text must be a string, got {type(text).__name__}")
    header = text.strip()
    if "\n" in header or "\r" in header:
        raise InvalidOperationError("Header text must be a single line")
    return header


def _content_splice(document: Document, section: Section, markdown: str) -> _Splice:
    nodes = parse_fragment(document, markdown)
    if any(isinstance(node, Section) for node in nodes):
        raise InvalidOperationError(
            "Section content cannot contain headers; append sub-sections instead"
        )
    old_blocks = section.blocks
    if nodes and not nodes[0].style.spacing_before:
        nodes[0].style.spacing_before = old_blocks[0].style.spacing_before if old_blocks else "\n"
    children = nodes + section.subsections
    _validate_children(section, children)
    return _Splice(section, children, inserted=nodes, removed=list(old_blocks))


def update_header(node: Node, text: str) -> None:
    """Replace a Section's header text, keeping its level and notation."""
    require_live(node)
    section = _require_section(node, "update the header of")
    section.set_header(_clean_header(text))
    logger.debug("Updated header of level-%d section to %r", section.level, section.header_source)


def update_content(node: Node, markdown: str) -> None:
    """Replace a Section's Blocks; sub-Sections are kept."""
    document = require_live(node)
    section = _require_section(node, "update the content of")
    splice = _content_splice(document, section, markdown)
    splice.commit(document)
    logger.debug("Replaced content of section %r with %d block(s)", section.header_text, len(splice.inserted))


def update(node: Node, *, header: str | None = None, content: str | None = None) -> None:
    """Update a Section's header and/or content as one step."""
    document = require_live(node)
    section = _require_section(node, "update")
    if header is None and content is None:
        raise InvalidOperationError("update requires a header, content, or both")
    new_header = _clean_header(header) if header is not None else None
    splice = _content_splice(document, section, content) if content is not None else None
    if new_header is not None:
        section.set_header(new_header)
    if splice is not None:
        splice.commit(document)
    logger.debug("Updated section %r", section.header_text)


# -----------------------------------------------------------------------------
# Structural edits
# -----------------------------------------------------------------------------


def insert(node: Node, markdown: str, position: str) -> list[Node]:
    """Parse ``markdown`` and splice it relative to ``node``.

    Args:
        node: Target node.
        markdown: Fragment to insert.
        position: ``before``/``after`` the target, or ``first-child``/``last-child``
            of it (Sections, the Document and Lists only).

    Returns:
        The inserted top-level nodes (empty for an empty fragment).

    Raises:
        FragmentParseError: If the fragment fails to parse.
        InvalidOperationError: If the result would break ownership rules.
    """
    if position not in POSITIONS:
        raise InvalidOperationError(f"Unknown insert position {position!r}")
    document = require_live(node)
    nodes = parse_fragment(document, markdown)
    if not nodes:
        return []
    if position in ("before", "after"):
        splice = _sibling_splice(node, nodes, position)
    else:
        splice = _child_splice(node, nodes, position)
    _validate_children(splice.parent, splice.children)
    splice.commit(document)
    logger.debug("Inserted %d node(s) %s %s", len(splice.inserted), position, node.type_name)
    return splice.inserted


def _sibling_splice(node: Node, nodes: list[Node], position: str) -> _Splice:
    parent = node.parent
    if parent is None:
        raise InvalidOperationError("Cannot insert next to the document root")
    if isinstance(node, ListItem):
        nodes = _unwrap_items(nodes, _line_indent(node))
        gap = _list_gap(parent)
    elif isinstance(parent, Block):
        if not _holds_blocks(parent):
            raise InvalidOperationError(f"Cannot insert into a {parent.type_name} block")
        prefix = _content_prefix(parent)
        _prefix_nodes(nodes, prefix)
        gap = prefix.rstrip() + "\n"
    else:
        if isinstance(node, Section):
            _relevel(nodes, node.level)
        gap = "\n"

    index = parent.children.index(node)
    splice = _Splice(parent, [], inserted=nodes)
    if position == "before":
        nodes[0].style.spacing_before = node.style.spacing_before
        splice.spacing.append((node, gap))
        if _is_glued(node):
            base = _glue_base(node)
            _glue(nodes[0], base)
            splice.indents.extend(_unglued(node, base))
        splice.children = parent.children[:index] + nodes + parent.children[index:]
    else:
        if not nodes[0].style.spacing_before or isinstance(node, ListItem):
            nodes[0].style.spacing_before = gap
        splice.children = parent.children[: index + 1] + nodes + parent.children[index + 1 :]
    return splice


def _child_splice(node: Node, nodes: list[Node], position: str) -> _Splice:
    existing = node.children
    if _is_list(node):
        indent = _line_indent(existing[0]) if existing else ""
        gap = _list_gap(node)
        items = _unwrap_items(nodes, indent)
        splice = _Splice(node, [], inserted=items)
        if position == "first-child":
            items[0].style.spacing_before = existing[0].style.spacing_before if existing else ""
            if existing:
                splice.spacing.append((existing[0], gap))
                if _is_glued(existing[0]):
                    base = _glue_base(existing[0])
                    _glue(items[0], base)
                    splice.indents.extend(_unglued(existing[0], base))
            splice.children = items + existing
        else:
            items[0].style.spacing_before = gap if existing else ""
            splice.children = existing + items
        return splice

    if not isinstance(node, (Section, Document)):
        raise InvalidOperationError(
            f"Cannot append to a {node.type_name} node; only sections, the document and lists accept children"
        )
    if isinstance(node, Section):
        _relevel(nodes, node.level + 1)

    blocks = [item for item in nodes if not isinstance(item, Section)]
    sections = [item for item in nodes if isinstance(item, Section)]
    split = _first_section_index(node)
    old_blocks, old_sections = existing[:split], existing[split:]
    if position == "first-child":
        groups = [blocks, old_blocks, sections, old_sections]
    else:
        groups = [old_blocks, blocks, old_sections, sections]
    children = [item for group in groups for item in group]

    splice = _Splice(node, children, inserted=nodes)
    for group in (blocks, sections):
        if group and not group[0].style.spacing_before:
            at_start = isinstance(node, Document) and children[0] is group[0]
            group[0].style.spacing_before = "" if at_start else "\n"
    if existing and children[0] is not existing[0] and not existing[0].style.spacing_before:
        splice.spacing.append((existing[0], "\n"))
    return splice


def replace(node: Node, markdown: str) -> list[Node]:
    """Replace ``node`` with the parsed fragment; an empty fragment removes it."""
    document = require_live(node)
    parent = node.parent
    if parent is None:
        raise InvalidOperationError("Cannot replace the document root")
    nodes = parse_fragment(document, markdown)
    if not nodes:
        remove(node)
        return []
    if isinstance(node, ListItem):
        nodes = _unwrap_items(nodes, _line_indent(node))
    elif isinstance(parent, Block):
        if not _holds_blocks(parent):
            raise InvalidOperationError(f"Cannot replace content inside a {parent.type_name} block")
        _prefix_nodes(nodes, _content_prefix(parent))
    elif isinstance(node, Section):
        _relevel(nodes, node.level)

    index = parent.children.index(node)
    nodes[0].style.spacing_before = node.style.spacing_before
    if _is_glued(node):
        _glue(nodes[0], _glue_base(node))
    children = parent.children[:index] + nodes + parent.children[index + 1 :]
    _validate_children(parent, children)
    _Splice(parent, children, inserted=nodes, removed=[node]).commit(document)
    logger.debug("Replaced %s with %d node(s)", node.type_name, len(nodes))
    return nodes


def remove(node: Node) -> None:
    """Detach ``node`` and its subtree, together with its leading spacing.

    When the first child of a parent is removed, the next sibling takes over
    its place: its spacing, and the marker line of a list item. A List or
    block quote left without children is removed as well.
    """
    document = require_live(node)
    parent = node.parent
    if parent is None:
        raise InvalidOperationError("Cannot remove the document root")
    if parent.children[0] is node and len(parent.children) > 1:
        successor = parent.children[1]
        if _is_glued(node):
            _glue(successor, _glue_base(node))
        successor.style.spacing_before = node.style.spacing_before
    parent.children.remove(node)
    document.unregister(node)
    node.parent = None
    logger.debug("Removed %s node", node.type_name)
    if isinstance(parent, Block) and not parent.children and not parent.raw:
        remove(parent)


def move(node: Node, delta: int) -> int:
    """Move ``node`` by ``delta`` positions among its siblings.

    Blocks move only among their parent's Blocks and Sections only among its
    Sections; the target index is clamped to that region. Spacing travels
    with the node, except that the parent's first child never owns a
    separator: a node leaving or taking index 0 swaps spacing with the
    displaced first child, and a list item's marker line stays with index 0.

    Returns:
        The node's index in its parent after the move.
    """
    require_live(node)
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidOperationError(f"Move delta must be an integer, got {delta!r}")
    parent = node.parent
    if parent is None:
        raise InvalidOperationError("Cannot move the document root")
    children = parent.children
    index = children.index(node)
    if delta == 0:
        return index

    low, high = 0, len(children)
    if isinstance(parent, (Section, Document)):
        split = _first_section_index(parent)
        low, high = (split, len(children)) if isinstance(node, Section) else (0, split)
    target = min(max(index + delta, low), high - 1)
    if target != index:
        first = children[0]
        base = _glue_base(first) if _is_glued(first) else None
        children.pop(index)
        children.insert(target, node)
        if children[0] is not first:
            _swap_first(first, children[0], base)
        logger.debug("Moved %s from index %d to %d", node.type_name, index, target)
    return target


def _swap_first(old: Node, new: Node, base: str | None) -> None:
    old.style.spacing_before, new.style.spacing_before = new.style.spacing_before, old.style.spacing_before
    if base is not None:
        for item, indent in _unglued(old, base):
            item.style.indent = indent
        _glue(new, base)


def set_status(node: Node, status: str) -> None:
    """Rewrite a TaskItem's status character; ``""`` or ``" "`` marks it open."""
    require_live(node)
    if not isinstance(node, TaskItem):
        raise InvalidOperationError(f"Cannot set the status of a {node.type_name} node; only task items have one")
    if not isinstance(status, str) or len(status) > 1 or status in ("]", "\n", "\r"):
        raise InvalidOperationError(f"Task status must be a single character, got {status!r}")
    node.set_status(status)
    logger.debug("Set task status to %r", node.raw_marker)
