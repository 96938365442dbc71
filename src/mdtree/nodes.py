"""Tree node models for parsed Markdown documents.

Every character of the parsed source is owned by exactly one node field:
either a node's ``raw`` text or one of the two emitted style fields
(``Style.spacing_before`` and ``Style.indent``), plus the document's
``trailing_newline``. Concatenating ``spacing_before + indent + raw`` for
every node in pre-order, followed by ``trailing_newline``, reproduces the
source.

Inline spans are a projection over a header or block's text and never own
source characters of their own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Iterator

if TYPE_CHECKING:
    from mdtree.handles import NodeHandle
    from mdtree.schemas import TocEntry


class NodeKind(str, Enum):
    """Node discriminant."""

    DOCUMENT = "document"
    SECTION = "section"
    BLOCK = "block"
    INLINE = "inline"


class BlockType(str, Enum):
    """Atomic content units."""

    PARAGRAPH = "paragraph"
    CODE_BLOCK = "code_block"
    LIST = "list"
    LIST_ITEM = "list_item"
    TASK_ITEM = "task_item"
    HEADING_BLOCK = "heading_block"
    BLOCK_QUOTE = "block_quote"
    TABLE = "table"
    THEMATIC_BREAK = "thematic_break"
    HTML_BLOCK = "html_block"
    LINK_DEFINITION = "link_definition"


class InlineType(str, Enum):
    """Text-level spans."""

    TEXT = "text"
    STRONG = "strong"
    EMPHASIS = "emphasis"
    CODE = "code"
    LINK = "link"
    IMAGE = "image"
    HARD_BREAK = "hard_break"
    SOFT_BREAK = "soft_break"
    RAW_HTML = "raw_html"


@dataclass
class Style:
    """Presentation data preserved for lossless serialization.

    Attributes:
        spacing_before: Blank lines owned by the node, immediately preceding it.
        bullet: List marker as written (``-``, ``*``, ``1.``).
        fence: Code fence as written (````` ``` ````` or ``~~~~``).
        heading: Header prefix as written (``##``, ``h2.``) or Setext underline.
        indent: Leading whitespace of the opening line, including any
            container prefix such as ``"> "``.
    """

    spacing_before: str = ""
    bullet: str | None = None
    fence: str | None = None
    heading: str | None = None
    indent: str = ""


@dataclass(eq=False)
class Node:
    """Base tree node.

    Nodes compare by identity so they can be located in ``children`` lists.
    """

    kind: ClassVar[NodeKind]

    raw: str = ""
    start: int | None = None
    end: int | None = None
    style: Style = field(default_factory=Style)
    parent: Node | None = field(default=None, repr=False)
    children: list[Node] = field(default_factory=list, repr=False)
    node_id: int = field(default=-1, repr=False)

    @property
    def type_name(self) -> str:
        return self.kind.value

    @property
    def text(self) -> str:
        """Plain-text projection of the node."""
        return self.raw.strip()

    def attributes(self) -> dict[str, Any]:
        """Attributes visible to selector filters."""
        return {"type": self.type_name, "text": self.text}

    def iter_nodes(self, include_self: bool = True) -> Iterator[Node]:
        """Iterate over the subtree in pre-order (document order)."""
        stack: list[Node] = [self] if include_self else list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    @property
    def document(self) -> Document | None:
        """Owning document, or None once the node is detached."""
        node: Node | None = self
        while node is not None:
            if isinstance(node, Document):
                return node
            node = node.parent
        return None

    def index_in_parent(self) -> int | None:
        if self.parent is None:
            return None
        return self.parent.children.index(self)

    def next_sibling(self) -> Node | None:
        index = self.index_in_parent()
        if index is None or index + 1 >= len(self.parent.children):  # type: ignore[union-attr]
            return None
        return self.parent.children[index + 1]  # type: ignore[union-attr]

    def previous_sibling(self) -> Node | None:
        index = self.index_in_parent()
        if not index:
            return None
        return self.parent.children[index - 1]  # type: ignore[union-attr]


@dataclass(eq=False)
class Inline(Node):
    """A text-level span inside a header or block."""

    kind: ClassVar[NodeKind] = NodeKind.INLINE

    inline_type: InlineType = InlineType.TEXT
    value: str = ""
    href: str | None = None
    alt: str | None = None
    title: str | None = None

    @property
    def type_name(self) -> str:
        return self.inline_type.value

    @property
    def text(self) -> str:
        from mdtree.inline import plain_text

        return plain_text([self])


@dataclass(eq=False)
class Section(Node):
    """A structural scope opened by a document-level header.

    ``raw`` holds the header line only (both lines for Setext headers); all
    content lives in ``children``: the section's Blocks first, then its
    sub-Sections.
    """

    kind: ClassVar[NodeKind] = NodeKind.SECTION

    level: int = 1
    header_source: str = ""
    setext: bool = False
    eol: str = "\n"
    touched: bool = False
    _header: list[Inline] | None = field(default=None, repr=False)
    _header_text: str | None = field(default=None, repr=False)

    @property
    def header(self) -> list[Inline]:
        """Inline spans of the header line."""
        if self._header is None:
            from mdtree.inline import parse_inlines

            self._header = parse_inlines(self.header_source)
        return self._header

    @property
    def header_text(self) -> str:
        """Cached plain-text projection of the header, used for matching."""
        if self._header_text is None:
            from mdtree.inline import plain_text

            self._header_text = plain_text(self.header).strip()
        return self._header_text

    def set_header(self, source: str) -> None:
        """Replace the header markup and invalidate the cached projections."""
        self.header_source = source
        self._header = None
        self._header_text = None
        self.touched = True

    @property
    def text(self) -> str:
        return self.header_text

    def attributes(self) -> dict[str, Any]:
        attrs = super().attributes()
        attrs["level"] = self.level
        attrs["heading"] = self.style.heading
        return attrs

    @property
    def blocks(self) -> list[Block]:
        return [child for child in self.children if isinstance(child, Block)]

    @property
    def subsections(self) -> list[Section]:
        return [child for child in self.children if isinstance(child, Section)]


@dataclass(eq=False)
class Block(Node):
    """An atomic, non-structural content unit.

    Attributes:
        block_type: Which kind of block this is.
        content: The block's own text with container prefixes removed, used
            as the source for inline spans.
        lang: Info-string language of a fenced code block.
        level: Level of a heading block.
        ordered: Whether a list (item) is ordered.
        meta: Per-type extras (code body, link definition parts, list numbers).
    """

    kind: ClassVar[NodeKind] = NodeKind.BLOCK

    block_type: BlockType = BlockType.PARAGRAPH
    content: str | None = None
    lang: str | None = None
    level: int | None = None
    ordered: bool | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    setext: bool = False
    eol: str = "\n"
    touched: bool = False
    _inlines: list[Inline] | None = field(default=None, repr=False)

    @property
    def type_name(self) -> str:
        return self.block_type.value

    @property
    def inlines(self) -> list[Inline]:
        """Inline spans of paragraph-like content; empty for other blocks."""
        if self._inlines is None:
            from mdtree.inline import parse_inlines

            self._inlines = parse_inlines(self.content) if self.content is not None else []
        return self._inlines

    @property
    def header_text(self) -> str | None:
        if self.block_type is not BlockType.HEADING_BLOCK:
            return None
        from mdtree.inline import plain_text

        return plain_text(self.inlines).strip()

    @property
    def text(self) -> str:
        if self.block_type is BlockType.HEADING_BLOCK:
            return self.header_text or ""
        if self.block_type is BlockType.CODE_BLOCK:
            return self.meta.get("code", "")
        if self.block_type is BlockType.HTML_BLOCK:
            from mdtree.html_utils import html_to_text

            return html_to_text(self.content or "")
        if self.block_type is BlockType.LINK_DEFINITION:
            return self.meta.get("label", "")
        if self.block_type is BlockType.THEMATIC_BREAK:
            return ""
        if self.block_type in (BlockType.LIST, BlockType.BLOCK_QUOTE) or self.content is None:
            if not self.children:
                return ""
            return "\n".join(child.text for child in self.children if child.text)
        from mdtree.inline import plain_text

        return plain_text(self.inlines).strip()

    def attributes(self) -> dict[str, Any]:
        attrs = super().attributes()
        attrs.update(
            {
                "lang": self.lang,
                "level": self.level,
                "ordered": self.ordered,
                "bullet": self.style.bullet,
                "fence": self.style.fence,
            }
        )
        for key, value in self.meta.items():
            if key != "code":
                attrs[key] = value
        return attrs


@dataclass(eq=False)
class ListItem(Block):
    """One item of a List; its own ``raw`` is the marker line and paragraph."""

    block_type: BlockType = BlockType.LIST_ITEM


@dataclass(eq=False)
class TaskItem(ListItem):
    """A list item carrying a bracket status marker such as ``[ ]`` or ``[x]``.

    ``status`` is a single character; the empty string means open.
    """

    block_type: BlockType = BlockType.TASK_ITEM
    status: str = ""
    raw_marker: str = "[ ]"
    marker_offset: int = 0

    def set_status(self, status: str) -> None:
        """Rewrite the bracket marker in place; other bytes are untouched."""
        marker = f"[{status or ' '}]"
        offset = self.marker_offset
        self.raw = self.raw[:offset] + marker + self.raw[offset + len(self.raw_marker) :]
        self.raw_marker = marker
        self.status = "" if status in ("", " ") else status

    @property
    def is_open(self) -> bool:
        return self.status == ""

    def attributes(self) -> dict[str, Any]:
        attrs = super().attributes()
        attrs["status"] = self.status
        attrs["marker"] = self.raw_marker
        attrs["done"] = not self.is_open
        return attrs


@dataclass(eq=False)
class Document(Node):
    """Root of a parsed Markdown tree.

    Attributes:
        header_format: ``hash`` or ``dot``; used when re-deriving touched headers.
        heading_style: ``hash`` or ``setext``, detected at parse time.
        strict: Whether mixed header notations are rejected.
        trailing_newline: Blank text after the last child.
    """

    kind: ClassVar[NodeKind] = NodeKind.DOCUMENT

    header_format: str = "hash"
    heading_style: str = "hash"
    strict: bool = True
    trailing_newline: str = ""
    _nodes: dict[int, Node] = field(default_factory=dict, repr=False)
    _next_id: int = field(default=0, repr=False)

    @property
    def text(self) -> str:
        return ""

    # -------------------------------------------------------------------------
    # Node arena
    # -------------------------------------------------------------------------

    def register(self, node: Node) -> None:
        """Give every node of a subtree an id in this document's arena."""
        for item in node.iter_nodes():
            item.node_id = self._next_id
            self._nodes[self._next_id] = item
            self._next_id += 1

    def unregister(self, node: Node) -> None:
        """Drop a subtree from the arena, invalidating handles to it."""
        for item in node.iter_nodes():
            if self._nodes.get(item.node_id) is item:
                del self._nodes[item.node_id]

    def is_live(self, node: Node) -> bool:
        return self._nodes.get(node.node_id) is node

    # -------------------------------------------------------------------------
    # Convenience entry points
    # -------------------------------------------------------------------------

    @property
    def root(self) -> NodeHandle:
        from mdtree.handles import NodeHandle

        return NodeHandle(self, self)

    def select(self, selector: str) -> NodeHandle | None:
        return self.root.select(selector)

    def select_all(self, selector: str) -> list[NodeHandle]:
        return self.root.select_all(selector)

    def toc(self) -> list[TocEntry]:
        from mdtree.outline import build_toc

        return build_toc(self)

    def render(self) -> str:
        from mdtree.serializer import render

        return render(self)

    @property
    def sections(self) -> list[Section]:
        return [node for node in self.iter_nodes() if isinstance(node, Section)]
