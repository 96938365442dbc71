"""Serialize a Document tree (or a subtree) back to Markdown."""

from __future__ import annotations

from mdtree.nodes import Block, BlockType, Document, ListItem, Node, Section


def render(node: Node) -> str:
    """Render a node and its subtree.

    A Document renders in full, including its trailing blank text. Any other
    node renders without its own leading spacing.
    """
    writer = _Writer()
    document = node.document
    if isinstance(node, Document):
        for child in node.children:
            _emit(child, writer, document)
        writer.start_node()
        writer.write(node.trailing_newline)
    else:
        _emit(node, writer, document, include_spacing=False)
    return writer.getvalue()


def header_line(node: Section | Block, document: Document | None) -> str:
    """Re-derive a header line from the document's current header format."""
    fmt = document.header_format if document is not None else "hash"
    if isinstance(node, Section):
        text = node.header_source
    else:
        text = node.content or ""
    level = node.level or 1
    eol = node.eol

    if (
        fmt == "hash"
        and node.setext
        and level <= 2
        and document is not None
        and document.heading_style == "setext"
    ):
        char = "=" if level == 1 else "-"
        underline = node.style.heading or ""
        if not underline or set(underline) != {char}:
            underline = char * max(3, len(text))
        first_eol = eol or "\n"
        return f"{text}{first_eol}{underline}{eol}"

    prefix = "#" * level if fmt == "hash" else f"h{level}."
    line = f"{prefix} {text}" if text else prefix
    return f"{line}{eol}"


def _is_touched_header(node: Node) -> bool:
    if isinstance(node, Section):
        return node.touched
    return isinstance(node, Block) and node.block_type is BlockType.HEADING_BLOCK and node.touched


def _emit(node: Node, writer: _Writer, document: Document | None, *, include_spacing: bool = True) -> None:
    stack: list[tuple[Node, bool, bool]] = [(node, include_spacing, False)]
    while stack:
        current, spacing, glued = stack.pop()
        writer.start_node(glued=glued)
        if spacing:
            writer.write(current.style.spacing_before)
        writer.write(current.style.indent)
        if _is_touched_header(current):
            writer.write(header_line(current, document))  # type: ignore[arg-type]
        else:
            writer.write(current.raw)
        # a list item's first child continues the marker line; so does the
        # first child of an empty container glued there
        glue_first = isinstance(current, ListItem) or (glued and not current.raw and not current.style.indent)
        for index in range(len(current.children) - 1, -1, -1):
            stack.append((current.children[index], True, index == 0 and glue_first))


class _Writer:
    """Collects output pieces, keeping node boundaries on line starts.

    Untouched source never needs a break inserted: the only unterminated
    raw text in a parsed tree is the final line, or a list marker followed
    by a block on the same line. Mutations can move an unterminated line
    away from the end; a line break is then added at the next node boundary.
    """

    def __init__(self) -> None:
        self.parts: list[str] = []
        self.at_line_start = True
        self._boundary = False

    def start_node(self, *, glued: bool = False) -> None:
        self._boundary = not glued

    def write(self, piece: str) -> None:
        if not piece:
            return
        if self._boundary and not self.at_line_start:
            self.parts.append("\n")
        self._boundary = False
        self.parts.append(piece)
        self.at_line_start = piece.endswith("\n")

    def getvalue(self) -> str:
        return "".join(self.parts)
