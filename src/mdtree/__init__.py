"""mdtree: parse Markdown into a header-owned section tree, query and edit it."""

from mdtree.batch import apply_edits
from mdtree.builder import parse
from mdtree.exceptions import (
    FragmentParseError,
    HeaderFormatMismatchError,
    InvalidOperationError,
    MdTreeError,
    SelectorSyntaxError,
    StaleHandleError,
    TargetNotFoundError,
)
from mdtree.handles import NodeHandle
from mdtree.nodes import (
    Block,
    BlockType,
    Document,
    Inline,
    InlineType,
    ListItem,
    Node,
    NodeKind,
    Section,
    Style,
    TaskItem,
)
from mdtree.normalize import convert_header_format
from mdtree.outline import build_toc, format_outline, format_toc
from mdtree.schemas import BatchResult, EditOperation, EditOutcome, TocEntry
from mdtree.selector import compile_selector
from mdtree.serializer import render

__all__ = [
    "BatchResult",
    "Block",
    "BlockType",
    "Document",
    "EditOperation",
    "EditOutcome",
    "FragmentParseError",
    "HeaderFormatMismatchError",
    "Inline",
    "InlineType",
    "InvalidOperationError",
    "ListItem",
    "MdTreeError",
    "Node",
    "NodeHandle",
    "NodeKind",
    "Section",
    "SelectorSyntaxError",
    "StaleHandleError",
    "Style",
    "TargetNotFoundError",
    "TaskItem",
    "TocEntry",
    "apply_edits",
    "build_toc",
    "compile_selector",
    "convert_header_format",
    "format_outline",
    "format_toc",
    "parse",
    "render",
]
