"""Stable node references exposing queries and mutations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mdtree import mutations
from mdtree.exceptions import StaleHandleError
from mdtree.nodes import Block, Document, Node, Section, TaskItem

if TYPE_CHECKING:
    from mdtree.schemas import TocEntry


class NodeHandle:
    """Reference to a node of a Document.

    A handle stays valid while its node is part of the document's arena.
    Once the node (or an ancestor) is removed or replaced, every operation on
    the handle raises StaleHandleError.
    """

    __slots__ = ("_document", "_node")

    def __init__(self, document: Document, node: Node) -> None:
        self._document = document
        self._node = node

    def __repr__(self) -> str:
        state = "" if self.is_valid else " stale"
        return f"<NodeHandle {self._node.type_name} #{self._node.node_id}{state}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodeHandle):
            return NotImplemented
        return self._document is other._document and self._node is other._node

    def __hash__(self) -> int:
        return hash((id(self._document), id(self._node)))

    @property
    def is_valid(self) -> bool:
        return self._document.is_live(self._node)

    @property
    def node(self) -> Node:
        """The underlying node; raises StaleHandleError once it is removed."""
        if not self._document.is_live(self._node):
            raise StaleHandleError(
                f"Handle to {self._node.type_name} node #{self._node.node_id} is stale; "
                "the node was removed from the document"
            )
        return self._node

    @property
    def document(self) -> Document:
        return self._document

    def _wrap(self, node: Node) -> NodeHandle:
        return NodeHandle(self._document, node)

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def kind(self) -> str:
        return self.node.kind.value

    @property
    def type(self) -> str:
        return self.node.type_name

    @property
    def level(self) -> int | None:
        node = self.node
        if isinstance(node, (Section, Block)):
            return node.level
        return None

    @property
    def header_text(self) -> str | None:
        node = self.node
        if isinstance(node, (Section, Block)):
            return node.header_text
        return None

    @property
    def text(self) -> str:
        return self.node.text

    @property
    def status(self) -> str | None:
        node = self.node
        return node.status if isinstance(node, TaskItem) else None

    @property
    def attributes(self) -> dict[str, Any]:
        return self.node.attributes()

    def render(self) -> str:
        from mdtree.serializer import render

        return render(self.node)

    def toc(self) -> list[TocEntry]:
        from mdtree.outline import build_toc

        return build_toc(self.node)

    def children(self) -> list[NodeHandle]:
        return [self._wrap(child) for child in self.node.children]

    def parent(self) -> NodeHandle | None:
        parent = self.node.parent
        return self._wrap(parent) if parent is not None else None

    def select(self, selector: str) -> NodeHandle | None:
        """First node under this one matching ``selector``, or None."""
        from mdtree.query import select

        match = select(self.node, selector)
        return self._wrap(match) if match is not None else None

    def select_all(self, selector: str) -> list[NodeHandle]:
        """Every node under this one matching ``selector``, in document order."""
        from mdtree.query import select_all

        return [self._wrap(match) for match in select_all(self.node, selector)]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def update_header(self, text: str) -> NodeHandle:
        mutations.update_header(self.node, text)
        return self

    def update_content(self, markdown: str) -> NodeHandle:
        mutations.update_content(self.node, markdown)
        return self

    def update(self, *, header: str | None = None, content: str | None = None) -> NodeHandle:
        mutations.update(self.node, header=header, content=content)
        return self

    def insert_before(self, markdown: str) -> list[NodeHandle]:
        return [self._wrap(node) for node in mutations.insert(self.node, markdown, "before")]

    def insert_after(self, markdown: str) -> list[NodeHandle]:
        return [self._wrap(node) for node in mutations.insert(self.node, markdown, "after")]

    def append(self, markdown: str) -> list[NodeHandle]:
        return [self._wrap(node) for node in mutations.insert(self.node, markdown, "last-child")]

    def prepend(self, markdown: str) -> list[NodeHandle]:
        return [self._wrap(node) for node in mutations.insert(self.node, markdown, "first-child")]

    def replace(self, markdown: str) -> list[NodeHandle]:
        """Replace this node; the handle is stale afterwards."""
        return [self._wrap(node) for node in mutations.replace(self.node, markdown)]

    def remove(self) -> None:
        """Remove this node; the handle is stale afterwards."""
        mutations.remove(self.node)

    def move(self, delta: int) -> int:
        return mutations.move(self.node, delta)

    def set_status(self, status: str) -> NodeHandle:
        mutations.set_status(self.node, status)
        return self
