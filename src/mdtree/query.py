"""Evaluate compiled selectors against a tree."""

from __future__ import annotations

from typing import Iterable

from mdtree.nodes import Node
from mdtree.selector import Combinator, Selector, compile_selector


def select_all(scope: Node, selector: str | Selector) -> list[Node]:
    """Return every node under ``scope`` matching ``selector``, in document order.

    The first segment searches the descendants of ``scope`` (never ``scope``
    itself). Each later segment collects candidates from the previous
    segment's matches through its combinator; ``:N`` picks the N-th node of a
    segment's deduplicated, document-ordered candidate set.
    """
    plan = compile_selector(selector) if isinstance(selector, str) else selector
    order = {id(node): position for position, node in enumerate(scope.iter_nodes())}

    current: list[Node] = [scope]
    for segment in plan.segments:
        seen: set[int] = set()
        matched: list[Node] = []
        for context in current:
            for candidate in _related(context, segment.combinator):
                if id(candidate) in seen:
                    continue
                seen.add(id(candidate))
                if segment.matches(candidate):
                    matched.append(candidate)
        matched.sort(key=lambda node: order.get(id(node), len(order)))
        if segment.index is not None:
            matched = matched[segment.index - 1 : segment.index]
        current = matched
        if not current:
            break
    return current


def select(scope: Node, selector: str | Selector) -> Node | None:
    """Return the first node under ``scope`` matching ``selector``, or None."""
    matches = select_all(scope, selector)
    return matches[0] if matches else None


def _related(node: Node, combinator: Combinator) -> Iterable[Node]:
    if combinator is Combinator.CHILD:
        return node.children
    if combinator is Combinator.ADJACENT:
        sibling = node.next_sibling()
        return [sibling] if sibling is not None else []
    return node.iter_nodes(include_self=False)
