"""Compile selector strings into query plans.

Grammar, highest to lowest binding::

    attribute filter   [attr]  [attr=value]  [attr!="v"]  [attr^="v"]  [attr$="v"]  [attr*="v"]
    element token      p  code  list  ul  ol  li  list-item  task-item  heading ...  optionally :N
    section selector   ##  ##[Exact Header Text]  ##Intro                          optionally :N
    combinators        A > B (child)   A + B (adjacent sibling)   A B (descendant)

Section text matching is exact and case-sensitive. A short section name
that is also an element keyword (``##code``) is rejected as ambiguous; use
the bracketed form (``##[code]``) instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any

from mdtree.exceptions import SelectorSyntaxError
from mdtree.nodes import Node, Section

# Element keywords and the node types they match. ``ul`` and ``ol`` are
# plain aliases of ``list`` and match either kind; filter with
# ``[ordered=true]`` or ``[ordered=false]`` to tell them apart.
ELEMENT_TYPES: dict[str, frozenset[str]] = {
    "p": frozenset({"paragraph"}),
    "paragraph": frozenset({"paragraph"}),
    "code": frozenset({"code_block"}),
    "list": frozenset({"list"}),
    "ul": frozenset({"list"}),
    "ol": frozenset({"list"}),
    "li": frozenset({"list_item", "task_item"}),
    "list-item": frozenset({"list_item"}),
    "task-item": frozenset({"task_item"}),
    "task": frozenset({"task_item"}),
    "heading": frozenset({"heading_block"}),
    "blockquote": frozenset({"block_quote"}),
    "quote": frozenset({"block_quote"}),
    "table": frozenset({"table"}),
    "hr": frozenset({"thematic_break"}),
    "html": frozenset({"html_block"}),
    "linkdef": frozenset({"link_definition"}),
    "section": frozenset({"section"}),
}

_OPERATORS = ("!=", "^=", "$=", "*=", "=")
_SECTION_NAME_RE = re.compile(r"[A-Za-z0-9_-]+")
_KEYWORD_RE = re.compile(r"[A-Za-z][A-Za-z0-9-]*")
_ATTR_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*")
_BARE_VALUE_RE = re.compile(r"[^\]\s]+")
_DIGITS_RE = re.compile(r"\d+")


class Combinator(str, Enum):
    """How a segment relates to the previous segment's matches."""

    DESCENDANT = " "
    CHILD = ">"
    ADJACENT = "+"


@dataclass(frozen=True)
class AttributeFilter:
    """``[name]`` or ``[name op value]``."""

    name: str
    op: str | None = None
    value: str | None = None

    def matches(self, attributes: dict[str, Any]) -> bool:
        actual = attributes.get(self.name)
        if self.op is None:
            return actual is not None
        if actual is None:
            return self.op == "!="
        text = _stringify(actual)
        expected = self.value or ""
        if self.op == "=":
            return text == expected
        if self.op == "!=":
            return text != expected
        if self.op == "^=":
            return text.startswith(expected)
        if self.op == "$=":
            return text.endswith(expected)
        return expected in text


@dataclass(frozen=True)
class Segment:
    """One compound selector between combinators.

    Attributes:
        combinator: Relation to the previous segment (descendant for the first).
        types: Accepted node type names, or None for any node.
        level: Required Section level.
        section_text: Required exact Section header text.
        filters: Attribute filters, all of which must match.
        index: 1-based position within this segment's result set.
    """

    combinator: Combinator
    types: frozenset[str] | None = None
    level: int | None = None
    section_text: str | None = None
    filters: tuple[AttributeFilter, ...] = ()
    index: int | None = None

    def matches(self, node: Node) -> bool:
        if self.types is not None and node.type_name not in self.types:
            return False
        if self.level is not None and not (isinstance(node, Section) and node.level == self.level):
            return False
        if self.section_text is not None and not (
            isinstance(node, Section) and node.header_text == self.section_text
        ):
            return False
        if self.filters:
            attributes = node.attributes()
            return all(item.matches(attributes) for item in self.filters)
        return True


@dataclass(frozen=True)
class Selector:
    """A compiled selector: segments evaluated left to right."""

    source: str
    segments: tuple[Segment, ...]


@lru_cache(maxsize=256)
def compile_selector(source: str) -> Selector:
    """Compile a selector string.

    Raises:
        SelectorSyntaxError: For malformed selectors, unknown element tokens
            and any pseudo-selector syntax.
    """
    return _SelectorParser(source).parse()


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    return str(value)


class _SelectorParser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.pos = 0

    def error(self, message: str) -> SelectorSyntaxError:
        return SelectorSyntaxError(message, self.source, self.pos)

    def parse(self) -> Selector:
        if not self.source.strip():
            raise self.error("Empty selector")
        segments: list[Segment] = []
        combinator = Combinator.DESCENDANT
        self._skip_ws()
        while True:
            segments.append(self._segment(combinator))
            had_space = self._skip_ws()
            if self.pos >= len(self.source):
                break
            ch = self.source[self.pos]
            if ch in ">+":
                combinator = Combinator(ch)
                self.pos += 1
                self._skip_ws()
                if self.pos >= len(self.source):
                    raise self.error(f"Selector ends with dangling combinator {ch!r}")
            elif had_space:
                combinator = Combinator.DESCENDANT
            else:
                raise self._unexpected()
        return Selector(source=self.source, segments=tuple(segments))

    def _skip_ws(self) -> bool:
        start = self.pos
        while self.pos < len(self.source) and self.source[self.pos].isspace():
            self.pos += 1
        return self.pos > start

    def _unexpected(self) -> SelectorSyntaxError:
        ch = self.source[self.pos]
        if ch == "(" or ch == ")":
            return self.error("Functional pseudo-selectors are not supported")
        if ch == ":":
            return self.error("Pseudo-selectors are not supported; only :N indexes are allowed")
        return self.error(f"Unexpected character {ch!r}")

    def _segment(self, combinator: Combinator) -> Segment:
        source = self.source
        if self.pos >= len(source):
            raise self.error("Expected a selector segment")
        ch = source[self.pos]
        types: frozenset[str] | None = None
        level: int | None = None
        section_text: str | None = None

        if ch == "#":
            start = self.pos
            while self.pos < len(source) and source[self.pos] == "#":
                self.pos += 1
            level = self.pos - start
            if level > 6:
                self.pos = start
                raise self.error("Section selectors support at most six '#' characters")
            types = ELEMENT_TYPES["section"]
            if self.pos < len(source) and source[self.pos] == "[":
                section_text = self._bracket_text()
            else:
                match = _SECTION_NAME_RE.match(source, self.pos)
                if match:
                    name = match.group(0)
                    if name.lower() in ELEMENT_TYPES:
                        raise self.error(
                            f"Ambiguous section name {name!r}: it is also an element type; "
                            f"write #[{name}] to match a section header"
                        )
                    section_text = name
                    self.pos = match.end()
        elif ch == "*":
            self.pos += 1
        elif ch == "[":
            pass
        else:
            match = _KEYWORD_RE.match(source, self.pos)
            if not match:
                raise self._unexpected() if ch in "():" else self.error(f"Expected a selector segment, found {ch!r}")
            word = match.group(0).lower()
            if word not in ELEMENT_TYPES:
                raise self.error(f"Unknown element type {match.group(0)!r}")
            types = ELEMENT_TYPES[word]
            self.pos = match.end()

        filters: list[AttributeFilter] = []
        while self.pos < len(source) and source[self.pos] == "[":
            filters.append(self._attribute())

        index: int | None = None
        if self.pos < len(source) and source[self.pos] == ":":
            index = self._index()

        if ch == "[" and not filters:
            raise self.error("Expected an attribute filter")
        return Segment(
            combinator=combinator,
            types=types,
            level=level,
            section_text=section_text,
            filters=tuple(filters),
            index=index,
        )

    def _bracket_text(self) -> str:
        source = self.source
        start = self.pos
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(source):
            ch = source[self.pos]
            if ch == "\\" and self.pos + 1 < len(source):
                chars.append(source[self.pos + 1])
                self.pos += 2
                continue
            if ch == "]":
                self.pos += 1
                text = "".join(chars).strip()
                if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
                    text = text[1:-1]
                return text
            chars.append(ch)
            self.pos += 1
        self.pos = start
        raise self.error("Unterminated '[' in section selector")

    def _attribute(self) -> AttributeFilter:
        source = self.source
        start = self.pos
        self.pos += 1
        self._skip_ws()
        match = _ATTR_NAME_RE.match(source, self.pos)
        if not match:
            raise self.error("Expected an attribute name")
        name = match.group(0)
        self.pos = match.end()
        self._skip_ws()
        if self.pos < len(source) and source[self.pos] == "]":
            self.pos += 1
            return AttributeFilter(name=name)

        op = next((item for item in _OPERATORS if source.startswith(item, self.pos)), None)
        if op is None:
            if self.pos >= len(source):
                self.pos = start
                raise self.error("Unterminated attribute filter")
            raise self.error(f"Invalid attribute operator near {source[self.pos]!r}")
        self.pos += len(op)
        self._skip_ws()
        value = self._value()
        self._skip_ws()
        if self.pos >= len(source) or source[self.pos] != "]":
            raise self.error("Expected ']' to close attribute filter")
        self.pos += 1
        return AttributeFilter(name=name, op=op, value=value)

    def _value(self) -> str:
        source = self.source
        if self.pos < len(source) and source[self.pos] in "\"'":
            quote = source[self.pos]
            self.pos += 1
            chars: list[str] = []
            while self.pos < len(source):
                ch = source[self.pos]
                if ch == "\\" and self.pos + 1 < len(source):
                    chars.append(source[self.pos + 1])
                    self.pos += 2
                    continue
                if ch == quote:
                    self.pos += 1
                    return "".join(chars)
                chars.append(ch)
                self.pos += 1
            raise self.error("Unterminated quoted value")
        match = _BARE_VALUE_RE.match(source, self.pos)
        if not match:
            raise self.error("Expected an attribute value")
        self.pos = match.end()
        return match.group(0)

    def _index(self) -> int:
        source = self.source
        self.pos += 1
        match = _DIGITS_RE.match(source, self.pos)
        if not match:
            self.pos -= 1
            raise self.error("Pseudo-selectors are not supported; only :N indexes are allowed")
        value = int(match.group(0))
        if value < 1:
            raise self.error("Index filters are 1-based; :0 is not valid")
        self.pos = match.end()
        return value
