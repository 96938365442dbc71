"""Scan Markdown source into block-level tokens.

The tokenizer works on lines. Each line carries the container prefix that
has already been consumed (block-quote markers, list-item indentation) so
that a token built from a run of lines can account for every character:
``spacing`` holds the blank lines before the token, ``indent`` the prefix
and leading whitespace of its first line, and ``raw`` everything else.
Container tokens (block quotes, list items) hand the rest of their lines to
child tokens, so the concatenation stays exact at every depth.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from mdtree.exceptions import HeaderFormatMismatchError
from mdtree.nodes import BlockType

logger = logging.getLogger(__name__)

SECTION = "section"

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")
_ATX_RE = re.compile(r"^( {0,3})(#{1,6})(?=[ \t]|$)(.*)$")
_ATX_CLOSING_RE = re.compile(r"(?:^|[ \t])#+$")
_DOT_RE = re.compile(r"^( {0,3})h([1-6])\.(?=[ \t]|$)(.*)$")
_SETEXT_RE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
_FENCE_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})(.*)$")
_HR_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_QUOTE_RE = re.compile(r"^ {0,3}>[ ]?")
_ITEM_RE = re.compile(r"^( {0,3})([-+*]|\d{1,9}[.)])(?=[ \t]|$)([ \t]*)")
_TASK_RE = re.compile(r"^\[([^\]\n]?)\](?=[ \t]|$)")
_HTML_START_RE = re.compile(
    r"^ {0,3}<(?:!--|\?|![A-Za-z]|/?[A-Za-z][A-Za-z0-9-]*(?:[\s/>]|$))"
)
_LINK_DEF_RE = re.compile(
    r"^ {0,3}\[((?:[^\]\\]|\\.)+)\]:[ \t]*(<[^>\n]*>|\S+)"
    r"(?:[ \t]+(\"[^\"]*\"|'[^']*'|\([^)]*\)))?[ \t]*$"
)
_TABLE_DELIM_RE = re.compile(r"^ {0,3}\|?[ \t]*:?-+:?[ \t]*(?:\|[ \t]*:?-+:?[ \t]*)*\|?[ \t]*$")


@dataclass
class Line:
    """One source line split into an already-consumed prefix and the rest.

    Attributes:
        prefix: Container prefix consumed by enclosing blocks.
        text: Remaining text, including the line terminator.
        offset: Source offset where ``prefix`` starts.
        number: 1-based source line number.
    """

    prefix: str
    text: str
    offset: int
    number: int

    @property
    def full(self) -> str:
        return self.prefix + self.text

    @property
    def body(self) -> str:
        return self.text.rstrip("\r\n")

    @property
    def eol(self) -> str:
        return self.text[len(self.body) :]

    @property
    def is_blank(self) -> bool:
        return not self.body.strip()

    @property
    def end(self) -> int:
        return self.offset + len(self.full)


@dataclass
class BlockToken:
    """A block-level token with the style data needed to rebuild its text."""

    kind: str
    spacing: str
    indent: str
    raw: str
    start: int
    end: int
    content: str | None = None
    level: int | None = None
    lang: str | None = None
    fence: str | None = None
    bullet: str | None = None
    heading: str | None = None
    ordered: bool | None = None
    setext: bool = False
    eol: str = "\n"
    normalized: bool = False
    meta: dict[str, Any] = field(default_factory=dict)
    children: list[BlockToken] = field(default_factory=list)

    @property
    def is_header(self) -> bool:
        return self.kind in (SECTION, BlockType.HEADING_BLOCK.value)


def split_lines(source: str) -> list[Line]:
    """Split source into lines that keep their terminators."""
    lines: list[Line] = []
    offset = 0
    for number, match in enumerate(_LINE_RE.finditer(source), start=1):
        text = match.group(0)
        lines.append(Line("", text, offset, number))
        offset += len(text)
    return lines


def header_format_of(line: str) -> str | None:
    """Return ``hash`` or ``dot`` when ``line`` is an ATX or dot header."""
    if _ATX_RE.match(line):
        return "hash"
    if _DOT_RE.match(line):
        return "dot"
    return None


def strip_atx_closing(text: str) -> str:
    return _ATX_CLOSING_RE.sub("", text.strip()).strip()


class BlockTokenizer:
    """Line scanner producing ``BlockToken``s.

    Args:
        strict: Raise on a header whose notation differs from the first one.
        expected_format: Pre-seed the detected header format.
    """

    def __init__(self, *, strict: bool = True, expected_format: str | None = None) -> None:
        self.strict = strict
        self.header_format = expected_format
        self.heading_style: str | None = None

    def tokenize(self, source: str) -> tuple[list[BlockToken], str]:
        """Return top-level tokens and the blank text after the last one."""
        tokens, trailing = self._tokenize(split_lines(source), container=False)
        return tokens, "".join(line.full for line in trailing)

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def _tokenize(self, lines: list[Line], *, container: bool) -> tuple[list[BlockToken], list[Line]]:
        tokens: list[BlockToken] = []
        pending: list[Line] = []
        i = 0
        while i < len(lines):
            if lines[i].is_blank:
                pending.append(lines[i])
                i += 1
                continue
            spacing = "".join(line.full for line in pending)
            pending = []
            token, i = self._block(lines, i, container=container, spacing=spacing)
            tokens.append(token)
        return tokens, pending

    def _block(self, lines: list[Line], i: int, *, container: bool, spacing: str) -> tuple[BlockToken, int]:
        body = lines[i].body

        if _indent_width(body) >= 4:
            return self._indented_code(lines, i, spacing)

        match = _FENCE_RE.match(body)
        if match and not (match.group(2)[0] == "`" and "`" in match.group(3)):
            return self._fenced_code(lines, i, spacing, match)

        match = _ATX_RE.match(body)
        if match:
            level = len(match.group(2))
            return self._header(
                lines, i, i + 1, level, strip_atx_closing(match.group(3)), match.group(2),
                "hash", container=container, spacing=spacing,
            )

        match = _DOT_RE.match(body)
        if match:
            level = int(match.group(2))
            return self._header(
                lines, i, i + 1, level, match.group(3).strip(), f"h{level}.",
                "dot", container=container, spacing=spacing,
            )

        if _HR_RE.match(body):
            return self._leaf(BlockType.THEMATIC_BREAK, lines, i, i + 1, spacing), i + 1

        if _QUOTE_RE.match(body):
            return self._block_quote(lines, i, spacing)

        if _ITEM_RE.match(body):
            return self._list(lines, i, spacing)

        if _HTML_START_RE.match(body):
            return self._html(lines, i, spacing)

        match = _LINK_DEF_RE.match(body)
        if match:
            return self._link_definition(lines, i, spacing, match), i + 1

        if "|" in body and i + 1 < len(lines) and "|" in lines[i + 1].body and _TABLE_DELIM_RE.match(lines[i + 1].body):
            return self._table(lines, i, spacing)

        return self._paragraph(lines, i, container=container, spacing=spacing)

    def _leaf(
        self, block_type: BlockType | str, lines: list[Line], a: int, b: int, spacing: str, **extra: Any
    ) -> BlockToken:
        first = lines[a]
        ws = first.text[: len(first.text) - len(first.text.lstrip(" \t"))]
        if first.is_blank:
            ws = ""
        raw = first.text[len(ws) :] + "".join(line.full for line in lines[a + 1 : b])
        kind = block_type.value if isinstance(block_type, BlockType) else block_type
        return BlockToken(
            kind=kind,
            spacing=spacing,
            indent=first.prefix + ws,
            raw=raw,
            start=first.offset,
            end=lines[b - 1].end,
            eol=lines[b - 1].eol,
            **extra,
        )

    # -------------------------------------------------------------------------
    # Headers
    # -------------------------------------------------------------------------

    def _header(
        self,
        lines: list[Line],
        a: int,
        b: int,
        level: int,
        text: str,
        heading: str,
        fmt: str,
        *,
        container: bool,
        spacing: str,
        setext: bool = False,
    ) -> tuple[BlockToken, int]:
        normalized = self._check_format(fmt, lines[a].number, setext=setext)
        kind = BlockType.HEADING_BLOCK.value if container else SECTION
        token = self._leaf(
            kind, lines, a, b, spacing,
            content=text, level=level, heading=heading, setext=setext, normalized=normalized,
        )
        return token, b

    def _check_format(self, fmt: str, number: int, *, setext: bool) -> bool:
        normalized = False
        if self.header_format is None:
            self.header_format = fmt
        elif fmt != self.header_format:
            if self.strict:
                raise HeaderFormatMismatchError(self.header_format, fmt, number)
            logger.debug("Normalizing %s header on line %d to %s", fmt, number, self.header_format)
            normalized = True
        if fmt == "hash" and self.heading_style is None:
            self.heading_style = "setext" if setext else "hash"
        return normalized

    # -------------------------------------------------------------------------
    # Code
    # -------------------------------------------------------------------------

    def _indented_code(self, lines: list[Line], i: int, spacing: str) -> tuple[BlockToken, int]:
        j = i + 1
        while j < len(lines) and (lines[j].is_blank or _indent_width(lines[j].body) >= 4):
            j += 1
        while j > i + 1 and lines[j - 1].is_blank:
            j -= 1
        code = "".join(_strip_columns(line.text, 4) for line in lines[i:j])
        token = self._leaf(BlockType.CODE_BLOCK, lines, i, j, spacing)
        token.meta["code"] = code
        return token, j

    def _fenced_code(
        self, lines: list[Line], i: int, spacing: str, match: re.Match[str]
    ) -> tuple[BlockToken, int]:
        fence = match.group(2)
        info = match.group(3).strip()
        width = len(match.group(1))
        closing = re.compile(rf"^ {{0,3}}{re.escape(fence[0])}{{{len(fence)},}}[ \t]*$")
        j = i + 1
        closed = False
        while j < len(lines):
            if closing.match(lines[j].body):
                closed = True
                break
            j += 1
        code_lines = lines[i + 1 : j]
        end = j + 1 if closed else j
        token = self._leaf(
            BlockType.CODE_BLOCK, lines, i, end, spacing,
            fence=fence, lang=info.split()[0] if info else None,
        )
        token.meta["code"] = "".join(_strip_columns(line.text, width) for line in code_lines)
        token.meta["info"] = info or None
        token.meta["closed"] = closed
        return token, end

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    def _block_quote(self, lines: list[Line], i: int, spacing: str) -> tuple[BlockToken, int]:
        inner: list[Line] = []
        last_content = -1
        j = i
        while j < len(lines):
            line = lines[j]
            match = _QUOTE_RE.match(line.text)
            if match:
                marker = match.group(0)
                inner.append(Line(line.prefix + marker, line.text[len(marker) :], line.offset, line.number))
                if not inner[-1].is_blank:
                    last_content = len(inner) - 1
                j += 1
                continue
            if line.is_blank or not inner or inner[-1].is_blank or self._starts_block(line.body):
                break
            # lazy continuation line
            inner.append(line)
            last_content = len(inner) - 1
            j += 1

        if last_content == -1:
            return self._leaf(BlockType.BLOCK_QUOTE, lines, i, j, spacing), j

        count = last_content + 1
        children, _ = self._tokenize(inner[:count], container=True)
        token = BlockToken(
            kind=BlockType.BLOCK_QUOTE.value,
            spacing=spacing,
            indent="",
            raw="",
            start=lines[i].offset,
            end=lines[i + count - 1].end,
            children=children,
        )
        return token, i + count

    def _list(self, lines: list[Line], i: int, spacing: str) -> tuple[BlockToken, int]:
        first = _ITEM_RE.match(lines[i].body)
        assert first is not None
        marker = first.group(2)
        ordered = marker[-1] in ".)"
        items: list[BlockToken] = []
        j = i
        while j < len(lines):
            k = j
            while k < len(lines) and lines[k].is_blank:
                k += 1
            if k >= len(lines):
                break
            body = lines[k].body
            match = _ITEM_RE.match(body)
            if not match or _HR_RE.match(body) or not _same_list(marker, match.group(2)):
                break
            item_spacing = "".join(line.full for line in lines[j:k])
            item, j = self._list_item(lines, k, match, item_spacing)
            items.append(item)

        token = BlockToken(
            kind=BlockType.LIST.value,
            spacing=spacing,
            indent="",
            raw="",
            start=items[0].start,
            end=items[-1].end,
            bullet=marker,
            ordered=ordered,
            children=items,
        )
        if ordered:
            token.meta["start_number"] = int(marker[:-1])
        return token, j

    def _list_item(self, lines: list[Line], k: int, match: re.Match[str], spacing: str) -> tuple[BlockToken, int]:
        first = lines[k]
        lead, marker, gap = match.group(1), match.group(2), match.group(3)
        rest_at = len(lead) + len(marker) + len(gap)
        rest = first.body[rest_at:]
        if not rest.strip() or len(gap) > 4:
            content_col = len(lead) + len(marker) + 1
        else:
            content_col = rest_at
        first_is_block = bool(rest.strip()) and self._starts_block(rest)

        # item extent
        j = k + 1
        last = k
        saw_blank = False
        while j < len(lines):
            line = lines[j]
            if line.is_blank:
                saw_blank = True
                j += 1
                continue
            if _indent_width(line.body) >= content_col:
                last = j
                j += 1
                continue
            if not saw_blank and not self._starts_block(line.body):
                last = j
                j += 1
                continue
            break
        end = last + 1

        ordered = marker[-1] in ".)"
        extra: dict[str, Any] = {"bullet": marker, "ordered": ordered}
        meta: dict[str, Any] = {}
        if ordered:
            meta["number"] = int(marker[:-1])
            meta["delimiter"] = marker[-1]

        if first_is_block:
            offset = first.offset + len(first.prefix) + rest_at
            inner = [Line("", first.text[rest_at:], offset, first.number)]
            inner += [_strip_line(line, content_col) for line in lines[k + 1 : end]]
            token = self._leaf(BlockType.LIST_ITEM, lines, k, k + 1, spacing, content="", **extra)
            token.raw = first.text[len(lead) : rest_at]
        else:
            own_end = k + 1
            for idx in range(k + 1, end):
                line = lines[idx]
                if line.is_blank:
                    break
                stripped = line.body[content_col:] if _indent_width(line.body) >= content_col else line.body
                if self._starts_block(stripped):
                    break
                own_end = idx + 1
            inner = [_strip_line(line, content_col) for line in lines[own_end:end]]
            own_lines = [rest] + [line.body.strip() for line in lines[k + 1 : own_end]]
            body_text = "\n".join(own_lines).strip()
            token = self._leaf(BlockType.LIST_ITEM, lines, k, own_end, spacing, **extra)
            task = _TASK_RE.match(rest)
            if task:
                status = task.group(1)
                token.kind = BlockType.TASK_ITEM.value
                meta["status"] = status if status.strip() else ""
                meta["raw_marker"] = task.group(0)
                meta["marker_offset"] = len(marker) + len(gap)
                body_text = "\n".join([rest[task.end() :]] + own_lines[1:]).strip()
            token.content = body_text

        token.meta.update(meta)
        if inner:
            token.children, _ = self._tokenize(inner, container=True)
        token.end = lines[end - 1].end
        return token, end

    # -------------------------------------------------------------------------
    # Other leaves
    # -------------------------------------------------------------------------

    def _html(self, lines: list[Line], i: int, spacing: str) -> tuple[BlockToken, int]:
        j = i
        if lines[i].body.lstrip().startswith("<!--"):
            while j < len(lines) and "-->" not in lines[j].body:
                j += 1
            end = min(j + 1, len(lines))
        else:
            while j < len(lines) and not lines[j].is_blank:
                j += 1
            end = j
        token = self._leaf(BlockType.HTML_BLOCK, lines, i, end, spacing)
        token.content = "".join(line.text for line in lines[i:end])
        return token, end

    def _link_definition(self, lines: list[Line], i: int, spacing: str, match: re.Match[str]) -> BlockToken:
        href = match.group(2)
        if href.startswith("<") and href.endswith(">"):
            href = href[1:-1]
        title = match.group(3)
        token = self._leaf(BlockType.LINK_DEFINITION, lines, i, i + 1, spacing)
        token.meta.update({"label": match.group(1), "href": href, "title": title[1:-1] if title else None})
        return token

    def _table(self, lines: list[Line], i: int, spacing: str) -> tuple[BlockToken, int]:
        j = i + 2
        while j < len(lines) and not lines[j].is_blank and "|" in lines[j].body and not self._starts_block(lines[j].body):
            j += 1
        token = self._leaf(BlockType.TABLE, lines, i, j, spacing)
        header = _split_row(lines[i].body)
        token.meta.update({"columns": len(header), "headers": header, "rows": j - i - 2})
        token.content = "\n".join(line.body.strip() for line in lines[i:j])
        return token, j

    def _paragraph(self, lines: list[Line], i: int, *, container: bool, spacing: str) -> tuple[BlockToken, int]:
        j = i + 1
        while j < len(lines):
            line = lines[j]
            if line.is_blank:
                break
            setext = _SETEXT_RE.match(line.body)
            if setext:
                text = "\n".join(item.body.strip() for item in lines[i:j])
                level = 1 if setext.group(1)[0] == "=" else 2
                return self._header(
                    lines, i, j + 1, level, text, setext.group(1).strip(), "hash",
                    container=container, spacing=spacing, setext=True,
                )
            if self._interrupts_paragraph(line.body):
                break
            j += 1
        token = self._leaf(BlockType.PARAGRAPH, lines, i, j, spacing)
        token.content = "\n".join(line.body.lstrip() for line in lines[i:j]).rstrip()
        return token, j

    # -------------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------------

    @staticmethod
    def _starts_block(body: str) -> bool:
        if _indent_width(body) >= 4:
            return False
        return bool(
            _FENCE_RE.match(body)
            or _ATX_RE.match(body)
            or _DOT_RE.match(body)
            or _HR_RE.match(body)
            or _QUOTE_RE.match(body)
            or _ITEM_RE.match(body)
            or _HTML_START_RE.match(body)
        )

    @staticmethod
    def _interrupts_paragraph(body: str) -> bool:
        if _indent_width(body) >= 4:
            return False
        if _FENCE_RE.match(body) or _ATX_RE.match(body) or _DOT_RE.match(body):
            return True
        if _HR_RE.match(body) or _QUOTE_RE.match(body):
            return True
        match = _ITEM_RE.match(body)
        if match and body[match.end() :].strip():
            marker = match.group(2)
            return marker in "-+*" or marker[:-1] == "1"
        return False


def _indent_width(body: str) -> int:
    width = 0
    for ch in body:
        if ch == " ":
            width += 1
        elif ch == "\t":
            width += 4 - width % 4
        else:
            break
    return width


def _strip_columns(text: str, count: int) -> str:
    """Remove up to ``count`` leading spaces (a tab counts as a full stop)."""
    removed = 0
    idx = 0
    while idx < len(text) and removed < count and text[idx] in " \t":
        removed += 1 if text[idx] == " " else 4 - removed % 4
        idx += 1
    return text[idx:]


def _strip_line(line: Line, count: int) -> Line:
    """Move up to ``count`` leading spaces of ``line`` into its prefix."""
    if line.is_blank:
        return line
    idx = 0
    while idx < len(line.text) and idx < count and line.text[idx] == " ":
        idx += 1
    return Line(line.prefix + line.text[:idx], line.text[idx:], line.offset, line.number)


def _same_list(first: str, other: str) -> bool:
    if first[-1] in ".)" or other[-1] in ".)":
        return first[-1] == other[-1] and first[-1] in ".)" and other[:-1].isdigit()
    return first == other


def _split_row(body: str) -> list[str]:
    row = body.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|") and not row.endswith("\\|"):
        row = row[:-1]
    return [cell.strip() for cell in re.split(r"(?<!\\)\|", row)]
