"""Parse span-level Markdown into Inline nodes.

Offsets on the produced spans are relative to the text handed to
``parse_inlines`` (a header line or a block's prefix-free content).
"""

from __future__ import annotations

import re
import string
from typing import Iterable

from mdtree.nodes import Inline, InlineType

_ESCAPABLE = set(string.punctuation)
_AUTOLINK_RE = re.compile(r"<([A-Za-z][A-Za-z0-9+.-]{1,31}:[^\s<>]*)>")
_EMAIL_RE = re.compile(r"<([\w.+-]+@[\w-]+(?:\.[\w-]+)+)>")
_HTML_TAG_RE = re.compile(
    r"<(?:/[A-Za-z][A-Za-z0-9-]*\s*|[A-Za-z][A-Za-z0-9-]*"
    r"(?:\s+[A-Za-z_:][\w.:-]*(?:\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s\"'=<>`]+))?)*\s*/?)>"
)
_HTML_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)


def parse_inlines(text: str) -> list[Inline]:
    """Parse ``text`` into a flat list of top-level inline spans."""
    return _InlineParser(text).parse(0, len(text))


def plain_text(spans: Iterable[Inline]) -> str:
    """Project inline spans to plain text (markup removed)."""
    parts: list[str] = []
    for span in spans:
        kind = span.inline_type
        if kind in (InlineType.TEXT, InlineType.CODE):
            parts.append(span.value)
        elif kind is InlineType.IMAGE:
            parts.append(span.alt or "")
        elif kind is InlineType.SOFT_BREAK:
            parts.append(" ")
        elif kind is InlineType.HARD_BREAK:
            parts.append("\n")
        elif kind is InlineType.RAW_HTML:
            continue
        else:
            parts.append(plain_text(span.children))
    return "".join(parts)


class _InlineParser:
    def __init__(self, text: str) -> None:
        self.text = text

    def parse(self, lo: int, hi: int) -> list[Inline]:
        text = self.text
        spans: list[Inline] = []
        buffer: list[str] = []
        buffer_start = lo
        i = lo

        def flush(end: int) -> None:
            nonlocal buffer, buffer_start
            if buffer:
                spans.append(
                    Inline(
                        raw=text[buffer_start:end],
                        start=buffer_start,
                        end=end,
                        inline_type=InlineType.TEXT,
                        value="".join(buffer),
                    )
                )
            buffer = []

        def emit(span: Inline) -> None:
            nonlocal buffer_start
            flush(span.start)  # type: ignore[arg-type]
            spans.append(span)
            buffer_start = span.end  # type: ignore[assignment]

        while i < hi:
            ch = text[i]

            if ch == "\\" and i + 1 < hi:
                nxt = text[i + 1]
                if nxt == "\n":
                    emit(self._make(InlineType.HARD_BREAK, i, i + 2))
                    i += 2
                    continue
                if nxt in _ESCAPABLE:
                    if not buffer:
                        buffer_start = i
                    buffer.append(nxt)
                    i += 2
                    continue

            if ch == "`":
                span = self._code_span(i, hi)
                if span is not None:
                    emit(span)
                    i = span.end  # type: ignore[assignment]
                    continue
                run = _run_length(text, i, "`", hi)
                if not buffer:
                    buffer_start = i
                buffer.append("`" * run)
                i += run
                continue

            if ch == "!" and i + 1 < hi and text[i + 1] == "[":
                span = self._link(i + 1, hi, image=True)
                if span is not None:
                    emit(span)
                    i = span.end  # type: ignore[assignment]
                    continue

            if ch == "[":
                span = self._link(i, hi, image=False)
                if span is not None:
                    emit(span)
                    i = span.end  # type: ignore[assignment]
                    continue

            if ch == "<":
                span = self._angle(i, hi)
                if span is not None:
                    emit(span)
                    i = span.end  # type: ignore[assignment]
                    continue

            if ch in "*_":
                span = self._emphasis(i, hi)
                if span is not None:
                    emit(span)
                    i = span.end  # type: ignore[assignment]
                    continue
                run = _run_length(text, i, ch, hi)
                if not buffer:
                    buffer_start = i
                buffer.append(ch * run)
                i += run
                continue

            if ch == "\n":
                trailing = len("".join(buffer)) - len("".join(buffer).rstrip(" "))
                if trailing >= 2:
                    joined = "".join(buffer).rstrip(" ")
                    buffer = [joined] if joined else []
                    emit(self._make(InlineType.HARD_BREAK, i - trailing, i + 1))
                else:
                    emit(self._make(InlineType.SOFT_BREAK, i, i + 1))
                i += 1
                continue

            if not buffer:
                buffer_start = i
            buffer.append(ch)
            i += 1

        flush(hi)
        return spans

    def _make(self, kind: InlineType, start: int, end: int, **extra: object) -> Inline:
        return Inline(raw=self.text[start:end], start=start, end=end, inline_type=kind, **extra)  # type: ignore[arg-type]

    def _code_span(self, i: int, hi: int) -> Inline | None:
        text = self.text
        run = _run_length(text, i, "`", hi)
        j = i + run
        while j < hi:
            j = text.find("`", j, hi)
            if j == -1:
                return None
            close = _run_length(text, j, "`", hi)
            if close == run:
                inner = text[i + run : j].replace("\n", " ")
                if len(inner) >= 2 and inner[0] == " " and inner[-1] == " " and inner.strip():
                    inner = inner[1:-1]
                return self._make(InlineType.CODE, i, j + close, value=inner)
            j += close
        return None

    def _link(self, i: int, hi: int, *, image: bool) -> Inline | None:
        text = self.text
        close = _matching_bracket(text, i, hi)
        if close == -1 or close + 1 >= hi or text[close + 1] != "(":
            return None
        parsed = _link_destination(text, close + 2, hi)
        if parsed is None:
            return None
        href, title, end = parsed
        start = i - 1 if image else i
        if image:
            alt = plain_text(self.parse(i + 1, close))
            return self._make(InlineType.IMAGE, start, end, href=href, alt=alt, title=title)
        span = self._make(InlineType.LINK, start, end, href=href, title=title)
        span.children = self.parse(i + 1, close)
        for child in span.children:
            child.parent = span
        return span

    def _angle(self, i: int, hi: int) -> Inline | None:
        text = self.text
        for pattern in (_AUTOLINK_RE, _EMAIL_RE):
            match = pattern.match(text, i, hi)
            if match:
                target = match.group(1)
                href = target if pattern is _AUTOLINK_RE else f"mailto:{target}"
                span = self._make(InlineType.LINK, i, match.end(), href=href)
                span.children = [
                    Inline(
                        raw=target,
                        start=i + 1,
                        end=match.end() - 1,
                        inline_type=InlineType.TEXT,
                        value=target,
                        parent=span,
                    )
                ]
                return span
        for pattern in (_HTML_COMMENT_RE, _HTML_TAG_RE):
            match = pattern.match(text, i, hi)
            if match:
                return self._make(InlineType.RAW_HTML, i, match.end(), value=match.group(0))
        return None

    def _emphasis(self, i: int, hi: int) -> Inline | None:
        text = self.text
        ch = text[i]
        run = _run_length(text, i, ch, hi)
        if i + run >= hi or text[i + run].isspace():
            return None
        if ch == "_" and i > 0 and text[i - 1].isalnum():
            return None
        width = 2 if run >= 2 else 1
        close = _find_closer(text, i + run, hi, ch, width)
        if close == -1 and width == 2:
            width = 1
            close = _find_closer(text, i + run, hi, ch, 1)
        if close == -1:
            return None
        kind = InlineType.STRONG if width == 2 else InlineType.EMPHASIS
        span = self._make(kind, i, close + width)
        span.children = self.parse(i + width, close)
        for child in span.children:
            child.parent = span
        return span


def _run_length(text: str, i: int, ch: str, hi: int) -> int:
    j = i
    while j < hi and text[j] == ch:
        j += 1
    return j - i


def _skip_code_span(text: str, i: int, hi: int) -> int:
    """Return the index after a code span starting at ``i``, or ``i + run``."""
    run = _run_length(text, i, "`", hi)
    j = i + run
    while j < hi:
        j = text.find("`", j, hi)
        if j == -1:
            break
        close = _run_length(text, j, "`", hi)
        if close == run:
            return j + close
        j += close
    return i + run


def _matching_bracket(text: str, i: int, hi: int) -> int:
    depth = 0
    j = i
    while j < hi:
        ch = text[j]
        if ch == "\\":
            j += 2
            continue
        if ch == "`":
            j = _skip_code_span(text, j, hi)
            continue
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return j
        j += 1
    return -1


def _link_destination(text: str, i: int, hi: int) -> tuple[str, str | None, int] | None:
    j = i
    while j < hi and text[j] in " \t\n":
        j += 1
    if j < hi and text[j] == "<":
        end = text.find(">", j + 1, hi)
        if end == -1:
            return None
        href = text[j + 1 : end]
        j = end + 1
    else:
        depth = 0
        start = j
        while j < hi:
            ch = text[j]
            if ch == "\\" and j + 1 < hi:
                j += 2
                continue
            if ch.isspace():
                break
            if ch == "(":
                depth += 1
            elif ch == ")":
                if depth == 0:
                    break
                depth -= 1
            j += 1
        href = text[start:j]
    while j < hi and text[j] in " \t\n":
        j += 1
    title: str | None = None
    if j < hi and text[j] in "\"'(":
        closer = ")" if text[j] == "(" else text[j]
        end = text.find(closer, j + 1, hi)
        if end == -1:
            return None
        title = text[j + 1 : end]
        j = end + 1
        while j < hi and text[j] in " \t\n":
            j += 1
    if j >= hi or text[j] != ")":
        return None
    return href, title, j + 1


def _find_closer(text: str, j: int, hi: int, ch: str, width: int) -> int:
    while j < hi:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == "`":
            j = _skip_code_span(text, j, hi)
            continue
        if c != ch:
            j += 1
            continue
        run = _run_length(text, j, ch, hi)
        preceded_by_space = text[j - 1].isspace()
        if not preceded_by_space and (run == width or (width == 2 and run >= 2)):
            followed_by_word = j + width < hi and text[j + width].isalnum()
            if not (ch == "_" and followed_by_word):
                return j
        if not preceded_by_space and width == 1 and run >= 3:
            return j + run - 1
        j += run
    return -1
