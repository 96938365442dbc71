"""Shared HTML utilities for raw HTML found in Markdown."""

from __future__ import annotations

import re

try:
    from bs4 import BeautifulSoup
except ImportError as exc:  # pragma: no cover - runtime dependency check
    raise RuntimeError(
        "BeautifulSoup4 is required for HTML text extraction (pip install beautifulsoup4)."
    ) from exc


_TAG_RE = re.compile(r"<[^>]*>")


def html_to_text(html: str) -> str:
    """Return the visible text of an HTML fragment with whitespace collapsed.

    Comments, scripts and styles contribute nothing.
    """
    if not html.strip() or not _TAG_RE.search(html):
        return re.sub(r"\s+", " ", html).strip()
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    return re.sub(r"\s+", " ", soup.get_text(" ", strip=True)).strip()
