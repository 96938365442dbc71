"""Table of contents models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TocEntry(BaseModel):
    """One Section in a table of contents.

    Attributes:
        level: Header level of the Section.
        header_text: Plain-text projection of the header.
        children: Entries for nested Sections.
    """

    level: int = Field(..., ge=1, le=6)
    header_text: str
    children: list["TocEntry"] = Field(default_factory=list)
