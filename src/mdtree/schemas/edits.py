"""Batch edit models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

EditOp = Literal[
    "update",
    "update_header",
    "update_content",
    "insert_before",
    "insert_after",
    "append",
    "prepend",
    "replace",
    "remove",
    "move",
    "set_status",
]

_CONTENT_OPS = {"update_content", "insert_before", "insert_after", "append", "prepend", "replace"}


class EditOperation(BaseModel):
    """A single edit addressed by selector.

    Attributes:
        op: Operation name.
        selector: Selector for the target; the first match is edited.
        header: New header text (``update``/``update_header``).
        content: Markdown fragment for content-carrying operations.
        delta: Signed offset for ``move``.
        status: Status character for ``set_status``.
    """

    op: EditOp
    selector: str = Field(..., min_length=1)
    header: str | None = None
    content: str | None = None
    delta: int | None = None
    status: str | None = Field(default=None, max_length=1)

    @model_validator(mode="after")
    def _check_arguments(self) -> "EditOperation":
        if self.op == "update_header" and self.header is None:
            raise ValueError("update_header requires 'header'")
        if self.op in _CONTENT_OPS and self.content is None:
            raise ValueError(f"{self.op} requires 'content'")
        if self.op == "update" and self.header is None and self.content is None:
            raise ValueError("update requires 'header' or 'content'")
        if self.op == "move" and self.delta is None:
            raise ValueError("move requires 'delta'")
        if self.op == "set_status" and self.status is None:
            raise ValueError("set_status requires 'status'")
        return self


class EditOutcome(BaseModel):
    """Result of one operation in a batch."""

    index: int
    op: str
    selector: str
    ok: bool
    error: str | None = None


class BatchResult(BaseModel):
    """Result of a batch of edits.

    Attributes:
        content: Serialized document; the original source if nothing was applied.
        ok: Whether every operation succeeded.
        changed: Whether ``content`` differs from the source.
        outcomes: Per-operation results, in input order.
    """

    content: str
    ok: bool
    changed: bool
    outcomes: list[EditOutcome] = Field(default_factory=list)
