"""Apply a batch of selector-addressed edits to Markdown source."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import ValidationError

from mdtree.builder import parse
from mdtree.config import MDTREE_STYLE_POLICY, check_style_policy
from mdtree.exceptions import MdTreeError, TargetNotFoundError
from mdtree.handles import NodeHandle
from mdtree.normalize import normalize_tree
from mdtree.nodes import Document
from mdtree.query import select
from mdtree.schemas import BatchResult, EditOperation, EditOutcome
from mdtree.serializer import render

logger = logging.getLogger(__name__)

_CONTENT_METHODS = ("update_content", "insert_before", "insert_after", "append", "prepend", "replace")


def apply_edits(
    source: str,
    operations: Iterable[EditOperation | dict[str, Any]],
    *,
    atomic: bool = True,
    style_policy: str | None = None,
    header_format: str | None = None,
    strict: bool | None = None,
) -> BatchResult:
    """Parse ``source`` once, apply ``operations`` in order and serialize.

    Each operation edits the first node its selector matches. Operation
    failures are reported in ``BatchResult.outcomes`` rather than raised.

    Args:
        source: Markdown text.
        operations: Edit operations, as models or plain dicts.
        atomic: If True, any failure discards every change and the original
            source is returned. If False, failed operations are skipped and
            the rest are applied.
        style_policy: ``preserve`` keeps untouched text as written;
            ``normalize`` re-derives every header and collapses runs of
            blank lines. Defaults to the ``MDTREE_STYLE_POLICY`` setting.
        header_format: Header format for re-derived headers.
        strict: Reject sources mixing header notations.

    Returns:
        BatchResult with the new content and per-operation outcomes.

    Raises:
        HeaderFormatMismatchError: If ``strict`` and ``source`` mixes notations.
        ValueError: If ``style_policy`` or ``header_format`` is unsupported.
    """
    policy = check_style_policy(style_policy or MDTREE_STYLE_POLICY)
    document = parse(source, header_format=header_format, strict=strict)

    outcomes: list[EditOutcome] = []
    failed = False
    for index, raw_op in enumerate(operations):
        try:
            op = raw_op if isinstance(raw_op, EditOperation) else EditOperation.model_validate(raw_op)
        except ValidationError as exc:
            outcomes.append(_outcome(index, raw_op, error=_validation_message(exc)))
            failed = True
            if atomic:
                break
            continue

        try:
            _apply_one(document, op)
        except MdTreeError as exc:
            logger.debug("Edit %d (%s %r) failed: %s", index, op.op, op.selector, exc)
            outcomes.append(EditOutcome(index=index, op=op.op, selector=op.selector, ok=False, error=str(exc)))
            failed = True
            if atomic:
                break
            continue
        outcomes.append(EditOutcome(index=index, op=op.op, selector=op.selector, ok=True))

    if failed and atomic:
        logger.warning("Rolled back batch after failed edit %d", outcomes[-1].index)
        return BatchResult(content=source, ok=False, changed=False, outcomes=outcomes)

    if policy == "normalize":
        normalize_tree(document)
    content = render(document)
    logger.info(
        "Applied %d of %d edit(s)",
        sum(1 for outcome in outcomes if outcome.ok),
        len(outcomes),
    )
    return BatchResult(content=content, ok=not failed, changed=content != source, outcomes=outcomes)


def _apply_one(document: Document, op: EditOperation) -> None:
    target = select(document, op.selector)
    if target is None:
        raise TargetNotFoundError(f"No node matches selector {op.selector!r}")
    handle = NodeHandle(document, target)

    if op.op == "update":
        handle.update(header=op.header, content=op.content)
    elif op.op == "update_header":
        handle.update_header(op.header or "")
    elif op.op in _CONTENT_METHODS:
        getattr(handle, op.op)(op.content or "")
    elif op.op == "remove":
        handle.remove()
    elif op.op == "move":
        handle.move(op.delta or 0)
    elif op.op == "set_status":
        handle.set_status(op.status or "")


def _outcome(index: int, raw_op: Any, *, error: str) -> EditOutcome:
    op = raw_op.get("op") if isinstance(raw_op, dict) else None
    selector = raw_op.get("selector") if isinstance(raw_op, dict) else None
    return EditOutcome(
        index=index,
        op=str(op or ""),
        selector=str(selector or ""),
        ok=False,
        error=error,
    )


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "operation"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "Invalid edit operation: " + "; ".join(parts)
