"""Tests for batch edits."""

from __future__ import annotations

import pytest

from mdtree import apply_edits
from mdtree.exceptions import HeaderFormatMismatchError
from mdtree.schemas import BatchResult, EditOperation

SOURCE = "# Notes\n\nintro\n\n## Todo\n\n- [ ] write\n- [ ] test\n\n## Done\n\nnothing yet\n"


class TestAtomicBatches:
    """Default atomic mode."""

    def test_applies_all_operations(self) -> None:
        result = apply_edits(
            SOURCE,
            [
                {"op": "update_header", "selector": "##Done", "header": "Finished"},
                {"op": "set_status", "selector": "##Todo task:1", "status": "x"},
                {"op": "append", "selector": "##Todo", "content": "Remember the docs."},
            ],
        )
        assert isinstance(result, BatchResult)
        assert result.ok is True
        assert result.changed is True
        assert [outcome.ok for outcome in result.outcomes] == [True, True, True]
        assert result.content == (
            "# Notes\n\nintro\n\n## Todo\n\n- [x] write\n- [ ] test\n\nRemember the docs.\n\n"
            "## Finished\n\nnothing yet\n"
        )

    def test_failure_rolls_back(self) -> None:
        result = apply_edits(
            SOURCE,
            [
                {"op": "update_header", "selector": "##Done", "header": "Finished"},
                {"op": "update_content", "selector": "##Missing", "content": "x"},
                {"op": "remove", "selector": "p"},
            ],
        )
        assert result.ok is False
        assert result.changed is False
        assert result.content == SOURCE
        assert [outcome.ok for outcome in result.outcomes] == [True, False]
        assert "No node matches selector '##Missing'" in (result.outcomes[1].error or "")

    def test_invalid_operation_rolls_back(self) -> None:
        result = apply_edits(SOURCE, [{"op": "update_header", "selector": "p", "header": "x"}])
        assert result.ok is False
        assert result.content == SOURCE
        assert "only sections" in (result.outcomes[0].error or "")

    def test_selector_error_is_reported(self) -> None:
        result = apply_edits(SOURCE, [{"op": "remove", "selector": "p:first-child"}])
        assert result.ok is False
        assert "Pseudo-selectors" in (result.outcomes[0].error or "")

    def test_malformed_operation_is_reported(self) -> None:
        result = apply_edits(SOURCE, [{"op": "explode", "selector": "p"}])
        assert result.ok is False
        assert result.outcomes[0].op == "explode"
        assert result.outcomes[0].error.startswith("Invalid edit operation")

    def test_no_operations(self) -> None:
        result = apply_edits(SOURCE, [])
        assert result == BatchResult(content=SOURCE, ok=True, changed=False, outcomes=[])


class TestNonAtomicBatches:
    """atomic=False applies what it can."""

    def test_skips_failed_operations(self) -> None:
        result = apply_edits(
            SOURCE,
            [
                {"op": "update_header", "selector": "##Done", "header": "Finished"},
                {"op": "update_content", "selector": "##Missing", "content": "x"},
                {"op": "remove", "selector": "#Notes > p"},
            ],
            atomic=False,
        )
        assert result.ok is False
        assert result.changed is True
        assert [outcome.ok for outcome in result.outcomes] == [True, False, True]
        assert result.content == (
            "# Notes\n\n## Todo\n\n- [ ] write\n- [ ] test\n\n## Finished\n\nnothing yet\n"
        )

    def test_accepts_models(self) -> None:
        operations = [
            EditOperation(op="move", selector="##Done", delta=-1),
            EditOperation(op="insert_before", selector="##Todo", content="## Later"),
        ]
        result = apply_edits(SOURCE, operations, atomic=False)
        assert result.ok is True
        assert result.content == (
            "# Notes\n\nintro\n\n## Done\n\nnothing yet\n\n## Later\n\n## Todo\n\n- [ ] write\n- [ ] test\n"
        )


class TestPolicies:
    """Style policy and parse options."""

    def test_normalize_policy(self) -> None:
        result = apply_edits("# Title #\n\n\n\ntext\n", [], style_policy="normalize")
        assert result.content == "# Title\n\ntext\n"
        assert result.changed is True

    def test_header_format_override(self) -> None:
        result = apply_edits(
            "# A\n",
            [{"op": "update_header", "selector": "#A", "header": "B"}],
            header_format="dot",
        )
        assert result.content == "h1. B\n"

    def test_strict_source_error_propagates(self) -> None:
        with pytest.raises(HeaderFormatMismatchError):
            apply_edits("# A\n\nh2. B\n", [], strict=True)

    def test_lenient_source(self) -> None:
        result = apply_edits("# A\n\nh2. B\n", [], strict=False)
        assert result.ok is True
        assert result.changed is True
        assert result.content == "# A\n\n## B\n"

    def test_unknown_policy(self) -> None:
        with pytest.raises(ValueError, match="Unsupported style policy"):
            apply_edits(SOURCE, [], style_policy="pretty")


class TestEditOperationModel:
    """EditOperation validation."""

    @pytest.mark.parametrize(
        "payload",
        [
            {"op": "update_header", "selector": "#A"},
            {"op": "append", "selector": "#A"},
            {"op": "move", "selector": "#A"},
            {"op": "set_status", "selector": "task"},
            {"op": "set_status", "selector": "task", "status": "xy"},
            {"op": "update", "selector": "#A"},
            {"op": "remove", "selector": ""},
        ],
    )
    def test_rejects_incomplete_operations(self, payload: dict) -> None:
        with pytest.raises(ValueError):
            EditOperation.model_validate(payload)
