"""Tests for the block tokenizer."""

from __future__ import annotations

import pytest

from mdtree.exceptions import HeaderFormatMismatchError
from mdtree.tokenizer import SECTION, BlockTokenizer, header_format_of, split_lines, strip_atx_closing


def _kinds(source: str, *, strict: bool = True) -> list[str]:
    tokens, _ = BlockTokenizer(strict=strict).tokenize(source)
    return [token.kind for token in tokens]


class TestSplitLines:
    """Tests for split_lines."""

    def test_keeps_terminators(self) -> None:
        lines = split_lines("a\nb\r\nc")
        assert [line.text for line in lines] == ["a\n", "b\r\n", "c"]
        assert [line.number for line in lines] == [1, 2, 3]
        assert [line.offset for line in lines] == [0, 2, 5]

    def test_empty_source(self) -> None:
        assert split_lines("") == []


class TestHeaders:
    """Header recognition and format detection."""

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("# Title", "hash"),
            ("###### Deep", "hash"),
            ("h1. Title", "dot"),
            ("h6. Deep", "dot"),
            ("#NoSpace", None),
            ("####### Seven", None),
            ("h7. Nope", None),
            ("h1.5 release", None),
            ("plain text", None),
        ],
    )
    def test_header_format_of(self, line: str, expected: str | None) -> None:
        assert header_format_of(line) == expected

    def test_strip_atx_closing(self) -> None:
        assert strip_atx_closing(" Title ## ") == "Title"
        assert strip_atx_closing("C#") == "C#"

    def test_atx_header_token(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("## Install ##\n")
        token = tokens[0]
        assert token.kind == SECTION
        assert token.level == 2
        assert token.content == "Install"
        assert token.heading == "##"
        assert token.raw == "## Install ##\n"

    def test_dot_header_token(self) -> None:
        tokenizer = BlockTokenizer()
        tokens, _ = tokenizer.tokenize("h3. Notes\n")
        assert tokens[0].level == 3
        assert tokens[0].content == "Notes"
        assert tokens[0].heading == "h3."
        assert tokenizer.header_format == "dot"

    def test_setext_header_token(self) -> None:
        tokenizer = BlockTokenizer()
        tokens, _ = tokenizer.tokenize("Title\n=====\n\nSub\n---\n")
        assert [token.level for token in tokens] == [1, 2]
        assert all(token.setext for token in tokens)
        assert tokens[0].raw == "Title\n=====\n"
        assert tokenizer.header_format == "hash"
        assert tokenizer.heading_style == "setext"

    def test_strict_mixed_formats_raise(self) -> None:
        with pytest.raises(HeaderFormatMismatchError, match="line 3") as exc_info:
            BlockTokenizer(strict=True).tokenize("## Heading\n\nh2. Heading\n")
        assert exc_info.value.expected == "hash"
        assert exc_info.value.found == "dot"

    def test_lenient_mixed_formats_flag_minority(self) -> None:
        tokens, _ = BlockTokenizer(strict=False).tokenize("h1. First\n\n# Second\n")
        assert [token.normalized for token in tokens] == [False, True]


class TestBlocks:
    """Leaf and container block recognition."""

    def test_block_kinds(self, kitchen_sink: str) -> None:
        kinds = _kinds(kitchen_sink)
        assert kinds == [
            "paragraph",
            SECTION,
            "paragraph",
            SECTION,
            "code_block",
            "code_block",
            "block_quote",
            "list",
            "list",
            SECTION,
            "table",
            "thematic_break",
            "html_block",
            "link_definition",
        ]

    def test_trailing_blank_text(self, kitchen_sink: str) -> None:
        _, trailing = BlockTokenizer().tokenize(kitchen_sink)
        assert trailing == "\n\n"

    def test_fenced_code_metadata(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("~~~~python extra\nprint(1)\n~~~~\n")
        token = tokens[0]
        assert token.fence == "~~~~"
        assert token.lang == "python"
        assert token.meta == {"code": "print(1)\n", "info": "python extra", "closed": True}

    def test_unclosed_fence_runs_to_end(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("```\ncode\n\n# not a header\n")
        assert len(tokens) == 1
        assert tokens[0].meta["closed"] is False
        assert tokens[0].meta["code"] == "code\n\n# not a header\n"

    def test_indented_code(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("    a = 1\n    b = 2\n\ntext\n")
        assert tokens[0].kind == "code_block"
        assert tokens[0].indent == "    "
        assert tokens[0].meta["code"] == "a = 1\nb = 2\n"

    def test_block_quote_children_carry_prefix(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("> # Inside\n> text\n")
        quote = tokens[0]
        assert quote.raw == ""
        heading, paragraph = quote.children
        assert heading.kind == "heading_block"
        assert heading.indent == "> "
        assert paragraph.raw == "text\n"

    def test_lazy_quote_continuation(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("> first\nlazy\n")
        assert len(tokens) == 1
        assert tokens[0].children[0].raw == "first\nlazy\n"

    def test_list_items_and_tasks(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("- [ ] open\n- [x] done\n- plain\n")
        items = tokens[0].children
        assert [item.kind for item in items] == ["task_item", "task_item", "list_item"]
        assert items[0].meta["status"] == ""
        assert items[1].meta["status"] == "x"
        assert items[1].meta["raw_marker"] == "[x]"
        assert items[1].content == "done"

    def test_ordered_list_numbers(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("3. three\n4. four\n")
        token = tokens[0]
        assert token.ordered is True
        assert token.meta["start_number"] == 3
        assert [item.meta["number"] for item in token.children] == [3, 4]

    def test_different_bullets_start_new_list(self) -> None:
        assert _kinds("- a\n- b\n\n* c\n") == ["list", "list"]

    def test_nested_list_indent(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("- a\n  - b\n")
        outer = tokens[0].children[0]
        assert outer.raw == "- a\n"
        nested = outer.children[0].children[0]
        assert nested.indent == "  "
        assert nested.raw == "- b\n"

    def test_table_metadata(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("| a | b |\n|---|:-:|\n| 1 | 2 |\n| 3 | 4 |\n")
        assert tokens[0].kind == "table"
        assert tokens[0].meta == {"columns": 2, "headers": ["a", "b"], "rows": 2}

    def test_link_definition(self) -> None:
        tokens, _ = BlockTokenizer().tokenize('[ref]: <https://example.com> "Title"\n')
        assert tokens[0].meta == {"label": "ref", "href": "https://example.com", "title": "Title"}

    def test_html_comment_runs_to_close(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("<!-- a\n\nb -->\nafter\n")
        assert tokens[0].kind == "html_block"
        assert tokens[0].raw == "<!-- a\n\nb -->\n"

    def test_spacing_and_indent(self) -> None:
        tokens, _ = BlockTokenizer().tokenize("\n\n  para\n")
        assert tokens[0].spacing == "\n\n"
        assert tokens[0].indent == "  "
        assert tokens[0].raw == "para\n"
