"""Tests for the mutation engine and node handles."""

from __future__ import annotations

import pytest

from mdtree import parse
from mdtree.exceptions import FragmentParseError, InvalidOperationError, StaleHandleError


def _snapshot(document) -> list[str]:
    return [
        node.style.spacing_before + node.style.indent + node.raw
        for node in document.iter_nodes(include_self=False)
    ]


class TestScenarios:
    """End-to-end edit scenarios."""

    def test_move_section_up(self) -> None:
        document = parse("# A\n\n## B\n\nx\n\n## C\n\ny\n")
        section_c = document.select("##C")
        section_c.move(-1)
        assert [child.header_text for child in document.select("#A").children()] == ["C", "B"]
        assert document.render() == "# A\n\n## C\n\ny\n\n## B\n\nx\n"

    def test_set_task_status(self) -> None:
        source = "- [ ] one\n- [x] two\n- [~] three\n"
        document = parse(source)
        document.select("task:1").set_status("x")
        assert document.render() == "- [x] one\n- [x] two\n- [~] three\n"
        assert document.select("task:1").status == "x"

    def test_reopen_task(self) -> None:
        document = parse("- [x] done\n")
        document.select("task").set_status("")
        assert document.render() == "- [ ] done\n"
        assert document.select("task[done=false]") is not None


class TestSectionUpdates:
    """update_header / update_content / update."""

    def test_update_header_keeps_level(self) -> None:
        document = parse("## Old ##\n\nbody\n")
        handle = document.select("##Old")
        handle.update_header("New *name*")
        assert handle.header_text == "New name"
        assert document.render() == "## New *name*\n\nbody\n"
        assert document.select("##[New name]") == handle

    def test_update_header_in_dot_document(self) -> None:
        document = parse("h1. Title\n\ntext\n")
        document.select("#Title").update_header("Renamed")
        assert document.render() == "h1. Renamed\n\ntext\n"

    def test_update_setext_header_keeps_underline(self) -> None:
        document = parse("Title\n=====\n\ntext\n")
        document.select("#Title").update_header("Longer title")
        assert document.render() == "Longer title\n=====\n\ntext\n"

    def test_setext_becomes_atx_in_hash_document(self) -> None:
        document = parse("# First\n\nSecond\n------\n")
        document.select("##Second").update_header("Renamed")
        assert document.render() == "# First\n\n## Renamed\n"

    def test_update_header_rejects_multiline(self) -> None:
        document = parse("# A\n")
        with pytest.raises(InvalidOperationError, match="single line"):
            document.select("#A").update_header("two\nlines")

    def test_update_content_keeps_subsections(self) -> None:
        document = parse("# A\n\nold\n\nalso old\n\n## Sub\n\ns\n")
        document.select("#A").update_content("new one\n\nnew two")
        assert document.render() == "# A\n\nnew one\n\nnew two\n\n## Sub\n\ns\n"

    def test_update_content_rejects_headers(self) -> None:
        source = "# A\n\nold\n"
        document = parse(source)
        with pytest.raises(InvalidOperationError, match="cannot contain headers"):
            document.select("#A").update_content("text\n\n## Sneaky\n")
        assert document.render() == source

    def test_update_both(self) -> None:
        document = parse("# A\n\nold\n")
        document.select("#A").update(header="B", content="fresh")
        assert document.render() == "# B\n\nfresh\n"

    def test_update_is_section_only(self) -> None:
        document = parse("para\n")
        with pytest.raises(InvalidOperationError, match="only sections"):
            document.select("p").update_header("x")
        with pytest.raises(InvalidOperationError, match="only sections"):
            document.select("p").update_content("x")


class TestInserts:
    """insert_before / insert_after / append / prepend / replace."""

    def test_insert_after_paragraph(self) -> None:
        document = parse("# A\n\none\n")
        inserted = document.select("p").insert_after("two")
        assert [handle.text for handle in inserted] == ["two"]
        assert document.render() == "# A\n\none\n\ntwo\n"

    def test_insert_before_first_node(self) -> None:
        document = parse("first\n")
        document.select("p").insert_before("zeroth")
        assert document.render() == "zeroth\n\nfirst\n"

    def test_insert_before_section(self) -> None:
        document = parse("# A\n\n## B\n\nb\n")
        document.select("##B").insert_before("# Ignored level\n\nnew body")
        assert document.render() == "# A\n\n## Ignored level\n\nnew body\n\n## B\n\nb\n"
        assert [entry.header_text for entry in document.toc()[0].children] == ["Ignored level", "B"]

    def test_append_subsection_relevels(self) -> None:
        document = parse("# A\n\nintro\n")
        document.select("#A").append("# Child\n\nbody\n\n## Grandchild")
        assert document.render() == "# A\n\nintro\n\n## Child\n\nbody\n\n### Grandchild\n"

    def test_append_blocks_go_before_subsections(self) -> None:
        document = parse("# A\n\nfirst\n\n## Sub\n")
        document.select("#A").append("second")
        assert document.render() == "# A\n\nfirst\n\nsecond\n\n## Sub\n"

    def test_prepend_blocks(self) -> None:
        document = parse("# A\n\nfirst\n")
        document.select("#A").prepend("zeroth")
        assert document.render() == "# A\n\nzeroth\n\nfirst\n"

    def test_append_to_document_without_final_newline(self) -> None:
        document = parse("text")
        document.root.append("more")
        assert document.render() == "text\n\nmore\n"

    def test_prepend_to_document(self) -> None:
        document = parse("first\n")
        document.root.prepend("zeroth")
        assert document.render() == "zeroth\n\nfirst\n"

    def test_inserted_headers_follow_document_format(self) -> None:
        document = parse("h1. A\n\ntext\n")
        document.select("#A").append("# Child")
        assert document.render() == "h1. A\n\ntext\n\nh2. Child\n"

    def test_relevel_beyond_six_fails(self) -> None:
        source = "###### Deep\n"
        document = parse(source)
        with pytest.raises(InvalidOperationError, match="levels must be between"):
            document.select("######").append("# Too deep")
        assert document.render() == source

    def test_insert_list_item_after_item(self) -> None:
        document = parse("- a\n- b\n")
        document.select("li:1").insert_after("- new")
        assert document.render() == "- a\n- new\n- b\n"

    def test_insert_nested_list_item_takes_indent(self) -> None:
        document = parse("- a\n  - b\n")
        document.select("li li").insert_after("- c\n\n  more")
        assert document.render() == "- a\n  - b\n  - c\n\n    more\n"

    def test_append_to_list(self) -> None:
        document = parse("- [ ] one\n")
        document.select("list").append("- [ ] two")
        assert document.render() == "- [ ] one\n- [ ] two\n"
        assert len(document.select_all("task")) == 2

    def test_non_item_next_to_item_fails(self) -> None:
        document = parse("- a\n")
        with pytest.raises(InvalidOperationError, match="Only list items"):
            document.select("li").insert_after("plain paragraph")

    def test_append_to_paragraph_fails(self) -> None:
        document = parse("para\n")
        with pytest.raises(InvalidOperationError, match="Cannot append"):
            document.select("p").append("x")

    def test_header_into_quote_fails(self) -> None:
        source = "> quoted\n"
        document = parse(source)
        with pytest.raises(InvalidOperationError, match="cannot open sections"):
            document.select("quote p").insert_after("# Heading")
        assert document.render() == source

    def test_insert_nested_item_with_sublist(self) -> None:
        document = parse("- a\n  - b\n")
        document.select("li li").insert_after("- c\n  - d")
        assert document.render() == "- a\n  - b\n  - c\n    - d\n"

    def test_block_after_subsection_fails(self) -> None:
        source = "# A\n\n## B\n"
        document = parse(source)
        with pytest.raises(InvalidOperationError, match="cannot follow a sub-section"):
            document.select("##B").insert_after("stray paragraph")
        assert document.render() == source

    def test_shallower_section_in_section_fails(self) -> None:
        document = parse("## A\n\ntext\n")
        with pytest.raises(InvalidOperationError, match="cannot be nested"):
            document.select("p").insert_after("# Top")

    def test_replace_block(self) -> None:
        document = parse("# A\n\nold\n\nkeep\n")
        new = document.select("p").replace("```\ncode\n```")
        assert new[0].type == "code_block"
        assert document.render() == "# A\n\n```\ncode\n```\n\nkeep\n"

    def test_replace_section(self) -> None:
        document = parse("# A\n\n## B\n\nb\n\n## C\n")
        document.select("##B").replace("# New\n\nnew")
        assert document.render() == "# A\n\n## New\n\nnew\n\n## C\n"

    def test_empty_fragment_inserts_nothing(self) -> None:
        document = parse("para\n")
        assert document.select("p").insert_after("") == []
        assert document.render() == "para\n"


class TestRemoveAndMove:
    """remove / move."""

    def test_remove_block(self) -> None:
        document = parse("# A\n\none\n\ntwo\n")
        document.select("p:1").remove()
        assert document.render() == "# A\n\ntwo\n"

    def test_remove_section_with_subtree(self, nested_sections: str) -> None:
        document = parse(nested_sections)
        document.select("##B").remove()
        assert document.render() == "# A\n\n## C\n\ny\n\n# D\n\n#### D1\n"

    def test_remove_last_item_removes_list(self) -> None:
        document = parse("text\n\n- only\n")
        document.select("li").remove()
        assert document.render() == "text\n"
        assert document.select("list") is None

    def test_remove_root_fails(self) -> None:
        document = parse("text\n")
        with pytest.raises(InvalidOperationError, match="root"):
            document.root.remove()

    def test_move_clamps_to_region(self) -> None:
        document = parse("# A\n\none\n\ntwo\n\n## B\n")
        position = document.select("p:1").move(10)
        assert position == 1
        assert document.render() == "# A\n\ntwo\n\none\n\n## B\n"

    def test_move_zero_is_noop(self) -> None:
        source = "one\n\ntwo\n"
        document = parse(source)
        document.select("p:2").move(0)
        assert document.render() == source

    def test_move_single_member_region_is_noop(self) -> None:
        source = "# A\n\nonly\n\n## B\n"
        document = parse(source)
        document.select("p").move(-3)
        assert document.render() == source

    def test_move_list_items(self) -> None:
        document = parse("- a\n- b\n- c\n")
        document.select("li:3").move(-2)
        assert document.render() == "- c\n- a\n- b\n"

    def test_move_first_block_keeps_paragraphs_apart(self) -> None:
        document = parse("a\n\nb\n")
        document.select("p:1").move(1)
        rendered = document.render()
        assert rendered == "b\n\na\n"
        assert len(parse(rendered).select_all("p")) == 2

    def test_move_onto_first_slot(self) -> None:
        document = parse("# A\none\n\ntwo\n")
        document.select("p:2").move(-1)
        assert document.render() == "# A\ntwo\n\none\n"

    def test_move_loose_list_item_to_front(self) -> None:
        document = parse("- a\n\n- b\n")
        document.select("li:2").move(-1)
        assert document.render() == "- b\n\n- a\n"

    def test_move_off_list_marker_line(self) -> None:
        document = parse("- > q\n\n  para\n")
        document.select("li > p").move(-1)
        assert document.render() == "- para\n\n  > q\n"

    def test_remove_first_block(self) -> None:
        document = parse("a\n\nb\n")
        document.select("p:1").remove()
        assert document.render() == "b\n"


class TestContainerContent:
    """Edits next to Blocks inside block quotes and list items."""

    @pytest.mark.parametrize(
        ("source", "selector", "method", "fragment", "expected"),
        [
            ("> a\n", "quote p", "insert_after", "b", "> a\n>\n> b\n"),
            ("> a\n", "quote p", "insert_before", "b", "> b\n>\n> a\n"),
            ("> a\n>\n> b\n", "quote p:2", "replace", "c\n\nd", "> a\n>\n> c\n>\n> d\n"),
            ("- a\n\n  b\n", "li > p", "insert_after", "c", "- a\n\n  b\n\n  c\n"),
            ("- > q\n", "quote p", "insert_after", "r", "- > q\n  >\n  > r\n"),
            ("- > q\n", "quote p", "insert_before", "r", "- > r\n  >\n  > q\n"),
            ("- > q\n", "li > quote", "replace", "text", "- text\n"),
        ],
    )
    def test_fragments_take_the_container_prefix(
        self, source: str, selector: str, method: str, fragment: str, expected: str
    ) -> None:
        document = parse(source)
        getattr(document.select(selector), method)(fragment)
        rendered = document.render()
        assert rendered == expected
        assert parse(rendered).render() == rendered

    def test_inserted_paragraph_stays_in_quote(self) -> None:
        document = parse("> a\n\nafter\n")
        document.select("quote p").insert_after("b")
        reparsed = parse(document.render())
        assert [handle.text for handle in reparsed.select_all("quote p")] == ["a", "b"]
        assert reparsed.select("quote + p").text == "after"

    def test_quote_inside_list_item(self) -> None:
        document = parse("- item\n\n  > q\n")
        document.select("quote p").insert_after("more")
        assert document.render() == "- item\n\n  > q\n  >\n  > more\n"


class TestLocality:
    """Single-node mutations leave other nodes byte-identical."""

    def test_renamed_header_is_the_only_change(self, kitchen_sink: str) -> None:
        document = parse(kitchen_sink)
        document.select("##Install").update_header("Setup")
        assert document.render() == kitchen_sink.replace("## Install\n", "## Setup\n")
        assert document.select("##Setup").node.touched is True

    def test_removal_keeps_neighbours(self, kitchen_sink: str) -> None:
        document = parse(kitchen_sink)
        document.select("hr").remove()
        assert document.render() == kitchen_sink.replace("\n---\n", "")

    def test_other_tasks_untouched(self, kitchen_sink: str) -> None:
        document = parse(kitchen_sink)
        document.select("task[done=false]").set_status("x")
        assert document.render() == kitchen_sink.replace("- [ ] open task", "- [x] open task")


class TestHandles:
    """Handle lifetime and navigation."""

    def test_removed_handle_is_stale(self) -> None:
        document = parse("# A\n\ntext\n")
        paragraph = document.select("p")
        section = document.select("#A")
        section.remove()
        assert not paragraph.is_valid
        with pytest.raises(StaleHandleError):
            paragraph.render()
        with pytest.raises(StaleHandleError):
            section.update_header("B")

    def test_replaced_handle_is_stale(self) -> None:
        document = parse("old\n")
        handle = document.select("p")
        handle.replace("new")
        with pytest.raises(StaleHandleError):
            _ = handle.text

    def test_other_handles_survive(self) -> None:
        document = parse("one\n\ntwo\n")
        first, second = document.select_all("p")
        first.remove()
        assert second.is_valid
        assert second.text == "two"

    def test_navigation(self, nested_sections: str) -> None:
        document = parse(nested_sections)
        section_b = document.select("##B")
        assert section_b.parent().header_text == "A"
        assert [child.type for child in section_b.children()] == ["paragraph", "section"]
        assert document.root.parent() is None
        assert [entry.header_text for entry in section_b.toc()] == ["B"]

    def test_properties(self) -> None:
        document = parse("## Title\n\n- [~] doing\n")
        section = document.select("##")
        assert (section.kind, section.type, section.level) == ("section", "section", 2)
        task = document.select("task")
        assert task.kind == "block"
        assert task.status == "~"
        assert task.attributes["marker"] == "[~]"


class TestFailuresLeaveTreeUnchanged:
    """Parse-then-commit: failed operations change nothing."""

    def test_fragment_format_mismatch(self) -> None:
        source = "# A\n\ntext\n"
        document = parse(source)
        with pytest.raises(FragmentParseError, match="Could not parse fragment"):
            document.select("#A").append("## x\n\nh2. y")
        assert document.render() == source
        assert _snapshot(document) == _snapshot(parse(source))

    def test_non_string_fragment(self) -> None:
        document = parse("text\n")
        with pytest.raises(FragmentParseError, match="must be a string"):
            document.select("p").insert_after(None)  # type: ignore[arg-type]

    def test_set_status_on_plain_item(self) -> None:
        document = parse("- plain\n")
        with pytest.raises(InvalidOperationError, match="only task items"):
            document.select("li").set_status("x")

    def test_set_status_too_long(self) -> None:
        document = parse("- [ ] task\n")
        with pytest.raises(InvalidOperationError, match="single character"):
            document.select("task").set_status("xx")
        assert document.render() == "- [ ] task\n"
