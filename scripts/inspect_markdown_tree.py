"""Inspect the parsed tree of a Markdown file to aid selector writing."""

from __future__ import annotations

import argparse
import sys
from collections import Counter
from pathlib import Path

from mdtree import format_outline, parse
from mdtree.nodes import Document


def main() -> None:
    parser = argparse.ArgumentParser(description="Show node types, attributes, and the outline of a Markdown file.")
    parser.add_argument("--file", help="Local Markdown file path (reads stdin when omitted)")
    parser.add_argument("--lenient", action="store_true", help="Accept files mixing '#' and 'hN.' headers")
    parser.add_argument("--select", help="Print the rendered matches of a selector instead of stats")
    args = parser.parse_args()

    source = load_markdown(file_path=args.file)
    document = parse(source, strict=False if args.lenient else None)

    if args.select:
        for handle in document.select_all(args.select):
            print(f"--- {handle.type} ---")
            print(handle.render(), end="")
        return

    types, attrs = collect_stats(document)

    print("Node types:")
    for name, count in types.most_common():
        print(f"{name}: {count}")

    print("\nAttributes:")
    for name, count in attrs.most_common():
        print(f"{name}: {count}")

    print("\nOutline:")
    print(format_outline(document.toc()))


def load_markdown(*, file_path: str | None) -> str:
    if not file_path:
        return sys.stdin.read()

    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(f"Markdown file not found: {path}")
    return path.read_text(encoding="utf-8")


def collect_stats(document: Document) -> tuple[Counter, Counter]:
    types = Counter()
    attrs = Counter()

    for node in document.iter_nodes(include_self=False):
        types[node.type_name] += 1
        for name in node.attributes():
            attrs[name] += 1
    return types, attrs


if __name__ == "__main__":
    main()
