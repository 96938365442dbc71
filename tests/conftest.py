"""Test setup for mdtree."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


KITCHEN_SINK = """\
Intro paragraph before any header.

# Project *Title* #

Some **bold** text and a [link](https://example.com "Example").
A second line.

## Install

```bash
pip install mdtree
```

    indented code

> A quote
> continues here
>
> # Quoted heading

- one
- two
  - nested
- [ ] open task
- [x] done task

1. first
2. second

## Reference

| Name | Value |
|------|-------|
| a    | 1     |

---

<div class="note">
Raw <b>HTML</b>
</div>

[docs]: https://example.com/docs "Docs"


"""


@pytest.fixture
def kitchen_sink() -> str:
    """Document exercising every block type."""
    return KITCHEN_SINK


@pytest.fixture
def nested_sections() -> str:
    """Sections with a skipped level and siblings at several depths."""
    return "# A\n\n## B\n\nx\n\n### B1\n\n## C\n\ny\n\n# D\n\n#### D1\n"
