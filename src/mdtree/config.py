"""Local configuration for mdtree."""

from __future__ import annotations

import os

HEADER_FORMATS = ("hash", "dot")
STYLE_POLICIES = ("preserve", "normalize")

DEFAULT_HEADER_FORMAT = "hash"
DEFAULT_STRICT = True
DEFAULT_STYLE_POLICY = "preserve"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def check_header_format(value: str) -> str:
    """Validate a header format name."""
    if value not in HEADER_FORMATS:
        raise ValueError(
            f"Unsupported header format {value!r}; expected one of {', '.join(HEADER_FORMATS)}"
        )
    return value


def check_style_policy(value: str) -> str:
    """Validate a batch style policy name."""
    if value not in STYLE_POLICIES:
        raise ValueError(
            f"Unsupported style policy {value!r}; expected one of {', '.join(STYLE_POLICIES)}"
        )
    return value


MDTREE_HEADER_FORMAT = check_header_format(os.getenv("MDTREE_HEADER_FORMAT", DEFAULT_HEADER_FORMAT))
MDTREE_STRICT = _env_bool("MDTREE_STRICT", DEFAULT_STRICT)
MDTREE_STYLE_POLICY = check_style_policy(os.getenv("MDTREE_STYLE_POLICY", DEFAULT_STYLE_POLICY))
