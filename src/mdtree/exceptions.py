"""Custom exceptions for mdtree."""


class MdTreeError(Exception):
    """Base exception for mdtree operations."""


class HeaderFormatMismatchError(MdTreeError):
    """Document mixes hash and dot header notations under strict mode."""

    def __init__(self, expected: str, found: str, line: int) -> None:
        super().__init__(
            f"Header format mismatch on line {line}: document uses "
            f"'{expected}' headers but found a '{found}' header"
        )
        self.expected = expected
        self.found = found
        self.line = line


class FragmentParseError(MdTreeError):
    """Markdown supplied to a mutation could not be parsed."""


class SelectorSyntaxError(MdTreeError):
    """Selector string is malformed or uses unsupported syntax."""

    def __init__(self, message: str, selector: str, position: int) -> None:
        super().__init__(f"{message} (at position {position} in {selector!r})")
        self.selector = selector
        self.position = position


class InvalidOperationError(MdTreeError):
    """Operation is not supported for the target node."""


class StaleHandleError(MdTreeError):
    """Handle refers to a node that has been removed from its document."""


class TargetNotFoundError(MdTreeError):
    """Batch operation selector matched no node."""
