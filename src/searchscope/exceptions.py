"""
Exception types for searchscope.

Only ToolNotFound is meant to reach the top level; every other error is
resolved locally by the component that detects it.
"""

from typing import Optional


class SearchScopeError(Exception):
    """Base class for all searchscope errors."""
    pass


class ToolNotFound(SearchScopeError):
    """Raised when no usable search tool binary could be located."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.hint = hint
        full_message = f"{message} {hint}" if hint else message
        super().__init__(full_message)


class ProcessSpawnFailure(SearchScopeError):
    """Raised when the operating system refuses to launch the search tool."""
    pass


class SearchToolError(SearchScopeError):
    """The search tool exited with a recognized error code."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        super().__init__(message or f"Search tool exited with code {code}")


class UnknownExit(SearchScopeError):
    """The search tool exited with an unrecognized non-zero code."""

    def __init__(self, code: int):
        self.code = code
        super().__init__(f"Search tool exited with unexpected code {code}")


class MalformedOutput(SearchScopeError):
    """A line of tool output could not be decoded."""
    pass
