"""
Exceptions raised by critical CSS extraction.

Every failure surfaced to a caller is a ``CriticalCSSError`` carrying a
``kind`` identifier, so job records and API responses can report which
category of failure ended a job.
"""

from typing import Any, Optional, Sequence


class CriticalCSSError(Exception):
    """Base exception for all extraction errors."""

    kind = "error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InputLoadError(CriticalCSSError):
    """The source stylesheet or page could not be read."""

    kind = "input_load"


class ParseError(CriticalCSSError):
    """The stylesheet could not be parsed."""

    kind = "parse"

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        details = {}
        if line is not None:
            details = {"line": line, "column": column}
        super().__init__(message, details)
        self.line = line
        self.column = column


class SelectorEvaluationError(CriticalCSSError):
    """One or more selectors could not be evaluated against the page."""

    kind = "selector_evaluation"

    def __init__(self, selectors: Sequence[str], reason: str) -> None:
        selectors = tuple(selectors)
        super().__init__(
            f"Could not evaluate selector(s) {', '.join(selectors)}: {reason}",
            {"selectors": list(selectors)},
        )
        self.selectors = selectors
        self.reason = reason


class ExtractionTimeoutError(CriticalCSSError, TimeoutError):
    """The extraction exceeded its time budget."""

    kind = "timeout"

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Critical CSS extraction timed out after {timeout_ms}ms", {"timeout_ms": timeout_ms})
        self.timeout_ms = timeout_ms


class RenderError(CriticalCSSError):
    """The browser failed to load or query the page."""

    kind = "render"
