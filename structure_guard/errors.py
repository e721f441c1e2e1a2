"""
Exceptions raised by structure_guard.

Both subclass ValueError so code that already catches the ValueErrors raised
across the package keeps working.
"""

from typing import Any, Optional


class GrammarConfigurationError(ValueError):
    """Raised when a schema or grammar graph is malformed at configure time."""


class OutputParseError(ValueError):
    """
    Raised when the reconstructed output does not parse as the declared type.

    Attributes:
        raw_output: The decoded text that failed to parse
        value: Best-effort value (parsed JSON or raw text)
    """

    def __init__(self, message: str, raw_output: str = "", value: Optional[Any] = None):
        super().__init__(message)
        self.raw_output = raw_output
        self.value = value
