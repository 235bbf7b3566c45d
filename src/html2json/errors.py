"""
Error types for html2json.

Every failure surfaced by the library derives from Html2JsonError so callers
can catch one type and still inspect the specific kind.
"""

from typing import Any, Dict, Optional


class Html2JsonError(Exception):
    """Base class for all html2json errors."""

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class SpecParseError(Html2JsonError):
    """Raised when the spec JSON does not follow the DSL grammar."""


class SelectorSyntaxError(Html2JsonError):
    """Raised when a CSS selector cannot be compiled."""

    def __init__(self, selector: str, cause: Exception):
        super().__init__(
            f"Invalid selector '{selector}': {cause}",
            context={"selector": selector},
        )
        self.selector = selector
        self.cause = cause


class ScopeRequiredError(Html2JsonError):
    """Raised when a next-sibling selector is evaluated without a scope."""

    def __init__(self, selector: str):
        super().__init__(
            f"Next sibling selector '{selector}' requires a scope",
            context={"selector": selector},
        )
        self.selector = selector


class TypeMismatchError(Html2JsonError):
    """Raised when a transform pipe receives a non-string value."""

    def __init__(self, pipe: str, value: Any):
        super().__init__(
            f"Pipe '{pipe}' expected string value, got {type(value).__name__}",
            context={"pipe": pipe, "value": value},
        )
        self.pipe = pipe
        self.value = value


class ConversionError(Html2JsonError):
    """Raised when a parseAs pipe cannot convert its input."""

    def __init__(self, value: str, target: str):
        super().__init__(
            f"Cannot parse '{value}' as {target}",
            context={"value": value, "target": target},
        )
        self.value = value
        self.target = target


class RegexCompileError(Html2JsonError):
    """Raised for invalid or oversized regex patterns."""

    def __init__(self, pattern: str, cause: Any):
        super().__init__(
            f"Invalid or unsafe regex '{pattern}': {cause}",
            context={"pattern": pattern},
        )
        self.pattern = pattern
        self.cause = cause


class CacheError(Html2JsonError):
    """Raised when the shared regex cache is found in an inconsistent state."""


class InputError(Html2JsonError):
    """Raised when an input document or spec file cannot be loaded."""
