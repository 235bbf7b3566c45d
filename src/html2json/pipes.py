"""
Pipe transformation module for html2json.

A pipe list is split into at most one leading source pipe (attr/void), which
decides the starting value read from the node, and transform pipes applied
left to right. A null value flowing into a transform pipe stays null.

Regex pipes run on RE2, whose matching time is linear in the input, and whose
compiled program is bounded by a memory budget.
"""

import logging
import math
import re
import threading
from typing import Any, Dict, Optional, Sequence, Tuple

import re2

from .dom import Node, is_void_element
from .errors import CacheError, ConversionError, RegexCompileError, TypeMismatchError
from .spec import PipeCommand, PipeKind

logger = logging.getLogger(__name__)

# Memory budget in bytes for one compiled regex program
DEFAULT_MAX_REGEX_SIZE = 1_000_000

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INT_LITERAL = re.compile(r"[+-]?[0-9]+")


class RegexCache:
    """
    Compiled RE2 patterns keyed by pattern text.

    Lookups of cached patterns take no lock; compiling and publishing a new
    pattern is serialized. Published entries are never replaced.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_REGEX_SIZE):
        self.max_size = max_size
        self._patterns: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, pattern: str) -> Any:
        """
        Compile-or-fetch a pattern.

        Raises:
            RegexCompileError: If the pattern is invalid or its program exceeds max_size
            CacheError: If a cached entry does not match its key
        """
        compiled = self._patterns.get(pattern)
        if compiled is None:
            with self._lock:
                compiled = self._patterns.get(pattern)
                if compiled is None:
                    compiled = self._compile(pattern)
                    self._patterns[pattern] = compiled
                    logger.debug(f"Compiled and cached regex: {pattern}")
        return self._verify(pattern, compiled)

    def _compile(self, pattern: str) -> Any:
        options = re2.Options()
        options.max_mem = self.max_size
        options.log_errors = False
        try:
            return re2.compile(pattern, options)
        except re2.error as e:
            raise RegexCompileError(pattern, e) from e

    def _verify(self, pattern: str, compiled: Any) -> Any:
        if getattr(compiled, "pattern", None) != pattern:
            raise CacheError(
                f"Regex cache entry for '{pattern}' is corrupted",
                context={"pattern": pattern},
            )
        return compiled

    def __contains__(self, pattern: str) -> bool:
        return pattern in self._patterns

    def __len__(self) -> int:
        return len(self._patterns)


def split_source_and_transforms(
    pipes: Sequence[PipeCommand],
) -> Tuple[Optional[PipeCommand], Tuple[PipeCommand, ...]]:
    """Split pipes into the leading source pipe (if any) and the transforms."""
    if pipes and pipes[0].is_source:
        return pipes[0], tuple(pipes[1:])
    return None, tuple(pipes)


def source_value(node: Node, source: Optional[PipeCommand]) -> Optional[str]:
    """Starting value of a pipeline: text, attribute or void-sibling text."""
    if source is None:
        return node.text()

    if source.kind is PipeKind.ATTR:
        return node.attr(source.name)

    # Void: RSS-style <link/>text puts the text after the element
    text = node.text()
    if not text and is_void_element(node.tag_name):
        sibling_text = node.next_sibling_text()
        if sibling_text is not None:
            return sibling_text
    return text


def run_pipeline(node: Optional[Node], pipes: Sequence[PipeCommand], cache: RegexCache) -> Any:
    """
    Evaluate a field's pipes against a resolved node.

    Args:
        node: Resolved node, or None when the selector matched nothing
        pipes: Pipe commands, source pipe first if present
        cache: Regex cache used by regex pipes

    Returns:
        Extracted JSON value (None if no node)
    """
    if node is None:
        return None

    source, transforms = split_source_and_transforms(pipes)
    return apply_pipes(source_value(node, source), transforms, cache)


def apply_pipes(value: Any, pipes: Sequence[PipeCommand], cache: RegexCache) -> Any:
    for pipe in pipes:
        value = apply_pipe(value, pipe, cache)
    return value


def apply_pipe(value: Any, pipe: PipeCommand, cache: RegexCache) -> Any:
    if value is None or pipe.is_source:
        return value

    text = _as_string(value, pipe)
    kind = pipe.kind

    if kind is PipeKind.TRIM:
        return text.strip()
    if kind is PipeKind.LOWER:
        return text.lower()
    if kind is PipeKind.UPPER:
        return text.upper()
    if kind is PipeKind.SUBSTR:
        return _substring(text, pipe.start, pipe.end)
    if kind in (PipeKind.PARSE_NUMBER, PipeKind.PARSE_FLOAT):
        return _parse_number(text)
    if kind is PipeKind.PARSE_INT:
        return _parse_int(text)
    if kind is PipeKind.REGEX:
        return _regex(text, cache.get(pipe.pattern))

    raise ValueError(f"Unhandled pipe kind: {kind}")


def _as_string(value: Any, pipe: PipeCommand) -> str:
    if not isinstance(value, str):
        raise TypeMismatchError(str(pipe), value)
    return value


def _substring(text: str, start: int, end: Optional[int]) -> str:
    """Take the first `end` characters, then skip the first `start` of those."""
    head = text if end is None else text[:end]
    return head[start:]


def _parse_number(text: str) -> Optional[float]:
    candidate = text.strip()
    if "_" in candidate or not candidate.isascii():
        raise ConversionError(text, "number")
    try:
        number = float(candidate)
    except ValueError:
        raise ConversionError(text, "number") from None
    # JSON has no representation for NaN or infinity
    return number if math.isfinite(number) else None


def _parse_int(text: str) -> int:
    candidate = text.strip()
    if not _INT_LITERAL.fullmatch(candidate):
        raise ConversionError(text, "int")
    number = int(candidate)
    if not INT64_MIN <= number <= INT64_MAX:
        raise ConversionError(text, "int")
    return number


def _regex(text: str, compiled: Any) -> Optional[str]:
    match = compiled.search(text)
    if match is None:
        return None
    if compiled.groups >= 1 and match.group(1) is not None:
        return match.group(1)
    return match.group(0)
