"""
DOM module wrapping BeautifulSoup for HTML parsing and soupsieve for CSS matching.

The document is parsed once and queried many times. Nodes are light handles
around bs4 tags; their text content is computed lazily and cached.
"""

import logging
from functools import cached_property
from typing import Dict, Iterator, List, Optional

import soupsieve
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .errors import SelectorSyntaxError

logger = logging.getLogger(__name__)

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img",
    "input", "link", "meta", "param", "source", "track", "wbr",
})


def is_void_element(name: str) -> bool:
    """Check if a tag name is an HTML void element."""
    return name.lower() in VOID_ELEMENTS


class Node:
    """Handle to one element of a parsed Document."""

    def __init__(self, element: Tag):
        self._element = element

    @property
    def element(self) -> Tag:
        return self._element

    @property
    def tag_name(self) -> str:
        return self._element.name or ""

    @cached_property
    def _text(self) -> str:
        return self._element.get_text()

    def text(self) -> str:
        """Concatenated text of all descendant text nodes."""
        return self._text

    def attr(self, name: str) -> Optional[str]:
        """Attribute value, or None if absent. Multi-valued attributes are space-joined."""
        value = self._element.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return value

    def following_siblings(self) -> Iterator["Node"]:
        """Element siblings after this node, in document order."""
        for sibling in self._element.next_siblings:
            if isinstance(sibling, Tag):
                yield Node(sibling)

    def next_sibling_text(self) -> Optional[str]:
        """Trimmed content of the immediately following sibling if it is a text node."""
        sibling = self._element.next_sibling
        if isinstance(sibling, NavigableString) and not isinstance(sibling, PreformattedString):
            return str(sibling).strip()
        return None

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Node) and other._element is self._element

    def __hash__(self) -> int:
        return id(self._element)

    def __repr__(self) -> str:
        return f"Node(<{self.tag_name}>)"


class Document:
    """Parsed document; parse once and reuse for all queries."""

    def __init__(self, soup: BeautifulSoup):
        self._soup = soup
        self._compiled: Dict[str, soupsieve.SoupSieve] = {}

    @classmethod
    def parse(cls, source: str, parser: str = "html.parser") -> "Document":
        """
        Parse markup into a Document.

        Args:
            source: HTML or XML text
            parser: BeautifulSoup tree builder name

        Returns:
            Parsed Document
        """
        logger.debug(f"Parsing document ({len(source)} chars) with {parser}")
        return cls(BeautifulSoup(source, parser))

    def compile(self, selector: str) -> soupsieve.SoupSieve:
        """Compile a CSS selector, memoized per document."""
        compiled = self._compiled.get(selector)
        if compiled is None:
            try:
                compiled = soupsieve.compile(selector)
            except (soupsieve.SelectorSyntaxError, ValueError, TypeError, NotImplementedError) as e:
                raise SelectorSyntaxError(selector, e) from e
            self._compiled[selector] = compiled
        return compiled

    def _context(self, context: Optional[Node]) -> Tag:
        return self._soup if context is None else context.element

    def query_one(self, context: Optional[Node], selector: str) -> Optional[Node]:
        """First descendant of context (or of the document) matching selector."""
        element = self.compile(selector).select_one(self._context(context))
        return Node(element) if element is not None else None

    def query_all(self, context: Optional[Node], selector: str) -> List[Node]:
        """All descendants of context (or of the document) matching selector, in document order."""
        return [Node(element) for element in self.compile(selector).select(self._context(context))]
