"""
Selector resolver for html2json.

Maps a parsed SelectorExpr plus the current scope to document nodes. The
selector's algebraic form was fixed at spec-parse time, so resolution only
switches on SelectorExpr.kind:

- `$`          the scope node itself, no query
- `+ sel`      first following sibling of the scope containing `sel`
- `> sel`      `sel` queried under the scope (or the whole document)
- `sel`        plain query under the scope (or the whole document)
"""

import logging
from typing import List, Optional

from .dom import Document, Node
from .errors import ScopeRequiredError
from .spec import SelectorExpr, SelectorKind

logger = logging.getLogger(__name__)

MATCH_ALL = "*"


class SelectorResolver:
    """Resolves selectors against a Document without mutating it."""

    def __init__(self, document: Document):
        self.document = document

    def query_one(self, selector: SelectorExpr, scope: Optional[Node]) -> Optional[Node]:
        """
        Resolve a selector to at most one node.

        Args:
            selector: Parsed selector expression
            scope: Current scope node, or None for the whole document

        Returns:
            Matching node or None

        Raises:
            ScopeRequiredError: For a next-sibling selector without scope
            SelectorSyntaxError: For invalid CSS
        """
        if selector.kind is SelectorKind.SELF_REF:
            return scope

        if selector.kind is SelectorKind.NEXT_SIBLING:
            return self._next_sibling_match(selector, scope)

        return self.document.query_one(scope, selector.query)

    def query_all(self, selector: Optional[SelectorExpr], scope: Optional[Node]) -> List[Node]:
        """
        Resolve a selector to every matching node in document order.

        A missing selector matches every element under the scope.
        """
        if selector is None:
            return self.document.query_all(scope, MATCH_ALL)

        if selector.kind is SelectorKind.SELF_REF:
            return [scope] if scope is not None else []

        if selector.kind is SelectorKind.NEXT_SIBLING:
            sibling = self._matching_sibling(selector, scope)
            return self.document.query_all(sibling, selector.query) if sibling is not None else []

        return self.document.query_all(scope, selector.query or MATCH_ALL)

    def _next_sibling_match(self, selector: SelectorExpr, scope: Optional[Node]) -> Optional[Node]:
        sibling = self._matching_sibling(selector, scope)
        if sibling is None:
            return None
        return self.document.query_one(sibling, selector.query)

    def _matching_sibling(self, selector: SelectorExpr, scope: Optional[Node]) -> Optional[Node]:
        """First following sibling of scope whose subtree contains a match."""
        if scope is None:
            raise ScopeRequiredError(selector.raw)

        # Surface syntax errors even when there are no siblings to scan
        self.document.compile(selector.query)

        for sibling in scope.following_siblings():
            if self.document.query_one(sibling, selector.query) is not None:
                return sibling

        logger.debug(f"No following sibling of {scope!r} matches '{selector.query}'")
        return None
