"""
Extraction engine for html2json.

Walks a parsed Spec top-down against a Document and produces JSON.

Scoping:
- `$` on an object sets the scope element for all of its fields
- fields are resolved relative to that scope (or the incoming one)
- `$` as a field selector refers to the scope element itself
- array items become the scope of their own fields
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .config import Config
from .dom import Document, Node
from .pipes import RegexCache, run_pipeline
from .resolver import SelectorResolver
from .shaping import shape_fields
from .spec import (
    ArraySpec,
    FallbackField,
    Field,
    FieldSpec,
    LiteralField,
    NestedArrayField,
    NestedField,
    ObjectSpec,
    SelectorExpr,
    SelectorField,
    Spec,
    parse_spec,
)

logger = logging.getLogger(__name__)

_DEFAULT_REGEX_CACHE = RegexCache()


class Extractor:
    """
    Applies specs to one parsed document.

    The document is parsed once and only read afterwards, so a single
    Extractor can serve many extract() calls.
    """

    def __init__(
        self,
        document: Union[str, Document],
        config: Optional[Config] = None,
        regex_cache: Optional[RegexCache] = None,
    ):
        """
        Initialize Extractor.

        Args:
            document: Markup source or an already parsed Document
            config: Configuration (defaults apply when omitted)
            regex_cache: Regex cache shared by regex pipes; a private one is created when omitted
        """
        self.config = config or Config()
        if isinstance(document, str):
            document = Document.parse(document, self.config.parser)
        self.document = document
        self.resolver = SelectorResolver(document)
        if regex_cache is None:
            regex_cache = RegexCache(self.config.limits.max_regex_size)
        self.regex_cache = regex_cache

    def extract(self, spec: Union[Spec, Any]) -> Any:
        """
        Extract JSON from the document.

        Args:
            spec: Parsed Spec, or a decoded JSON spec to parse first

        Returns:
            JSON value (dict, list or literal)
        """
        if not isinstance(spec, Spec):
            spec = parse_spec(spec)

        root = spec.root
        if isinstance(root, ObjectSpec):
            return self._extract_object(root, None)
        if isinstance(root, ArraySpec):
            return self._extract_array(root, None)
        return root.to_json()

    def _extract_object(self, spec: ObjectSpec, scope: Optional[Node]) -> Dict[str, Any]:
        return self._extract_fields(spec.fields, self._resolve_scope(spec.scope_selector, scope))

    def _resolve_scope(self, selector: Optional[SelectorExpr], scope: Optional[Node]) -> Optional[Node]:
        if selector is None:
            return scope
        return self.resolver.query_one(selector, scope)

    def _extract_fields(self, fields: Dict[str, Field], scope: Optional[Node]) -> Dict[str, Any]:
        return shape_fields(
            (key, self._extract_field(field.spec, scope), field.optional)
            for key, field in fields.items()
        )

    def _extract_field(self, spec: FieldSpec, scope: Optional[Node]) -> Any:
        if isinstance(spec, LiteralField):
            return spec.value.to_json()
        if isinstance(spec, NestedField):
            return self._extract_object(spec.spec, scope)
        if isinstance(spec, NestedArrayField):
            return self._extract_array(spec.spec, scope)
        if isinstance(spec, SelectorField):
            return self._extract_selector(spec, scope)
        if isinstance(spec, FallbackField):
            return self._extract_fallback(spec, scope)
        raise TypeError(f"Unsupported field spec: {type(spec).__name__}")

    def _extract_selector(self, spec: SelectorField, scope: Optional[Node]) -> Any:
        node = self.resolver.query_one(spec.selector, scope)
        return run_pipeline(node, spec.pipes, self.regex_cache)

    def _extract_fallback(self, spec: FallbackField, scope: Optional[Node]) -> Any:
        """Try each alternative until one yields neither null nor blank text."""
        for alternative in spec.alternatives:
            value = self._extract_selector(alternative, scope)
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            return value
        return None

    def _extract_array(self, spec: ArraySpec, scope: Optional[Node]) -> List[Any]:
        item_spec = spec.item_spec
        selector = item_spec.scope_selector

        # `$` wraps the current scope as the only item
        if selector is not None and selector.is_self_ref:
            return [self._extract_object(item_spec, scope)]

        nodes = self.resolver.query_all(selector, scope)
        logger.debug(f"Array selector '{selector or '*'}' matched {len(nodes)} items")

        # Each match is already the item's scope; its selector is not reapplied
        return [self._extract_fields(item_spec.fields, node) for node in nodes]


def extract(
    source: Union[str, Document],
    spec: Union[Spec, Any],
    config: Optional[Config] = None,
    regex_cache: Optional[RegexCache] = None,
) -> Any:
    """
    Extract JSON from markup using a spec.

    The spec is parsed before the document is touched, so a malformed spec
    fails without any parsing work.

    Args:
        source: Markup source or an already parsed Document
        spec: Parsed Spec or decoded JSON spec
        config: Optional configuration
        regex_cache: Optional regex cache (a process default is used when both this and config are omitted)

    Returns:
        Extracted JSON value
    """
    if not isinstance(spec, Spec):
        spec = parse_spec(spec)
    if regex_cache is None and config is None:
        regex_cache = _DEFAULT_REGEX_CACHE
    return Extractor(source, config, regex_cache).extract(spec)
