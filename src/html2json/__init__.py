"""
html2json - Extract structured JSON from HTML/XML using a declarative JSON spec

This package walks a parsed document with CSS selectors described data-first:
- Scoped objects and arrays (`$` selects the scope element)
- Pipe transformations (`sel | trim | parseAs:int`)
- Attribute and void-element sources (`attr:href`, `void`)
- Fallback chains (`sel-a || sel-b`)
- Optional fields (`"key?"`) with JSON null pruning
"""

__version__ = "0.1.0"

from .config import load_config, Config, LimitsConfig, HttpConfig
from .dom import Document, Node
from .errors import (
    Html2JsonError,
    SpecParseError,
    SelectorSyntaxError,
    ScopeRequiredError,
    TypeMismatchError,
    ConversionError,
    RegexCompileError,
    CacheError,
    InputError,
)
from .extractor import Extractor, extract
from .pipes import RegexCache
from .shaping import shape_object
from .spec import Spec, parse_spec

__all__ = [
    "load_config",
    "Config",
    "LimitsConfig",
    "HttpConfig",
    "Document",
    "Node",
    "Html2JsonError",
    "SpecParseError",
    "SelectorSyntaxError",
    "ScopeRequiredError",
    "TypeMismatchError",
    "ConversionError",
    "RegexCompileError",
    "CacheError",
    "InputError",
    "Extractor",
    "extract",
    "RegexCache",
    "shape_object",
    "Spec",
    "parse_spec",
]
