"""
Spec model and parser for html2json.

Turns the JSON extraction DSL into an immutable tree of Pydantic models.
The DSL supports:
- Object specs with an optional scope selector (`$`)
- Array specs for extracting collections
- Literal values (quoted strings, numbers, booleans, null)
- Selector strings with pipe transformations (`sel | pipe | pipe`)
- Fallback chains (`sel-a || sel-b`)
- Optional fields (trailing `?` on the key)
"""

import logging
import math
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, StrictBool, StrictFloat, StrictStr

from .errors import SpecParseError

logger = logging.getLogger(__name__)

SCOPE_KEY = "$"
SELF_REF = "$"
OPTIONAL_SUFFIX = "?"
FALLBACK_SEPARATOR = "||"
PIPE_SEPARATOR = "|"
NEXT_SIBLING_PREFIX = "+ "
DIRECT_CHILD_PREFIX = ">"

_SUBSTR_INDEX = re.compile(r"[0-9]+")


class SelectorKind(str, Enum):
    """Algebraic form of a selector, decided once at parse time."""
    SELF_REF = "self_ref"
    NEXT_SIBLING = "next_sibling"
    DIRECT_CHILD = "direct_child"
    PLAIN = "plain"


class SelectorExpr(BaseModel):
    """A selector string tagged with its algebraic form."""
    raw: str
    kind: SelectorKind
    query: str = ""  # CSS text handed to the document collaborator

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, raw: str) -> "SelectorExpr":
        text = raw.strip()
        if text == SELF_REF:
            return cls(raw=text, kind=SelectorKind.SELF_REF)
        if text.startswith(NEXT_SIBLING_PREFIX):
            return cls(raw=text, kind=SelectorKind.NEXT_SIBLING, query=text[len(NEXT_SIBLING_PREFIX):].strip())
        if text.startswith(DIRECT_CHILD_PREFIX):
            return cls(raw=text, kind=SelectorKind.DIRECT_CHILD, query=text[len(DIRECT_CHILD_PREFIX):].strip())
        return cls(raw=text, kind=SelectorKind.PLAIN, query=text)

    @property
    def is_self_ref(self) -> bool:
        return self.kind is SelectorKind.SELF_REF

    def __str__(self) -> str:
        return self.raw


class PipeKind(str, Enum):
    ATTR = "attr"
    VOID = "void"
    TRIM = "trim"
    LOWER = "lower"
    UPPER = "upper"
    SUBSTR = "substr"
    PARSE_NUMBER = "parseAs:number"
    PARSE_INT = "parseAs:int"
    PARSE_FLOAT = "parseAs:float"
    REGEX = "regex"


SOURCE_PIPES = frozenset({PipeKind.ATTR, PipeKind.VOID})

_KEYWORD_PIPES = {
    "trim": PipeKind.TRIM,
    "text": PipeKind.TRIM,
    "lower": PipeKind.LOWER,
    "upper": PipeKind.UPPER,
    "void": PipeKind.VOID,
    "parseAs:number": PipeKind.PARSE_NUMBER,
    "parseAs:int": PipeKind.PARSE_INT,
    "parseAs:float": PipeKind.PARSE_FLOAT,
}


class PipeCommand(BaseModel):
    """A single pipe token. Only the arguments relevant to `kind` are set."""
    kind: PipeKind
    name: Optional[str] = None  # attr
    start: int = 0  # substr
    end: Optional[int] = None  # substr
    pattern: Optional[str] = None  # regex

    model_config = ConfigDict(frozen=True)

    @property
    def is_source(self) -> bool:
        return self.kind in SOURCE_PIPES

    def __str__(self) -> str:
        if self.kind is PipeKind.ATTR:
            return f"attr:{self.name}"
        if self.kind is PipeKind.SUBSTR:
            return f"substr:{self.start}" + (f":{self.end}" if self.end is not None else "")
        if self.kind is PipeKind.REGEX:
            return f"regex:{self.pattern}"
        return self.kind.value


class LiteralValue(BaseModel):
    """A constant value emitted verbatim, independent of the document."""
    value: Union[StrictBool, StrictFloat, StrictStr, None] = None

    model_config = ConfigDict(frozen=True)

    def to_json(self) -> Any:
        return self.value


class SelectorField(BaseModel):
    selector: SelectorExpr
    pipes: Tuple[PipeCommand, ...] = ()

    model_config = ConfigDict(frozen=True)


class FallbackField(BaseModel):
    """Alternatives tried left to right until one yields a non-blank value."""
    alternatives: Tuple[SelectorField, ...]

    model_config = ConfigDict(frozen=True)


class NestedField(BaseModel):
    spec: "ObjectSpec"

    model_config = ConfigDict(frozen=True)


class NestedArrayField(BaseModel):
    spec: "ArraySpec"

    model_config = ConfigDict(frozen=True)


class LiteralField(BaseModel):
    value: LiteralValue

    model_config = ConfigDict(frozen=True)


FieldSpec = Union[SelectorField, FallbackField, NestedField, NestedArrayField, LiteralField]


class Field(BaseModel):
    spec: FieldSpec
    optional: bool = False

    model_config = ConfigDict(frozen=True)


class ObjectSpec(BaseModel):
    """
    Map of output keys to field specs.

    All selectors in `fields` are evaluated relative to the element matched
    by `scope_selector` (or the incoming scope when there is none).
    """
    scope_selector: Optional[SelectorExpr] = None
    fields: Dict[str, Field] = {}

    model_config = ConfigDict(frozen=True)


class ArraySpec(BaseModel):
    """Collection spec; item_spec.scope_selector picks the array items."""
    item_spec: ObjectSpec

    model_config = ConfigDict(frozen=True)


NestedField.model_rebuild()
NestedArrayField.model_rebuild()
Field.model_rebuild()
ObjectSpec.model_rebuild()


class Spec(BaseModel):
    """Root of one extraction call."""
    root: Union[ObjectSpec, ArraySpec, LiteralValue]

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_json(cls, value: Any) -> "Spec":
        return parse_spec(value)


def parse_spec(value: Any) -> Spec:
    """
    Parse a decoded JSON value into a Spec.

    Args:
        value: Decoded JSON (dict, list, str, number, bool or None)

    Returns:
        Immutable Spec tree

    Raises:
        SpecParseError: If any part of the spec is malformed
    """
    if isinstance(value, dict):
        spec = Spec(root=_parse_object_spec(value, "$"))
    elif isinstance(value, list):
        if value:
            spec = Spec(root=ArraySpec(item_spec=_parse_object_spec(value[0], "$[0]")))
        else:
            spec = Spec(root=LiteralValue(value=None))
    else:
        literal = _parse_literal(value, "$")
        if literal is None:
            raise SpecParseError(
                f"Root spec must be an object, array or literal, got selector string '{value}'",
                context={"path": "$"},
            )
        spec = Spec(root=literal)

    logger.debug(f"Parsed spec with root {type(spec.root).__name__}")
    return spec


def _parse_object_spec(value: Any, path: str) -> ObjectSpec:
    if not isinstance(value, dict):
        raise SpecParseError(
            f"Expected object at {path}, got {type(value).__name__}",
            context={"path": path},
        )

    scope_selector = None
    fields: Dict[str, Field] = {}

    for key, raw in value.items():
        if key == SCOPE_KEY:
            if not isinstance(raw, str):
                raise SpecParseError(
                    f"Scope selector at {path} must be a string, got {type(raw).__name__}",
                    context={"path": path},
                )
            scope_selector = SelectorExpr.parse(raw)
            continue

        optional = key.endswith(OPTIONAL_SUFFIX)
        name = key[:-len(OPTIONAL_SUFFIX)] if optional else key
        if name in fields:
            raise SpecParseError(
                f"Duplicate field '{name}' at {path}",
                context={"path": path, "field": name},
            )
        fields[name] = Field(spec=_parse_field(raw, f"{path}.{name}"), optional=optional)

    return ObjectSpec(scope_selector=scope_selector, fields=fields)


def _parse_field(value: Any, path: str) -> FieldSpec:
    if isinstance(value, dict):
        return NestedField(spec=_parse_object_spec(value, path))

    if isinstance(value, list):
        if not value:
            return LiteralField(value=LiteralValue(value=None))
        return NestedArrayField(spec=ArraySpec(item_spec=_parse_object_spec(value[0], f"{path}[0]")))

    literal = _parse_literal(value, path)
    if literal is not None:
        return LiteralField(value=literal)

    try:
        if FALLBACK_SEPARATOR in value:
            alternatives = []
            for part in value.split(FALLBACK_SEPARATOR):
                if not part.strip():
                    raise SpecParseError(f"Empty alternative in fallback selector '{value}'")
                alternatives.append(parse_selector_string(part))
            return FallbackField(alternatives=tuple(alternatives))
        return parse_selector_string(value)
    except SpecParseError as e:
        raise SpecParseError(f"{e} (at {path})", context={**e.context, "path": path}) from e


def _parse_literal(value: Any, path: str) -> Optional[LiteralValue]:
    """Return a LiteralValue for JSON scalars and quoted strings, else None."""
    if value is None:
        return LiteralValue(value=None)
    if isinstance(value, bool):
        return LiteralValue(value=value)
    if isinstance(value, (int, float)):
        return LiteralValue(value=_parse_number_literal(value, path))
    if not isinstance(value, str):
        raise SpecParseError(
            f"Unsupported spec value of type {type(value).__name__} at {path}",
            context={"path": path},
        )

    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in ("'", '"'):
        return LiteralValue(value=trimmed[1:-1])
    return None


def _parse_number_literal(value: Any, path: str) -> float:
    # JSON output has no NaN or infinity; huge integers do not fit a float
    try:
        number = float(value)
    except OverflowError:
        number = math.inf
    if not math.isfinite(number):
        raise SpecParseError(f"Numeric literal at {path} is out of range", context={"path": path})
    return number


def parse_selector_string(text: str) -> SelectorField:
    """
    Split a selector string into its base selector and pipe commands.

    Formats supported:
    - "selector"                  -> selector, no pipes
    - "selector | pipe1 | pipe2"  -> selector, [pipe1, pipe2]
    - "$ | pipe1"                 -> self reference, [pipe1]
    - "attr:name | pipe1"         -> self reference, [attr:name, pipe1]
    """
    trimmed = text.strip()
    if trimmed == SELF_REF:
        return SelectorField(selector=SelectorExpr.parse(SELF_REF))

    parts = [part.strip() for part in trimmed.split(PIPE_SEPARATOR)]

    if parts[0].startswith("attr:"):
        selector, pipe_tokens = SelectorExpr.parse(SELF_REF), parts
    else:
        selector, pipe_tokens = SelectorExpr.parse(parts[0]), parts[1:]

    pipes = tuple(parse_pipe_command(token) for token in pipe_tokens if token)
    _check_source_pipes(pipes, trimmed)
    return SelectorField(selector=selector, pipes=pipes)


def parse_pipe_command(token: str) -> PipeCommand:
    """Parse one pipe token such as `trim`, `attr:href` or `substr:0:4`."""
    kind = _KEYWORD_PIPES.get(token)
    if kind is not None:
        return PipeCommand(kind=kind)

    if token.startswith("attr:"):
        return PipeCommand(kind=PipeKind.ATTR, name=token[len("attr:"):])

    if token.startswith("substr:"):
        return _parse_substr(token[len("substr:"):])

    if token.startswith("regex:"):
        return PipeCommand(kind=PipeKind.REGEX, pattern=token[len("regex:"):])

    raise SpecParseError(f"Unknown pipe command: {token}", context={"token": token})


def _parse_substr(rest: str) -> PipeCommand:
    parts = rest.split(":")
    start = _parse_index(parts[0], "start")
    end = _parse_index(parts[1], "end") if len(parts) > 1 else None
    return PipeCommand(kind=PipeKind.SUBSTR, start=start, end=end)


def _parse_index(text: str, label: str) -> int:
    if not _SUBSTR_INDEX.fullmatch(text):
        raise SpecParseError(f"Invalid substr {label}: {text}", context={"token": text})
    return int(text)


def _check_source_pipes(pipes: Tuple[PipeCommand, ...], text: str) -> None:
    sources: List[int] = [i for i, pipe in enumerate(pipes) if pipe.is_source]
    if len(sources) > 1:
        raise SpecParseError(f"Only one attr/void pipe is allowed in '{text}'", context={"selector": text})
    if sources and sources[0] != 0:
        raise SpecParseError(f"attr/void pipe must come first in '{text}'", context={"selector": text})
