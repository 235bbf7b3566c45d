"""
JSON shaping for extracted objects.

Rules, applied once per produced object:
- optional field with null value: key omitted
- non-optional field with null value: key kept as null
- object value: nulls removed recursively; an object left empty drops the key
- array value: each element cleaned; an empty array drops the key only if optional
- anything else: kept unchanged

Re-applying shaping to its own output changes nothing.
"""

from typing import Any, Dict, Iterable, Tuple


def shape_fields(fields: Iterable[Tuple[str, Any, bool]]) -> Dict[str, Any]:
    """
    Build a JSON object from (key, value, optional) triples.

    Args:
        fields: Extracted field values with their optional flag

    Returns:
        Shaped JSON object
    """
    result: Dict[str, Any] = {}

    for key, value, optional in fields:
        if value is None:
            if not optional:
                result[key] = None
        elif isinstance(value, dict):
            cleaned = clean_value(value)
            if cleaned is not None:
                result[key] = cleaned
        elif isinstance(value, list):
            items = [clean_value(item) for item in value]
            if items or not optional:
                result[key] = items
        else:
            result[key] = value

    return result


def shape_object(values: Dict[str, Any], optional_keys: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Shape an already-assembled object given the set of optional keys.

    Public helper for callers holding a plain dict; the engine itself builds
    objects field by field through shape_fields.
    """
    optional = set(optional_keys)
    return shape_fields((key, value, key in optional) for key, value in values.items())


def clean_value(value: Any) -> Any:
    """
    Recursively drop null members.

    Objects that end up empty collapse to None; arrays lose their None items.
    """
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            item = clean_value(item)
            if item is not None:
                cleaned[key] = item
        return cleaned or None

    if isinstance(value, list):
        return [item for item in (clean_value(v) for v in value) if item is not None]

    return value
