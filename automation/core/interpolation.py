"""Template interpolation of ``{{path.to.value}}`` placeholders against a context."""

import json
import re
from typing import Any, Mapping, Sequence

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w\-]+(?:\.[\w\-]+)*)\s*\}\}")


class _Missing:
    """Sentinel for a path that does not resolve."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def resolve_path(path: str, context: Any) -> Any:
    """
    Resolve a dotted path against a nested context.

    Mappings are walked by key, sequences by non-negative index and any other
    object by attribute. Returns ``MISSING`` as soon as a segment cannot be
    resolved.
    """
    if not isinstance(path, str) or not path:
        return MISSING

    current = context
    for segment in path.split("."):
        if current is None or current is MISSING:
            return MISSING
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not (segment.isascii() and segment.isdigit()):
                return MISSING
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return MISSING
        else:
            if segment.startswith("_"):
                return MISSING
            current = getattr(current, segment, MISSING)
    return current


def to_text(value: Any) -> str:
    """String form used for substitution and ``contains`` comparisons."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        try:
            return json.dumps(value, default=str, separators=(",", ":"))
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def interpolate_string(template: str, context: Any) -> str:
    """Replace every resolvable placeholder in ``template``; leave the rest untouched."""
    if "{{" not in template:
        return template

    def _substitute(match: "re.Match[str]") -> str:
        value = resolve_path(match.group(1), context)
        if value is MISSING or value is None:
            return match.group(0)
        try:
            return to_text(value)
        except (TypeError, ValueError):
            # str() refuses ints past the interpreter's digit limit
            return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_substitute, template)


def interpolate(value: Any, context: Any) -> Any:
    """
    Materialize a templated value against ``context``.

    Strings have their placeholders substituted, lists and tuples are
    interpolated element-wise, mappings value-wise (keys unchanged), and all
    other values are returned as they are. Never raises and never mutates
    its inputs.
    """
    if isinstance(value, str):
        return interpolate_string(value, context)
    if isinstance(value, Mapping):
        return {key: interpolate(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate(item, context) for item in value]
    if isinstance(value, tuple):
        return tuple(interpolate(item, context) for item in value)
    return value
