"""
Template variable resolution for workflow configs.

`{{node.field}}` tokens are looked up as dotted paths in the execution
context:

    >>> resolve("Hello {{trigger.name}}", {"trigger": {"name": "John"}})
    'Hello John'

A token whose path does not exist is left untouched, so resolving twice is
the same as resolving once.
"""
import json
import re
from typing import Any, Dict, List


VARIABLE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

_MISSING = object()


def _lookup(path: str, context: Dict[str, Any]):
    value: Any = context
    for key in path.strip().split("."):
        if isinstance(value, dict) and key in value:
            value = value[key]
        elif isinstance(value, (list, tuple)) and key.isdigit() and int(key) < len(value):
            value = value[int(key)]
        else:
            return _MISSING
    return value


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple, bool)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def resolve(text: Any, context: Dict[str, Any]) -> Any:
    """Replace every `{{a.b.c}}` in text with its value from context."""
    if not text or not isinstance(text, str):
        return text

    def _replace(match):
        value = _lookup(match.group(1), context)
        if value is _MISSING:
            return match.group(0)
        return to_text(value)

    return VARIABLE_PATTERN.sub(_replace, text)


def resolve_in_object(obj: Any, context: Dict[str, Any]) -> Any:
    """Resolve variables in every string of a JSON-like tree."""
    if isinstance(obj, str):
        return resolve(obj, context)
    if isinstance(obj, list):
        return [resolve_in_object(item, context) for item in obj]
    if isinstance(obj, dict):
        return {key: resolve_in_object(val, context) for key, val in obj.items()}
    return obj


def has_variables(text: str) -> bool:
    return isinstance(text, str) and VARIABLE_PATTERN.search(text) is not None


def extract_variables(text: str) -> List[str]:
    """Root names referenced by the template, e.g. ["trigger", "summarize"]."""
    if not isinstance(text, str):
        return []
    return [m.strip().split(".")[0] for m in VARIABLE_PATTERN.findall(text)]
