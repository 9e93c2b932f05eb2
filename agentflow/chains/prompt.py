import json
import re
from typing import Any, Dict, Optional

# {name} but not {{name}}
PLACEHOLDER = re.compile(r"(?<!\{)\{(\w+)\}(?!\})")


def _as_text(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if value is None:
        return ""
    return str(value)


def format_prompt(template: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """
    Fill `{name}` placeholders from `variables`.

    Placeholders with no matching variable are left in place.

    >>> format_prompt("Summarize {topic} for {audience}", {"topic": "cats"})
    'Summarize cats for {audience}'
    """
    variables = variables or {}

    def replace(match):
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return _as_text(variables[name])

    return PLACEHOLDER.sub(replace, template or "")


def template_variables(template: str):
    return list(dict.fromkeys(PLACEHOLDER.findall(template or "")))
