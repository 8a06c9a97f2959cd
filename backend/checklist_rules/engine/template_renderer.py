"""Template Renderer - {{placeholder}} substitution shared by content and actions"""
import json
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from .condition_evaluator import MISSING, get_path_value

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w-]+(?:\.[\w-]+)*)\s*\}\}")


def stringify(value: Any) -> str:
    """
    Convert an interpolated value to text

    None renders as an empty string, booleans as true/false, integral
    floats without a trailing .0, lists comma-joined and dicts as JSON.
    """
    if value is None or value is MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def render_variables(
    template: str,
    variables: Dict[str, Any],
    transform: Optional[Callable[[Any], str]] = None
) -> str:
    """
    Replace every {{name}} with the named variable's value

    Missing variables render as an empty string. `transform` receives the
    raw value (None when missing) and returns the text to insert.
    """
    transform = transform or stringify

    def _replace(match: "re.Match[str]") -> str:
        return transform(variables.get(match.group(1)))

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def render_payload(template: Any, payload: Dict[str, Any]) -> Any:
    """
    Resolve {{path.to.value}} placeholders against an event payload

    Strings are rendered, dicts and lists are rendered recursively, other
    values are returned unchanged. A path that does not resolve keeps its
    literal placeholder text; a path resolving to None renders empty.
    """
    if isinstance(template, str):
        def _replace(match: "re.Match[str]") -> str:
            value = get_path_value(payload, match.group(1))
            if value is MISSING:
                return match.group(0)
            return stringify(value)

        return PLACEHOLDER_PATTERN.sub(_replace, template)

    if isinstance(template, dict):
        return {key: render_payload(value, payload) for key, value in template.items()}

    if isinstance(template, list):
        return [render_payload(item, payload) for item in template]

    return template
