from __future__ import annotations
import json
import math
import re
from typing import Any, Iterable, List, Mapping

from plugin_api_server.plugin_runtime.descriptor import ParameterSpec

_EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_URL_RE = re.compile(r'^https?://.+')


def is_absent(value: Any) -> bool:
    return value is None or value == ''


def _is_number(value: Any) -> bool:
    if isinstance(value, (bool, int)):
        return True
    if isinstance(value, float):
        return not math.isnan(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return True
        try:
            return not math.isnan(float(text))
        except ValueError:
            return False
    return False


def matches_type(value: Any, type_name: str | None) -> bool:
    if type_name == 'string':
        return isinstance(value, str)
    if type_name == 'number':
        return _is_number(value)
    if type_name == 'boolean':
        return isinstance(value, bool) or value in ('true', 'false')
    if type_name == 'email':
        return isinstance(value, str) and bool(_EMAIL_RE.match(value))
    if type_name == 'url':
        return isinstance(value, str) and bool(_URL_RE.match(value))
    # Unknown or unset types accept anything.
    return True


def _pattern_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)) or value is None:
        # JSON spelling: true/false/null rather than True/False/None.
        return json.dumps(value)
    return str(value)


def _length(value: Any) -> int | None:
    if isinstance(value, (str, list, tuple)):
        return len(value)
    return None


def validate_parameters(specs: Iterable[ParameterSpec], source: Mapping[str, Any]) -> List[str]:
    """Check every spec against `source`, returning all violations in order."""
    errors: List[str] = []
    for spec in specs:
        value = source.get(spec.name)
        if is_absent(value):
            if spec.required:
                errors.append(f"Parameter '{spec.name}' is required")
            continue
        if spec.bare:
            continue

        if spec.type and not matches_type(value, spec.type):
            errors.append(f"Parameter '{spec.name}' must be of type {spec.type}")

        length = _length(value)
        if length is not None:
            if spec.min is not None and length < spec.min:
                errors.append(f"Parameter '{spec.name}' must be at least {spec.min} characters")
            if spec.max is not None and length > spec.max:
                errors.append(f"Parameter '{spec.name}' must be at most {spec.max} characters")

        if spec.regex is not None and not spec.regex.search(_pattern_text(value)):
            errors.append(f"Parameter '{spec.name}' format is invalid")
    return errors
