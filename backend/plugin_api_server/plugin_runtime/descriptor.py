"""Plugin descriptor data contract.

A plugin is a Python module in the plugins directory exposing a module level
``plugin`` dict::

    plugin = {
        'path': '/api/ping',
        'method': 'GET',
        'name': 'ping',
        'parameter': [{'name': 'message', 'required': False}],
        'rate_limit': {'limit': 10, 'window_ms': 60000},
        'timeout_ms': 5000,
        'exec': handle,
    }

`PluginDescriptor.from_mapping` turns that raw dict into a frozen dataclass
after the manifest validator has accepted its structure.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Pattern, Tuple, Union

from plugin_api_server.plugin_runtime.errors import ManifestInvalid

SUPPORTED_METHODS: Tuple[str, ...] = ('GET', 'POST', 'PUT', 'DELETE', 'PATCH')
PARAMETER_TYPES: Tuple[str, ...] = ('string', 'number', 'boolean', 'email', 'url')
DEFAULT_METHOD = 'GET'
DEFAULT_VERSION = '1.0.0'
DEFAULT_TIMEOUT_MS = 30000
PLUGIN_SUFFIX = '.py'


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _string_list(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        items: Iterable[Any] = (raw,)
    elif isinstance(raw, (list, tuple, set, frozenset)):
        items = raw
    else:
        items = (raw,)
    cleaned: List[str] = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def normalize_method(raw: Any) -> str:
    if raw is None:
        return DEFAULT_METHOD
    return str(raw).strip().upper()


def plugin_stem(file: str) -> str:
    name = file.rsplit('/', 1)[-1]
    if name.endswith(PLUGIN_SUFFIX):
        return name[: -len(PLUGIN_SUFFIX)]
    return name


def _length_bound(raw: Mapping[str, Any], key: str, name: str) -> Optional[int]:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"Parameter '{name}' {key!r} must be a non-negative integer")
    return value


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    required: bool = True
    type: Optional[str] = None
    min: Optional[int] = None
    max: Optional[int] = None
    pattern: Optional[str] = None
    # True when declared as a bare name string: presence is the only check.
    bare: bool = False
    regex: Optional[Pattern[str]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.pattern is not None:
            object.__setattr__(self, 'regex', re.compile(self.pattern))

    @classmethod
    def from_raw(cls, raw: Union[str, Mapping[str, Any]]) -> 'ParameterSpec':
        if isinstance(raw, str):
            return cls(name=raw, bare=True)
        if not isinstance(raw, Mapping):
            raise ValueError(f"Parameter definition must be a string or object, got {type(raw).__name__}")
        name = raw.get('name')
        if not name or not isinstance(name, str):
            raise ValueError("Parameter definition must have a 'name'")
        ptype = raw.get('type')
        pattern = raw.get('pattern')
        if pattern is not None and not isinstance(pattern, str):
            raise ValueError(f"Parameter '{name}' 'pattern' must be a string")
        try:
            return cls(
                name=name,
                required=bool(raw.get('required', True)),
                type=str(ptype).lower() if ptype else None,
                min=_length_bound(raw, 'min', name),
                max=_length_bound(raw, 'max', name),
                pattern=pattern,
            )
        except re.error as exc:
            raise ValueError(f"Parameter '{name}' 'pattern' is not a valid regular expression: {exc}") from exc

    def as_public(self) -> Union[str, Dict[str, Any]]:
        if self.bare:
            return self.name
        out: Dict[str, Any] = {'name': self.name, 'required': self.required}
        for key in ('type', 'min', 'max', 'pattern'):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class RateLimitSpec:
    limit: int
    window_ms: int

    def as_public(self) -> Dict[str, int]:
        return {'limit': self.limit, 'window_ms': self.window_ms}


@dataclass(frozen=True)
class PluginDescriptor:
    file: str
    path: str
    exec: Callable[..., Any]
    method: str = DEFAULT_METHOD
    name: str = ''
    description: str = ''
    tags: Tuple[str, ...] = ()
    authentication: bool = False
    parameters: Tuple[ParameterSpec, ...] = ()
    rate_limit: Optional[RateLimitSpec] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    health_check: Optional[Callable[[], Any]] = None
    version: str = DEFAULT_VERSION
    deprecated: bool = False
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], file: str, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> 'PluginDescriptor':
        """Normalize a structurally valid raw descriptor.

        Raises `ManifestInvalid` listing every malformed optional field.
        """
        errors: List[str] = []

        parameters: List[ParameterSpec] = []
        raw_params = raw.get('parameter') or raw.get('parameters') or []
        if isinstance(raw_params, (str, Mapping)):
            raw_params = [raw_params]
        if not isinstance(raw_params, (list, tuple)):
            errors.append("Plugin 'parameter' must be a list")
            raw_params = []
        for item in raw_params:
            try:
                parameters.append(ParameterSpec.from_raw(item))
            except ValueError as exc:
                errors.append(str(exc))

        rate_limit: Optional[RateLimitSpec] = None
        raw_rate = _first(raw, 'rate_limit', 'rateLimit')
        if raw_rate is not None:
            if not isinstance(raw_rate, Mapping):
                errors.append("Plugin 'rate_limit' must be an object with 'limit' and 'window_ms'")
            else:
                limit = _positive_int(raw_rate.get('limit'))
                window = _positive_int(_first(raw_rate, 'window_ms', 'windowMs', 'window'))
                if limit is None or window is None:
                    errors.append("Plugin 'rate_limit' requires positive 'limit' and 'window_ms'")
                else:
                    rate_limit = RateLimitSpec(limit=limit, window_ms=window)

        timeout_ms = default_timeout_ms
        raw_timeout = _first(raw, 'timeout_ms', 'timeoutMs', 'timeout')
        if raw_timeout is not None:
            parsed = _positive_int(raw_timeout)
            if parsed is None:
                errors.append("Plugin 'timeout_ms' must be a positive integer")
            else:
                timeout_ms = parsed

        health_check = _first(raw, 'health_check', 'healthCheck')
        if health_check is not None and not callable(health_check):
            errors.append("Plugin 'health_check' must be callable")
            health_check = None

        if errors:
            raise ManifestInvalid(file, errors)

        known = {
            'path', 'method', 'name', 'description', 'tags', 'authentication', 'parameter', 'parameters',
            'rate_limit', 'rateLimit', 'timeout_ms', 'timeoutMs', 'timeout', 'exec', 'health_check',
            'healthCheck', 'version', 'deprecated',
        }
        return cls(
            file=file,
            path=raw['path'],
            exec=raw['exec'],
            method=normalize_method(raw.get('method')),
            name=str(raw.get('name') or plugin_stem(file)),
            description=str(raw.get('description') or ''),
            tags=tuple(_string_list(raw.get('tags'))),
            authentication=bool(raw.get('authentication')),
            parameters=tuple(parameters),
            rate_limit=rate_limit,
            timeout_ms=timeout_ms,
            health_check=health_check,
            version=str(raw.get('version') or DEFAULT_VERSION),
            deprecated=bool(raw.get('deprecated')),
            extra={k: v for k, v in raw.items() if k not in known},
        )
