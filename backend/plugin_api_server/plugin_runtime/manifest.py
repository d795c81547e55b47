from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List, Mapping

from plugin_api_server.plugin_runtime.descriptor import SUPPORTED_METHODS, normalize_method


@dataclass
class ManifestValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)


def validate_manifest(raw: Any, file: str) -> ManifestValidation:
    """Structural checks on a freshly read descriptor.

    Every failing check is reported; nothing short-circuits except a
    descriptor that is not a mapping at all.
    """
    errors: List[str] = []

    if not isinstance(raw, Mapping):
        errors.append("Plugin must export an object")
        return ManifestValidation(valid=False, errors=errors)

    route_path = raw.get('path')
    method = raw.get('method')
    handler = raw.get('exec')

    if not route_path or not isinstance(route_path, str):
        errors.append("Plugin must have a valid 'path' property")

    if not callable(handler):
        errors.append("Plugin must have a valid 'exec' function")

    if normalize_method(method) not in SUPPORTED_METHODS:
        errors.append(f"Method '{method}' is not supported. Use: {', '.join(SUPPORTED_METHODS)}")

    if route_path and isinstance(route_path, str) and not route_path.startswith('/'):
        errors.append("Route path must start with '/'")

    return ManifestValidation(valid=not errors, errors=errors)
