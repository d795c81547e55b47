from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from plugin_api_server.plugin_runtime.descriptor import PluginDescriptor


class EndpointMetadata(BaseModel):
    """Docs/introspection view of one registered plugin route."""

    path: str
    name: str
    description: str = ''
    authentication: bool = False
    method: str = 'GET'
    tags: List[str] = Field(default_factory=list)
    parameter: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    version: str = '1.0.0'
    deprecated: bool = False
    rate_limit: Optional[Dict[str, int]] = None
    timeout_ms: int = 30000
    file: str

    @classmethod
    def from_descriptor(cls, descriptor: PluginDescriptor) -> 'EndpointMetadata':
        return cls(
            path=descriptor.path,
            name=descriptor.name,
            description=descriptor.description,
            authentication=descriptor.authentication,
            method=descriptor.method,
            tags=list(descriptor.tags),
            parameter=[p.as_public() for p in descriptor.parameters],
            version=descriptor.version,
            deprecated=descriptor.deprecated,
            rate_limit=descriptor.rate_limit.as_public() if descriptor.rate_limit else None,
            timeout_ms=descriptor.timeout_ms,
            file=descriptor.file,
        )


class EndpointFilters(BaseModel):
    method: Optional[str] = None
    authenticated: Optional[bool] = None
    tag: Optional[str] = None
    deprecated: Optional[bool] = None
    sort_by: Optional[str] = None
    sort_order: Literal['asc', 'desc'] = 'asc'


class RegistryStats(BaseModel):
    total_plugins: int
    total_endpoints: int
    method_distribution: Dict[str, int] = Field(default_factory=dict)
    auth_required_count: int = 0
    deprecated_count: int = 0


class LoadSummary(BaseModel):
    loaded: int = 0
    failed: int = 0


class ReloadRequest(BaseModel):
    file: str
