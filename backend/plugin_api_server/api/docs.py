from __future__ import annotations
from typing import Any, Dict, List

from fastapi import APIRouter, Request

from plugin_api_server.core.dependencies import RegistryDep, SettingsDep
from plugin_api_server.schemas.endpoint import EndpointMetadata

router = APIRouter(prefix='/docs', tags=['docs'])

_STANDARD_RESPONSES = {
    '200': {'description': 'Success'},
    '400': {'description': 'Bad Request'},
    '401': {'description': 'Unauthorized'},
    '403': {'description': 'Forbidden'},
    '429': {'description': 'Too Many Requests'},
    '500': {'description': 'Internal Server Error'},
}


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip('/')


def _parameter_doc(param: Any, method: str) -> Dict[str, Any]:
    if isinstance(param, str):
        name, required, ptype = param, True, 'string'
    else:
        name = param.get('name')
        required = bool(param.get('required', True))
        ptype = param.get('type') or 'string'
    schema: Dict[str, Any] = {'type': ptype}
    if ptype == 'email':
        schema = {'type': 'string', 'format': 'email'}
    elif ptype == 'url':
        schema = {'type': 'string', 'format': 'uri'}
    elif ptype not in ('string', 'number', 'boolean'):
        schema = {'type': 'string'}
    if isinstance(param, dict):
        if param.get('min') is not None:
            schema['minLength'] = param['min']
        if param.get('max') is not None:
            schema['maxLength'] = param['max']
        if param.get('pattern'):
            schema['pattern'] = param['pattern']
    return {
        'name': name,
        'in': 'query' if method == 'GET' else 'body',
        'required': required,
        'schema': schema,
    }


def build_openapi(endpoints: List[EndpointMetadata], title: str, version: str, server_url: str) -> Dict[str, Any]:
    """OpenAPI 3.0 document describing the currently registered plugin routes."""
    spec: Dict[str, Any] = {
        'openapi': '3.0.0',
        'info': {
            'title': title,
            'version': version,
            'description': 'Auto-generated API documentation',
        },
        'servers': [{'url': server_url, 'description': 'Current server'}],
        'paths': {},
    }
    for endpoint in endpoints:
        operation: Dict[str, Any] = {
            'summary': endpoint.name,
            'description': endpoint.description,
            'tags': list(endpoint.tags),
            'deprecated': endpoint.deprecated,
            'parameters': [_parameter_doc(p, endpoint.method) for p in endpoint.parameter],
            'responses': dict(_STANDARD_RESPONSES),
        }
        if endpoint.authentication:
            operation['security'] = [{'bearerAuth': []}]
        spec['paths'].setdefault(endpoint.path, {})[endpoint.method.lower()] = operation

    if any(e.authentication for e in endpoints):
        spec['components'] = {
            'securitySchemes': {
                'bearerAuth': {'type': 'http', 'scheme': 'bearer'},
            }
        }
    return spec


@router.get('/endpoints')
async def endpoint_docs(request: Request, registry: RegistryDep, settings: SettingsDep):
    base_url = _base_url(request)
    endpoints = registry.list_endpoints()
    return {
        'title': 'API Documentation',
        'version': settings.version,
        'base_url': base_url,
        'endpoints': [
            {**e.model_dump(), 'example': f"{base_url}{e.path}"}
            for e in endpoints
        ],
    }


@router.get('/openapi.json')
async def plugin_openapi(request: Request, registry: RegistryDep, settings: SettingsDep):
    return build_openapi(registry.list_endpoints(), f"{settings.app_name} plugins", settings.version, _base_url(request))
