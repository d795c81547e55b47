from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from typing import List, Literal, Optional
import logging

from plugin_api_server.core.api_key import require_bearer_token
from plugin_api_server.core.dependencies import RegistryDep
from plugin_api_server.schemas.endpoint import EndpointFilters, EndpointMetadata, RegistryStats, ReloadRequest

router = APIRouter(prefix='/endpoints', tags=['endpoints'])
logger = logging.getLogger(__name__)


@router.get('', response_model=List[EndpointMetadata])
async def list_endpoints(
    registry: RegistryDep,
    method: Optional[str] = None,
    authenticated: Optional[bool] = None,
    tag: Optional[str] = None,
    deprecated: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: Literal['asc', 'desc'] = 'asc',
):
    """List registered plugin endpoints.

    Query params:
      method: only endpoints using this HTTP method (case-insensitive)
      authenticated: only endpoints whose bearer requirement matches
      tag: only endpoints carrying this tag
      deprecated: only endpoints whose deprecated flag matches
      sort_by / sort_order: sort by any metadata field, ascending by default
    """
    filters = EndpointFilters(
        method=method,
        authenticated=authenticated,
        tag=tag,
        deprecated=deprecated,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return registry.list_endpoints(filters)


@router.get('/stats', response_model=RegistryStats)
async def endpoint_stats(registry: RegistryDep):
    return registry.stats()


@router.post('/reload', response_model=EndpointMetadata, dependencies=[Depends(require_bearer_token)])
async def reload_endpoint(payload: ReloadRequest, registry: RegistryDep):
    file = payload.file.strip()
    if not file or file.startswith(('/', '\\')) or '..' in file.replace('\\', '/').split('/'):
        raise HTTPException(status_code=400, detail='Invalid plugin file name')
    if not (registry.plugins_dir / file).is_file():
        raise HTTPException(status_code=404, detail=f'Plugin file {file} not found')
    if not registry.reload(file):
        raise HTTPException(status_code=422, detail=f'Plugin {file} failed to load; see server log')
    handle = registry.get(file)
    if handle is None:  # pragma: no cover - reload reported success
        raise HTTPException(status_code=500, detail='Plugin disappeared after reload')
    logger.info("plugin reloaded via api file=%s", file)
    return handle.metadata.model_copy(deep=True)
