"""
Dependency injection setup for the application.
Provides FastAPI dependencies for the plugin registry and watcher owned by the
running app (created in `main.create_app`, stored on ``app.state``).
"""

from typing import Annotated, Optional
from fastapi import Depends, HTTPException, Request

from plugin_api_server.core.config import Settings
from plugin_api_server.plugin_runtime.registry import PluginRegistry
from plugin_api_server.plugin_runtime.watcher import PluginWatcher


def get_registry(request: Request) -> PluginRegistry:
    """Return the registry owned by the application handling this request."""
    registry = getattr(request.app.state, 'registry', None)
    if registry is None:
        raise HTTPException(status_code=503, detail='Plugin registry is not initialized')
    return registry


def get_watcher(request: Request) -> Optional[PluginWatcher]:
    return getattr(request.app.state, 'watcher', None)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# FastAPI dependency type annotations
RegistryDep = Annotated[PluginRegistry, Depends(get_registry)]
WatcherDep = Annotated[Optional[PluginWatcher], Depends(get_watcher)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
