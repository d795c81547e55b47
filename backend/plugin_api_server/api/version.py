from typing import Any, Dict

from fastapi import APIRouter

from plugin_api_server.core.dependencies import RegistryDep, SettingsDep
from plugin_api_server.core.config import Settings
from plugin_api_server.plugin_runtime.registry import PluginRegistry

router = APIRouter()


def get_version_payload(settings: Settings, registry: PluginRegistry | None = None) -> Dict[str, Any]:
    return {
        'version': settings.version,
        'app': settings.app_name,
        'plugins_loaded': len(registry) if registry is not None else None,
    }


@router.get('/version')
async def version(settings: SettingsDep, registry: RegistryDep):
    return get_version_payload(settings, registry)
