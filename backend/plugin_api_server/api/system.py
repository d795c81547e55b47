from __future__ import annotations

import logging
import time

import psutil
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from plugin_api_server.core.dependencies import RegistryDep, SettingsDep, WatcherDep
from plugin_api_server.plugin_runtime.errors import iso_timestamp
from plugin_api_server.schemas.health import HealthStatus, SystemHealthSnapshot
from plugin_api_server.schemas.metrics import ProcessCpu, ProcessMemory, SystemMetrics

router = APIRouter(prefix="/system", tags=["system"])
_log = logging.getLogger(__name__)


def _overall(plugins: dict) -> HealthStatus:
    statuses = {str(result.get('status', 'ok')).lower() for result in plugins.values()}
    if 'error' in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


def _uptime(request: Request) -> float:
    started = getattr(request.app.state, 'started_at', None) or time.monotonic()
    return round(time.monotonic() - started, 3)


@router.get("/health", response_model=SystemHealthSnapshot)
async def system_health(request: Request, registry: RegistryDep, watcher: WatcherDep, settings: SettingsDep):
    try:
        plugins = await registry.aggregate_health()
    except Exception as exc:  # pragma: no cover - aggregate_health isolates plugin failures
        _log.error("health check failed: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=503,
            content={'status': HealthStatus.UNHEALTHY.value, 'error': str(exc), 'timestamp': iso_timestamp()},
        )
    return SystemHealthSnapshot(
        status=_overall(plugins),
        version=settings.version,
        uptime_seconds=_uptime(request),
        hot_reload=bool(watcher is not None and watcher.enabled),
        plugins=plugins,
    )


@router.get("/metrics", response_model=SystemMetrics)
async def system_metrics(request: Request, registry: RegistryDep):
    process = psutil.Process()
    memory = process.memory_info()
    cpu = process.cpu_times()
    return SystemMetrics(
        uptime_seconds=_uptime(request),
        memory=ProcessMemory(rss=memory.rss, vms=memory.vms),
        cpu=ProcessCpu(user=cpu.user, system=cpu.system),
        plugins=registry.stats(),
        endpoints=len(registry.list_endpoints()),
    )
