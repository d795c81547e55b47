from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging
import time

from plugin_api_server.core.config import Settings, settings as default_settings
from plugin_api_server.core.logging_config import configure_logging
from plugin_api_server.api import docs as docs_router
from plugin_api_server.api import endpoints as endpoints_router
from plugin_api_server.api import system as system_router
from plugin_api_server.api import version as version_router
from plugin_api_server.plugin_runtime.errors import iso_timestamp
from plugin_api_server.plugin_runtime.host import RouteHost
from plugin_api_server.plugin_runtime.registry import PluginRegistry
from plugin_api_server.plugin_runtime.watcher import PluginWatcher

_log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Loads every plugin in the configured directory onto this app's router and,
    when enabled, starts the directory watcher that hot-reloads changed files.
    Plugin failures are logged per file and never abort startup.
    """
    cfg: Settings = app.state.settings
    configure_logging(cfg.log_level)
    app.state.started_at = time.monotonic()

    registry: PluginRegistry = app.state.registry
    summary = registry.load_all(cfg.plugins_dir)
    _log.info("plugins initialized loaded=%d failed=%d dir=%s", summary.loaded, summary.failed, cfg.plugins_dir)

    watcher = None
    if cfg.hot_reload:
        watcher = PluginWatcher(registry, cfg.plugins_dir, debounce_ms=cfg.reload_debounce_ms)
        if not watcher.start():
            watcher = None
    app.state.watcher = watcher

    yield

    if watcher is not None:
        watcher.stop()
    app.state.watcher = None


def create_app(settings: Settings | None = None) -> FastAPI:
    cfg = settings or default_settings
    app = FastAPI(title=cfg.app_name, version=cfg.version, lifespan=lifespan, docs_url=None, redoc_url=None)
    app.state.settings = cfg
    app.state.auth_token = cfg.auth_token
    app.state.watcher = None
    app.state.registry = PluginRegistry(
        RouteHost(app.router),
        cfg.plugins_dir,
        auth_token=cfg.auth_token,
        default_timeout_ms=cfg.default_timeout_ms,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        _log.warning("request validation error url=%s errors=%s", request.url, exc.errors())
        return JSONResponse(status_code=422, content={'detail': exc.errors()})

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        # Routed requests keep FastAPI's {'detail': ...} body; only unmatched paths are reshaped.
        if exc.status_code != 404 or 'endpoint' in request.scope:
            return await http_exception_handler(request, exc)
        _log.warning("404 - %s %s client=%s", request.method, request.url.path, request.client.host if request.client else 'unknown')
        return JSONResponse(
            status_code=404,
            content={
                'error': 'Resource not found',
                'path': request.url.path,
                'method': request.method,
                'timestamp': iso_timestamp(),
            },
        )

    # Routers
    app.include_router(endpoints_router.router, prefix=cfg.api_v1_prefix)
    app.include_router(docs_router.router, prefix=cfg.api_v1_prefix)
    app.include_router(system_router.router, prefix=cfg.api_v1_prefix)
    app.include_router(version_router.router, prefix=cfg.api_v1_prefix)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.get('/', include_in_schema=False)
    async def root():
        return {'status': 'ok', 'app': cfg.app_name, 'endpoints': len(app.state.registry)}

    return app


app = create_app()
