from __future__ import annotations
from plugin_api_server.core.config import settings
from plugin_api_server.core.logging_config import configure_logging


def main():
    configure_logging(settings.log_level)
    print(
        f"[entrypoint] starting version={settings.version} plugins_dir={settings.plugins_dir} "
        f"hot_reload={settings.hot_reload} log_level={settings.log_level}",
        flush=True,
    )
    if getattr(settings, 'diagnostics', None):
        for line in settings.diagnostics:
            print(f"[entrypoint][config] {line}", flush=True)
    if not settings.auth_token:
        print("[entrypoint] no PLUGIN_API_TOKEN configured; authenticated plugins will reject every request", flush=True)
    import uvicorn
    from uvicorn.config import LOGGING_CONFIG
    print(f"[entrypoint] launching uvicorn on {settings.host}:{settings.port}", flush=True)
    try:
        uvicorn.run(
            'plugin_api_server.main:app',
            host=settings.host,
            port=settings.port,
            # Plugins hot-reload through the registry watcher; uvicorn's own
            # reloader would restart the process and drop in-memory state.
            reload=False,
            log_level=settings.log_level.lower(),
            log_config=LOGGING_CONFIG,
        )
    except BaseException as exc:  # catch SystemExit too
        import traceback
        print(f"[entrypoint] uvicorn crashed: {exc}", flush=True)
        traceback.print_exc()
        raise
    finally:
        print("[entrypoint] uvicorn stopped", flush=True)

if __name__ == '__main__':  # pragma: no cover
    main()
