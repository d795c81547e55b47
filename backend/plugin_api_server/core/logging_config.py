from __future__ import annotations

import logging

LOG_FORMAT = '[%(levelname)s] %(name)s: %(message)s'
PLUGIN_LOGGER_PREFIX = 'plugin_api_server.plugins'

# Third-party loggers that are never useful below INFO here.
_QUIET_LOGGERS: tuple[str, ...] = (
    "watchdog",
    "watchdog.observers",
    "watchdog.observers.inotify_buffer",
    "httpx",
    "httpcore",
    "asyncio",
)

# Raw inotify event dumps emitted by watchdog at DEBUG.
_INOTIFY_SNIPPETS: tuple[str, ...] = (
    "inotify",
    "in-event",
)


class _InotifyDumpFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - logging hook
        if not record.name.startswith("watchdog"):
            return True
        try:
            lowered = record.getMessage().lower()
        except Exception:
            return True
        return not any(snippet in lowered for snippet in _INOTIFY_SNIPPETS)


_INOTIFY_FILTER = _InotifyDumpFilter()


def _install(logger: logging.Logger, handler: bool = False) -> None:
    if _INOTIFY_FILTER not in logger.filters:
        logger.addFilter(_INOTIFY_FILTER)
    if handler and not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(stream)


def configure_logging(level_name: str | None = None) -> None:
    """Configure the root logger and quiet the file watcher's debug stream.

    Safe to call repeatedly (app factory, entrypoint, tests); handlers and
    filters are only added once.
    """
    lvl = logging.getLevelName((level_name or 'INFO').upper())
    if not isinstance(lvl, int):
        lvl = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(lvl)
    _install(root_logger, handler=True)

    for name in _QUIET_LOGGERS:
        logger = logging.getLogger(name)
        if logger.level < logging.INFO:
            logger.setLevel(logging.INFO)
        _install(logger)

    for name in ("uvicorn", "uvicorn.error"):
        _install(logging.getLogger(name))


def plugin_logger(plugin_name: str) -> logging.Logger:
    """Logger handed to plugin code as ``request.state.logger``."""
    safe = ''.join(ch if ch.isalnum() or ch in '-_' else '_' for ch in plugin_name) or 'unnamed'
    return logging.getLogger(f"{PLUGIN_LOGGER_PREFIX}.{safe}")
