"""Filesystem-driven hot reload for plugin files.

watchdog delivers events on its observer thread; they are handed to the event
loop with ``call_soon_threadsafe`` and queued, so the rest of the watcher (and
every registry mutation it triggers) runs on the loop like any other task.

Each changed file gets its own debounce timer. A burst of events for one file
collapses into a single reload once the file has been quiet for
``debounce_ms``; bursts on different files never delay each other.
"""
from __future__ import annotations
import asyncio
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from plugin_api_server.plugin_runtime.descriptor import PLUGIN_SUFFIX
from plugin_api_server.plugin_runtime.errors import WatcherSetupFailure
from plugin_api_server.plugin_runtime.registry import PluginRegistry

_log = logging.getLogger(__name__)

_IGNORED_EVENT_TYPES = {'opened', 'closed_no_write'}


@dataclass(frozen=True)
class PluginChange:
    kind: str
    file: str
    dest: Optional[str] = None


class _EventForwarder(FileSystemEventHandler):
    """Runs on the observer thread; only hands events over to the loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: 'asyncio.Queue[FileSystemEvent]'):
        self._loop = loop
        self._queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in _IGNORED_EVENT_TYPES:
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            # Loop already closed during shutdown.
            pass


class PluginWatcher:
    def __init__(
        self,
        registry: PluginRegistry,
        directory: pathlib.Path | str | None = None,
        debounce_ms: int = 1000,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.registry = registry
        self.directory = pathlib.Path(directory) if directory is not None else registry.plugins_dir
        self.debounce_ms = debounce_ms
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional['asyncio.Queue[FileSystemEvent]'] = None
        self._consumer: Optional['asyncio.Task[None]'] = None
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self.enabled = False

    @property
    def pending(self) -> int:
        return len(self._timers)

    def start(self) -> bool:
        """Begin watching. Never raises; returns False when hot reload is unavailable."""
        if self.enabled:
            return True
        try:
            self._start()
        except Exception as exc:  # noqa: BLE001 - degrade to "hot reload disabled"
            _log.warning("failed to set up plugin watching, hot reload disabled: %s", exc)
            self._stop_observer()
            self._loop = None
            self._queue = None
            return False
        _log.info("plugin hot reloading enabled dir=%s debounce_ms=%d", self.directory, self.debounce_ms)
        return True

    def _start(self) -> None:
        if not self.directory.is_dir():
            raise WatcherSetupFailure(f"plugins directory does not exist: {self.directory}")
        loop = asyncio.get_running_loop()
        queue: 'asyncio.Queue[FileSystemEvent]' = asyncio.Queue()
        observer = self._observer_factory()
        observer.schedule(_EventForwarder(loop, queue), str(self.directory), recursive=True)
        observer.start()
        self._loop = loop
        self._queue = queue
        self._observer = observer
        self._consumer = loop.create_task(self._consume())
        self.enabled = True

    def stop(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        if self._consumer is not None:
            self._consumer.cancel()
            self._consumer = None
        self._stop_observer()
        self._queue = None
        if self.enabled:
            _log.info("plugin hot reloading stopped")
        self.enabled = False

    def _stop_observer(self) -> None:
        observer = self._observer
        self._observer = None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join(timeout=5)
        except RuntimeError:
            # join() on a thread that never started.
            pass

    def _relative(self, raw_path: Any) -> Optional[str]:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode(errors='replace')
        path = pathlib.Path(str(raw_path))
        if path.suffix != PLUGIN_SUFFIX:
            return None
        try:
            return path.relative_to(self.directory).as_posix()
        except ValueError:
            return path.name

    def translate(self, event: FileSystemEvent) -> Optional[PluginChange]:
        src = self._relative(event.src_path)
        if event.event_type == 'moved':
            dest = self._relative(getattr(event, 'dest_path', ''))
            if src is None and dest is None:
                return None
            return PluginChange(kind='moved', file=src or '', dest=dest)
        if src is None:
            return None
        return PluginChange(kind=event.event_type, file=src)

    async def changes(self) -> AsyncIterator[PluginChange]:
        """Yield plugin file changes as they arrive; ends when the watcher stops."""
        while self._queue is not None:
            queue = self._queue
            event = await queue.get()
            change = self.translate(event)
            if change is not None:
                yield change

    async def _consume(self) -> None:
        async for change in self.changes():
            _log.info("plugin file changed kind=%s file=%s", change.kind, change.dest or change.file)
            self.notify(change)

    def notify(self, change: PluginChange) -> None:
        """Schedule the debounced reaction to one change."""
        if change.kind == 'moved':
            if change.file:
                self._schedule(change.file)
            if change.dest:
                self._schedule(change.dest)
            return
        self._schedule(change.file)

    def _schedule(self, file: str) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        existing = self._timers.pop(file, None)
        if existing is not None:
            existing.cancel()
        self._timers[file] = loop.call_later(self.debounce_ms / 1000.0, self._fire, file)

    def _fire(self, file: str) -> None:
        self._timers.pop(file, None)
        try:
            if (self.directory / file).exists():
                if self.registry.reload(file):
                    _log.info("plugin reloaded file=%s", file)
                else:
                    _log.warning("plugin reload rejected file=%s", file)
            elif self.registry.unregister(file):
                _log.info("plugin file removed, route unregistered file=%s", file)
        except Exception:  # noqa: BLE001 - a failed reload must not kill the watcher
            _log.exception("failed to reload plugin file=%s", file)
