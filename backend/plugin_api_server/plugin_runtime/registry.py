"""Plugin registry: the authoritative map from plugin file to mounted route.

One `PluginHandle` per file identity holds the descriptor, the route entry and
the endpoint metadata together, so the three are always created, replaced and
dropped as a unit. `load` is "validate, unregister old, mount new"; a request
that is routed during the few synchronous statements between unmount and mount
sees a 404 rather than either handler.
"""
from __future__ import annotations
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from plugin_api_server.plugin_runtime.descriptor import DEFAULT_TIMEOUT_MS, PLUGIN_SUFFIX, PluginDescriptor
from plugin_api_server.plugin_runtime.errors import ManifestInvalid, PluginSourceError
from plugin_api_server.plugin_runtime.guard import GuardPipeline, Middleware, call_maybe_async
from plugin_api_server.plugin_runtime.host import RouteHost
from plugin_api_server.plugin_runtime.manifest import validate_manifest
from plugin_api_server.plugin_runtime.rate_limit import RateLimiter
from plugin_api_server.plugin_runtime.source import SourceReader
from plugin_api_server.schemas.endpoint import EndpointFilters, EndpointMetadata, LoadSummary, RegistryStats

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteEntry:
    file: str
    route_path: str
    method: str


@dataclass
class PluginHandle:
    descriptor: PluginDescriptor
    route: RouteEntry
    metadata: EndpointMetadata
    pipeline: GuardPipeline


def _sort_key(value: Any) -> Tuple[int, float, str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, float(value), '')
    if value is None:
        return (2, 0.0, '')
    return (1, 0.0, str(value).casefold())


class PluginRegistry:
    def __init__(
        self,
        host: RouteHost,
        plugins_dir: pathlib.Path | str,
        reader: Optional[SourceReader] = None,
        limiter: Optional[RateLimiter] = None,
        auth_token: str | None = None,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.host = host
        self.plugins_dir = pathlib.Path(plugins_dir)
        self.reader = reader or SourceReader()
        self.limiter = limiter or RateLimiter()
        self.auth_token = auth_token
        self.default_timeout_ms = default_timeout_ms
        self._plugins: Dict[str, PluginHandle] = {}
        self._middleware: List[Middleware] = []

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, file: object) -> bool:
        if not isinstance(file, (str, pathlib.Path)):
            return False
        return self._resolve(file)[0] in self._plugins

    def files(self) -> List[str]:
        return list(self._plugins.keys())

    def get(self, file: str | pathlib.Path) -> Optional[PluginHandle]:
        return self._plugins.get(self._resolve(file)[0])

    def _resolve(self, file: str | pathlib.Path) -> Tuple[str, pathlib.Path]:
        path = pathlib.Path(file)
        if not path.is_absolute():
            path = self.plugins_dir / path
        try:
            identity = path.relative_to(self.plugins_dir).as_posix()
        except ValueError:
            identity = path.name
        return identity, path

    def _owner_of(self, route_path: str, method: str) -> Optional[str]:
        for identity, handle in self._plugins.items():
            if handle.route.route_path == route_path and handle.route.method == method:
                return identity
        return None

    def add_middleware(self, middleware: Callable[..., Any]) -> None:
        """Run `middleware(request)` before every plugin registered afterwards.

        Returning a Response from the middleware answers the request directly.
        """
        if not callable(middleware):
            raise TypeError("plugin middleware must be callable")
        self._middleware.append(middleware)

    def load_all(self, directory: pathlib.Path | str | None = None) -> LoadSummary:
        if directory is not None:
            self.plugins_dir = pathlib.Path(directory)
        directory = self.plugins_dir
        if not directory.is_dir():
            _log.warning("plugins directory does not exist: %s", directory)
            return LoadSummary()

        files = sorted(
            p.name for p in directory.iterdir()
            if p.is_file() and p.suffix == PLUGIN_SUFFIX and not p.name.startswith('_')
        )
        loaded = failed = 0
        for name in files:
            try:
                ok = self.load(name)
            except Exception:  # noqa: BLE001 - one bad plugin never aborts the batch
                _log.exception("error loading plugin file=%s", name)
                ok = False
            if ok:
                loaded += 1
            else:
                failed += 1
        _log.info("plugin loading completed: %d loaded, %d failed", loaded, failed)
        return LoadSummary(loaded=loaded, failed=failed)

    def load(self, file: str | pathlib.Path) -> bool:
        identity, path = self._resolve(file)
        try:
            raw = self.reader.read(path)
        except PluginSourceError as exc:
            _log.error("failed to load plugin file=%s: %s", identity, exc.cause, exc_info=exc.cause)
            return False

        validation = validate_manifest(raw, identity)
        if not validation.valid:
            _log.warning("plugin file=%s is invalid: %s", identity, '; '.join(validation.errors))
            return False
        try:
            descriptor = PluginDescriptor.from_mapping(raw, identity, self.default_timeout_ms)
        except ManifestInvalid as exc:
            _log.warning("plugin file=%s is invalid: %s", identity, '; '.join(exc.errors))
            return False

        owner = self._owner_of(descriptor.path, descriptor.method)
        if owner is not None and owner != identity:
            _log.warning(
                "plugin file=%s route %s %s is already registered by file=%s",
                identity, descriptor.method, descriptor.path, owner,
            )
            return False
        if owner is None and self.host.count(descriptor.path, descriptor.method):
            _log.warning(
                "plugin file=%s route %s %s collides with a built-in route",
                identity, descriptor.method, descriptor.path,
            )
            return False

        self.unregister(identity)

        pipeline = GuardPipeline(descriptor, self.limiter, self.auth_token, self._middleware)
        try:
            self.host.mount(descriptor.method, descriptor.path, pipeline.handle, name=f"plugin:{identity}")
        except Exception:  # noqa: BLE001
            _log.exception("failed to register plugin file=%s", identity)
            return False

        self._plugins[identity] = PluginHandle(
            descriptor=descriptor,
            route=RouteEntry(file=identity, route_path=descriptor.path, method=descriptor.method),
            metadata=EndpointMetadata.from_descriptor(descriptor),
            pipeline=pipeline,
        )
        _log.info("registered %s %s (%s)", descriptor.method, descriptor.path, identity)
        return True

    def reload(self, file: str | pathlib.Path) -> bool:
        identity, _ = self._resolve(file)
        _log.info("reloading plugin file=%s", identity)
        return self.load(file)

    def unregister(self, file: str | pathlib.Path) -> bool:
        identity, _ = self._resolve(file)
        handle = self._plugins.pop(identity, None)
        if handle is None:
            return False
        removed = self.host.unmount(handle.route.route_path, handle.route.method)
        _log.info(
            "unregistered route %s %s file=%s removed=%d",
            handle.route.method, handle.route.route_path, identity, removed,
        )
        return True

    def list_endpoints(self, filters: Optional[EndpointFilters] = None, **kwargs: Any) -> List[EndpointMetadata]:
        if filters is None:
            filters = EndpointFilters(**kwargs)
        items = [handle.metadata for handle in self._plugins.values()]

        if filters.method:
            wanted = filters.method.upper()
            items = [e for e in items if e.method == wanted]
        if filters.authenticated is not None:
            items = [e for e in items if e.authentication == filters.authenticated]
        if filters.tag:
            items = [e for e in items if filters.tag in e.tags]
        if filters.deprecated is not None:
            items = [e for e in items if e.deprecated == filters.deprecated]
        if filters.sort_by:
            field_name = filters.sort_by
            items = sorted(
                items,
                key=lambda e: _sort_key(getattr(e, field_name, None)),
                reverse=filters.sort_order == 'desc',
            )
        return [e.model_copy(deep=True) for e in items]

    def stats(self) -> RegistryStats:
        endpoints = [handle.metadata for handle in self._plugins.values()]
        distribution: Dict[str, int] = {}
        for endpoint in endpoints:
            distribution[endpoint.method] = distribution.get(endpoint.method, 0) + 1
        return RegistryStats(
            total_plugins=len(self._plugins),
            total_endpoints=len(endpoints),
            method_distribution=distribution,
            auth_required_count=sum(1 for e in endpoints if e.authentication),
            deprecated_count=sum(1 for e in endpoints if e.deprecated),
        )

    async def aggregate_health(self) -> Dict[str, Dict[str, Any]]:
        results: Dict[str, Dict[str, Any]] = {}
        for identity, handle in list(self._plugins.items()):
            check = handle.descriptor.health_check
            if check is None:
                results[identity] = {'status': 'ok', 'message': 'No health check defined'}
                continue
            try:
                outcome = await call_maybe_async(check)
            except Exception as exc:  # noqa: BLE001 - reported, never propagated
                _log.warning("health check failed file=%s: %s", identity, exc)
                results[identity] = {'status': 'error', 'message': str(exc)}
                continue
            if isinstance(outcome, dict):
                results[identity] = dict(outcome)
            elif outcome is None or outcome is True:
                results[identity] = {'status': 'ok'}
            elif outcome is False:
                results[identity] = {'status': 'error'}
            else:
                results[identity] = {'status': str(outcome)}
        return results
