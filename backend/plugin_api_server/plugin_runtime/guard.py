"""Per-plugin request pipeline.

Each registered plugin route is served by a `GuardPipeline.handle` bound
method. A request passes, in order and stopping at the first rejection:

1. shared middleware registered on the registry
2. bearer authentication (plugins with ``authentication=True``)
3. parameter validation (query string for GET, JSON or form body otherwise)
4. sliding-window rate limiting (plugins with ``rate_limit``)
5. the plugin's ``exec``, raced against ``timeout_ms``

A timeout only stops the wait. The ``exec`` task is never cancelled and keeps
running in the background until it finishes on its own.
"""
from __future__ import annotations
import asyncio
import inspect
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from plugin_api_server.core.api_key import HEADER_NAME, check_bearer
from plugin_api_server.core.logging_config import plugin_logger
from plugin_api_server.plugin_runtime.descriptor import PluginDescriptor
from plugin_api_server.plugin_runtime.errors import (
    ExecutionFailure,
    ExecutionTimeout,
    PluginRequestError,
    RateLimited,
    ValidationFailed,
)
from plugin_api_server.plugin_runtime.parameters import validate_parameters
from plugin_api_server.plugin_runtime.rate_limit import RateLimiter

_log = logging.getLogger(__name__)

Middleware = Callable[[Request], Any]

_FORM_CONTENT_TYPES = ('application/x-www-form-urlencoded', 'multipart/form-data')


def generate_error_id() -> str:
    return uuid.uuid4().hex[:9]


def client_identity(request: Request) -> str:
    client = request.client
    if client is None or not client.host:
        return 'unknown'
    return client.host


def _is_async_callable(obj: Any) -> bool:
    return inspect.iscoroutinefunction(obj) or inspect.iscoroutinefunction(getattr(obj, '__call__', None))


async def call_maybe_async(fn: Callable[..., Any], *args: Any) -> Any:
    if _is_async_callable(fn):
        result = await fn(*args)
    else:
        result = await run_in_threadpool(fn, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


class PluginResponse:
    """Response builder handed to ``exec`` as its second argument.

    The first `json`/`text`/`html`/`send` call fixes the response; once the
    pipeline has answered the request (including with a timeout error) any
    further send is ignored and logged.
    """

    def __init__(self, plugin: str):
        self.plugin = plugin
        self.status_code = 200
        self.headers: Dict[str, str] = {}
        self._response: Optional[Response] = None
        self._closed = False

    @property
    def sent(self) -> bool:
        return self._response is not None

    def status(self, code: int) -> 'PluginResponse':
        self.status_code = int(code)
        return self

    def set_header(self, name: str, value: str) -> 'PluginResponse':
        self.headers[name] = value
        return self

    def send(self, response: Response) -> Response:
        if self.sent or self._closed:
            _log.warning("plugin=%s attempted to send after the response was finalized; ignored", self.plugin)
            return self._response or response
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        self._response = response
        return response

    def json(self, payload: Any, status_code: int | None = None) -> Response:
        return self.send(JSONResponse(
            content=jsonable_encoder(payload),
            status_code=status_code or self.status_code,
        ))

    def text(self, body: str, status_code: int | None = None) -> Response:
        return self.send(PlainTextResponse(body, status_code=status_code or self.status_code))

    def html(self, body: str, status_code: int | None = None) -> Response:
        return self.send(HTMLResponse(body, status_code=status_code or self.status_code))

    def close(self, response: Response | None = None) -> Response | None:
        """Finalize the builder; the pipeline calls this once it has answered."""
        if response is not None and self._response is None:
            self._response = response
        self._closed = True
        return self._response

    def from_result(self, result: Any) -> Response:
        if self.sent:
            return self._response  # type: ignore[return-value]
        if isinstance(result, Response):
            return self.send(result)
        if result is None:
            code = 204 if self.status_code == 200 else self.status_code
            return self.send(Response(status_code=code))
        return self.json(result)


class GuardPipeline:
    """Wraps one validated plugin descriptor into a Starlette endpoint."""

    def __init__(
        self,
        descriptor: PluginDescriptor,
        limiter: RateLimiter,
        auth_token: str | None = None,
        middleware: Iterable[Middleware] = (),
    ):
        self.descriptor = descriptor
        self.limiter = limiter
        self.auth_token = auth_token
        self.middleware: List[Middleware] = list(middleware)
        self._background: Set[asyncio.Task[Any]] = set()
        self._logger = plugin_logger(descriptor.name)

    @property
    def pending_background(self) -> int:
        return len(self._background)

    async def _read_source(self, request: Request) -> Dict[str, Any]:
        if self.descriptor.method == 'GET':
            return dict(request.query_params)
        content_type = request.headers.get('content-type', '').split(';', 1)[0].strip().lower()
        if content_type in _FORM_CONTENT_TYPES:
            form = await request.form()
            return dict(form.items())
        try:
            body = await request.json()
        except (ValueError, UnicodeDecodeError):
            return {}
        return body if isinstance(body, dict) else {}

    def _authenticate(self, request: Request) -> None:
        if self.descriptor.authentication:
            check_bearer(request.headers.get(HEADER_NAME), self.auth_token)

    async def _validate(self, request: Request) -> Dict[str, Any]:
        source = await self._read_source(request)
        request.state.params = source
        if self.descriptor.parameters:
            errors = validate_parameters(self.descriptor.parameters, source)
            if errors:
                raise ValidationFailed(errors)
        return source

    def _check_rate_limit(self, request: Request) -> None:
        rate_limit = self.descriptor.rate_limit
        if rate_limit is None:
            return
        decision = self.limiter.check(client_identity(request), self.descriptor.name, rate_limit)
        if not decision.allowed:
            raise RateLimited(decision.retry_after or 0)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _log.error(
                "plugin=%s exec failed after its timeout had already been reported",
                self.descriptor.name,
                exc_info=exc,
            )
        else:
            _log.info("plugin=%s exec finished after its timeout had already been reported", self.descriptor.name)

    async def _execute(self, request: Request, response: PluginResponse) -> Any:
        task = asyncio.ensure_future(call_maybe_async(self.descriptor.exec, request, response))
        done, _ = await asyncio.wait({task}, timeout=self.descriptor.timeout_ms / 1000.0)
        if task not in done:
            self._background.add(task)
            task.add_done_callback(self._on_background_done)
            raise ExecutionTimeout(self.descriptor.name, self.descriptor.timeout_ms)
        return task.result()

    async def handle(self, request: Request) -> Response:
        response = PluginResponse(self.descriptor.name)
        request.state.logger = self._logger
        try:
            for middleware in self.middleware:
                early = await call_maybe_async(middleware, request)
                if isinstance(early, Response):
                    return response.close(early)  # type: ignore[return-value]
            self._authenticate(request)
            await self._validate(request)
            self._check_rate_limit(request)
            result = await self._execute(request, response)
            return response.close(response.from_result(result))  # type: ignore[return-value]
        except PluginRequestError as exc:
            if response.sent:
                return response.close()  # type: ignore[return-value]
            return response.close(exc.to_response())  # type: ignore[return-value]
        except Exception as exc:  # noqa: BLE001 - plugin code can raise anything
            error_id = generate_error_id()
            _log.error(
                "error in plugin=%s error_id=%s path=%s method=%s: %s",
                self.descriptor.name,
                error_id,
                request.url.path,
                request.method,
                exc,
                exc_info=not isinstance(exc, ExecutionTimeout),
            )
            if response.sent:
                return response.close()  # type: ignore[return-value]
            return response.close(ExecutionFailure(error_id).to_response())  # type: ignore[return-value]
