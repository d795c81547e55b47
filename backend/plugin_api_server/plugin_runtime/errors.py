"""Error taxonomy for plugin loading and plugin request handling.

Load-time errors (`ManifestInvalid`, `PluginSourceError`) never escape the
registry: they are logged and the offending file is skipped. Request-time
errors (`PluginRequestError` subclasses) are raised inside the guard pipeline
and rendered as structured JSON responses at the request boundary.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from fastapi.responses import JSONResponse


def iso_timestamp() -> str:
    """UTC timestamp with millisecond precision and a trailing `Z`."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class PluginRuntimeError(Exception):
    """Base class for everything raised by the plugin runtime."""


class ManifestInvalid(PluginRuntimeError):
    def __init__(self, file: str, errors: Sequence[str]):
        self.file = file
        self.errors: List[str] = list(errors)
        super().__init__(f"plugin {file} is invalid: {'; '.join(self.errors)}")


class PluginSourceError(PluginRuntimeError):
    def __init__(self, file: str, cause: BaseException):
        self.file = file
        self.cause = cause
        super().__init__(f"failed to load plugin source {file}: {cause}")


class WatcherSetupFailure(PluginRuntimeError):
    pass


class PluginRequestError(PluginRuntimeError):
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def payload(self) -> Dict[str, Any]:
        return {'error': self.message, 'timestamp': iso_timestamp()}

    def headers(self) -> Dict[str, str] | None:
        return None

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.payload(), headers=self.headers())


class AuthMissing(PluginRequestError):
    status_code = 401


class AuthMalformed(PluginRequestError):
    status_code = 401


class AuthInvalid(PluginRequestError):
    status_code = 403


class ValidationFailed(PluginRequestError):
    status_code = 400

    def __init__(self, details: Sequence[str]):
        self.details: List[str] = list(details)
        super().__init__('Validation failed')

    def payload(self) -> Dict[str, Any]:
        return {'error': self.message, 'details': list(self.details), 'timestamp': iso_timestamp()}


class RateLimited(PluginRequestError):
    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__('Rate limit exceeded')

    def payload(self) -> Dict[str, Any]:
        return {'error': self.message, 'retryAfter': self.retry_after, 'timestamp': iso_timestamp()}

    def headers(self) -> Dict[str, str] | None:
        return {'Retry-After': str(self.retry_after)}


class ExecutionTimeout(PluginRuntimeError):
    def __init__(self, plugin: str, timeout_ms: int):
        self.plugin = plugin
        self.timeout_ms = timeout_ms
        super().__init__('Plugin execution timeout')


class ExecutionFailure(PluginRequestError):
    """Opaque 500 returned to the client; full detail stays in the server log."""

    status_code = 500

    def __init__(self, error_id: str):
        self.error_id = error_id
        super().__init__('Internal server error')

    def payload(self) -> Dict[str, Any]:
        return {'error': self.message, 'errorId': self.error_id, 'timestamp': iso_timestamp()}
