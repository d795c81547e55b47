from __future__ import annotations

import hmac
from fastapi import HTTPException, Request, status

from plugin_api_server.plugin_runtime.errors import AuthInvalid, AuthMalformed, AuthMissing

HEADER_NAME = 'authorization'
SCHEME_PREFIX = 'Bearer '


def _matches(expected: str | None, provided: str) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(expected.encode('utf-8'), provided.encode('utf-8'))


def check_bearer(header_value: str | None, secret: str | None) -> None:
    """Validate an Authorization header against the shared secret.

    Missing header or token -> AuthMissing (401), wrong scheme -> AuthMalformed
    (401), wrong token -> AuthInvalid (403). An unset secret accepts nothing.
    """
    if not header_value:
        raise AuthMissing('Authorization header is required')
    if not header_value.startswith(SCHEME_PREFIX):
        raise AuthMalformed("Invalid authorization format. Use 'Bearer <token>'")
    parts = header_value.split(' ')
    token = parts[1] if len(parts) > 1 else ''
    if not token:
        raise AuthMissing('Token is required')
    if not _matches(secret, token):
        raise AuthInvalid('Invalid or expired token')


async def require_bearer_token(request: Request) -> None:
    """FastAPI dependency guarding the administrative introspection routes."""
    secret = getattr(request.app.state, 'auth_token', None)
    try:
        check_bearer(request.headers.get(HEADER_NAME), secret)
    except (AuthMissing, AuthMalformed) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)
    except AuthInvalid as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
