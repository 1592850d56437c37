"""
Shared dependencies for the REST API.
"""

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hostcare.core.config import settings
from hostcare.core.errors import InitializationTimeout
from hostcare.core.init_guard import PathSet, ensure_initialized

_bearer_scheme = HTTPBearer()


async def verify_token(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),  # noqa: B008
) -> None:
    """Validate Bearer token against APP_AUTH_KEY."""
    if not settings.APP_AUTH_KEY or not secrets.compare_digest(credentials.credentials, settings.APP_AUTH_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
        )


async def get_paths() -> PathSet:
    try:
        return ensure_initialized()
    except InitializationTimeout as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
