"""Shared API dependencies."""

import secrets

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from critcss.core.config import settings

api_token_header = APIKeyHeader(name=settings.auth_token_header, auto_error=False)


def verify_api_key(token: str | None = Security(api_token_header)) -> str:
    """Check the static API token; auth is disabled while no secret is set."""

    expected = settings.auth_jwt_secret
    if not expected:
        return ""

    presented = (token or "").removeprefix("Bearer ").strip()
    if presented and secrets.compare_digest(presented, expected):
        return presented

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API token")


def get_auth_dependency(token: str = Depends(verify_api_key)) -> str:
    """Expose dependency alias for routers."""

    return token
