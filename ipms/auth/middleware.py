"""Caller identity resolution.

Identity (user id, role, scope) is established by the upstream gateway and
forwarded in headers. When a gateway token hash is configured, the forwarded
bearer token must match it before the headers are trusted.
"""

import hashlib
import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from ipms.config import settings
from ipms.schemas.common import Identity, Role

API_KEY_HEADER = APIKeyHeader(name="Authorization", auto_error=False)


def hash_gateway_token(token: str) -> str:
    """Hash gateway token with salt for comparison against the configured hash."""
    return hashlib.sha256(
        f"{settings.gateway_token_hash_salt}:{token}".encode()
    ).hexdigest()


def _check_gateway_token(auth_header: str | None) -> None:
    if settings.gateway_token_hash is None:
        return
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
        )
    token = auth_header[7:].strip()
    if not hmac.compare_digest(hash_gateway_token(token), settings.gateway_token_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid gateway token",
        )


def request_origin(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


async def get_identity(
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
    x_scope_id: Annotated[str | None, Header()] = None,
    auth_header: str | None = Depends(API_KEY_HEADER),
) -> Identity:
    """Build the caller Identity from gateway headers."""
    _check_gateway_token(auth_header)
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id or X-User-Role header",
        )
    try:
        user_id = int(x_user_id)
        role = Role(x_user_role.strip().upper())
        scope_id = int(x_scope_id) if x_scope_id else None
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid identity headers",
        ) from None
    return Identity(
        user_id=user_id,
        role=role,
        scope_id=scope_id,
        origin=request_origin(request),
    )


# Type alias for dependency injection
IdentityDep = Annotated[Identity, Depends(get_identity)]
