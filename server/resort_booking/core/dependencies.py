"""FastAPI dependencies for tenancy, authentication, and rate limiting."""

from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header, Request
from jwt import PyJWTError

from .config import settings
from .exceptions import AuthenticationError, ForbiddenError, RateLimitError, ValidationError
from .middleware import get_client_ip
from .observability import metrics_collector
from .rate_limit import RateLimitStore, get_rate_limit_store


async def get_tenant_id(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID")
) -> UUID:
    """
    Resolve the tenant for this request.

    Args:
        x_tenant_id: Tenant identifier supplied by the upstream resolver

    Returns:
        UUID: Tenant identifier

    Raises:
        ValidationError: If the header is missing or not a UUID
    """
    if not x_tenant_id:
        raise ValidationError(
            detail="X-Tenant-ID header is required",
            violations=[{"path": "X-Tenant-ID", "message": "Header is required"}],
        )
    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise ValidationError(
            detail="X-Tenant-ID header must be a UUID",
            violations=[{"path": "X-Tenant-ID", "message": "Invalid UUID"}],
        )


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Validate an admin ``Bearer`` token and return its claims.

    Tokens are HS256 JWTs signed with ``settings.bearer_token_secret`` and must
    carry ``sub``, ``exp`` and the ``tenant_id`` the admin belongs to.

    Raises:
        AuthenticationError: If the header is missing, malformed, expired or badly signed
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError(detail="A Bearer token is required")

    try:
        claims = jwt.decode(
            token.strip(),
            settings.bearer_token_secret,
            algorithms=["HS256"],
            options={"require": ["sub", "exp", "tenant_id"]},
        )
        tenant_id = UUID(str(claims["tenant_id"]))
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token rejected: {e}")
    except ValueError:
        raise AuthenticationError(detail="Token rejected: tenant_id claim is not a UUID")

    return {
        "user_id": claims["sub"],
        "tenant_id": tenant_id,
        "username": claims.get("username"),
        "email": claims.get("email"),
        "roles": claims.get("roles", []),
    }


async def get_admin_tenant_id(
    current_user: dict = Depends(get_current_user),
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
) -> UUID:
    """
    Resolve the tenant an admin acts on.

    The tenant always comes from the token. An ``X-Tenant-ID`` header naming
    any other tenant is refused.

    Raises:
        ForbiddenError: If the header names a tenant other than the token's
    """
    tenant_id = current_user["tenant_id"]
    if x_tenant_id and x_tenant_id.strip().lower() != str(tenant_id):
        raise ForbiddenError(detail="Token is not valid for the requested tenant")
    return tenant_id


def rate_limited(endpoint: str, limit: tuple[int, int]):
    """
    Build a dependency enforcing ``limit`` on ``endpoint`` per tenant and client IP.

    Args:
        endpoint: Endpoint name used in the counter key and metrics
        limit: (max requests, window seconds)
    """
    max_requests, window_seconds = limit

    async def dependency(
        request: Request,
        tenant_id: UUID = Depends(get_tenant_id),
        store: RateLimitStore = Depends(get_rate_limit_store),
    ) -> None:
        key = f"{tenant_id}:{get_client_ip(request)}:{endpoint}"
        result = await store.hit(key, max_requests, window_seconds)
        if not result.allowed:
            metrics_collector.record_rate_limited(endpoint)
            raise RateLimitError(
                retry_after=result.retry_after,
                limit=max_requests,
                window=window_seconds,
            )

    return dependency


RequiredAuth = Depends(get_current_user)
TenantId = Depends(get_tenant_id)
AdminTenantId = Depends(get_admin_tenant_id)
