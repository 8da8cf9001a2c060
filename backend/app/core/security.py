"""Bearer tokens carrying the caller's user, tenant and roles."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

import jwt
from fastapi import HTTPException, status

from app.config import get_settings

settings = get_settings()


def create_access_token(
    user_id: int,
    tenant_id: int,
    roles: Iterable[str] = (),
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a token in the identity provider's format.

    Production tokens are issued elsewhere; tooling and tests use this to
    obtain one the API accepts.
    """

    lifetime = expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "tenant_id": tenant_id,
        "roles": sorted(set(roles)),
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify the signature and expiry; any failure becomes a 401."""

    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
