"""FastAPI dependencies for the API layer."""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.identity import Principal
from app.core.security import decode_access_token
from app.database import get_db
from app.models import User

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.identity_token_url)


def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_principal(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Principal:
    """Retrieve the caller's identity from the JWT token."""

    return get_principal_from_token(token, db)


def get_principal_from_token(token: str, db: Session) -> Principal:
    """Resolve user, tenant and roles from a JWT token or raise an HTTP 401 error."""

    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
        tenant_id = int(payload["tenant_id"])
    except (KeyError, TypeError, ValueError):
        raise _credentials_error() from None

    user = db.get(User, user_id)
    if user is None or user.tenant_id != tenant_id:
        raise _credentials_error()

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return Principal(user_id=user.id, tenant_id=tenant_id, roles=frozenset(str(role) for role in roles))


def clamp_limit(limit: int | None) -> int:
    """Apply the configured default and ceiling to a page size."""

    effective = limit or settings.chat_history_default_limit
    return min(effective, settings.chat_history_max_limit)
