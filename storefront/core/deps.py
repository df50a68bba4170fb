"""
Request dependencies: the refresh token store, the access guard and role checks.

Guards compose as FastAPI dependencies. Each either returns the resolved user
or raises an ``AppError`` that ends the request.
"""
import logging
import uuid
from functools import lru_cache
from typing import Optional

from fastapi import Cookie, Depends
from sqlalchemy.orm import Session

from storefront.core.config import get_settings
from storefront.core.cookies import ACCESS_COOKIE
from storefront.core.errors import Forbidden, Unauthenticated
from storefront.core.security import ACCESS, TokenExpiredError, TokenError, decode_token
from storefront.db.session import get_db
from storefront.models.user import User
from storefront.services.refresh_tokens import RedisRefreshTokenStore, RefreshTokenStore

logger = logging.getLogger(__name__)


@lru_cache
def get_refresh_store() -> RefreshTokenStore:
    """Dependency that provides the shared refresh token store."""
    settings = get_settings()
    return RedisRefreshTokenStore(settings.REDIS_URL, ttl_seconds=settings.refresh_token_max_age)


def parse_user_id(subject: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(subject))
    except ValueError as exc:
        raise Unauthenticated("Not authorized - invalid access token", code="token_invalid") from exc


def get_current_user(
    access_token: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the access token cookie to a user.

    401 reasons, in the ``error`` field:
    - token_missing: no access cookie
    - token_expired: valid signature, past expiry
    - token_invalid: bad signature, malformed, wrong type, or unknown user
    """
    if not access_token:
        raise Unauthenticated("Not authorized - no access token provided", code="token_missing")

    try:
        payload = decode_token(access_token, expected_type=ACCESS)
    except TokenExpiredError:
        raise Unauthenticated("Not authorized - access token expired", code="token_expired")
    except TokenError as exc:
        logger.info(f"Rejected access token: {exc}")
        raise Unauthenticated("Not authorized - invalid access token", code="token_invalid")

    user = db.get(User, parse_user_id(payload["sub"]))
    if user is None:
        raise Unauthenticated("User not found", code="token_invalid")

    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Allow the request through only for admin users."""
    if not current_user.is_admin:
        raise Forbidden("Access denied - admin only")
    return current_user
