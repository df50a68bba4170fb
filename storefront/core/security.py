"""
Security utilities for password hashing and JWT token handling.

Access and refresh tokens are signed with distinct secrets and carry a
``type`` claim, so neither can stand in for the other.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple
import uuid

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError

from storefront.core.config import get_settings

settings = get_settings()

ACCESS = "access"
REFRESH = "refresh"

# bcrypt rejects longer inputs
MAX_PASSWORD_BYTES = 72


class TokenError(Exception):
    """Raised when a token cannot be decoded or fails validation."""


class TokenExpiredError(TokenError):
    """Raised when a token's signature is valid but it has expired."""


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    if len(plain_password.encode('utf-8')) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def _secret_for(token_type: str) -> str:
    if token_type == ACCESS:
        return settings.ACCESS_TOKEN_SECRET
    if token_type == REFRESH:
        return settings.REFRESH_TOKEN_SECRET
    raise ValueError(f"Unknown token type: {token_type}")


def _encode(subject: str | Any, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(subject),
        "iat": now,
        "exp": now + expires_delta,
        "type": token_type,
        # Two tokens minted for the same user in the same second must still differ
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, _secret_for(token_type), algorithm=settings.JWT_ALGORITHM)


def create_access_token(subject: str | Any, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(subject, ACCESS, expires_delta)


def create_refresh_token(subject: str | Any, expires_delta: timedelta | None = None) -> str:
    """Create a JWT refresh token."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(subject, REFRESH, expires_delta)


def create_token_pair(subject: str | Any) -> TokenPair:
    """Issue an access token and a refresh token for the same subject."""
    return TokenPair(
        access_token=create_access_token(subject),
        refresh_token=create_refresh_token(subject),
    )


def decode_token(token: str, expected_type: str = ACCESS) -> dict:
    """
    Decode and validate a JWT.

    Raises:
        TokenExpiredError: signature is valid but ``exp`` has passed
        TokenError: bad signature, malformed token, wrong type or missing subject
    """
    try:
        payload = jwt.decode(token, _secret_for(expected_type), algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("Token has expired") from exc
    except JWTError as exc:
        raise TokenError(f"Invalid token: {exc}") from exc

    if payload.get("type") != expected_type:
        raise TokenError("Wrong token type")
    if not payload.get("sub"):
        raise TokenError("Invalid token payload")
    return payload
