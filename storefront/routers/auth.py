"""
Authentication router with signup, login, logout, refresh and profile endpoints.

Tokens travel as HttpOnly cookies. The refresh token on file in the refresh
token store is the only one that can be exchanged; logging in again replaces
it, which revokes every refresh token issued before.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Cookie, Depends, Response, status
from sqlalchemy.orm import Session

from storefront.core.cookies import REFRESH_COOKIE, clear_auth_cookies, set_access_cookie, set_auth_cookies
from storefront.core.deps import get_current_user, get_refresh_store, require_admin
from storefront.core.errors import Conflict, InvalidCredentials, NotFound, Unauthenticated
from storefront.core.security import (
    REFRESH,
    TokenError,
    create_access_token,
    create_token_pair,
    decode_token,
    hash_password,
    verify_password,
)
from storefront.db.session import get_db
from storefront.models.user import User
from storefront.schemas.auth import MessageResponse, UserLogin, UserResponse, UserSignup
from storefront.services.refresh_tokens import RefreshTokenStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def start_session(response: Response, user: User, store: RefreshTokenStore) -> None:
    """Issue a token pair, record the refresh token and set both cookies."""
    tokens = create_token_pair(subject=str(user.id))
    store.put(str(user.id), tokens.refresh_token)
    set_auth_cookies(response, tokens.access_token, tokens.refresh_token)


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def signup(
    user_data: UserSignup,
    response: Response,
    db: Session = Depends(get_db),
    store: RefreshTokenStore = Depends(get_refresh_store),
) -> User:
    """
    Register a new customer account and start a session.
    """
    existing_user = db.query(User).filter(User.email == user_data.email).first()
    if existing_user:
        raise Conflict("User already exists")

    new_user = User(
        name=user_data.name,
        email=user_data.email,
        hashed_password=hash_password(user_data.password),
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    start_session(response, new_user, store)
    logger.info(f"User signed up: {new_user.id}")
    return new_user


@router.post("/login", response_model=UserResponse)
def login(
    user_data: UserLogin,
    response: Response,
    db: Session = Depends(get_db),
    store: RefreshTokenStore = Depends(get_refresh_store),
) -> User:
    """
    Authenticate user and start a session.
    Any refresh token issued to this user before is revoked.
    """
    user = db.query(User).filter(User.email == user_data.email).first()
    if not user or not verify_password(user_data.password, user.hashed_password):
        logger.warning("Failed login attempt")
        raise InvalidCredentials("Invalid email or password")

    start_session(response, user, store)
    logger.info(f"User logged in: {user.id}")
    return user


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    store: RefreshTokenStore = Depends(get_refresh_store),
) -> dict:
    """
    Logout: forget the stored refresh token when the cookie identifies a user,
    and clear both cookies either way.
    """
    if refresh_token:
        try:
            payload = decode_token(refresh_token, expected_type=REFRESH)
        except TokenError as exc:
            logger.info(f"Logout with unusable refresh token: {exc}")
        else:
            # Keyed by identity: a stale cookie still ends the current session
            store.delete(payload["sub"])
            logger.info(f"User logged out: {payload['sub']}")

    clear_auth_cookies(response)
    return {"message": "Logged out successfully"}


@router.post("/refresh-token", response_model=MessageResponse)
def refresh_token(
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    store: RefreshTokenStore = Depends(get_refresh_store),
) -> dict:
    """
    Exchange the refresh token cookie for a new access token cookie.

    The refresh token itself is not rotated.
    """
    if not refresh_token:
        raise Unauthenticated("No refresh token provided", code="refresh_token_missing")

    try:
        payload = decode_token(refresh_token, expected_type=REFRESH)
    except TokenError as exc:
        logger.info(f"Rejected refresh token: {exc}")
        raise Unauthenticated("Invalid or expired refresh token", code="refresh_token_invalid")

    user_id = payload["sub"]
    if not store.matches(user_id, refresh_token):
        logger.warning(f"Revoked refresh token presented for user {user_id}")
        raise Unauthenticated("Invalid refresh token", code="refresh_token_revoked")

    set_access_cookie(response, create_access_token(subject=user_id))
    logger.info(f"Access token refreshed for user {user_id}")
    return {"message": "Token refreshed successfully"}


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)) -> User:
    """
    Get the current authenticated user's profile.
    """
    return current_user


@router.post("/sessions/{user_id}/revoke", response_model=MessageResponse)
def revoke_session(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    store: RefreshTokenStore = Depends(get_refresh_store),
) -> dict:
    """
    Admin-only: revoke a user's refresh token, forcing a new login once
    their current access token expires.
    """
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    store.delete(str(user.id))
    logger.info(f"Admin {admin.id} revoked session of user {user.id}")
    return {"message": "Session revoked"}
