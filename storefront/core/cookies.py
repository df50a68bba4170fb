"""
Session cookie helpers.

Both auth cookies are HttpOnly and SameSite=strict, Secure only in
production, and expire together with the token they carry.
"""
from fastapi import Response

from storefront.core.config import get_settings

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def _cookie_params() -> dict:
    settings = get_settings()
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "strict",
        "path": "/",
    }


def set_access_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=get_settings().access_token_max_age,
        **_cookie_params(),
    )


def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=get_settings().refresh_token_max_age,
        **_cookie_params(),
    )


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    set_access_cookie(response, access_token)
    set_refresh_cookie(response, refresh_token)


def clear_auth_cookies(response: Response) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, **_cookie_params())
