"""
Client session for the storefront API.

Keeps the signed-in user's local state and wraps every call in a retry
interceptor: when a call is rejected with 401, the access token is refreshed
once and the call replayed once. However many calls fail together, they all
wait on the same pending refresh, so each expiry costs one refresh round-trip.
"""
import asyncio
import logging
from typing import Any, Optional

import httpx

from storefront.client.errors import ApiError, PasswordMismatchError, SessionExpiredError

logger = logging.getLogger(__name__)

SIGNUP_PATH = "/auth/signup"
LOGIN_PATH = "/auth/login"
LOGOUT_PATH = "/auth/logout"
PROFILE_PATH = "/auth/profile"
REFRESH_PATH = "/auth/refresh-token"


class StorefrontSession:
    """
    Signed-in state plus an HTTP client that renews expired access tokens.

    Usage::

        async with StorefrontSession("https://shop.example.com/api") as session:
            await session.login("ana@example.com", "secret1")
            response = await session.request("GET", "/cart")
    """

    def __init__(self, base_url: str = "http://localhost:5000/api", *, http: Optional[httpx.AsyncClient] = None, **client_kwargs: Any):
        self.http = http or httpx.AsyncClient(base_url=base_url, **client_kwargs)
        self.user: Optional[dict] = None
        self.loading = False
        self.checking_auth = True
        self._pending_refresh: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "StorefrontSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    @property
    def refresh_pending(self) -> bool:
        return self._pending_refresh is not None

    async def request(self, method: str, url: str, *, retry: bool = False, **kwargs: Any) -> httpx.Response:
        """
        Send a request; raise ``ApiError`` for any non-2xx outcome.

        A 401 on a first attempt triggers a token refresh and a single
        replay flagged with ``retry=True``. A replay that is rejected again
        surfaces as a plain ``ApiError``.
        """
        response = await self.http.request(method, url, **kwargs)

        if response.status_code == 401 and not retry and not _is_refresh_call(url):
            await self._refresh_once()
            return await self.request(method, url, retry=True, **kwargs)

        if response.is_error:
            raise ApiError.from_response(response)
        return response

    async def _refresh_once(self) -> None:
        """Join the pending refresh, or start one if none is in flight."""
        task = self._pending_refresh
        try:
            if task is not None:
                await task
                return

            task = asyncio.ensure_future(self.refresh_token())
            self._pending_refresh = task
            try:
                await task
            finally:
                if self._pending_refresh is task:
                    self._pending_refresh = None
        except ApiError as exc:
            self._clear_local_session()
            raise SessionExpiredError(exc.status_code, exc.message, exc.response) from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Token refresh failed: {exc}")
            self._clear_local_session()
            raise

    def _clear_local_session(self) -> None:
        self.user = None
        self.http.cookies.clear()

    async def refresh_token(self) -> dict:
        """Exchange the refresh cookie for a new access cookie."""
        try:
            response = await self.request("POST", REFRESH_PATH)
        except ApiError:
            self.user = None
            raise
        logger.debug("Access token refreshed")
        return response.json()

    async def signup(self, name: str, email: str, password: str, confirm_password: str) -> dict:
        if password != confirm_password:
            raise PasswordMismatchError("Passwords do not match")

        self.loading = True
        try:
            response = await self.request(
                "POST", SIGNUP_PATH, json={"name": name, "email": email, "password": password}
            )
            self.user = response.json()
            return self.user
        finally:
            self.loading = False

    async def login(self, email: str, password: str) -> dict:
        self.loading = True
        try:
            response = await self.request("POST", LOGIN_PATH, json={"email": email, "password": password})
            self.user = response.json()
            return self.user
        finally:
            self.loading = False

    async def logout(self) -> None:
        await self.request("POST", LOGOUT_PATH)
        self.user = None

    async def check_auth(self) -> Optional[dict]:
        """Load the profile for the current cookies; any failure means signed out."""
        self.checking_auth = True
        try:
            response = await self.request("GET", PROFILE_PATH)
            self.user = response.json()
        except ApiError as exc:
            logger.info(f"Not signed in: {exc.message}")
            self.user = None
        finally:
            self.checking_auth = False
        return self.user


def _is_refresh_call(url) -> bool:
    return str(url).rstrip("/").endswith(REFRESH_PATH)
