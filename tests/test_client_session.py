"""
Tests for the client session and its refresh-and-replay interceptor.
"""
import asyncio
from collections import Counter

import httpx
import pytest
import pytest_asyncio

from storefront.client import ApiError, PasswordMismatchError, SessionExpiredError, StorefrontSession
from storefront.main import app

BASE_URL = "http://shop.test/api"
PROFILE = {"id": "u1", "name": "Ana", "email": "ana@example.com", "role": "customer"}


class FakeServer:
    """
    Minimal stand-in for the API.

    ``/api/products`` answers 200 only with the ``accessToken=fresh`` cookie.
    The refresh endpoint sets that cookie after a short delay so concurrent
    callers pile up behind it.
    """

    def __init__(self, refresh_status: int = 200, products_always_401: bool = False):
        self.refresh_status = refresh_status
        self.products_always_401 = products_always_401
        self.hits = Counter()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.hits[path] += 1
        cookies = request.headers.get("cookie", "")

        if path == "/api/auth/refresh-token":
            await asyncio.sleep(0.01)
            if self.refresh_status != 200:
                return httpx.Response(
                    self.refresh_status,
                    json={"error": "refresh_token_revoked", "message": "Invalid refresh token"},
                )
            return httpx.Response(
                200,
                json={"message": "Token refreshed successfully"},
                headers={"set-cookie": "accessToken=fresh; HttpOnly; Path=/; SameSite=strict"},
            )

        if path == "/api/products":
            if self.products_always_401 or "accessToken=fresh" not in cookies:
                return httpx.Response(401, json={"error": "token_expired", "message": "access token expired"})
            return httpx.Response(200, json={"items": []})

        if path == "/api/auth/profile":
            if "accessToken=fresh" not in cookies:
                return httpx.Response(401, json={"error": "token_missing", "message": "no access token"})
            return httpx.Response(200, json=PROFILE)

        if path == "/api/auth/login":
            return httpx.Response(
                200,
                json=PROFILE,
                headers={"set-cookie": "accessToken=fresh; HttpOnly; Path=/; SameSite=strict"},
            )

        if path == "/api/auth/logout":
            return httpx.Response(200, json={"message": "Logged out successfully"})

        if path == "/api/boom":
            return httpx.Response(500, json={"error": "internal_server_error", "message": "boom"})

        return httpx.Response(404, json={"error": "not_found", "message": "Resource not found"})

    @property
    def refresh_calls(self) -> int:
        return self.hits["/api/auth/refresh-token"]

    @property
    def product_calls(self) -> int:
        return self.hits["/api/products"]


def make_session(server: FakeServer) -> StorefrontSession:
    return StorefrontSession(BASE_URL, transport=httpx.MockTransport(server))


class TestRetryInterceptor:

    @pytest.mark.asyncio
    async def test_refreshes_and_replays_once(self):
        server = FakeServer()
        async with make_session(server) as session:
            response = await session.request("GET", "/products")

        assert response.status_code == 200
        assert server.refresh_calls == 1
        assert server.product_calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_failures_share_one_refresh(self):
        server = FakeServer()
        n = 10
        async with make_session(server) as session:
            responses = await asyncio.gather(*(session.request("GET", "/products") for _ in range(n)))
            assert session.refresh_pending is False

        assert [r.status_code for r in responses] == [200] * n
        assert server.refresh_calls == 1
        # every request: one rejected attempt plus exactly one replay
        assert server.product_calls == 2 * n

    @pytest.mark.asyncio
    async def test_replay_rejected_again_is_not_retried(self):
        server = FakeServer(products_always_401=True)
        async with make_session(server) as session:
            with pytest.raises(ApiError) as exc_info:
                await session.request("GET", "/products")

        assert exc_info.value.status_code == 401
        assert not isinstance(exc_info.value, SessionExpiredError)
        assert server.refresh_calls == 1
        assert server.product_calls == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_signs_out(self):
        server = FakeServer(refresh_status=401)
        async with make_session(server) as session:
            session.user = dict(PROFILE)
            session.http.cookies.set("refreshToken", "revoked", domain="shop.test")

            with pytest.raises(SessionExpiredError) as exc_info:
                await session.request("GET", "/products")

            assert session.user is None
            assert len(session.http.cookies) == 0
            assert session.refresh_pending is False

        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "refresh_token_revoked"
        assert server.refresh_calls == 1
        assert server.product_calls == 1

    @pytest.mark.asyncio
    async def test_unreachable_refresh_signs_out(self):
        server = FakeServer()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/auth/refresh-token":
                raise httpx.ConnectError("connection refused", request=request)
            return await server(request)

        async with StorefrontSession(BASE_URL, transport=httpx.MockTransport(handler)) as session:
            session.user = dict(PROFILE)
            session.http.cookies.set("refreshToken", "R1", domain="shop.test")

            with pytest.raises(httpx.ConnectError):
                await session.request("GET", "/products")

            assert session.user is None
            assert len(session.http.cookies) == 0
            assert session.refresh_pending is False

        assert server.product_calls == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_reaches_every_waiter(self):
        server = FakeServer(refresh_status=401)
        async with make_session(server) as session:
            results = await asyncio.gather(
                *(session.request("GET", "/products") for _ in range(5)),
                return_exceptions=True,
            )

        assert all(isinstance(r, SessionExpiredError) for r in results)
        assert server.refresh_calls == 1
        assert server.product_calls == 5

    @pytest.mark.asyncio
    async def test_each_expiry_gets_its_own_refresh(self):
        server = FakeServer()
        async with make_session(server) as session:
            await session.request("GET", "/products")
            session.http.cookies.clear()
            await session.request("GET", "/products")

        assert server.refresh_calls == 2

    @pytest.mark.asyncio
    async def test_other_errors_pass_through(self):
        server = FakeServer()
        async with make_session(server) as session:
            with pytest.raises(ApiError) as exc_info:
                await session.request("GET", "/boom")

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "boom"
        assert server.refresh_calls == 0

    @pytest.mark.asyncio
    async def test_refresh_call_itself_is_not_intercepted(self):
        server = FakeServer(refresh_status=401)
        async with make_session(server) as session:
            session.user = dict(PROFILE)
            with pytest.raises(ApiError) as exc_info:
                await session.refresh_token()

            assert session.user is None

        assert not isinstance(exc_info.value, SessionExpiredError)
        assert server.refresh_calls == 1


class TestUserState:

    @pytest.mark.asyncio
    async def test_signup_password_mismatch(self):
        server = FakeServer()
        async with make_session(server) as session:
            with pytest.raises(PasswordMismatchError):
                await session.signup("Ana", "ana@example.com", "secret1", "secret2")

            assert session.loading is False

        assert sum(server.hits.values()) == 0

    @pytest.mark.asyncio
    async def test_login_stores_profile(self):
        server = FakeServer()
        async with make_session(server) as session:
            user = await session.login("ana@example.com", "secret1")

            assert user == PROFILE
            assert session.user == PROFILE
            assert session.loading is False

    @pytest.mark.asyncio
    async def test_check_auth_recovers_through_refresh(self):
        server = FakeServer()
        async with make_session(server) as session:
            user = await session.check_auth()

            assert user == PROFILE
            assert session.checking_auth is False

        assert server.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_check_auth_failure_clears_user(self):
        server = FakeServer(refresh_status=401)
        async with make_session(server) as session:
            session.user = dict(PROFILE)

            assert await session.check_auth() is None
            assert session.user is None
            assert session.checking_auth is False

    @pytest.mark.asyncio
    async def test_logout_clears_user(self):
        server = FakeServer()
        async with make_session(server) as session:
            await session.login("ana@example.com", "secret1")
            await session.logout()

            assert session.user is None


@pytest_asyncio.fixture
async def live_session(app_overrides):
    """Client session talking to the real app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with StorefrontSession("http://testserver.local/api", transport=transport) as session:
        yield session


class TestAgainstApp:
    """End-to-end: the interceptor against the real auth endpoints."""

    @pytest.mark.asyncio
    async def test_session_survives_lost_access_token(self, live_session: StorefrontSession):
        user = await live_session.signup("Ana", "ana@example.com", "secret123", "secret123")
        assert user["email"] == "ana@example.com"

        # The access cookie lapses in the browser; the refresh cookie remains
        live_session.http.cookies.delete("accessToken")

        profile = await live_session.check_auth()

        assert profile is not None
        assert profile["id"] == user["id"]
        assert live_session.http.cookies.get("accessToken")

    @pytest.mark.asyncio
    async def test_revoked_session_signs_out(self, live_session: StorefrontSession, refresh_store):
        user = await live_session.signup("Ana", "ana@example.com", "secret123", "secret123")
        refresh_store.delete(user["id"])
        live_session.http.cookies.delete("accessToken")

        with pytest.raises(SessionExpiredError):
            await live_session.request("GET", "/auth/profile")

        assert live_session.user is None

    @pytest.mark.asyncio
    async def test_duplicate_signup_error_passes_through(self, live_session: StorefrontSession, test_user):
        with pytest.raises(ApiError) as exc_info:
            await live_session.signup("Again", test_user.email, "secret123", "secret123")

        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "conflict"
