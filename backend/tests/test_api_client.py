"""
Tests for the async API client, driven by ``httpx.MockTransport``.
"""

import asyncio
import json

import httpx
import pytest

from carebridge.client import CareBridgeAPIError, CareBridgeClient, TokenRefreshError


BASE_URL = "https://api.carebridge.test"


class FakeAPI:
    """Accepts exactly one access token and counts refresh calls."""

    def __init__(self, valid_token: str = "new-access", refresh_status: int = 200):
        self.valid_token = valid_token
        self.refresh_status = refresh_status
        self.refresh_calls = 0
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/auth/refresh":
            self.refresh_calls += 1
            if self.refresh_status != 200:
                return httpx.Response(self.refresh_status, json={"detail": "Invalid or expired refresh token"})
            assert json.loads(request.content) == {"refresh_token": "old-refresh"}
            return httpx.Response(200, json={"access_token": self.valid_token, "refresh_token": "new-refresh"})
        if request.url.path == "/api/auth/login":
            return httpx.Response(401, json={"detail": "Invalid email or password"})
        if request.headers.get("Authorization") != f"Bearer {self.valid_token}":
            return httpx.Response(401, json={"detail": "Invalid or expired token"})
        if request.url.path.endswith("/report"):
            return httpx.Response(409, json={
                "success": False, "error": "conflict", "message": "You have already reported this post",
            })
        return httpx.Response(200, json={"ok": True, "params": dict(request.url.params)})


def make_client(api: FakeAPI, **kwargs) -> CareBridgeClient:
    return CareBridgeClient(
        BASE_URL,
        access_token="old-access",
        refresh_token="old-refresh",
        transport=httpx.MockTransport(api),
        **kwargs,
    )


class TestTokenRefresh:
    def test_401_refreshes_and_replays(self) -> None:
        api = FakeAPI()
        seen = []

        async def scenario():
            async with make_client(api, on_tokens_refreshed=lambda a, r: seen.append((a, r))) as client:
                return await client.list_posts(), client

        body, client = asyncio.run(scenario())
        assert body["ok"] is True
        assert api.refresh_calls == 1
        assert seen == [("new-access", "new-refresh")]
        assert client.access_token == "new-access"
        assert [r.url.path for r in api.requests] == ["/api/posts", "/api/auth/refresh", "/api/posts"]

    def test_concurrent_401s_share_one_refresh(self) -> None:
        api = FakeAPI()

        async def scenario():
            async with make_client(api) as client:
                return await asyncio.gather(client.list_posts(page=1), client.list_posts(page=2), client.list_posts(page=3))

        results = asyncio.run(scenario())

        assert [r["params"]["page"] for r in results] == ["1", "2", "3"]
        assert api.refresh_calls == 1

    def test_failed_refresh_clears_tokens(self) -> None:
        api = FakeAPI(refresh_status=401)
        seen = []

        async def async_callback(access, refresh):
            seen.append((access, refresh))

        async def scenario():
            async with make_client(api, on_tokens_refreshed=async_callback) as client:
                with pytest.raises(TokenRefreshError):
                    await client.list_posts()
                return client

        client = asyncio.run(scenario())
        assert client.access_token is None
        assert client.refresh_token is None
        assert seen == [(None, None)]

    def test_request_after_failed_concurrent_refresh_is_not_replayed(self) -> None:
        api = FakeAPI(refresh_status=401)
        holder = {}

        def handler(request: httpx.Request) -> httpx.Response:
            # a sibling request's refresh failed while this one was in flight
            holder["client"].access_token = None
            holder["client"].refresh_token = None
            return api(request)

        async def scenario():
            client = CareBridgeClient(
                BASE_URL, access_token="old-access", refresh_token="old-refresh",
                transport=httpx.MockTransport(handler),
            )
            holder["client"] = client
            async with client:
                with pytest.raises(TokenRefreshError):
                    await client.list_posts()

        asyncio.run(scenario())
        assert [r.url.path for r in api.requests] == ["/api/posts"]
        assert api.requests[0].headers["Authorization"] == "Bearer old-access"

    def test_auth_routes_are_not_refreshed(self) -> None:
        api = FakeAPI()

        async def scenario():
            async with make_client(api) as client:
                await client.login("someone@example.com", "wrong-password")

        with pytest.raises(CareBridgeAPIError) as excinfo:
            asyncio.run(scenario())
        assert excinfo.value.status_code == 401
        assert excinfo.value.message == "Invalid email or password"
        assert api.refresh_calls == 0


class TestRequests:
    def test_error_envelope_message(self) -> None:
        api = FakeAPI(valid_token="old-access")

        async def scenario():
            async with make_client(api) as client:
                await client.request("POST", "/api/posts/abc/report", json={"reason": "spam"})

        with pytest.raises(CareBridgeAPIError) as excinfo:
            asyncio.run(scenario())
        assert excinfo.value.status_code == 409
        assert excinfo.value.message == "You have already reported this post"
        assert excinfo.value.payload["error"] == "conflict"

    def test_none_params_are_dropped(self) -> None:
        api = FakeAPI(valid_token="old-access")

        async def scenario():
            async with make_client(api) as client:
                return await client.my_bookings(role="therapist")

        body = asyncio.run(scenario())
        assert body["params"] == {"role": "therapist"}
