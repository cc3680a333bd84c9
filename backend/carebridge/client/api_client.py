"""
Async client for the CareBridge REST API.

Attaches the bearer token to every request. When a request outside
``/api/auth/`` comes back 401, the client refreshes the token pair and
replays the request once. Concurrent 401s share a single refresh call.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from uuid import UUID

import httpx


logger = logging.getLogger(__name__)

AUTH_PREFIX = "/api/auth/"

TokensCallback = Callable[[Optional[str], Optional[str]], Union[None, Awaitable[None]]]


class CareBridgeAPIError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, payload: Any = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.payload = payload


class TokenRefreshError(CareBridgeAPIError):
    """The refresh token was rejected or missing; the session is over."""


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)


class CareBridgeClient:
    """
    Thin wrapper around ``httpx.AsyncClient``.

    Args:
        base_url: API root, e.g. ``https://api.example.com``
        access_token: Current access token
        refresh_token: Current refresh token
        on_tokens_refreshed: Called with the new pair after a refresh, or
            with ``(None, None)`` when the refresh fails and tokens are cleared
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        on_tokens_refreshed: Optional[TokensCallback] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.on_tokens_refreshed = on_tokens_refreshed
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._refresh_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "CareBridgeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # =========================================================================
    # Core request path
    # =========================================================================

    def _headers(self) -> Dict[str, str]:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    async def _notify_tokens(self) -> None:
        if self.on_tokens_refreshed is None:
            return
        result = self.on_tokens_refreshed(self.access_token, self.refresh_token)
        if asyncio.iscoroutine(result):
            await result

    async def _do_refresh(self) -> None:
        if not self.refresh_token:
            self.access_token = None
            await self._notify_tokens()
            raise TokenRefreshError(401, "No refresh token available")

        response = await self._http.post(
            f"{AUTH_PREFIX}refresh", json={"refresh_token": self.refresh_token}
        )
        if response.status_code != 200:
            self.access_token = None
            self.refresh_token = None
            await self._notify_tokens()
            logger.warning(f"Token refresh failed with {response.status_code}")
            raise TokenRefreshError(response.status_code, _error_message(response))

        tokens = response.json()
        self.access_token = tokens["access_token"]
        self.refresh_token = tokens.get("refresh_token", self.refresh_token)
        await self._notify_tokens()

    async def refresh(self) -> None:
        """
        Refresh the token pair. Callers arriving while a refresh is in
        flight await that same refresh and share its outcome.
        """
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._do_refresh())
        await asyncio.shield(self._refresh_task)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``None`` for empty bodies)."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        sent_token = self.access_token
        response = await self._http.request(method, path, params=params, json=json, headers=self._headers())

        if response.status_code == 401 and not path.startswith(AUTH_PREFIX):
            # Another request may already have refreshed while this one was in flight
            if self.access_token == sent_token:
                await self.refresh()
            if self.access_token is None:
                raise TokenRefreshError(401, "Session expired")
            response = await self._http.request(method, path, params=params, json=json, headers=self._headers())

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise CareBridgeAPIError(response.status_code, _error_message(response), payload)

        if not response.content:
            return None
        return response.json()

    # =========================================================================
    # Auth
    # =========================================================================

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        tokens = await self.request("POST", f"{AUTH_PREFIX}login", json={"email": email, "password": password})
        self.access_token = tokens["access_token"]
        self.refresh_token = tokens["refresh_token"]
        await self._notify_tokens()
        return tokens

    async def me(self) -> Dict[str, Any]:
        return await self.request("GET", f"{AUTH_PREFIX}me")

    # =========================================================================
    # Profile
    # =========================================================================

    async def get_profile(self) -> Dict[str, Any]:
        return await self.request("GET", "/api/profile/me")

    async def update_profile(self, **fields: Any) -> Dict[str, Any]:
        return await self.request("PUT", "/api/profile/me", json=fields)

    async def get_completeness(self) -> Dict[str, Any]:
        return await self.request("GET", "/api/profile/completeness/me")

    # =========================================================================
    # Community
    # =========================================================================

    async def list_posts(self, sort: str = "recent", page: int = 1, limit: int = 20, **filters: Any) -> Dict[str, Any]:
        return await self.request("GET", "/api/posts", params={"sort": sort, "page": page, "limit": limit, **filters})

    async def vote_post(self, post_id: Union[str, UUID], value: int) -> Dict[str, Any]:
        return await self.request("POST", f"/api/posts/{post_id}/vote", json={"value": value})

    async def toggle_bookmark(self, post_id: Union[str, UUID]) -> Dict[str, Any]:
        return await self.request("POST", f"/api/posts/{post_id}/bookmark")

    # =========================================================================
    # Marketplace
    # =========================================================================

    async def get_slots(
        self,
        therapist_id: Union[str, UUID],
        day: date,
        session_type_id: Union[str, UUID],
        timezone: str = "UTC",
    ) -> List[Dict[str, Any]]:
        return await self.request(
            "GET",
            f"/api/marketplace/therapists/{therapist_id}/slots",
            params={"date": day.isoformat(), "session_type_id": str(session_type_id), "timezone": timezone},
        )

    async def create_booking(
        self,
        therapist_id: Union[str, UUID],
        session_type_id: Union[str, UUID],
        start_time: datetime,
        timezone: str = "UTC",
        patient_notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/api/marketplace/bookings",
            json={
                "therapist_id": str(therapist_id),
                "session_type_id": str(session_type_id),
                "start_time": start_time.isoformat(),
                "timezone": timezone,
                "patient_notes": patient_notes,
            },
        )

    async def my_bookings(self, role: str = "patient", status: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self.request("GET", "/api/marketplace/bookings", params={"role": role, "status": status})

    async def cancel_booking(self, booking_id: Union[str, UUID], reason: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("POST", f"/api/marketplace/bookings/{booking_id}/cancel", json={"reason": reason})

    # =========================================================================
    # Push Notifications
    # =========================================================================

    async def register_push_token(self, token: str, platform: str, device_name: Optional[str] = None) -> Dict[str, Any]:
        return await self.request(
            "PUT",
            "/api/notifications/token",
            json={"token": token, "platform": platform, "device_name": device_name},
        )

    async def remove_push_token(self, token: str) -> Dict[str, Any]:
        return await self.request("DELETE", "/api/notifications/token", json={"token": token})
