"""
Push notification dispatch through the Expo push API.

Tokens reported as ``DeviceNotRegistered`` are deactivated. Transport
errors and 5xx responses are retried with exponential backoff; when every
batch still fails that way the error is raised so the queue can retry the
whole dispatch later.
"""

import logging
from typing import Any, Optional
from uuid import UUID

import httpx
from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import settings
from ..core.transactions import transaction
from ..models.notification import DeviceToken
from .device_tokens import DeviceTokenService


logger = logging.getLogger(__name__)

EXPO_BATCH_SIZE = 100


class PushDeliveryError(Exception):
    """Retryable push API failure."""


class PushService:
    def __init__(self, db: Session, client: Optional[httpx.Client] = None):
        self.db = db
        self._client = client

    @property
    def enabled(self) -> bool:
        return settings.push_enabled

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=5),
        retry=retry_if_exception_type(PushDeliveryError),
        reraise=True,
    )
    def _post(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        try:
            if self._client is not None:
                response = self._client.post(settings.expo_push_url, json=messages, headers=headers)
            else:
                with httpx.Client(timeout=15.0) as client:
                    response = client.post(settings.expo_push_url, json=messages, headers=headers)
        except httpx.TransportError as e:
            raise PushDeliveryError(f"Push transport error: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise PushDeliveryError(f"Push API returned {response.status_code}")
        response.raise_for_status()
        return response.json().get("data", [])

    def send_to_user(self, user_id: UUID, title: str, body: str, data: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Send one notification to every active device of a user.

        Returns:
            ``{"sent": int, "failed": int, "deactivated": int}`` and
            ``"skipped": True`` when push is disabled or no device is registered.

        Raises:
            PushDeliveryError: every batch failed with a retryable error.
        """
        result: dict[str, Any] = {"sent": 0, "failed": 0, "deactivated": 0}

        if not self.enabled:
            logger.info(f"Push disabled; skipping notification to user {user_id}")
            return dict(result, skipped=True)

        devices = DeviceTokenService(self.db).active_tokens(user_id)
        if not devices:
            logger.debug(f"No active device tokens for user {user_id}")
            return dict(result, skipped=True)

        batches = 0
        retryable: list[PushDeliveryError] = []
        for start in range(0, len(devices), EXPO_BATCH_SIZE):
            batches += 1
            batch = devices[start:start + EXPO_BATCH_SIZE]
            messages = [
                {"to": d.token, "title": title, "body": body, "data": data or {}, "sound": "default"}
                for d in batch
            ]
            try:
                tickets = self._post(messages)
            except PushDeliveryError as e:
                logger.error(f"Push delivery to user {user_id} failed: {e}")
                retryable.append(e)
                result["failed"] += len(batch)
                continue
            except httpx.HTTPStatusError as e:
                logger.error(f"Push delivery to user {user_id} rejected: {e}")
                result["failed"] += len(batch)
                continue

            result["deactivated"] += self._handle_tickets(batch, tickets, result)

        if retryable and len(retryable) == batches:
            raise retryable[-1]

        logger.info(f"Push to user {user_id}: {result['sent']} sent, {result['failed']} failed")
        return result

    def _handle_tickets(self, batch: list[DeviceToken], tickets: list[dict[str, Any]], result: dict[str, Any]) -> int:
        unregistered = []
        for device, ticket in zip(batch, tickets):
            if ticket.get("status") == "ok":
                result["sent"] += 1
                continue
            result["failed"] += 1
            if (ticket.get("details") or {}).get("error") == "DeviceNotRegistered":
                unregistered.append(device)

        if unregistered:
            with transaction(self.db):
                for device in unregistered:
                    device.is_active = False
            logger.warning(f"Deactivated {len(unregistered)} unregistered device tokens")
        return len(unregistered)
