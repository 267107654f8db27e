"""
Notification channel — digest → OpenClaw hook message.

build_notification_payload(digest, digest_id) is a pure mapping.
NotificationSender posts that message over HTTP and raises
NotificationDeliveryError on any transport or non-2xx failure; retrying is
left to the digest worker (unsent digests are re-delivered next cycle).
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from app.core.config import settings
from app.core.errors import NotificationDeliveryError
from app.core.logging import get_logger
from app.services.aggregation import DigestDraft

log = get_logger(__name__)


NOTIFICATION_NAME = "EventDigest"


def build_notification_payload(digest: DigestDraft, digest_id: str) -> dict[str, Any]:
    """Message for the notification channel, tagged with the digest id."""
    if not digest_id:
        raise ValueError("digest_id must not be empty")
    return {
        "message": f"{digest.text}\n[digest_id: {digest_id}]",
        "name": NOTIFICATION_NAME,
        "wakeMode": "now",
        "deliver": True,
        "channel": "last",
    }


class NotificationSender:
    """
    Thin httpx wrapper around the OpenClaw hook endpoint.

    Pass `client` to inject a transport (tests use httpx.MockTransport).
    With no hook URL configured the sender is disabled and `enabled` is False.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.url = settings.OPENCLAW_HOOK_URL if url is None else url
        self.token = settings.OPENCLAW_TOKEN if token is None else token
        self._client = client or httpx.Client(timeout=settings.OPENCLAW_TIMEOUT_SECONDS)

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def send(self, message: dict[str, Any], digest_id: Optional[str] = None) -> None:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            resp = self._client.post(self.url, json=message, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(
                message=f"Notification delivery failed: {exc}",
                digest_id=digest_id,
            ) from exc
        log.info("notification.sent", url=self.url, status=resp.status_code)

    def close(self) -> None:
        self._client.close()
