"""
Tests for the notification payload builder and the HTTP sender.
"""
import json
from datetime import datetime, timezone

import httpx
import pytest

from app.core.errors import NotificationDeliveryError
from app.services.aggregation import DigestDraft
from app.services.notification import NotificationSender, build_notification_payload
from tests.conftest import HOOK_URL, HookRecorder


def _draft(text: str = "[LocationDigest] 10:00 P arrived") -> DigestDraft:
    t = datetime(2026, 2, 20, 10, 0, tzinfo=timezone.utc)
    return DigestDraft(period_start=t, period_end=t, segments=[], text=text, event_ids=["e1"])


class TestBuildNotificationPayload:
    def test_message_carries_digest_id(self):
        payload = build_notification_payload(_draft(), "42")
        assert payload["message"] == "[LocationDigest] 10:00 P arrived\n[digest_id: 42]"

    def test_fixed_delivery_fields(self):
        payload = build_notification_payload(_draft(), "42")
        assert payload["name"] == "EventDigest"
        assert payload["wakeMode"] == "now"
        assert payload["deliver"] is True
        assert payload["channel"] == "last"

    def test_empty_digest_id_rejected(self):
        with pytest.raises(ValueError):
            build_notification_payload(_draft(), "")


class TestNotificationSender:
    def _sender(self, hook, url=HOOK_URL, token="hook-token"):
        return NotificationSender(
            url=url, token=token, client=httpx.Client(transport=httpx.MockTransport(hook))
        )

    def test_posts_json_with_bearer(self):
        hook = HookRecorder()
        sender = self._sender(hook)
        sender.send({"message": "hi"})
        assert len(hook.requests) == 1
        req = hook.requests[0]
        assert str(req.url) == HOOK_URL
        assert req.headers["Authorization"] == "Bearer hook-token"
        assert json.loads(req.content) == {"message": "hi"}

    def test_no_token_no_auth_header(self):
        hook = HookRecorder()
        self._sender(hook, token="").send({"message": "hi"})
        assert "Authorization" not in hook.requests[0].headers

    def test_http_error_raises_delivery_error(self):
        sender = self._sender(HookRecorder(status_code=503))
        with pytest.raises(NotificationDeliveryError) as exc_info:
            sender.send({"message": "hi"}, digest_id="42")
        assert exc_info.value.code == "NOTIFICATION_DELIVERY_FAILED"
        assert exc_info.value.details == {"digest_id": "42"}

    def test_transport_error_raises_delivery_error(self):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        sender = NotificationSender(
            url=HOOK_URL, token="", client=httpx.Client(transport=httpx.MockTransport(boom))
        )
        with pytest.raises(NotificationDeliveryError):
            sender.send({"message": "hi"})

    def test_disabled_without_url(self):
        assert self._sender(HookRecorder(), url="").enabled is False
