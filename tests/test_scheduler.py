"""
Tests for the digest worker cycle: claim, aggregate, persist, mark
processed, deliver.
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx

from app.models.digest import Digest
from app.models.event import Event
from app.services.event_store import insert_if_absent
from app.services.notification import NotificationSender
from app.services.scheduler import digest_timezone, run_digest_cycle
from tests.conftest import HOOK_URL, HookRecorder

T0 = datetime(2026, 2, 20, 10, 0, tzinfo=timezone.utc)


def _loc(db, event_id: str, event: str, place: str, minutes: int) -> None:
    insert_if_absent(
        db, event_id=event_id, type="location", ts=T0 + timedelta(minutes=minutes),
        payload={"event": event, "place_id": place},
    )


def _seed_stay(db) -> None:
    _loc(db, "e1", "enter", "home", 0)
    _loc(db, "e2", "exit", "home", 25)
    insert_if_absent(db, event_id="h1", type="health", ts=T0 - timedelta(minutes=30), payload={"bpm": 62})


class TestCycleCreatesDigest:
    def test_creates_digest_and_marks_events(self, db):
        _seed_stay(db)
        result = run_digest_cycle(db, tz=timezone.utc)

        assert result.digest_id is not None
        assert result.event_count == 3

        digest = db.get(Digest, result.digest_id)
        summary = json.loads(digest.summary)
        assert summary["text"] == "[LocationDigest] 10:00-10:25 home(25min)"
        assert summary["event_ids"] == ["h1", "e1", "e2"]
        assert digest.type == "location"
        assert digest.sent_at is None

        assert db.query(Event).filter(Event.processed_at.is_(None)).count() == 0

    def test_period_covers_non_location_events(self, db):
        _seed_stay(db)
        result = run_digest_cycle(db, tz=timezone.utc)
        digest = db.get(Digest, result.digest_id)
        assert digest.period_start.replace(tzinfo=timezone.utc) == T0 - timedelta(minutes=30)
        assert digest.period_end.replace(tzinfo=timezone.utc) == T0 + timedelta(minutes=25)

    def test_nothing_unprocessed_creates_nothing(self, db):
        result = run_digest_cycle(db, tz=timezone.utc)
        assert result.digest_id is None
        assert result.event_count == 0
        assert db.query(Digest).count() == 0

    def test_second_cycle_does_not_reprocess(self, db):
        _seed_stay(db)
        first = run_digest_cycle(db, tz=timezone.utc)
        second = run_digest_cycle(db, tz=timezone.utc)
        assert first.digest_id is not None
        assert second.digest_id is None
        assert db.query(Digest).count() == 1

    def test_late_events_go_to_next_digest(self, db):
        _loc(db, "e1", "enter", "home", 0)
        run_digest_cycle(db, tz=timezone.utc)
        _loc(db, "e2", "exit", "home", 40)
        result = run_digest_cycle(db, tz=timezone.utc)
        summary = json.loads(db.get(Digest, result.digest_id).summary)
        # the matching enter lives in the previous batch
        assert summary["event_ids"] == ["e2"]
        assert summary["text"] == "[LocationDigest] 10:40 home arrived"

    def test_limit_caps_batch(self, db):
        for i in range(5):
            _loc(db, f"d{i}", "dwell", "home", i)
        result = run_digest_cycle(db, tz=timezone.utc, limit=2)
        assert result.event_count == 2
        assert db.query(Event).filter(Event.processed_at.is_(None)).count() == 3

    def test_timezone_applied_to_text(self, db):
        _loc(db, "e1", "enter", "office", 0)
        jst = timezone(timedelta(hours=9))
        result = run_digest_cycle(db, tz=jst)
        summary = json.loads(db.get(Digest, result.digest_id).summary)
        assert summary["text"] == "[LocationDigest] 19:00 office arrived"


class TestCycleDelivery:
    def test_delivers_and_marks_sent(self, db, sender, hook):
        _seed_stay(db)
        result = run_digest_cycle(db, sender=sender, tz=timezone.utc)

        assert result.delivered == [result.digest_id]
        assert result.failed == []
        assert len(hook.requests) == 1
        body = json.loads(hook.requests[0].content)
        assert body["message"] == (
            f"[LocationDigest] 10:00-10:25 home(25min)\n[digest_id: {result.digest_id}]"
        )
        db.expire_all()
        assert db.get(Digest, result.digest_id).sent_at is not None

    def test_failed_delivery_retried_next_cycle(self, db):
        failing = HookRecorder(status_code=500)
        bad_sender = NotificationSender(
            url=HOOK_URL, token="", client=httpx.Client(transport=httpx.MockTransport(failing))
        )
        _seed_stay(db)
        first = run_digest_cycle(db, sender=bad_sender, tz=timezone.utc)
        assert first.failed == [first.digest_id]
        assert first.delivered == []
        db.expire_all()
        assert db.get(Digest, first.digest_id).sent_at is None
        # events stay processed even though delivery failed
        assert db.query(Event).filter(Event.processed_at.is_(None)).count() == 0

        ok = HookRecorder()
        good_sender = NotificationSender(
            url=HOOK_URL, token="", client=httpx.Client(transport=httpx.MockTransport(ok))
        )
        second = run_digest_cycle(db, sender=good_sender, tz=timezone.utc)
        assert second.digest_id is None
        assert second.delivered == [first.digest_id]
        assert len(ok.requests) == 1

    def test_disabled_sender_skips_delivery(self, db):
        _seed_stay(db)
        disabled = NotificationSender(url="", token="")
        result = run_digest_cycle(db, sender=disabled, tz=timezone.utc)
        assert result.delivered == []
        assert result.failed == []
        disabled.close()


class TestDigestTimezone:
    def test_utc_name(self):
        assert digest_timezone("UTC") is timezone.utc
