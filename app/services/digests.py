"""
Digest persistence helpers.

create_digest(db, draft)        -> Digest   (flush only, no commit)
draft_from_row(digest)          -> DigestDraft
mark_sent(db, digest, at)       -> None     (commits)
list_digests / get_digest       -> read helpers for the API
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.errors import DigestNotFoundError
from app.models.digest import Digest
from app.services.aggregation import DigestDraft, StaySegment
from app.services.event_store import as_utc


def create_digest(db: Session, draft: DigestDraft) -> Digest:
    """Add a digest row and flush to obtain its id. The caller commits."""
    digest = Digest(
        period_start=draft.period_start,
        period_end=draft.period_end,
        type=draft.type,
        summary=json.dumps(draft.summary_dict(), ensure_ascii=False),
    )
    db.add(digest)
    db.flush()
    return digest


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def draft_from_row(digest: Digest) -> DigestDraft:
    """Rebuild the in-memory digest from a stored row (for re-delivery)."""
    summary = json.loads(digest.summary)
    segments = [
        StaySegment(
            place_id=s["place_id"],
            enter_at=_parse_ts(s["enter_at"]),
            exit_at=_parse_ts(s.get("exit_at")),
            duration_min=s.get("duration_min"),
        )
        for s in summary.get("segments", [])
    ]
    return DigestDraft(
        period_start=as_utc(digest.period_start),
        period_end=as_utc(digest.period_end),
        segments=segments,
        text=summary.get("text", ""),
        event_ids=list(summary.get("event_ids", [])),
        type=digest.type,
    )


def mark_sent(db: Session, digest: Digest, at: Optional[datetime] = None) -> None:
    digest.sent_at = at or datetime.now(tz=timezone.utc)
    db.commit()


def list_unsent(db: Session) -> list[Digest]:
    return (
        db.query(Digest)
        .filter(Digest.sent_at.is_(None))
        .order_by(Digest.id.asc())
        .all()
    )


def list_digests(db: Session, unsent: bool = False, limit: int = 50) -> list[Digest]:
    q = db.query(Digest)
    if unsent:
        q = q.filter(Digest.sent_at.is_(None))
    return q.order_by(Digest.created_at.desc(), Digest.id.desc()).limit(limit).all()


def get_digest(db: Session, digest_id: int) -> Digest:
    digest = db.get(Digest, digest_id)
    if digest is None:
        raise DigestNotFoundError(digest_id)
    return digest


def digest_to_dict(digest: Digest) -> dict[str, Any]:
    return {
        "id": str(digest.id),
        "period_start": as_utc(digest.period_start).isoformat(),
        "period_end": as_utc(digest.period_end).isoformat(),
        "type": digest.type,
        "summary": json.loads(digest.summary),
        "sent_at": as_utc(digest.sent_at).isoformat() if digest.sent_at else None,
        "created_at": as_utc(digest.created_at).isoformat() if digest.created_at else None,
    }
