"""
Event store: idempotent persistence and batch selection of raw events.

Public API
----------
insert_if_absent(db, event_id, type, ts, payload, device_id, meta) -> bool
query_unprocessed(db, type, limit, claim)                         -> list[Event]
mark_processed(db, event_ids, at)                                  -> int
list_events(db, type, unprocessed, limit, offset)                  -> (total, page)
to_record(event)                                                   -> EventRecord

Idempotency
-----------
`event_id` is unique in `events`. Inserts use INSERT … ON CONFLICT
(event_id) DO NOTHING, so a retried or concurrent duplicate is a silent
no-op and every caller observes success. Dialects without ON CONFLICT fall
back to check-then-insert, with the unique constraint as the final guard.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.event import Event
from app.services.aggregation import EventRecord

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _loads(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    return json.loads(raw)


def to_record(event: Event) -> EventRecord:
    """Map an ORM row to the engine's storage-agnostic EventRecord."""
    return EventRecord(
        event_id=event.event_id,
        type=event.type,
        ts=as_utc(event.ts),
        payload=_loads(event.payload),
        device_id=event.device_id,
        meta=_loads(event.meta),
        processed_at=as_utc(event.processed_at) if event.processed_at else None,
    )


def event_to_dict(event: Event) -> dict[str, Any]:
    return {
        "id": str(event.id),
        "event_id": event.event_id,
        "type": event.type,
        "ts": as_utc(event.ts).isoformat(),
        "payload": _loads(event.payload),
        "device_id": event.device_id,
        "meta": _loads(event.meta),
        "processed_at": as_utc(event.processed_at).isoformat() if event.processed_at else None,
        "created_at": as_utc(event.created_at).isoformat() if event.created_at else None,
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _insert_stmt(dialect: str, values: dict[str, Any]):
    if dialect == "postgresql":
        return pg_insert(Event).values(**values).on_conflict_do_nothing(index_elements=["event_id"])
    if dialect == "sqlite":
        return sqlite_insert(Event).values(**values).on_conflict_do_nothing(index_elements=["event_id"])
    return None


def insert_if_absent(
    db: Session,
    event_id: str,
    type: str,
    ts: datetime,
    payload: dict[str, Any],
    device_id: Optional[str] = None,
    meta: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Persist an event unless its event_id already exists, then commit.
    Returns True when a row was created, False for a duplicate.
    Never raises on a duplicate event_id.
    """
    values = {
        "event_id": event_id,
        "type": type,
        "ts": as_utc(ts),
        "payload": json.dumps(payload),
        "device_id": device_id,
        "meta": json.dumps(meta or {}),
    }

    stmt = _insert_stmt(db.get_bind().dialect.name, values)
    if stmt is not None:
        created = db.execute(stmt).rowcount == 1
        db.commit()
    else:
        created = _insert_checked(db, values)

    log.info("events.ingested", event_id=event_id, type=type, created=created)
    return created


def _insert_checked(db: Session, values: dict[str, Any]) -> bool:
    exists = db.execute(
        select(Event.id).where(Event.event_id == values["event_id"])
    ).first()
    if exists is not None:
        return False
    try:
        db.execute(insert(Event).values(**values))
        db.commit()
    except IntegrityError:
        # Race condition: another writer inserted the same event_id first
        db.rollback()
        return False
    return True


def mark_processed(
    db: Session,
    event_ids: Iterable[str],
    at: Optional[datetime] = None,
) -> int:
    """
    Stamp processed_at on the given events that are still unprocessed.
    Flush only: the caller commits together with the digest insert.
    """
    ids = list(event_ids)
    if not ids:
        return 0
    result = db.execute(
        update(Event)
        .where(Event.event_id.in_(ids), Event.processed_at.is_(None))
        .values(processed_at=at or _now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def query_unprocessed(
    db: Session,
    type: Optional[str] = None,
    limit: Optional[int] = None,
    claim: bool = False,
) -> list[Event]:
    """
    Unprocessed events, oldest first.

    claim=True locks the selected rows (FOR UPDATE SKIP LOCKED) until the
    caller's transaction ends, so a concurrent run skips them. SQLite has no
    row locks and serialises writers instead.
    """
    q = select(Event).where(Event.processed_at.is_(None))
    if type:
        q = q.where(Event.type == type)
    q = q.order_by(Event.ts.asc(), Event.id.asc())
    if limit:
        q = q.limit(limit)
    if claim:
        q = q.with_for_update(skip_locked=True)
    return list(db.scalars(q).all())


def list_events(
    db: Session,
    type: Optional[str] = None,
    unprocessed: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[Event]]:
    """Return (total, page) of events ordered by ts desc."""
    q = db.query(Event)
    if type:
        q = q.filter(Event.type == type)
    if unprocessed:
        q = q.filter(Event.processed_at.is_(None))
    total = q.count()
    items = (
        q.order_by(Event.ts.desc(), Event.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items
