"""
Digest worker cycle: claim → aggregate → persist → mark processed → deliver.

One cycle
---------
  1. Claim unprocessed events (FOR UPDATE SKIP LOCKED, oldest first).
  2. aggregate() the batch; an empty batch creates nothing.
  3. Insert the digest, stamp processed_at on exactly summary.event_ids,
     commit once. Either all three land or none do.
  4. Deliver every unsent digest (this cycle's plus earlier failures).
     Success sets sent_at; a delivery failure is logged and the digest
     stays unsent for the next cycle.

Storage failures in steps 1-3 roll back and propagate to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotificationDeliveryError
from app.core.logging import get_logger
from app.services.aggregation import aggregate
from app.services.digests import create_digest, draft_from_row, list_unsent, mark_sent
from app.services.event_store import mark_processed, query_unprocessed, to_record
from app.services.notification import NotificationSender, build_notification_payload

log = get_logger(__name__)


@dataclass
class CycleResult:
    """What one worker cycle did."""
    digest_id: Optional[int] = None
    event_count: int = 0
    delivered: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


def digest_timezone(name: Optional[str] = None) -> tzinfo:
    """Wall-clock zone used for HH:MM rendering."""
    name = name or settings.DIGEST_TIMEZONE
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _create_from_unprocessed(
    db: Session,
    tz: tzinfo,
    limit: Optional[int],
    result: CycleResult,
) -> None:
    try:
        events = query_unprocessed(db, limit=limit, claim=True)
        draft = aggregate([to_record(e) for e in events], tz)
        if draft is None:
            db.rollback()
            return

        digest = create_digest(db, draft)
        marked = mark_processed(db, draft.event_ids)
        db.commit()
    except Exception:
        db.rollback()
        raise

    result.digest_id = digest.id
    result.event_count = marked
    log.info(
        "digest.created",
        digest_id=digest.id,
        event_count=marked,
        segment_count=len(draft.segments),
    )


def _deliver_unsent(db: Session, sender: NotificationSender, result: CycleResult) -> None:
    for digest in list_unsent(db):
        digest_id = str(digest.id)
        message = build_notification_payload(draft_from_row(digest), digest_id)
        try:
            sender.send(message, digest_id=digest_id)
        except NotificationDeliveryError as exc:
            log.warning("digest.delivery_failed", digest_id=digest.id, error=exc.message)
            result.failed.append(digest.id)
            continue
        mark_sent(db, digest)
        result.delivered.append(digest.id)


def run_digest_cycle(
    db: Session,
    sender: Optional[NotificationSender] = None,
    tz: Optional[tzinfo] = None,
    limit: Optional[int] = None,
) -> CycleResult:
    """Run one claim/aggregate/deliver cycle. Safe to call repeatedly."""
    result = CycleResult()
    _create_from_unprocessed(
        db,
        tz or digest_timezone(),
        limit if limit is not None else settings.DIGEST_BATCH_LIMIT,
        result,
    )

    if sender is not None and sender.enabled:
        _deliver_unsent(db, sender, result)
    elif result.digest_id is not None:
        log.debug("digest.delivery_skipped", digest_id=result.digest_id)

    return result
