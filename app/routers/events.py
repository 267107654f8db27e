"""
Events router — ingestion gateway.

POST /events   — idempotent insert keyed by event_id
GET  /events   — paginated listing (debug / admin)
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import require_token
from app.core.errors import EventIngestionError
from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.events import EventAcceptedResponse, EventIn, EventListResponse, EventOut
from app.services.event_store import event_to_dict, insert_if_absent, list_events

router = APIRouter(
    prefix="/events",
    tags=["events"],
    dependencies=[Depends(require_token)],
    responses={401: {"model": ErrorResponse, "description": "Missing or invalid bearer token."}},
)

MAX_PAGE = 200


@router.post(
    "",
    response_model=EventAcceptedResponse,
    status_code=status.HTTP_200_OK,
    summary="Ingest a single event (idempotent)",
    responses={
        422: {"model": ErrorResponse, "description": "Missing field, bad payload or malformed ts."},
        500: {"model": ErrorResponse, "description": "Storage failure; safe to retry."},
    },
)
def ingest_event(payload: EventIn, db: Session = Depends(get_db)):
    """
    Store an event unless its `event_id` is already known.

    Re-sending the same `event_id` is a silent no-op that still returns 200,
    so clients can retry on timeout without creating duplicates.
    `created` tells whether this call stored the row.
    """
    ts = payload.ts or datetime.now(tz=timezone.utc)
    try:
        created = insert_if_absent(
            db,
            event_id=payload.event_id,
            type=payload.type,
            ts=ts,
            payload=payload.payload,
            device_id=payload.device_id,
            meta=payload.meta,
        )
    except Exception as exc:
        db.rollback()
        raise EventIngestionError(message=str(exc), event_id=payload.event_id) from exc

    return EventAcceptedResponse(event_id=payload.event_id, created=created)


@router.get(
    "",
    response_model=EventListResponse,
    summary="List events (newest first)",
)
def get_events(
    type: Optional[str] = Query(default=None, description='Filter by type, e.g. "location".'),
    limit: int = Query(default=50, ge=1, description=f"Page size, capped at {MAX_PAGE}."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    unprocessed: bool = Query(default=False, description="Only events not yet in a digest."),
    db: Session = Depends(get_db),
):
    limit = min(limit, MAX_PAGE)
    total, items = list_events(db, type=type, unprocessed=unprocessed, limit=limit, offset=offset)
    return EventListResponse(
        events=[EventOut(**event_to_dict(e)) for e in items],
        total=total,
        limit=limit,
        offset=offset,
    )
