"""
Digests router.

GET  /digests          — newest first, optionally only unsent
GET  /digests/{id}     — single digest
POST /digests/run      — run one worker cycle now
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth import require_token
from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.digests import DigestListResponse, DigestOut, DigestRunResponse
from app.services.digests import digest_to_dict, get_digest, list_digests
from app.services.notification import NotificationSender
from app.services.scheduler import run_digest_cycle

router = APIRouter(
    prefix="/digests",
    tags=["digests"],
    dependencies=[Depends(require_token)],
    responses={401: {"model": ErrorResponse, "description": "Missing or invalid bearer token."}},
)

MAX_PAGE = 200


def get_sender():
    sender = NotificationSender()
    try:
        yield sender
    finally:
        sender.close()


@router.get("", response_model=DigestListResponse, summary="List digests (newest first)")
def get_digests(
    unsent: bool = Query(default=False, description="Only digests not yet delivered."),
    limit: int = Query(default=50, ge=1, description=f"Page size, capped at {MAX_PAGE}."),
    db: Session = Depends(get_db),
):
    digests = list_digests(db, unsent=unsent, limit=min(limit, MAX_PAGE))
    return DigestListResponse(digests=[DigestOut(**digest_to_dict(d)) for d in digests])


@router.post(
    "/run",
    response_model=DigestRunResponse,
    summary="Aggregate unprocessed events now",
)
def run_digest(
    db: Session = Depends(get_db),
    sender: NotificationSender = Depends(get_sender),
):
    """
    Same cycle the background worker runs: claim unprocessed events, build
    one digest, mark the events processed, then deliver unsent digests.
    """
    result = run_digest_cycle(db, sender=sender)
    return DigestRunResponse(
        digest_id=result.digest_id,
        event_count=result.event_count,
        delivered=result.delivered,
        failed=result.failed,
    )


@router.get(
    "/{digest_id}",
    response_model=DigestOut,
    summary="Get one digest",
    responses={404: {"model": ErrorResponse, "description": "Unknown digest id."}},
)
def get_one_digest(digest_id: int, db: Session = Depends(get_db)):
    return DigestOut(**digest_to_dict(get_digest(db, digest_id)))
