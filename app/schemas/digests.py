"""
Digest schemas.

GET  /digests        → DigestListResponse
GET  /digests/{id}   → DigestOut
POST /digests/run    → DigestRunResponse
"""
from typing import Optional
from pydantic import BaseModel, Field


class StaySegmentOut(BaseModel):
    place_id: str
    enter_at: str
    exit_at: Optional[str] = None
    duration_min: Optional[int] = None


class DigestSummaryOut(BaseModel):
    segments: list[StaySegmentOut]
    text: str
    event_ids: list[str]


class DigestOut(BaseModel):
    id: str
    period_start: str
    period_end: str
    type: str
    summary: DigestSummaryOut
    sent_at: Optional[str] = None
    created_at: Optional[str] = None


class DigestListResponse(BaseModel):
    digests: list[DigestOut]


class DigestRunResponse(BaseModel):
    digest_id: Optional[int] = Field(
        default=None, description="Created digest, or null when nothing was unprocessed."
    )
    event_count: int = Field(description="Events marked processed by this run.")
    delivered: list[int] = Field(description="Digest ids delivered in this run.")
    failed: list[int] = Field(description="Digest ids whose delivery failed (retried next run).")
