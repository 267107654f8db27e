"""
Event ingestion schemas.

POST /events → EventIn → EventAcceptedResponse
GET  /events → EventListResponse

Wire shape is fixed by the device clients: event_id / type / payload are
required; ts, device_id and meta are optional. A missing ts is filled with
server time; a malformed ts is a validation error.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from app.services.aggregation import LOCATION_TYPE, LocationEventKind


class LocationPayloadIn(BaseModel):
    """Payload of a location event. Extra keys are kept as-is."""
    model_config = ConfigDict(extra="allow")

    event: LocationEventKind = Field(description='"enter" | "exit" | "dwell"')
    place_id: Annotated[str, Field(min_length=1, max_length=128)]
    lat: Optional[float] = None
    lng: Optional[float] = None
    accuracy_m: Optional[float] = None


class EventIn(BaseModel):
    """A single event posted by a device."""

    event_id: Annotated[str, Field(
        min_length=1,
        max_length=128,
        description="Client-generated idempotency key (UUID recommended).",
        examples=["6f1c2b7e-4c1a-4d0e-9d0e-6a3c1f2b9a10"],
    )]
    type: Annotated[str, Field(
        min_length=1,
        max_length=64,
        description='Event kind. Only "location" events feed the digest segments.',
        examples=["location"],
    )]
    ts: Optional[datetime] = Field(
        default=None,
        description="ISO-8601 instant. Defaults to server time. Naive values are read as UTC.",
        examples=["2026-02-20T10:00:00+09:00"],
    )
    payload: dict[str, Any] = Field(
        description='For type="location": {event, place_id, lat?, lng?, accuracy_m?}.',
    )
    device_id: Optional[str] = Field(default=None, max_length=128)
    meta: dict[str, Any] = Field(default_factory=dict)

    @field_validator("ts", mode="before")
    @classmethod
    def parse_iso_ts(cls, v: Any) -> Optional[datetime]:
        if v is None:
            return None
        if not isinstance(v, str) or v.strip().isdigit():
            # epoch seconds are not accepted
            raise ValueError("ts must be an ISO-8601 string")
        raw = v.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        except (ValueError, OverflowError):
            raise ValueError(f"ts is not a valid ISO-8601 instant: {v!r}") from None

    @model_validator(mode="after")
    def check_location_payload(self) -> "EventIn":
        if self.type == LOCATION_TYPE:
            try:
                LocationPayloadIn.model_validate(self.payload)
            except ValidationError as exc:
                first = exc.errors()[0]
                where = ".".join(str(loc) for loc in first["loc"])
                raise ValueError(f"invalid location payload ({where}): {first['msg']}") from None
        return self


class EventAcceptedResponse(BaseModel):
    status: str = "ok"
    event_id: str
    created: bool = Field(description="False when the event_id was already stored.")


class EventOut(BaseModel):
    id: str
    event_id: str
    type: str
    ts: str
    payload: dict[str, Any]
    device_id: Optional[str] = None
    meta: dict[str, Any]
    processed_at: Optional[str] = None
    created_at: Optional[str] = None


class EventListResponse(BaseModel):
    events: list[EventOut]
    total: int
    limit: int
    offset: int
