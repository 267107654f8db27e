"""
Aggregation engine — raw location events → stay segments → digest.

Pipeline
--------
build_stay_segments(events)        -> list[StaySegment]
format_digest_text(segments, tz)   -> str
aggregate(events, tz)              -> DigestDraft | None

Segment rules (walk location events by ts, one open segment at a time)
----------------------------------------------------------------------
  enter P@T : close the open segment (if any) at T, then open {P, T}.
              An unterminated earlier stay is ended by the next arrival.
  exit  P@T : open segment is at P → close it at T.
              Otherwise emit a standalone zero-length segment {P, T, T, 0};
              the open segment (if any) stays open.
  dwell     : no state change.

An open segment left at the end of the batch keeps exit_at=None: the batch
is a snapshot, the stay is still ongoing.

Everything here is pure: no DB, no clock, no logging. Safe to call
concurrently on disjoint batches.
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Iterable, Optional, Sequence


LOCATION_TYPE = "location"
DIGEST_TAG = "[LocationDigest]"
NO_EVENTS_TEXT = f"{DIGEST_TAG} no events"
SEGMENT_SEPARATOR = " → "


# ---------------------------------------------------------------------------
# Input types
# ---------------------------------------------------------------------------

class LocationEventKind(str, enum.Enum):
    enter = "enter"
    exit = "exit"
    dwell = "dwell"


@dataclass(frozen=True)
class LocationPayload:
    """Payload of a `type="location"` event, tagged by `event`."""
    event: LocationEventKind
    place_id: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    accuracy_m: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocationPayload":
        return cls(
            event=LocationEventKind(data["event"]),
            place_id=str(data["place_id"]),
            lat=data.get("lat"),
            lng=data.get("lng"),
            accuracy_m=data.get("accuracy_m"),
        )


@dataclass(frozen=True)
class EventRecord:
    """Storage-agnostic view of a stored event, as handed to the engine."""
    event_id: str
    type: str
    ts: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    device_id: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)
    processed_at: Optional[datetime] = None

    @property
    def is_location(self) -> bool:
        return self.type == LOCATION_TYPE

    @property
    def location(self) -> LocationPayload:
        return LocationPayload.from_dict(self.payload)


# ---------------------------------------------------------------------------
# Output types
# ---------------------------------------------------------------------------

@dataclass
class StaySegment:
    place_id: str
    enter_at: datetime
    exit_at: Optional[datetime] = None
    duration_min: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.exit_at is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "place_id": self.place_id,
            "enter_at": self.enter_at.isoformat(),
            "exit_at": None if self.is_open else self.exit_at.isoformat(),
            "duration_min": self.duration_min,
        }


@dataclass
class DigestDraft:
    """A digest ready to be persisted; the DB assigns id / created_at."""
    period_start: datetime
    period_end: datetime
    segments: list[StaySegment]
    text: str
    event_ids: list[str]
    type: str = LOCATION_TYPE

    def summary_dict(self) -> dict[str, Any]:
        return {
            "segments": [s.to_dict() for s in self.segments],
            "text": self.text,
            "event_ids": list(self.event_ids),
        }


# ---------------------------------------------------------------------------
# Segment Builder
# ---------------------------------------------------------------------------

def duration_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, rounded half up like JS Math.round."""
    return math.floor((end - start).total_seconds() / 60 + 0.5)


def _close(segment: StaySegment, at: datetime) -> None:
    segment.exit_at = at
    segment.duration_min = duration_minutes(segment.enter_at, at)


def build_stay_segments(events: Iterable[EventRecord]) -> list[StaySegment]:
    """
    Fold location events into stay segments.
    Sort is stable: events sharing a ts keep their input order.
    """
    location_events = sorted(
        (e for e in events if e.is_location),
        key=lambda e: e.ts,
    )

    segments: list[StaySegment] = []
    current: Optional[StaySegment] = None

    for event in location_events:
        payload = event.location

        if payload.event is LocationEventKind.enter:
            if current is not None:
                _close(current, event.ts)
            current = StaySegment(place_id=payload.place_id, enter_at=event.ts)
            segments.append(current)

        elif payload.event is LocationEventKind.exit:
            if current is not None and current.place_id == payload.place_id:
                _close(current, event.ts)
                current = None
            else:
                segments.append(StaySegment(
                    place_id=payload.place_id,
                    enter_at=event.ts,
                    exit_at=event.ts,
                    duration_min=0,
                ))

        # dwell: evidence the open stay continues; contributes nothing

    return segments


# ---------------------------------------------------------------------------
# Digest Formatter
# ---------------------------------------------------------------------------

def _hhmm(instant: datetime, tz: tzinfo) -> str:
    return instant.astimezone(tz).strftime("%H:%M")


def format_segment(segment: StaySegment, tz: tzinfo = timezone.utc) -> str:
    enter = _hhmm(segment.enter_at, tz)
    if not segment.is_open and segment.duration_min:
        return f"{enter}-{_hhmm(segment.exit_at, tz)} {segment.place_id}({segment.duration_min}min)"
    # zero-length and still-open stays both read as an arrival
    return f"{enter} {segment.place_id} arrived"


def format_digest_text(segments: Sequence[StaySegment], tz: tzinfo = timezone.utc) -> str:
    if not segments:
        return NO_EVENTS_TEXT
    return f"{DIGEST_TAG} " + SEGMENT_SEPARATOR.join(format_segment(s, tz) for s in segments)


# ---------------------------------------------------------------------------
# Digest Assembler
# ---------------------------------------------------------------------------

def aggregate(events: Sequence[EventRecord], tz: tzinfo = timezone.utc) -> Optional[DigestDraft]:
    """
    Build the digest for one batch, or None when the batch is empty.

    Period bounds and event_ids cover the whole batch, non-location events
    included; event_ids keep the batch order.
    """
    if not events:
        return None

    segments = build_stay_segments(events)
    timestamps = [e.ts for e in events]

    return DigestDraft(
        period_start=min(timestamps),
        period_end=max(timestamps),
        segments=segments,
        text=format_digest_text(segments, tz),
        event_ids=[e.event_id for e in events],
    )
