"""
Event — raw fact received from a client device.

Append-only apart from `processed_at`, which the digest worker sets exactly
once, in the same transaction that creates the digest referencing the event.

`event_id` is the client-supplied idempotency key: the unique constraint
plus INSERT … ON CONFLICT DO NOTHING make a retried POST a silent no-op.

payload / meta: JSON-encoded dicts stored as Text.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("event_id", name="uq_events_event_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    event_id: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    payload: Mapped[str] = mapped_column(
        Text, nullable=False,
        comment='JSON object; for type="location": {event, place_id, lat?, lng?, accuracy_m?}',
    )
    device_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    meta: Mapped[str] = mapped_column(
        Text, nullable=False, default="{}",
        comment="JSON object, stored but never interpreted",
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
