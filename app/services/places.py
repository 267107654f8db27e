"""
Place registry: named places the devices geofence against.

Registration only. The aggregation engine works on raw place_id strings
and never reads this table.
"""
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.place import Place
from app.services.event_store import as_utc


DEFAULT_RADIUS_M = 100


def upsert_place(
    db: Session,
    place_id: str,
    label: str,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_m: Optional[int] = None,
) -> Place:
    """Create or update a place by place_id, then commit."""
    fields = {
        "label": label,
        "lat": lat,
        "lng": lng,
        "radius_m": radius_m if radius_m is not None else DEFAULT_RADIUS_M,
    }
    place = db.query(Place).filter(Place.place_id == place_id).first()
    if place is None:
        place = Place(place_id=place_id, **fields)
        db.add(place)
        try:
            db.commit()
        except IntegrityError:
            # Race condition: a concurrent request created the place first
            db.rollback()
            place = db.query(Place).filter(Place.place_id == place_id).one()
        else:
            db.refresh(place)
            return place

    for key, value in fields.items():
        setattr(place, key, value)
    db.commit()
    db.refresh(place)
    return place


def list_places(db: Session) -> list[Place]:
    return db.query(Place).order_by(Place.created_at.desc(), Place.id.desc()).all()


def place_to_dict(place: Place) -> dict[str, Any]:
    return {
        "id": place.id,
        "place_id": place.place_id,
        "label": place.label,
        "lat": place.lat,
        "lng": place.lng,
        "radius_m": place.radius_m,
        "created_at": as_utc(place.created_at).isoformat() if place.created_at else None,
        "updated_at": as_utc(place.updated_at).isoformat() if place.updated_at else None,
    }
