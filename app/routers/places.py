"""
Places router.

GET  /places   — registered places, newest first
POST /places   — create or update by place_id
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import require_token
from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.places import PlaceIn, PlaceListResponse, PlaceOut, PlaceUpsertResponse
from app.services.places import list_places, place_to_dict, upsert_place

router = APIRouter(
    prefix="/places",
    tags=["places"],
    dependencies=[Depends(require_token)],
    responses={401: {"model": ErrorResponse, "description": "Missing or invalid bearer token."}},
)


@router.get("", response_model=PlaceListResponse, summary="List places")
def get_places(db: Session = Depends(get_db)):
    return PlaceListResponse(places=[PlaceOut(**place_to_dict(p)) for p in list_places(db)])


@router.post("", response_model=PlaceUpsertResponse, summary="Register or update a place")
def post_place(payload: PlaceIn, db: Session = Depends(get_db)):
    """Upsert keyed by `place_id`. `radius_m` defaults to 100."""
    place = upsert_place(
        db,
        place_id=payload.place_id,
        label=payload.label,
        lat=payload.lat,
        lng=payload.lng,
        radius_m=payload.radius_m,
    )
    return PlaceUpsertResponse(place=PlaceOut(**place_to_dict(place)))
