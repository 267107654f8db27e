"""
Place registry schemas.

GET  /places → PlaceListResponse
POST /places → PlaceIn → PlaceUpsertResponse
"""
from typing import Annotated, Optional
from pydantic import BaseModel, Field


class PlaceIn(BaseModel):
    place_id: Annotated[str, Field(min_length=1, max_length=128, examples=["home"])]
    label: Annotated[str, Field(min_length=1, max_length=256, examples=["Home"])]
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_m: Optional[int] = Field(default=None, ge=1, description="Geofence radius. Defaults to 100.")


class PlaceOut(BaseModel):
    id: int
    place_id: str
    label: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_m: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PlaceListResponse(BaseModel):
    places: list[PlaceOut]


class PlaceUpsertResponse(BaseModel):
    status: str = "ok"
    place: PlaceOut
