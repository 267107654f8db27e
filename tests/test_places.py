"""
Tests for the place registry service.
"""
from sqlalchemy.orm import Query

from app.models.place import Place
from app.services.places import DEFAULT_RADIUS_M, list_places, upsert_place
from tests.conftest import TestingSessionLocal


class TestUpsertPlace:
    def test_create_then_update(self, db):
        created = upsert_place(db, "home", "Home")
        assert created.radius_m == DEFAULT_RADIUS_M

        updated = upsert_place(db, "home", "Flat", lat=35.0, lng=139.0, radius_m=50)
        assert updated.id == created.id
        assert (updated.label, updated.radius_m) == ("Flat", 50)
        assert len(list_places(db)) == 1

    def test_lost_insert_race_updates_winner(self, db, monkeypatch):
        other = TestingSessionLocal()
        try:
            upsert_place(other, "office", "Office")
        finally:
            other.close()

        # the lookup misses the row committed by the other session
        monkeypatch.setattr(Query, "first", lambda self: None)

        place = upsert_place(db, "office", "HQ", radius_m=250)
        assert place.label == "HQ"
        assert place.radius_m == 250
        assert db.query(Place).filter(Place.place_id == "office").count() == 1
