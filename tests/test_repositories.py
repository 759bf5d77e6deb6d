"""Tests for the SQL repositories and the admin service."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from src.core.event_model import EventCategory, VenueSize, utcnow
from src.core.exceptions import EventNotFoundError, StorageError


class TestEventRepository:
    """Tests for SqlEventRepository."""

    @pytest.mark.asyncio
    async def test_insert_assigns_id(self, event_repository, make_event):
        saved = await event_repository.upsert(make_event())

        assert saved.id is not None
        assert await event_repository.count() == 1

    @pytest.mark.asyncio
    async def test_round_trip_preserves_fields(self, event_repository, make_event):
        event = make_event(
            artists=["Ricardo Mollo", "Diego Arnedo"],
            price=45000.0,
            genre="Rock",
            category=EventCategory.FESTIVAL,
        )

        saved = await event_repository.upsert(event)
        loaded = await event_repository.find_by_id(saved.id)

        assert loaded.artists == ["Ricardo Mollo", "Diego Arnedo"]
        assert loaded.category == EventCategory.FESTIVAL
        assert loaded.date == event.date
        assert loaded.date.tzinfo is not None

    @pytest.mark.asyncio
    async def test_upsert_updates_same_origin(self, event_repository, make_event):
        first = await event_repository.upsert(make_event(title="Divididos"))
        second = await event_repository.upsert(make_event(title="Divididos - Nueva fecha"))

        assert second.id == first.id
        assert await event_repository.count() == 1
        assert (await event_repository.find_by_id(first.id)).title == "Divididos - Nueva fecha"

    @pytest.mark.asyncio
    async def test_upsert_by_id(self, event_repository, make_event):
        saved = await event_repository.upsert(make_event())

        await event_repository.upsert(saved.model_copy(update={"image_url": "https://img/x.jpg"}))

        assert (await event_repository.find_by_id(saved.id)).image_url == "https://img/x.jpg"

    @pytest.mark.asyncio
    async def test_find_existing_by_source(self, event_repository, make_event):
        await event_repository.upsert(make_event())
        await event_repository.upsert(make_event(source="livepass", external_id="lp-1"))

        assert len(await event_repository.find_existing()) == 2
        assert [e.source for e in await event_repository.find_existing("livepass")] == ["livepass"]

    @pytest.mark.asyncio
    async def test_find_in_window(self, event_repository, make_event):
        now = utcnow()
        await event_repository.upsert(make_event(external_id="a", date=now + timedelta(days=1)))
        await event_repository.upsert(make_event(external_id="b", date=now + timedelta(days=20)))

        found = await event_repository.find_in_window(now, now + timedelta(days=7))

        assert [e.external_id for e in found] == ["a"]

    @pytest.mark.asyncio
    async def test_find_by_unknown_id(self, event_repository):
        assert await event_repository.find_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_delete(self, event_repository, make_event):
        saved = await event_repository.upsert(make_event())

        await event_repository.delete(saved.id)

        assert await event_repository.count() == 0

    @pytest.mark.asyncio
    async def test_delete_unknown(self, event_repository):
        with pytest.raises(EventNotFoundError):
            await event_repository.delete("missing")

    @pytest.mark.asyncio
    async def test_delete_all(self, event_repository, make_event):
        await event_repository.upsert(make_event(external_id="a"))
        await event_repository.upsert(make_event(external_id="b"))

        assert await event_repository.delete_all() == 2
        assert await event_repository.count() == 0


class TestBlacklistStore:
    """Tests for SqlBlacklistStore."""

    @pytest.mark.asyncio
    async def test_add_and_check(self, blacklist_store):
        await blacklist_store.add("livepass", "https://livepass.com.ar/events/1", "Duplicado")

        assert await blacklist_store.is_blacklisted("livepass", "https://livepass.com.ar/events/1") is True
        assert await blacklist_store.is_blacklisted("ticketmaster", "https://livepass.com.ar/events/1") is False

    @pytest.mark.asyncio
    async def test_add_twice_is_noop(self, blacklist_store):
        await blacklist_store.add("livepass", "lp-1", "Primera vez")
        await blacklist_store.add("livepass", "lp-1", "Segunda vez")

        entries = await blacklist_store.list_entries()
        assert len(entries) == 1
        assert entries[0].reason == "Primera vez"

    @pytest.mark.asyncio
    async def test_clear_all(self, blacklist_store):
        await blacklist_store.add("a", "1")
        await blacklist_store.add("b", "2")

        assert await blacklist_store.clear_all() == 2
        assert await blacklist_store.count() == 0


class TestPreferencesRepository:
    """Tests for SqlPreferencesRepository."""

    @pytest.mark.asyncio
    async def test_defaults_created_on_first_read(self, preferences_repository):
        prefs = await preferences_repository.get_global_preferences()

        assert prefs.allowed_countries == ["AR"]
        assert "Buenos Aires" in prefs.allowed_cities
        assert prefs.venue_size_thresholds[VenueSize.SMALL] == 500
        assert prefs.needs_rescraping is False

    @pytest.mark.asyncio
    async def test_update_flags_rescraping(self, preferences_repository):
        prefs = await preferences_repository.update(allowed_cities=["Rosario"], blocked_genres=["Cumbia"])

        assert prefs.allowed_cities == ["Rosario"]
        assert prefs.blocked_genres == ["Cumbia"]
        assert prefs.needs_rescraping is True

        stored = await preferences_repository.get_global_preferences()
        assert stored.allowed_cities == ["Rosario"]

    @pytest.mark.asyncio
    async def test_mark_rescraping_done(self, preferences_repository):
        await preferences_repository.update(allowed_countries=["AR", "UY"])

        await preferences_repository.mark_rescraping_done()

        prefs = await preferences_repository.get_global_preferences()
        assert prefs.needs_rescraping is False
        assert prefs.allowed_countries == ["AR", "UY"]

    @pytest.mark.asyncio
    async def test_snapshot_is_immutable(self, preferences_repository):
        prefs = await preferences_repository.get_global_preferences()

        with pytest.raises(Exception):
            prefs.allowed_countries = ["UY"]


class TestAdminService:
    """Tests for delete-and-blacklist and reset."""

    @pytest.mark.asyncio
    async def test_delete_event_and_blacklist(self, admin_service, event_repository, blacklist_store, make_event):
        saved = await event_repository.upsert(make_event())

        deleted = await admin_service.delete_event_and_blacklist(saved.id, "Evento cancelado")

        assert deleted.external_id == "tm-1"
        assert await event_repository.find_by_id(saved.id) is None
        entries = await blacklist_store.list_entries()
        assert len(entries) == 1
        assert (entries[0].source, entries[0].external_id) == ("ticketmaster", "tm-1")
        assert entries[0].reason == "Evento cancelado"

    @pytest.mark.asyncio
    async def test_default_reason(self, admin_service, event_repository, blacklist_store, make_event):
        saved = await event_repository.upsert(make_event())

        await admin_service.delete_event_and_blacklist(saved.id)

        (entry,) = await blacklist_store.list_entries()
        assert entry.reason == "Usuario lo eliminó desde UI"

    @pytest.mark.asyncio
    async def test_missing_event_changes_nothing(self, admin_service, event_repository, blacklist_store, make_event):
        await event_repository.upsert(make_event())

        with pytest.raises(EventNotFoundError):
            await admin_service.delete_event_and_blacklist("missing")

        assert await event_repository.count() == 1
        assert await blacklist_store.count() == 0

    @pytest.mark.asyncio
    async def test_blacklist_failure_rolls_back_delete(
        self, admin_service, event_repository, blacklist_store, make_event, monkeypatch
    ):
        saved = await event_repository.upsert(make_event())

        def failing_insert(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr("src.core.admin_service.insert_blacklist_entry", failing_insert)

        with pytest.raises(StorageError):
            await admin_service.delete_event_and_blacklist(saved.id)

        assert await event_repository.find_by_id(saved.id) is not None
        assert await blacklist_store.count() == 0

    @pytest.mark.asyncio
    async def test_reset_database(self, admin_service, event_repository, blacklist_store, preferences_repository, make_event):
        await event_repository.upsert(make_event(external_id="a"))
        await event_repository.upsert(make_event(external_id="b"))
        await blacklist_store.add("livepass", "lp-1")
        await preferences_repository.update(allowed_cities=["Rosario"])

        result = await admin_service.reset_database()

        assert result.events_deleted == 2
        assert result.blacklist_deleted == 1
        assert await event_repository.count() == 0
        assert await blacklist_store.count() == 0
        assert (await preferences_repository.get_global_preferences()).allowed_cities == ["Rosario"]
