"""
Tests for the session/course store: merge policy, refresh with cache fallback,
local writes and reminder bookkeeping.
"""

import os
import re
from datetime import datetime

import pytest
from pydantic import ValidationError

from catalog import CatalogPayload, CatalogUnavailableError
from factories import NOW, days_ago, make_course, make_session
from models import CourseCreate, SessionCreate, SessionUpdate, StoreSnapshot
from store import (
    CourseNotFoundError, SessionNotFoundError, generate_id, merge_course, merge_courses,
    merge_session, merge_sessions
)


EARLIER = datetime(2024, 5, 1, 8, 0)
LATER = datetime(2024, 5, 10, 8, 0)


def test_generate_id_format():
    assert re.fullmatch(r"session-\d+-[a-z0-9]{9}", generate_id("session"))
    assert generate_id("course") != generate_id("course")


# ============================================
# MERGE POLICY
# ============================================

class TestMergeSession:

    def test_local_fields_survive_older_remote(self):
        local = make_session(
            duration=30, reminder_enabled=True, reminder_time="18:00",
            notification_id="s-local", notes="chapter 3", completed=True, updated_at=LATER
        )
        remote = local.model_copy(update={
            "duration": 45, "reminder_enabled": None, "reminder_time": None,
            "notification_id": None, "notes": "server notes", "completed": False,
            "updated_at": EARLIER,
        })

        merged = merge_session(local, remote)

        assert merged.duration == 45
        assert merged.reminder_enabled is True
        assert merged.reminder_time == "18:00"
        assert merged.notification_id == "s-local"
        assert merged.notes == "chapter 3"
        assert merged.completed is True
        assert merged.updated_at == LATER

    def test_missing_timestamps_keep_local_fields(self):
        local = make_session(reminder_enabled=True, reminder_time="07:00")
        remote = local.model_copy(update={"reminder_enabled": False, "reminder_time": "10:00"})

        merged = merge_session(local, remote)

        assert merged.reminder_enabled is True
        assert merged.reminder_time == "07:00"
        assert merged.updated_at is None

    def test_newer_remote_wins_where_it_has_values(self):
        local = make_session(reminder_enabled=True, reminder_time="07:00", notes="mine", updated_at=EARLIER)
        remote = local.model_copy(update={
            "reminder_enabled": False, "reminder_time": None, "notes": "theirs", "updated_at": LATER,
        })

        merged = merge_session(local, remote)

        assert merged.reminder_enabled is False
        assert merged.reminder_time == "07:00"
        assert merged.notes == "theirs"
        assert merged.updated_at == LATER

    def test_empty_local_notes_fall_back_to_remote(self):
        local = make_session(notes="")
        remote = local.model_copy(update={"notes": "from server"})
        assert merge_session(local, remote).notes == "from server"


def test_merge_sessions_orders_remote_first_then_local_only():
    shared_local = make_session(notes="kept")
    local_only = make_session()
    shared_remote = shared_local.model_copy(update={"notes": None, "duration": 50})
    remote_only = make_session()

    merged = merge_sessions([local_only, shared_local], [shared_remote, remote_only])

    assert [s.id for s in merged] == [shared_local.id, remote_only.id, local_only.id]
    assert merged[0].notes == "kept"
    assert merged[0].duration == 50


def test_merge_sessions_collapses_duplicate_ids():
    session = make_session()
    merged = merge_sessions([session, session], [])
    assert [s.id for s in merged] == [session.id]


class TestMergeCourses:

    def test_remote_fields_win(self):
        local = make_course("c1", total=10, completed=2, name="Old name", icon="📘")
        remote = make_course("c1", total=12, completed=4, name="New name")

        merged = merge_course(local, remote)

        assert merged.name == "New name"
        assert merged.total_lessons == 12
        assert merged.completed_lessons == 4
        assert merged.icon == "📘"

    def test_zero_remote_counts_keep_local(self):
        local = make_course("c1", total=10, completed=3)
        remote = make_course("c1", total=0, completed=0)

        merged = merge_course(local, remote)

        assert merged.total_lessons == 10
        assert merged.completed_lessons == 3

    def test_local_order_then_remote_only(self):
        local = [make_course("b"), make_course("a")]
        remote = [make_course("c"), make_course("a", total=99)]

        merged = merge_courses(local, remote)

        assert [c.id for c in merged] == ["b", "a", "c"]
        assert merged[1].total_lessons == 99


# ============================================
# REFRESH & CACHE
# ============================================

class TestRefresh:

    @pytest.mark.asyncio
    async def test_merges_remote_and_persists(self, store, catalog, cache):
        catalog.fetch.return_value = CatalogPayload(
            courses=[make_course("c1")],
            sessions=[make_session("c1", duration=40)],
        )

        result = await store.refresh()

        assert result.sessions == 1
        assert result.courses == 1
        assert result.from_cache is False
        assert store.loading is False
        assert store.error is None

        cached = await cache.load()
        assert [c.id for c in cached.courses] == ["c1"]
        assert cached.sessions[0].duration == 40

    @pytest.mark.asyncio
    async def test_keeps_local_edits_across_refresh(self, store, catalog):
        catalog.fetch.return_value = CatalogPayload(courses=[make_course("c1", name="Algebra")])
        await store.refresh()
        session = await store.add_session(SessionCreate(course_id="c1", duration=25, date=days_ago(1), notes="mine"))

        catalog.fetch.return_value = CatalogPayload(courses=[make_course("c1", name="Algebra II")])
        await store.refresh()

        snapshot = store.snapshot()
        assert snapshot.courses[0].name == "Algebra II"
        assert snapshot.sessions[0].id == session.id
        assert snapshot.sessions[0].notes == "mine"

    @pytest.mark.asyncio
    async def test_falls_back_to_cache_when_catalog_fails(self, store, catalog, cache):
        await cache.save(StoreSnapshot(courses=(make_course("c1"),), sessions=(make_session("c1"),)))
        catalog.fetch.side_effect = CatalogUnavailableError("Failed to fetch courses (HTTP 500)")

        result = await store.refresh()

        assert result.from_cache is True
        assert result.error == "Failed to fetch courses (HTTP 500)"
        assert store.error == result.error
        assert store.loading is False
        assert len(store.snapshot().courses) == 1

    @pytest.mark.asyncio
    async def test_raises_when_nothing_to_fall_back_to(self, store, catalog):
        catalog.fetch.side_effect = CatalogUnavailableError("offline")

        with pytest.raises(CatalogUnavailableError):
            await store.refresh()

        assert store.error == "offline"
        assert store.loading is False
        assert store.snapshot().is_empty

    @pytest.mark.asyncio
    async def test_next_refresh_clears_error(self, store, catalog):
        catalog.fetch.side_effect = CatalogUnavailableError("offline")
        with pytest.raises(CatalogUnavailableError):
            await store.refresh()

        catalog.fetch.side_effect = None
        catalog.fetch.return_value = CatalogPayload(courses=[make_course()])
        await store.refresh()

        assert store.error is None

    @pytest.mark.asyncio
    async def test_hydrate_loads_cache_once(self, store, cache):
        await cache.save(StoreSnapshot(courses=(make_course("c1"),)))

        assert await store.hydrate() is True
        assert [c.id for c in store.snapshot().courses] == ["c1"]
        assert await store.hydrate() is False

    @pytest.mark.asyncio
    async def test_hydrate_reschedules_future_reminders(self, store, cache, scheduler):
        upcoming = make_session(
            "c1", day=days_ago(-1), course_name="Algebra",
            reminder_enabled=True, reminder_time="10:00", notification_id="from-last-run"
        )
        missed = make_session("c1", day=days_ago(1), reminder_enabled=True, reminder_time="10:00",
                              notification_id="from-last-run-too")
        await cache.save(StoreSnapshot(courses=(make_course("c1"),), sessions=(upcoming, missed)))

        assert await store.hydrate() is True

        [reminder] = scheduler.list_scheduled()
        assert reminder.handle == upcoming.id
        assert reminder.at == datetime(2024, 5, 16, 10, 0)
        assert reminder.body == "It's time to study your planned course: Algebra"
        assert store.get_session(upcoming.id).notification_id == upcoming.id
        assert store.get_session(missed.id).notification_id is None
        scheduler.cancel_all()

    @pytest.mark.asyncio
    async def test_clear_cache(self, store, catalog, cache):
        catalog.fetch.return_value = CatalogPayload(courses=[make_course()], sessions=[make_session()])
        await store.refresh()

        await store.clear_cache()

        assert store.snapshot().is_empty
        assert await cache.load() is None

    def test_clear_error(self, store):
        store.error = "boom"
        store.clear_error()
        assert store.error is None


# ============================================
# LOCAL WRITES
# ============================================

class TestWrites:

    @pytest.fixture
    def seeded(self, store):
        store._courses = [make_course("c1", name="Algebra", icon="➗"), make_course("c2", name="Biology")]
        return store

    @pytest.mark.asyncio
    async def test_add_session_copies_course_details(self, seeded, cache):
        session = await seeded.add_session(SessionCreate(course_id="c1", duration=30, date=days_ago(0)))

        assert session.course_name == "Algebra"
        assert session.course_icon == "➗"
        assert session.created_at == NOW
        assert session.reminder_time == "09:00"
        assert seeded.snapshot().sessions[0].id == session.id

        assert os.path.exists(cache.sessions_path)

    @pytest.mark.asyncio
    async def test_add_session_unknown_course(self, seeded):
        with pytest.raises(CourseNotFoundError):
            await seeded.add_session(SessionCreate(course_id="nope", duration=30, date=days_ago(0)))

    @pytest.mark.asyncio
    async def test_add_session_schedules_future_reminder(self, seeded, scheduler):
        session = await seeded.add_session(SessionCreate(
            course_id="c1", duration=30, date=days_ago(-1), reminder_enabled=True, reminder_time="08:15"
        ))

        assert session.notification_id == session.id
        [reminder] = scheduler.list_scheduled()
        assert reminder.at == datetime(2024, 5, 16, 8, 15)
        assert reminder.title == "Study Reminder"
        assert reminder.body == "It's time to study your planned course: Algebra"
        scheduler.cancel_all()

    @pytest.mark.asyncio
    async def test_past_reminder_is_not_scheduled(self, seeded, scheduler):
        session = await seeded.add_session(SessionCreate(
            course_id="c1", duration=30, date=days_ago(0), reminder_enabled=True, reminder_time="09:00"
        ))

        assert session.reminder_enabled is True
        assert session.notification_id is None
        assert scheduler.list_scheduled() == []

    @pytest.mark.asyncio
    async def test_update_session_changes_course(self, seeded):
        session = await seeded.add_session(SessionCreate(course_id="c1", duration=30, date=days_ago(0)))

        updated = await seeded.update_session(session.id, SessionUpdate(course_id="c2", duration=50))

        assert updated.course_name == "Biology"
        assert updated.course_icon is None
        assert updated.duration == 50
        assert updated.created_at == session.created_at
        assert seeded.get_session(session.id) == updated

    @pytest.mark.asyncio
    async def test_update_unknown_session(self, seeded):
        with pytest.raises(SessionNotFoundError):
            await seeded.update_session("missing", SessionUpdate(duration=10))

    @pytest.mark.parametrize("field", ["course_id", "duration", "date", "completed"])
    def test_update_rejects_null_for_required_fields(self, field):
        with pytest.raises(ValidationError, match="cannot be null"):
            SessionUpdate.model_validate({field: None})

    def test_update_allows_clearing_optional_fields(self):
        changes = SessionUpdate.model_validate({"notes": None, "reminderTime": None})
        assert changes.model_dump(exclude_unset=True) == {"notes": None, "reminder_time": None}

    @pytest.mark.asyncio
    async def test_moving_session_reschedules_reminder(self, seeded, scheduler):
        session = await seeded.add_session(SessionCreate(
            course_id="c1", duration=30, date=days_ago(-1), reminder_enabled=True, reminder_time="10:00"
        ))

        updated = await seeded.update_session(session.id, SessionUpdate(date=days_ago(-3)))

        [reminder] = scheduler.list_scheduled()
        assert reminder.at == datetime(2024, 5, 18, 10, 0)
        assert updated.notification_id == session.id
        scheduler.cancel_all()

    @pytest.mark.asyncio
    async def test_toggle_reminder_on_and_off(self, seeded, scheduler):
        session = await seeded.add_session(SessionCreate(course_id="c2", duration=30, date=days_ago(-1)))

        on = await seeded.toggle_reminder(session.id, "19:30")
        assert on.reminder_enabled is True
        assert on.reminder_time == "19:30"
        assert scheduler.is_scheduled(on.notification_id)

        off = await seeded.toggle_reminder(session.id)
        assert off.reminder_enabled is False
        assert off.notification_id is None
        assert scheduler.list_scheduled() == []

    @pytest.mark.asyncio
    async def test_toggle_unknown_session(self, seeded):
        with pytest.raises(SessionNotFoundError):
            await seeded.toggle_reminder("missing")

    @pytest.mark.asyncio
    async def test_add_course_goes_first(self, seeded):
        course = await seeded.add_course(CourseCreate(name="  Chemistry ", total_lessons=12))

        assert course.name == "Chemistry"
        assert course.id.startswith("course-")
        assert seeded.snapshot().courses[0] == course
        assert seeded.get_course(course.id) == course

    @pytest.mark.asyncio
    async def test_clear_cache_cancels_reminders(self, seeded, scheduler):
        await seeded.add_session(SessionCreate(
            course_id="c1", duration=30, date=days_ago(-1), reminder_enabled=True, reminder_time="10:00"
        ))

        await seeded.clear_cache()

        assert scheduler.list_scheduled() == []
