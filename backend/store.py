"""
StudyMate - Session/Course Store
Owns the canonical session and course collections, merges remote catalog data
with local edits, persists to the local cache and keeps reminders in sync.
"""

import asyncio
import random
import string
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from cache import LocalCache
from catalog import CatalogClient, CatalogUnavailableError
from clock import at_time_of_day, now as clock_now
from config import get_reminder_config
from logger import get_logger
from models import (
    Course, CourseCreate, RefreshResult, Session, SessionCreate, SessionUpdate,
    StoreSnapshot
)
from notifications import ReminderScheduler


log = get_logger("store")

# Fields the user sets locally; a refresh keeps them unless the remote record is newer
LOCAL_SESSION_FIELDS = ("reminder_enabled", "reminder_time", "notification_id", "notes", "completed")

# Changing any of these moves or removes the reminder
REMINDER_FIELDS = ("reminder_enabled", "reminder_time", "date", "course_name")

Record = TypeVar("Record", Session, Course)


class StoreError(Exception):
    pass


class SessionNotFoundError(StoreError):
    pass


class CourseNotFoundError(StoreError):
    pass


def generate_id(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def _unique_by_id(records: Sequence[Record]) -> List[Record]:
    """One record per id: first position, last value."""
    by_id: Dict[str, Record] = {}
    for record in records:
        by_id[record.id] = record
    return list(by_id.values())


# ============================================
# MERGE POLICY
# ============================================

def _remote_is_newer(local: Session, remote: Session) -> bool:
    return (
        local.updated_at is not None
        and remote.updated_at is not None
        and remote.updated_at > local.updated_at
    )


def merge_session(local: Session, remote: Session) -> Session:
    """Remote record with the user's local fields carried over."""
    remote_wins = _remote_is_newer(local, remote)
    updates = {}
    for name in LOCAL_SESSION_FIELDS:
        local_value = getattr(local, name)
        remote_value = getattr(remote, name)
        if remote_wins:
            updates[name] = remote_value if remote_value is not None else local_value
        elif name == "notes":
            updates[name] = local_value or remote_value
        else:
            updates[name] = local_value if local_value is not None else remote_value

    timestamps = [t for t in (local.updated_at, remote.updated_at) if t is not None]
    updates["updated_at"] = max(timestamps) if timestamps else None
    return remote.model_copy(update=updates)


def merge_sessions(local: Sequence[Session], remote: Sequence[Session]) -> List[Session]:
    """Remote sessions in remote order, then sessions only known locally."""
    local_by_id = {s.id: s for s in local}
    remote = _unique_by_id(remote)
    remote_ids = {s.id for s in remote}

    merged = [
        merge_session(local_by_id[s.id], s) if s.id in local_by_id else s
        for s in remote
    ]
    merged.extend(s for s in _unique_by_id(local) if s.id not in remote_ids)
    return merged


def merge_course(local: Course, remote: Course) -> Course:
    """Remote fields win, except empty lesson counters never clobber local ones."""
    updates = remote.model_dump(exclude_unset=True)
    updates["total_lessons"] = remote.total_lessons or local.total_lessons
    updates["completed_lessons"] = remote.completed_lessons or local.completed_lessons
    return local.model_copy(update=updates)


def merge_courses(local: Sequence[Course], remote: Sequence[Course]) -> List[Course]:
    """Local courses keep their position; remote-only courses are appended."""
    merged: Dict[str, Course] = {c.id: c for c in local}
    for course in remote:
        existing = merged.get(course.id)
        merged[course.id] = merge_course(existing, course) if existing else course
    return list(merged.values())


# ============================================
# STORE
# ============================================

class StudyStore:
    """In-memory store; analytics and recommendations read its snapshot."""

    def __init__(
        self,
        cache: Optional[LocalCache] = None,
        catalog: Optional[CatalogClient] = None,
        scheduler: Optional[ReminderScheduler] = None,
        now: Callable[[], datetime] = clock_now
    ):
        self.cache = cache or LocalCache()
        self.catalog = catalog or CatalogClient()
        self.scheduler = scheduler or ReminderScheduler(now=now)
        self._now = now
        self._sessions: List[Session] = []
        self._courses: List[Course] = []
        self._lock = asyncio.Lock()
        self.loading = False
        self.error: Optional[str] = None

    # ---------- reads ----------

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(sessions=tuple(self._sessions), courses=tuple(self._courses))

    def get_session(self, session_id: str) -> Optional[Session]:
        return next((s for s in self._sessions if s.id == session_id), None)

    def get_course(self, course_id: str) -> Optional[Course]:
        return next((c for c in self._courses if c.id == course_id), None)

    def _session_index(self, session_id: str) -> int:
        for index, session in enumerate(self._sessions):
            if session.id == session_id:
                return index
        raise SessionNotFoundError(f"Session {session_id} not found")

    # ---------- cache + catalog ----------

    async def hydrate(self) -> bool:
        """Load the cache into an empty store. Returns True when data was loaded."""
        async with self._lock:
            if self._sessions or self._courses:
                return False
            cached = await self.cache.load()
            if cached is None:
                return False
            self._courses = list(cached.courses)
            # Scheduled reminders do not outlive the process
            self._sessions = [
                self._sync_reminder(None, s) if s.reminder_enabled else s
                for s in cached.sessions
            ]
            restored = sum(1 for s in self._sessions if s.notification_id)
            if restored:
                log.info("Rescheduled %d reminders from cache", restored)
            return True

    def _with_cached(self, cached: Optional[StoreSnapshot]) -> StoreSnapshot:
        """Current state plus anything only the cache still knows about."""
        if cached is None:
            return self.snapshot()
        session_ids = {s.id for s in self._sessions}
        course_ids = {c.id for c in self._courses}
        return StoreSnapshot(
            sessions=tuple(self._sessions) + tuple(s for s in cached.sessions if s.id not in session_ids),
            courses=tuple(self._courses) + tuple(c for c in cached.courses if c.id not in course_ids),
        )

    async def refresh(self) -> RefreshResult:
        """
        Merge the remote catalog into the store and persist the result.

        When the catalog is unavailable the store keeps (or restores) the
        last-known data and records the failure in `error`. The failure is
        only raised when there is no data to fall back to.
        """
        async with self._lock:
            self.loading = True
            self.error = None
            try:
                local = self._with_cached(await self.cache.load())
                log.info("Refresh start: %d sessions, %d courses known locally",
                         len(local.sessions), len(local.courses))

                try:
                    payload = await self.catalog.fetch()
                except CatalogUnavailableError as e:
                    self.error = str(e)
                    if local.is_empty:
                        log.error("Catalog unavailable and no cached data: %s", e)
                        raise
                    log.warning("Catalog unavailable, using last-known data: %s", e)
                    self._sessions = list(local.sessions)
                    self._courses = list(local.courses)
                    return RefreshResult(
                        sessions=len(self._sessions),
                        courses=len(self._courses),
                        from_cache=True,
                        error=self.error,
                    )

                self._sessions = merge_sessions(local.sessions, payload.sessions)
                self._courses = merge_courses(local.courses, payload.courses)
                await self.cache.save(self.snapshot())
                log.info("Refresh done: %d sessions, %d courses", len(self._sessions), len(self._courses))
                return RefreshResult(sessions=len(self._sessions), courses=len(self._courses))
            finally:
                self.loading = False

    async def clear_cache(self):
        """Drop every session and course, locally and on disk."""
        async with self._lock:
            for session in self._sessions:
                self.scheduler.cancel_reminder(session.notification_id)
            self._sessions = []
            self._courses = []
            await self.cache.clear()

    def clear_error(self):
        self.error = None

    # ---------- writes ----------

    async def add_session(self, data: SessionCreate) -> Session:
        async with self._lock:
            course = self.get_course(data.course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {data.course_id} not found")

            timestamp = self._now()
            session = Session(
                id=generate_id("session"),
                course_id=course.id,
                course_name=course.name or "Unknown Course",
                course_icon=course.icon,
                duration=data.duration,
                date=data.date,
                notes=(data.notes or "").strip() or None,
                completed=data.completed,
                reminder_enabled=data.reminder_enabled,
                reminder_time=data.reminder_time or get_reminder_config().default_time,
                created_at=timestamp,
                updated_at=timestamp,
            )
            if session.reminder_enabled:
                session = self._sync_reminder(None, session)

            self._sessions.insert(0, session)
            await self.cache.save_sessions(self._sessions)
            log.info("Session %s added for %s", session.id, session.course_name)
            return session

    async def update_session(self, session_id: str, changes: SessionUpdate) -> Session:
        async with self._lock:
            index = self._session_index(session_id)
            existing = self._sessions[index]

            updates = changes.model_dump(exclude_unset=True)
            if "course_id" in updates:
                course = self.get_course(updates["course_id"])
                if course is None:
                    raise CourseNotFoundError(f"Course {updates['course_id']} not found")
                updates["course_name"] = course.name
                updates["course_icon"] = course.icon
            updates["updated_at"] = self._now()

            updated = existing.model_copy(update=updates)
            if any(getattr(existing, f) != getattr(updated, f) for f in REMINDER_FIELDS):
                updated = self._sync_reminder(existing, updated)

            self._sessions[index] = updated
            await self.cache.save_sessions(self._sessions)
            log.info("Session %s updated", session_id)
            return updated

    async def toggle_reminder(self, session_id: str, reminder_time: Optional[str] = None) -> Session:
        async with self._lock:
            index = self._session_index(session_id)
            existing = self._sessions[index]

            updated = existing.model_copy(update={
                "reminder_enabled": not existing.reminder_enabled,
                "reminder_time": reminder_time or get_reminder_config().default_time,
                "updated_at": self._now(),
            })
            updated = self._sync_reminder(existing, updated)

            self._sessions[index] = updated
            await self.cache.save_sessions(self._sessions)
            return updated

    async def add_course(self, data: CourseCreate) -> Course:
        async with self._lock:
            timestamp = self._now()
            course = Course(
                id=generate_id("course"),
                name=data.name.strip(),
                icon=data.icon,
                total_lessons=data.total_lessons,
                completed_lessons=data.completed_lessons,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self._courses.insert(0, course)
            await self.cache.save_courses(self._courses)
            log.info("Course %s added: %s", course.id, course.name)
            return course

    # ---------- reminders ----------

    def _sync_reminder(self, previous: Optional[Session], session: Session) -> Session:
        """Cancel the previous reminder and schedule the current one if it is still ahead."""
        if previous is not None:
            self.scheduler.cancel_reminder(previous.notification_id)

        handle = None
        if session.reminder_enabled and session.reminder_time:
            try:
                at = at_time_of_day(session.date, session.reminder_time)
            except ValueError:
                log.warning("Session %s has invalid reminder time %r", session.id, session.reminder_time)
                return session.model_copy(update={"notification_id": None})
            if at > self._now():
                config = get_reminder_config()
                handle = self.scheduler.schedule_reminder(
                    session.id,
                    config.title,
                    f"It's time to study your planned course: {session.course_name}",
                    at,
                )
        return session.model_copy(update={"notification_id": handle})
