"""
StudyMate - Local Persistent Cache
Last-known sessions and courses stored as two JSON documents.
"""

import json
import os
from typing import Any, Optional, Sequence

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from config import get_cache_config
from logger import get_logger
from models import Course, Session, StoreSnapshot


log = get_logger("cache")


def is_valid_course_payload(courses: Any) -> bool:
    """
    Schema marker check. Course lists written by older builds used
    `course_name` instead of `name`; those caches are discarded.
    """
    if not isinstance(courses, list):
        return False
    return len(courses) == 0 or (isinstance(courses[0], dict) and "name" in courses[0])


class LocalCache:
    """Async JSON file cache for the store."""

    def __init__(
        self,
        directory: Optional[str] = None,
        sessions_file: Optional[str] = None,
        courses_file: Optional[str] = None
    ):
        config = get_cache_config()
        self.directory = directory or config.directory
        self.sessions_path = os.path.join(self.directory, sessions_file or config.sessions_file)
        self.courses_path = os.path.join(self.directory, courses_file or config.courses_file)

    async def _read_json(self, path: str) -> Any:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return json.loads(await f.read())

    async def _write_json(self, path: str, payload: Any):
        os.makedirs(self.directory, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(payload, ensure_ascii=False))

    async def load(self) -> Optional[StoreSnapshot]:
        """Load the cached snapshot, or None when absent or invalid."""
        if not (os.path.exists(self.sessions_path) and os.path.exists(self.courses_path)):
            log.info("No cache found in %s", self.directory)
            return None

        try:
            raw_sessions = await self._read_json(self.sessions_path)
            raw_courses = await self._read_json(self.courses_path)
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Cache unreadable, clearing: %s", e)
            await self.clear()
            return None

        if not isinstance(raw_sessions, list) or not is_valid_course_payload(raw_courses):
            log.warning("Cache has invalid format, clearing")
            await self.clear()
            return None

        try:
            snapshot = StoreSnapshot(
                sessions=tuple(Session.model_validate(s) for s in raw_sessions),
                courses=tuple(Course.model_validate(c) for c in raw_courses),
            )
        except ValidationError as e:
            log.warning("Cache records failed validation, clearing: %s", e.error_count())
            await self.clear()
            return None

        log.info("Cache loaded: %d sessions, %d courses", len(snapshot.sessions), len(snapshot.courses))
        return snapshot

    async def save_sessions(self, sessions: Sequence[Session]):
        await self._write_json(
            self.sessions_path,
            [s.model_dump(mode="json", by_alias=True, exclude_none=True) for s in sessions]
        )

    async def save_courses(self, courses: Sequence[Course]):
        await self._write_json(
            self.courses_path,
            [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in courses]
        )

    async def save(self, snapshot: StoreSnapshot):
        await self.save_sessions(snapshot.sessions)
        await self.save_courses(snapshot.courses)
        log.info("Saved to cache: %d sessions, %d courses", len(snapshot.sessions), len(snapshot.courses))

    async def clear(self):
        for path in (self.sessions_path, self.courses_path):
            if os.path.exists(path):
                await aiofiles.os.remove(path)
        log.info("Cache cleared")
