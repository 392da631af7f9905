"""
StudyMate - Remote Course Catalog Client
Fetches course records (or raw session rows) from the catalog API.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from config import get_catalog_config
from logger import get_logger
from models import Course, Session


log = get_logger("catalog")

DEFAULT_SESSION_ICON = "📖"


class CatalogUnavailableError(Exception):
    """The catalog could not be reached or returned an unusable response."""


@dataclass
class CatalogPayload:
    courses: List[Course] = field(default_factory=list)
    sessions: List[Session] = field(default_factory=list)


def _is_session_rows(items: List[Any]) -> bool:
    """Session rows carry `duration` and a snake_case `course_name`."""
    first = items[0]
    return isinstance(first, dict) and first.get("duration") is not None and bool(first.get("course_name"))


def parse_session_rows(items: List[Dict[str, Any]]) -> CatalogPayload:
    """Turn session rows into sessions and derive one course per course name."""
    stamp = int(time.time() * 1000)
    sessions: List[Session] = []

    for index, item in enumerate(items):
        raw_date = str(item.get("date") or "")
        timestamp = raw_date if "T" in raw_date else f"{raw_date}T00:00:00"
        try:
            sessions.append(Session(
                id=str(item.get("id") or f"api-session-{stamp}-{index}"),
                course_id=f"course-{item.get('course_name')}",
                course_name=item.get("course_name") or "",
                course_icon=item.get("icon") or DEFAULT_SESSION_ICON,
                duration=item.get("duration"),
                date=raw_date,
                notes=item.get("notes"),
                completed=bool(item.get("completion") or False),
                created_at=timestamp,
                updated_at=timestamp,
            ))
        except ValidationError as e:
            log.warning("Skipping malformed session row %d: %s", index, e.error_count())

    courses: Dict[str, Dict[str, Any]] = {}
    for session in sessions:
        course = courses.setdefault(session.course_id, {
            "id": session.course_id,
            "name": session.course_name,
            "icon": session.course_icon,
            "total_lessons": 0,
            "completed_lessons": 0,
        })
        course["total_lessons"] += 1
        if session.completed:
            course["completed_lessons"] += 1

    return CatalogPayload(
        courses=[Course(**c) for c in courses.values()],
        sessions=sessions,
    )


def parse_course_records(items: List[Any]) -> CatalogPayload:
    courses: List[Course] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            log.warning("Skipping non-object course record %d", index)
            continue
        record = dict(item)
        record["id"] = str(record.get("id") or f"course-{index}")
        record.setdefault("name", f"Course {index + 1}")
        try:
            courses.append(Course.model_validate(record))
        except ValidationError as e:
            log.warning("Skipping malformed course record %d: %s", index, e.error_count())
    return CatalogPayload(courses=courses)


def parse_catalog(data: Any) -> CatalogPayload:
    """Detect the payload format and convert it."""
    if not isinstance(data, list) or not data:
        return CatalogPayload()
    if _is_session_rows(data):
        log.info("Catalog returned session rows")
        return parse_session_rows(data)
    return parse_course_records(data)


class CatalogClient:
    """Async client for the remote course catalog."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        config = get_catalog_config()
        self.api_url = api_url or config.api_url
        self.timeout = timeout or config.timeout_seconds
        self._transport = transport

    async def fetch(self) -> CatalogPayload:
        """Fetch and parse the catalog. Raises CatalogUnavailableError on failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.api_url)
        except httpx.HTTPError as e:
            raise CatalogUnavailableError(f"Failed to fetch courses: {e}") from e

        if not response.is_success:
            raise CatalogUnavailableError(f"Failed to fetch courses (HTTP {response.status_code})")

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogUnavailableError("Failed to fetch courses: invalid JSON") from e

        payload = parse_catalog(data)
        log.info("Catalog fetched: %d courses, %d sessions", len(payload.courses), len(payload.sessions))
        return payload
