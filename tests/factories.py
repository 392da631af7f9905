"""Record factories and the fixed clock used across the suite."""

from datetime import date, datetime, timedelta
from itertools import count

from models import Course, Session


# Wednesday afternoon
NOW = datetime(2024, 5, 15, 14, 30)
TODAY = NOW.date()

_ids = count(1)


def days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


def make_session(course_id: str = "c1", duration: int = 30, day: date = TODAY, **extra) -> Session:
    fields = {
        "id": f"s{next(_ids)}",
        "course_id": course_id,
        "course_name": course_id.upper(),
        "duration": duration,
        "date": day,
    }
    fields.update(extra)
    return Session(**fields)


def make_course(course_id: str = "c1", total: int = 10, completed: int = 0, **extra) -> Course:
    fields = {
        "id": course_id,
        "name": f"Course {course_id}",
        "total_lessons": total,
        "completed_lessons": completed,
    }
    fields.update(extra)
    return Course(**fields)
