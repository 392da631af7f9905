"""
StudyMate - Pydantic Models (v2 syntax)
JSON field names are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime, date
from enum import Enum
from typing import Optional, List, Tuple, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Fields named "date" shadow the type inside class bodies
CalendarDate = date


REMINDER_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _to_calendar_date(value: Any) -> Any:
    """Accept 'YYYY-MM-DD', full ISO datetimes and datetime objects."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T")[0]
    return value


def _to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are compared as naive local wall-clock times."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# ============================================
# ENUMS
# ============================================

class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ============================================
# SESSION MODELS
# ============================================

class Session(CamelModel):
    """One completed or planned unit of study."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    course_id: str
    course_name: str = ""
    course_icon: Optional[str] = None
    duration: int
    date: CalendarDate
    notes: Optional[str] = None
    completed: bool = False
    reminder_enabled: Optional[bool] = None
    reminder_time: Optional[str] = None
    notification_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value):
        return _to_calendar_date(value)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _naive_timestamps(cls, value):
        return _to_local_naive(value)


class SessionCreate(CamelModel):
    course_id: str
    duration: int = Field(gt=0, description="Minutes studied or planned")
    date: CalendarDate
    notes: Optional[str] = None
    completed: bool = False
    reminder_enabled: bool = False
    reminder_time: Optional[str] = Field(default=None, pattern=REMINDER_TIME_PATTERN)

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value):
        return _to_calendar_date(value)


class SessionUpdate(CamelModel):
    """Partial update; id and created_at are never taken from here."""
    course_id: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0)
    date: Optional[CalendarDate] = None
    notes: Optional[str] = None
    completed: Optional[bool] = None
    reminder_enabled: Optional[bool] = None
    reminder_time: Optional[str] = Field(default=None, pattern=REMINDER_TIME_PATTERN)

    @field_validator("course_id", "duration", "date", "completed", mode="before")
    @classmethod
    def _not_null(cls, value, info):
        # Omit a field to leave it unchanged; null is not a value for it
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value):
        return _to_calendar_date(value)


class ReminderToggle(CamelModel):
    reminder_time: Optional[str] = Field(default=None, pattern=REMINDER_TIME_PATTERN)


# ============================================
# COURSE MODELS
# ============================================

class Course(CamelModel):
    """A subject of study with a lesson-completion counter."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    icon: Optional[str] = None
    total_lessons: int = 0
    completed_lessons: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("total_lessons", "completed_lessons", mode="before")
    @classmethod
    def _missing_counts(cls, value):
        return 0 if value is None else value

    @field_validator("created_at", "updated_at")
    @classmethod
    def _naive_timestamps(cls, value):
        return _to_local_naive(value)


class CourseCreate(CamelModel):
    name: str = Field(min_length=1)
    icon: Optional[str] = None
    total_lessons: int = Field(default=0, ge=0)
    completed_lessons: int = Field(default=0, ge=0)


# ============================================
# STORE SNAPSHOT
# ============================================

class StoreSnapshot(CamelModel):
    """Immutable view of the store handed to analytics and recommendations."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    sessions: Tuple[Session, ...] = ()
    courses: Tuple[Course, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.sessions and not self.courses


# ============================================
# ANALYTICS MODELS
# ============================================

class DailyMinutes(CamelModel):
    day: str
    date: str
    minutes: int


class CourseCompletion(CamelModel):
    course_id: str
    course_name: str
    completed_lessons: int
    total_lessons: int
    completion_percentage: int


class DashboardStats(CamelModel):
    total_study_hours_this_week: float
    most_active_course: str
    completion_percentage: int
    average_daily_time_spent: int


# ============================================
# RECOMMENDATION MODELS
# ============================================

class CourseStudyStats(CamelModel):
    """Derived per-course quantities feeding the urgency score."""
    course_id: str
    completion_percentage: int
    last_study_date: Optional[CalendarDate] = None
    days_since_last_study: Optional[int] = Field(
        default=None, description="None means the course has never been studied"
    )
    weekly_minutes: int = 0
    avg_session_duration: int = 30

    @property
    def never_studied(self) -> bool:
        return self.days_since_last_study is None


class StudyRecommendation(CamelModel):
    course_id: str
    course_name: str
    course_icon: Optional[str] = None
    priority: Priority
    reason: str
    suggested_minutes: int
    score: int = Field(ge=0, le=100, description="Higher = more urgent")
    context: Dict[str, Any] = Field(default_factory=dict)


# ============================================
# API RESPONSE MODELS
# ============================================

class RefreshResult(CamelModel):
    sessions: int
    courses: int
    from_cache: bool = False
    error: Optional[str] = None


class HealthStatus(CamelModel):
    status: str = "healthy"
    version: str = "1.0.0"
    sessions: int = 0
    courses: int = 0
    scheduled_reminders: int = 0
    last_error: Optional[str] = None


class ScheduledReminder(CamelModel):
    handle: str
    title: str
    body: str
    at: datetime


class StudyState(CamelModel):
    sessions: List[Session]
    courses: List[Course]
    loading: bool = False
    error: Optional[str] = None
