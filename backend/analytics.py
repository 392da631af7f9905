"""
StudyMate - Weekly Analytics
Daily study minutes, course completion and dashboard totals.
Pure functions over a store snapshot - no I/O, inputs are never modified.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from clock import daily_buckets, round_half_up, week_window, calendar_date
from models import Course, CourseCompletion, DailyMinutes, DashboardStats, Session


DAYS_IN_WEEK = 7


# ============================================
# COMPLETION
# ============================================

def completion_percentage(course: Course) -> int:
    """Completed share of lessons, 0-100, rounded half-up. 0 without lessons."""
    if course.total_lessons <= 0:
        return 0
    completed = min(max(course.completed_lessons, 0), course.total_lessons)
    return round_half_up(100 * completed / course.total_lessons)


def get_course_completion_data(courses: Iterable[Course]) -> List[CourseCompletion]:
    """Completion per course in collection order. Courses without lessons are left out."""
    return [
        CourseCompletion(
            course_id=course.id,
            course_name=course.name,
            completed_lessons=course.completed_lessons,
            total_lessons=course.total_lessons,
            completion_percentage=completion_percentage(course),
        )
        for course in courses
        if course.total_lessons > 0
    ]


# ============================================
# DAILY MINUTES
# ============================================

def get_daily_minutes_this_week(sessions: Iterable[Session], now: datetime) -> List[DailyMinutes]:
    """
    Minutes studied on each of the last seven calendar days.

    Always returns seven entries, oldest first, the last one being today.
    Sessions are matched to a day by calendar date.
    """
    minutes_by_day: Dict = {}
    for session in sessions:
        day = calendar_date(session.date)
        minutes_by_day[day] = minutes_by_day.get(day, 0) + session.duration

    return [
        DailyMinutes(
            day=day.strftime("%a"),
            date=day.isoformat(),
            minutes=minutes_by_day.get(day, 0),
        )
        for day in daily_buckets(now, DAYS_IN_WEEK)
    ]


# ============================================
# DASHBOARD
# ============================================

def sessions_this_week(sessions: Iterable[Session], now: datetime) -> List[Session]:
    window = week_window(now)
    return [s for s in sessions if window.contains(s.date)]


def get_dashboard_stats(
    sessions: Iterable[Session],
    courses: Iterable[Course],
    now: datetime
) -> DashboardStats:
    """Weekly totals shown on the home screen."""
    sessions = list(sessions)
    courses = list(courses)
    this_week = sessions_this_week(sessions, now)

    total_minutes = sum(s.duration for s in this_week)

    course_minutes: Dict[str, int] = {}
    for session in this_week:
        course_minutes[session.course_id] = course_minutes.get(session.course_id, 0) + session.duration

    most_active_course = "None"
    if course_minutes:
        # max() keeps the first course reached on ties
        most_active_id = max(course_minutes, key=course_minutes.get)
        most_active_course = next(
            (s.course_name for s in sessions if s.course_id == most_active_id),
            "None"
        )

    total_lessons = sum(c.total_lessons for c in courses)
    completed_lessons = sum(c.completed_lessons for c in courses)
    overall = round_half_up(100 * completed_lessons / total_lessons) if total_lessons > 0 else 0

    return DashboardStats(
        total_study_hours_this_week=round_half_up(total_minutes / 60, 1),
        most_active_course=most_active_course,
        completion_percentage=overall,
        average_daily_time_spent=round_half_up(total_minutes / DAYS_IN_WEEK),
    )


# ============================================
# SESSION LISTS
# ============================================

def get_upcoming_sessions(sessions: Iterable[Session], now: datetime) -> List[Session]:
    """Unfinished sessions planned for today or later, soonest first."""
    today = calendar_date(now)
    upcoming = [s for s in sessions if s.date >= today and not s.completed]
    return sorted(upcoming, key=lambda s: (s.date, s.reminder_time or "00:00"))


def get_recent_sessions(sessions: Iterable[Session], limit: Optional[int] = None) -> List[Session]:
    """Sessions newest first."""
    ordered = sorted(sessions, key=lambda s: s.date, reverse=True)
    return ordered[:limit] if limit is not None else ordered
