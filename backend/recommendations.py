"""
StudyMate - Study Recommendation Engine
Ranks courses by a weighted urgency score built from course progress and study history.

Score (0-100, higher = more urgent), summed from four factors:
    - Completion gap        40%   (100 - completion%) * 0.4
    - Staleness             30%   5 points per day since last study, capped at 30
    - Weekly under-study    20%   20 below 30 min this week, 10 below 60 min
    - Near-completion       10%   10 when 80% <= completion < 100%

Priority: high >= 70, medium >= 40, otherwise low.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from analytics import completion_percentage
from clock import days_between, round_half_up, week_window
from logger import get_logger
from models import Course, CourseStudyStats, Priority, Session, StudyRecommendation


log = get_logger("recommendations")

DEFAULT_TOP_N = 3
DEFAULT_SESSION_MINUTES = 30

COMPLETION_WEIGHT = 0.4
STALENESS_POINTS_PER_DAY = 5
STALENESS_MAX = 30
WEEKLY_LOW_MINUTES = 30
WEEKLY_MODERATE_MINUTES = 60
WEEKLY_LOW_POINTS = 20
WEEKLY_MODERATE_POINTS = 10
NEAR_COMPLETION_THRESHOLD = 80
NEAR_COMPLETION_POINTS = 10

HIGH_PRIORITY_SCORE = 70
MEDIUM_PRIORITY_SCORE = 40

MIN_MINUTES_BY_PRIORITY = {
    Priority.HIGH: 45,
    Priority.MEDIUM: 30,
}

STALE_AFTER_DAYS = 7
LOW_COMPLETION = 30


def _near_completion(stats: CourseStudyStats) -> bool:
    return NEAR_COMPLETION_THRESHOLD <= stats.completion_percentage < 100


# First matching rule explains the recommendation. Order is user-visible.
REASON_RULES: List[Tuple[Callable[[CourseStudyStats], bool], str]] = [
    (lambda s: s.completion_percentage < LOW_COMPLETION,
     "Only {p}% complete. Focus needed to catch up."),
    (lambda s: s.never_studied,
     "Haven't studied this course yet. Time to get started!"),
    (lambda s: s.days_since_last_study > STALE_AFTER_DAYS,
     "Haven't studied in {d} days. Time to review!"),
    (lambda s: s.weekly_minutes < WEEKLY_LOW_MINUTES,
     "Only {m} minutes this week. Increase study time."),
    (_near_completion,
     "{p}% complete. Almost there! Finish strong."),
    (lambda s: True,
     "Maintain steady progress. {p}% complete."),
]


# ============================================
# PER-COURSE STATISTICS
# ============================================

def compute_course_stats(
    course: Course,
    sessions: Sequence[Session],
    now: datetime,
    default_session_minutes: int = DEFAULT_SESSION_MINUTES
) -> CourseStudyStats:
    """Derive the scoring inputs for one course from the full session list."""
    course_sessions = [s for s in sessions if s.course_id == course.id]
    window = week_window(now)

    last_study_date = max((s.date for s in course_sessions), default=None)
    days_since = None
    if last_study_date is not None:
        # Planned sessions in the future count as studied today
        days_since = max(days_between(last_study_date, now), 0)

    weekly_minutes = sum(s.duration for s in course_sessions if window.contains(s.date))

    if course_sessions:
        avg_duration = round_half_up(sum(s.duration for s in course_sessions) / len(course_sessions))
    else:
        avg_duration = default_session_minutes

    return CourseStudyStats(
        course_id=course.id,
        completion_percentage=completion_percentage(course),
        last_study_date=last_study_date,
        days_since_last_study=days_since,
        weekly_minutes=weekly_minutes,
        avg_session_duration=avg_duration,
    )


# ============================================
# SCORING
# ============================================

def completion_gap_score(stats: CourseStudyStats) -> float:
    return (100 - stats.completion_percentage) * COMPLETION_WEIGHT


def staleness_score(stats: CourseStudyStats) -> int:
    if stats.never_studied:
        return STALENESS_MAX
    return min(stats.days_since_last_study * STALENESS_POINTS_PER_DAY, STALENESS_MAX)


def weekly_score(stats: CourseStudyStats) -> int:
    if stats.weekly_minutes < WEEKLY_LOW_MINUTES:
        return WEEKLY_LOW_POINTS
    if stats.weekly_minutes < WEEKLY_MODERATE_MINUTES:
        return WEEKLY_MODERATE_POINTS
    return 0


def near_completion_score(stats: CourseStudyStats) -> int:
    return NEAR_COMPLETION_POINTS if _near_completion(stats) else 0


def calculate_score(stats: CourseStudyStats) -> int:
    """Sum of the four factors, rounded half-up and clamped to [0, 100]."""
    total = (
        completion_gap_score(stats)
        + staleness_score(stats)
        + weekly_score(stats)
        + near_completion_score(stats)
    )
    return min(max(round_half_up(total), 0), 100)


def classify_priority(score: int) -> Priority:
    if score >= HIGH_PRIORITY_SCORE:
        return Priority.HIGH
    if score >= MEDIUM_PRIORITY_SCORE:
        return Priority.MEDIUM
    return Priority.LOW


def build_reason(stats: CourseStudyStats) -> str:
    for predicate, template in REASON_RULES:
        if predicate(stats):
            return template.format(
                p=stats.completion_percentage,
                d=stats.days_since_last_study,
                m=stats.weekly_minutes,
            )
    # Unreachable: the last rule always matches
    return ""


def suggest_minutes(priority: Priority, avg_session_duration: int) -> int:
    minimum = MIN_MINUTES_BY_PRIORITY.get(priority)
    if minimum is None:
        return avg_session_duration
    return max(avg_session_duration, minimum)


# ============================================
# ENGINE
# ============================================

class RecommendationEngine:
    """Computes the ranked recommendation list from a store snapshot."""

    def __init__(
        self,
        top_n: int = DEFAULT_TOP_N,
        default_session_minutes: int = DEFAULT_SESSION_MINUTES
    ):
        self.top_n = top_n
        self.default_session_minutes = default_session_minutes

    def recommend_course(
        self,
        course: Course,
        sessions: Sequence[Session],
        now: datetime
    ) -> StudyRecommendation:
        stats = compute_course_stats(course, sessions, now, self.default_session_minutes)
        score = calculate_score(stats)
        priority = classify_priority(score)

        context: Dict[str, Any] = stats.model_dump(exclude={"course_id"})
        context["last_study_date"] = stats.last_study_date.isoformat() if stats.last_study_date else None

        return StudyRecommendation(
            course_id=course.id,
            course_name=course.name,
            course_icon=course.icon,
            priority=priority,
            reason=build_reason(stats),
            suggested_minutes=suggest_minutes(priority, stats.avg_session_duration),
            score=score,
            context=context,
        )

    def get_recommendations(
        self,
        sessions: Iterable[Session],
        courses: Iterable[Course],
        now: datetime,
        limit: Optional[int] = None
    ) -> List[StudyRecommendation]:
        """Top courses by urgency score. Ties keep collection order."""
        sessions = list(sessions)
        limit = self.top_n if limit is None else limit

        recommendations = []
        for course in courses:
            if course.total_lessons <= 0:
                log.debug("Skipping course %r (no lessons)", course.name)
                continue
            recommendations.append(self.recommend_course(course, sessions, now))

        # sorted() is stable, so equal scores stay in course order
        ranked = sorted(recommendations, key=lambda r: r.score, reverse=True)[:limit]

        if ranked:
            for index, rec in enumerate(ranked, 1):
                log.debug("%d. %s - %s (%d/100)", index, rec.course_name, rec.priority.value, rec.score)
        else:
            log.debug("No recommendations: no course has lessons")

        return ranked


def get_study_recommendations(
    sessions: Iterable[Session],
    courses: Iterable[Course],
    now: datetime,
    top_n: int = DEFAULT_TOP_N
) -> List[StudyRecommendation]:
    return RecommendationEngine(top_n=top_n).get_recommendations(sessions, courses, now)
