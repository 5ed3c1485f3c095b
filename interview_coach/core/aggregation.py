"""Read-only statistics over completed interviews."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum

from pydantic import BaseModel

from .constants import PASS_SCORE_THRESHOLD, RECENT_INTERVIEWS_LIMIT, WEEKLY_PERFORMANCE_DAYS
from .models import Interview, InterviewSummary, Role, UserProfile
from .storage_interface import StorageInterface


class TimeWindow(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


WINDOW_DAYS: dict[TimeWindow, int | None] = {
    TimeWindow.TODAY: 1,
    TimeWindow.WEEK: 7,
    TimeWindow.MONTH: 30,
    TimeWindow.ALL: None,
}


class InterviewStats(BaseModel):
    total_completed: int = 0
    average_score: float = 0.0
    total_duration: int = 0
    highest_score: int = 0
    lowest_score: int = 0
    passed_count: int = 0
    pass_rate: float = 0.0


class RoleBreakdown(BaseModel):
    role: Role
    count: int
    average_score: float
    total_duration: int


class PerformancePoint(BaseModel):
    interview_id: str
    score: int
    completed_at: datetime


class Dashboard(BaseModel):
    overall: InterviewStats
    window: TimeWindow
    windowed: InterviewStats
    by_role: list[RoleBreakdown]
    recent_interviews: list[InterviewSummary]
    weekly_performance: list[PerformancePoint]
    profile: UserProfile


def reduce_stats(interviews: list[Interview]) -> InterviewStats:
    if not interviews:
        return InterviewStats()
    scores = [i.score for i in interviews]
    passed = sum(1 for s in scores if s >= PASS_SCORE_THRESHOLD)
    return InterviewStats(
        total_completed=len(interviews),
        average_score=round(sum(scores) / len(scores), 2),
        total_duration=sum(i.duration_seconds for i in interviews),
        highest_score=max(scores),
        lowest_score=min(scores),
        passed_count=passed,
        pass_rate=round(passed / len(interviews), 4),
    )


class AggregationEngine:
    def __init__(self, storage: StorageInterface, clock: Callable[[], datetime] = lambda: datetime.now(UTC)):
        self.storage = storage
        self.clock = clock

    def _completed(self, owner_id: str | None) -> list[Interview]:
        return self.storage.list_completed_interviews(owner_id)

    def _in_window(self, interviews: list[Interview], days: int | None) -> list[Interview]:
        if days is None:
            return interviews
        now = self.clock()
        start = now - timedelta(days=days)
        # (now - days, now]
        return [i for i in interviews if i.completed_at and start < i.completed_at <= now]

    def user_stats(self, owner_id: str | None = None) -> InterviewStats:
        """Totals over every completed interview; global when owner_id is None."""
        return reduce_stats(self._completed(owner_id))

    def time_windowed(self, owner_id: str | None, window: TimeWindow | str) -> InterviewStats:
        window = TimeWindow(window)
        return reduce_stats(self._in_window(self._completed(owner_id), WINDOW_DAYS[window]))

    def by_role(self, owner_id: str | None) -> list[RoleBreakdown]:
        groups: dict[Role, list[Interview]] = {}
        for interview in self._completed(owner_id):
            groups.setdefault(interview.role, []).append(interview)
        return [
            RoleBreakdown(
                role=role,
                count=len(items),
                average_score=round(sum(i.score for i in items) / len(items), 2),
                total_duration=sum(i.duration_seconds for i in items),
            )
            for role, items in sorted(groups.items(), key=lambda kv: kv[0].value)
        ]

    def recent_interviews(self, owner_id: str, limit: int = RECENT_INTERVIEWS_LIMIT) -> list[InterviewSummary]:
        interviews = sorted(self._completed(owner_id), key=lambda i: i.completed_at, reverse=True)
        return [InterviewSummary.from_interview(i) for i in interviews[:limit]]

    def weekly_performance(self, owner_id: str) -> list[PerformancePoint]:
        interviews = self._in_window(self._completed(owner_id), WEEKLY_PERFORMANCE_DAYS)
        return [
            PerformancePoint(interview_id=i.id, score=i.score, completed_at=i.completed_at)
            for i in sorted(interviews, key=lambda i: i.completed_at)
        ]

    def profile(self, owner_id: str) -> UserProfile:
        return self.storage.get_user_profile(owner_id) or UserProfile(owner_id=owner_id)

    def dashboard(self, owner_id: str, window: TimeWindow | str = TimeWindow.ALL) -> Dashboard:
        window = TimeWindow(window)
        completed = self._completed(owner_id)
        return Dashboard(
            overall=reduce_stats(completed),
            window=window,
            windowed=reduce_stats(self._in_window(completed, WINDOW_DAYS[window])),
            by_role=self.by_role(owner_id),
            recent_interviews=self.recent_interviews(owner_id),
            weekly_performance=self.weekly_performance(owner_id),
            profile=self.profile(owner_id),
        )
