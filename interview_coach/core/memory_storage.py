import copy
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from .models import Answer, Interview, InterviewResults, InterviewStatus, Question, UserProfile
from .storage_interface import (
    ConcurrencyConflictError,
    DuplicateAnswerError,
    StorageError,
    StorageInterface,
)


def _history_sort_key(interview: Interview) -> tuple:
    # completed_at desc with None last, then started_at desc
    completed = interview.completed_at.timestamp() if interview.completed_at else float("-inf")
    return (interview.completed_at is not None, completed, interview.started_at.timestamp())


class MemoryStorage(StorageInterface):
    """In-memory storage implementation for testing and development."""

    def __init__(self):
        self._interviews: dict[str, Interview] = {}
        self._profiles: dict[str, UserProfile] = {}
        self._lock = threading.Lock()

    def _mutate(
        self,
        interview_id: str,
        expected_version: int,
        change: Callable[[Interview], None],
        on_commit: Callable[[Interview], None] | None = None,
    ) -> Interview:
        with self._lock:
            stored = self._interviews.get(interview_id)
            if stored is None:
                raise StorageError(f"Interview {interview_id} not found")
            if stored.version != expected_version:
                raise ConcurrencyConflictError(interview_id, expected_version)

            # Work on a copy so a failing change leaves the stored record untouched
            updated = copy.deepcopy(stored)
            change(updated)
            updated.version += 1
            self._interviews[interview_id] = updated
            if on_commit:
                on_commit(updated)
            return copy.deepcopy(updated)

    def create_interview(self, interview: Interview) -> str:
        with self._lock:
            if interview.id in self._interviews:
                raise StorageError(f"Interview {interview.id} already exists")
            self._interviews[interview.id] = copy.deepcopy(interview)
            return interview.id

    def load_interview(self, interview_id: str) -> Interview | None:
        with self._lock:
            interview = self._interviews.get(interview_id)
            return copy.deepcopy(interview) if interview else None

    def append_question(self, interview_id: str, question: Question, expected_version: int) -> Interview:
        def change(interview: Interview) -> None:
            if len(interview.questions) >= interview.total_questions:
                raise StorageError(f"Interview {interview_id} already has {interview.total_questions} questions")
            interview.questions.append(question)

        return self._mutate(interview_id, expected_version, change)

    def append_answer(self, interview_id: str, answer: Answer, expected_version: int) -> Interview:
        def change(interview: Interview) -> None:
            if interview.is_answered(answer.question_id):
                raise DuplicateAnswerError(interview_id, answer.question_id)
            interview.answers.append(answer)

        return self._mutate(interview_id, expected_version, change)

    def finalize_interview(
        self,
        interview_id: str,
        results: InterviewResults,
        completed_at: datetime,
        duration_seconds: int,
        expected_version: int,
    ) -> Interview:
        def change(interview: Interview) -> None:
            interview.status = InterviewStatus.COMPLETED
            interview.results = results
            interview.completed_at = completed_at
            interview.duration_seconds = duration_seconds

        def update_profile(interview: Interview) -> None:
            profile = self._profiles.get(interview.owner_id) or UserProfile(owner_id=interview.owner_id)
            self._profiles[interview.owner_id] = profile.model_copy(
                update={
                    "total_interviews": profile.total_interviews + 1,
                    "total_score": profile.total_score + results.overall_score_percent,
                    "total_practice_time": profile.total_practice_time + duration_seconds,
                    "updated_at": datetime.now(UTC),
                }
            )

        return self._mutate(interview_id, expected_version, change, on_commit=update_profile)

    def mark_abandoned(self, interview_id: str, expected_version: int) -> Interview:
        def change(interview: Interview) -> None:
            interview.status = InterviewStatus.ABANDONED

        return self._mutate(interview_id, expected_version, change)

    def list_interviews(
        self,
        owner_id: str,
        statuses: list[InterviewStatus] | None = None,
        passed_only: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Interview], int]:
        with self._lock:
            matches = [
                i
                for i in self._interviews.values()
                if i.owner_id == owner_id
                and (statuses is None or i.status in statuses)
                and (not passed_only or i.passed)
            ]
            matches.sort(key=_history_sort_key, reverse=True)
            return [copy.deepcopy(i) for i in matches[offset : offset + limit]], len(matches)

    def list_completed_interviews(self, owner_id: str | None = None) -> list[Interview]:
        with self._lock:
            return [
                copy.deepcopy(i)
                for i in self._interviews.values()
                if i.status == InterviewStatus.COMPLETED and (owner_id is None or i.owner_id == owner_id)
            ]

    def get_user_profile(self, owner_id: str) -> UserProfile | None:
        with self._lock:
            profile = self._profiles.get(owner_id)
            return profile.model_copy() if profile else None
