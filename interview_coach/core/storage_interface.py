from abc import ABC, abstractmethod
from datetime import datetime

from .models import Answer, Interview, InterviewResults, InterviewStatus, Question, UserProfile


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


class ConcurrencyConflictError(StorageError):
    """Raised when the stored version no longer matches the expected one."""

    def __init__(self, interview_id: str, expected_version: int):
        self.interview_id = interview_id
        self.expected_version = expected_version
        super().__init__(f"Interview {interview_id} is no longer at version {expected_version}")


class DuplicateAnswerError(StorageError):
    """Raised when an answer already exists for the question."""

    def __init__(self, interview_id: str, question_id: str):
        self.interview_id = interview_id
        self.question_id = question_id
        super().__init__(f"Question {question_id} of interview {interview_id} is already answered")


class StorageInterface(ABC):
    """Abstract interface for interview storage implementations.

    Every mutating call takes the version the caller read. The write only
    happens if the stored record is still at that version; it then bumps the
    version by one and returns the updated interview.
    """

    @abstractmethod
    def create_interview(self, interview: Interview) -> str:
        """Persist a new interview. Returns interview ID."""
        pass

    @abstractmethod
    def load_interview(self, interview_id: str) -> Interview | None:
        pass

    @abstractmethod
    def append_question(self, interview_id: str, question: Question, expected_version: int) -> Interview:
        pass

    @abstractmethod
    def append_answer(self, interview_id: str, answer: Answer, expected_version: int) -> Interview:
        """Append an answer. Raises DuplicateAnswerError if the question is already answered."""
        pass

    @abstractmethod
    def finalize_interview(
        self,
        interview_id: str,
        results: InterviewResults,
        completed_at: datetime,
        duration_seconds: int,
        expected_version: int,
    ) -> Interview:
        """Mark completed, store results and add the interview to the owner's profile counters."""
        pass

    @abstractmethod
    def mark_abandoned(self, interview_id: str, expected_version: int) -> Interview:
        pass

    @abstractmethod
    def list_interviews(
        self,
        owner_id: str,
        statuses: list[InterviewStatus] | None = None,
        passed_only: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Interview], int]:
        """Page through an owner's interviews, newest completion first. Returns (page, total)."""
        pass

    @abstractmethod
    def list_completed_interviews(self, owner_id: str | None = None) -> list[Interview]:
        """All completed interviews, for one owner or globally when owner_id is None."""
        pass

    @abstractmethod
    def get_user_profile(self, owner_id: str) -> UserProfile | None:
        pass
