"""Interview lifecycle: start, question, answer, complete.

Each mutating operation is a read-check-write cycle against the store,
committed with the version it read. The cycle runs under an in-process lock
per interview id, so duplicate requests in one process never reach the
gateway twice; writers in other processes are caught by the store's version
check and the cycle is re-run.
"""

import logging
import math
import threading
import weakref
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

from interview_coach.core.config import EngineSettings
from interview_coach.core.constants import DEFAULT_HISTORY_LIMIT, MAX_ANSWER_LENGTH, MAX_HISTORY_LIMIT
from interview_coach.core.errors import (
    ConflictFailure,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    InterviewNotFoundError,
)
from interview_coach.core.interview_config import is_valid_experience_level, resolve_interview_config
from interview_coach.core.logging import audit_log, get_logger, log_event, span
from interview_coach.core.models import (
    Answer,
    HistoryPage,
    Interview,
    InterviewExhausted,
    InterviewStatus,
    InterviewSummary,
    NextQuestion,
    ResultsReport,
    Role,
    StartedInterview,
    SubmittedAnswer,
)
from interview_coach.core.services.evaluator_gateway import EvaluatorGateway
from interview_coach.core.storage_interface import ConcurrencyConflictError, DuplicateAnswerError, StorageInterface

T = TypeVar("T")

HISTORY_FILTERS: dict[str, list[InterviewStatus] | None] = {
    "completed": [InterviewStatus.COMPLETED],
    "in-progress": [InterviewStatus.IN_PROGRESS],
    "abandoned": [InterviewStatus.ABANDONED],
    "passed": [InterviewStatus.COMPLETED],
    "all": None,
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InterviewSessionEngine:
    def __init__(
        self,
        storage: StorageInterface,
        gateway: EvaluatorGateway,
        settings: EngineSettings | None = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: logging.Logger | None = None,
    ):
        self.storage = storage
        self.gateway = gateway
        self.settings = settings or EngineSettings()
        self.clock = clock
        self.logger = logger or get_logger()
        # An entry lives only while some cycle holds its lock
        self._interview_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._lock_manager_lock = threading.Lock()

    # -- helpers ----------------------------------------------------------

    def _get_interview_lock(self, interview_id: str) -> threading.Lock:
        with self._lock_manager_lock:
            lock = self._interview_locks.get(interview_id)
            if lock is None:
                lock = threading.Lock()
                self._interview_locks[interview_id] = lock
            return lock

    def _run_cycle(self, interview_id: str, operation: str, cycle: Callable[[], T]) -> T:
        """Run a read-check-write cycle, re-running it when the store reports a version conflict."""
        attempts = self.settings.max_conflict_retries + 1
        lock = self._get_interview_lock(interview_id)
        with lock:
            for attempt in range(1, attempts + 1):
                try:
                    return cycle()
                except ConcurrencyConflictError:
                    log_event(
                        "engine.version_conflict",
                        logger=self.logger,
                        component="engine",
                        operation=operation,
                        interview_id=interview_id,
                        attempt=attempt,
                        max_attempts=attempts,
                        level=logging.WARNING,
                    )
        raise ConflictFailure(interview_id, attempts)

    def _load_owned(self, interview_id: str, caller_id: str) -> Interview:
        interview = self.storage.load_interview(interview_id)
        if interview is None:
            raise InterviewNotFoundError(interview_id)
        if interview.owner_id != caller_id:
            audit_log(
                "interview.forbidden_access",
                caller_id,
                logger=self.logger,
                interview_id=interview_id,
            )
            raise ForbiddenError(interview_id)
        return interview

    @staticmethod
    def _require_in_progress(interview: Interview) -> None:
        if interview.status != InterviewStatus.IN_PROGRESS:
            raise InvalidStateError(f"Interview {interview.id} is {interview.status.value}, expected in-progress")

    # -- operations -------------------------------------------------------

    def start_interview(self, owner_id: str, role: Role | str, experience_level: int) -> StartedInterview:
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise InvalidArgumentError("owner_id is required")
        try:
            role = Role(role)
        except ValueError:
            raise InvalidArgumentError(
                f"Unknown role '{role}'. Expected one of: {', '.join(r.value for r in Role)}"
            ) from None
        if not is_valid_experience_level(experience_level):
            raise InvalidArgumentError(f"experience_level must be an integer between 0 and 4, got {experience_level!r}")

        config = resolve_interview_config(experience_level)
        with span(
            "engine.start_interview",
            logger=self.logger,
            component="engine",
            operation="start_interview",
            owner_id=owner_id,
            role=role.value,
            experience_level=experience_level,
        ):
            first_question = self.gateway.generate_question(role, experience_level, [])
            interview = Interview(
                owner_id=owner_id,
                role=role,
                experience_level=experience_level,
                total_questions=config.question_count,
                seconds_per_question=config.seconds_per_question,
                estimated_duration_minutes=config.total_estimated_minutes,
                questions=[first_question],
                started_at=self.clock(),
            )
            self.storage.create_interview(interview)

        log_event(
            "interview.started",
            logger=self.logger,
            component="engine",
            interview_id=interview.id,
            total_questions=interview.total_questions,
        )
        return StartedInterview(
            interview_id=interview.id,
            question=first_question,
            question_number=1,
            total_questions=interview.total_questions,
            seconds_per_question=interview.seconds_per_question,
            estimated_minutes=interview.estimated_duration_minutes,
        )

    def get_next_question(
        self, interview_id: str, caller_id: str, question_number: int | None = None
    ) -> NextQuestion | InterviewExhausted:
        if question_number is not None and (
            not isinstance(question_number, int) or isinstance(question_number, bool) or question_number < 1
        ):
            raise InvalidArgumentError("question_number must be a positive integer")

        def cycle() -> NextQuestion | InterviewExhausted:
            interview = self._load_owned(interview_id, caller_id)
            self._require_in_progress(interview)

            generated = len(interview.questions)
            if generated >= interview.total_questions:
                return InterviewExhausted(total_questions=interview.total_questions)

            # A retried request for a position that already exists gets that question back
            if question_number is not None:
                if question_number <= generated:
                    return NextQuestion(
                        question=interview.questions[question_number - 1],
                        question_number=question_number,
                        total_questions=interview.total_questions,
                    )
                if question_number > generated + 1:
                    raise InvalidArgumentError(
                        f"question_number {question_number} skips ahead; next position is {generated + 1}"
                    )

            tail = interview.questions[-1]
            if not interview.is_answered(tail.id):
                return NextQuestion(question=tail, question_number=generated, total_questions=interview.total_questions)

            question = self.gateway.generate_question(
                interview.role, interview.experience_level, [q.text for q in interview.questions]
            )
            self.storage.append_question(interview_id, question, interview.version)
            return NextQuestion(
                question=question, question_number=generated + 1, total_questions=interview.total_questions
            )

        with span(
            "engine.get_next_question",
            logger=self.logger,
            component="engine",
            operation="get_next_question",
            interview_id=interview_id,
            question_number=question_number,
        ):
            return self._run_cycle(interview_id, "get_next_question", cycle)

    def submit_answer(
        self,
        interview_id: str,
        caller_id: str,
        question_id: str,
        answer_text: str,
        time_spent_seconds: int = 0,
    ) -> SubmittedAnswer:
        if not isinstance(question_id, str) or not question_id:
            raise InvalidArgumentError("question_id is required")
        if not isinstance(answer_text, str):
            raise InvalidArgumentError("answer_text must be a string")
        if len(answer_text) > MAX_ANSWER_LENGTH:
            raise InvalidArgumentError(f"answer_text exceeds {MAX_ANSWER_LENGTH} characters")
        if not isinstance(time_spent_seconds, int) or isinstance(time_spent_seconds, bool) or time_spent_seconds < 0:
            raise InvalidArgumentError("time_spent_seconds must be a non-negative integer")

        def already_answered(interview: Interview) -> SubmittedAnswer:
            existing = interview.get_answer(question_id)
            return SubmittedAnswer(
                question_id=question_id,
                evaluation=existing.evaluation,
                answered_count=len(interview.answers),
                total_questions=interview.total_questions,
                duplicate=True,
            )

        def cycle() -> SubmittedAnswer:
            interview = self._load_owned(interview_id, caller_id)
            self._require_in_progress(interview)

            question = interview.get_question(question_id)
            if question is None:
                raise InvalidArgumentError(f"Question {question_id} does not belong to interview {interview_id}")
            if interview.is_answered(question_id):
                log_event(
                    "interview.duplicate_answer",
                    logger=self.logger,
                    component="engine",
                    interview_id=interview_id,
                    question_id=question_id,
                )
                return already_answered(interview)

            evaluation = self.gateway.evaluate_answer(
                question.text, answer_text, interview.role, interview.experience_level
            )
            answer = Answer(
                question_id=question_id,
                question_text=question.text,
                text=answer_text,
                time_spent_seconds=time_spent_seconds,
                evaluation=evaluation,
                submitted_at=self.clock(),
            )
            try:
                updated = self.storage.append_answer(interview_id, answer, interview.version)
            except DuplicateAnswerError:
                # Another writer got there first; report what it stored
                return already_answered(self._load_owned(interview_id, caller_id))

            return SubmittedAnswer(
                question_id=question_id,
                evaluation=evaluation,
                answered_count=len(updated.answers),
                total_questions=updated.total_questions,
            )

        with span(
            "engine.submit_answer",
            logger=self.logger,
            component="engine",
            operation="submit_answer",
            interview_id=interview_id,
            question_id=question_id,
            answer_length=len(answer_text),
        ):
            return self._run_cycle(interview_id, "submit_answer", cycle)

    def complete_interview(self, interview_id: str, caller_id: str) -> ResultsReport:
        def cycle() -> ResultsReport:
            interview = self._load_owned(interview_id, caller_id)
            if interview.status == InterviewStatus.COMPLETED:
                return ResultsReport.from_interview(interview)
            self._require_in_progress(interview)

            if not interview.answers:
                raise InvalidStateError(f"Interview {interview_id} has no answers to complete")
            unanswered = interview.unanswered_questions()
            if unanswered:
                raise InvalidStateError(
                    f"Interview {interview_id} has {len(unanswered)} unanswered question(s); answer them first"
                )

            results = self.gateway.synthesize_final_feedback(
                interview.role, interview.experience_level, interview.answers
            )
            completed_at = self.clock()
            duration_seconds = max(0, int((completed_at - interview.started_at).total_seconds()))
            updated = self.storage.finalize_interview(
                interview_id, results, completed_at, duration_seconds, interview.version
            )
            log_event(
                "interview.completed",
                logger=self.logger,
                component="engine",
                interview_id=interview_id,
                overall_score=results.overall_score_percent,
                duration_s=duration_seconds,
            )
            return ResultsReport.from_interview(updated)

        with span(
            "engine.complete_interview",
            logger=self.logger,
            component="engine",
            operation="complete_interview",
            interview_id=interview_id,
        ):
            return self._run_cycle(interview_id, "complete_interview", cycle)

    def get_results(self, interview_id: str, caller_id: str) -> ResultsReport:
        interview = self._load_owned(interview_id, caller_id)
        if interview.status != InterviewStatus.COMPLETED:
            raise InvalidStateError(f"Interview {interview_id} is {interview.status.value}; results are not available")
        return ResultsReport.from_interview(interview)

    def get_interview(self, interview_id: str, caller_id: str) -> Interview:
        return self._load_owned(interview_id, caller_id)

    def get_history(
        self,
        owner_id: str,
        status_filter: str = "completed",
        page: int = 1,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> HistoryPage:
        if status_filter not in HISTORY_FILTERS:
            raise InvalidArgumentError(
                f"Unknown status filter '{status_filter}'. Expected one of: {', '.join(HISTORY_FILTERS)}"
            )
        if page < 1:
            raise InvalidArgumentError("page must be >= 1")
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise InvalidArgumentError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")

        interviews, total = self.storage.list_interviews(
            owner_id,
            statuses=HISTORY_FILTERS[status_filter],
            passed_only=status_filter == "passed",
            offset=(page - 1) * limit,
            limit=limit,
        )
        return HistoryPage(
            items=[InterviewSummary.from_interview(i) for i in interviews],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0,
        )

    def abandon_interview(self, interview_id: str, caller_id: str) -> Interview:
        def cycle() -> Interview:
            interview = self._load_owned(interview_id, caller_id)
            self._require_in_progress(interview)
            return self.storage.mark_abandoned(interview_id, interview.version)

        updated = self._run_cycle(interview_id, "abandon_interview", cycle)
        log_event("interview.abandoned", logger=self.logger, component="engine", interview_id=interview_id)
        return updated
