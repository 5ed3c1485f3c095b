import gc

import pytest

from interview_coach.core.config import EngineSettings
from interview_coach.core.errors import (
    ConflictFailure,
    EvaluationFailure,
    ForbiddenError,
    GenerationFailure,
    InterviewNotFoundError,
    InvalidArgumentError,
    InvalidStateError,
    SynthesisFailure,
)
from interview_coach.core.models import Difficulty, InterviewExhausted, InterviewStatus, NextQuestion, Role
from interview_coach.core.services import InterviewSessionEngine
from interview_coach.core.storage_interface import ConcurrencyConflictError
from tests.fakes import SUBSTANTIVE_ANSWER

OWNER = "user-1"
INTRUDER = "user-2"


def answer_all(engine, interview_id, first_question, owner=OWNER):
    """Answer every question of the interview, walking forward with get_next_question."""
    question = first_question
    while True:
        engine.submit_answer(interview_id, owner, question.id, SUBSTANTIVE_ANSWER, 90)
        outcome = engine.get_next_question(interview_id, owner)
        if isinstance(outcome, InterviewExhausted):
            return
        question = outcome.question


def run_interview(engine, owner=OWNER, role=Role.BACKEND, level=1, clock=None, minutes=20):
    started = engine.start_interview(owner, role, level)
    answer_all(engine, started.interview_id, started.question, owner)
    if clock is not None:
        clock.advance(minutes=minutes)
    return engine.complete_interview(started.interview_id, owner)


class TestStartInterview:
    def test_creates_interview_with_first_question(self, engine, storage, provider):
        started = engine.start_interview(OWNER, "backend", 2)

        assert started.question_number == 1
        assert started.total_questions == 10
        assert started.seconds_per_question == 240
        assert started.estimated_minutes == 40
        assert started.question.difficulty == Difficulty.EASY

        interview = storage.load_interview(started.interview_id)
        assert interview.owner_id == OWNER
        assert interview.status == InterviewStatus.IN_PROGRESS
        assert [q.id for q in interview.questions] == [started.question.id]
        assert interview.answers == []
        assert provider.call_count("generate_question") == 1

    @pytest.mark.parametrize("role", ["designer", "", None, "Backend"])
    def test_rejects_unknown_role(self, engine, provider, role):
        with pytest.raises(InvalidArgumentError):
            engine.start_interview(OWNER, role, 1)

        assert provider.call_count() == 0

    @pytest.mark.parametrize("level", [-1, 5, "2", 1.0, True, None])
    def test_rejects_bad_level(self, engine, provider, level):
        with pytest.raises(InvalidArgumentError):
            engine.start_interview(OWNER, Role.BACKEND, level)

        assert provider.call_count() == 0

    def test_rejects_blank_owner(self, engine):
        with pytest.raises(InvalidArgumentError):
            engine.start_interview("  ", Role.BACKEND, 1)

    def test_generation_failure_creates_nothing(self, engine, storage, provider):
        provider.fail_operations.add("generate_question")

        with pytest.raises(GenerationFailure):
            engine.start_interview(OWNER, Role.BACKEND, 1)

        interviews, total = storage.list_interviews(OWNER, statuses=None)
        assert total == 0
        assert interviews == []


class TestGetNextQuestion:
    def test_unanswered_tail_is_returned_again(self, engine, provider):
        started = engine.start_interview(OWNER, Role.FRONTEND, 1)

        outcome = engine.get_next_question(started.interview_id, OWNER)

        assert isinstance(outcome, NextQuestion)
        assert outcome.question.id == started.question.id
        assert outcome.question_number == 1
        assert provider.call_count("generate_question") == 1

    def test_generates_after_answer(self, engine, storage, provider):
        started = engine.start_interview(OWNER, Role.FRONTEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)

        outcome = engine.get_next_question(started.interview_id, OWNER)

        assert outcome.question_number == 2
        assert outcome.question.id != started.question.id
        assert outcome.question.difficulty == Difficulty.EASY
        assert len(storage.load_interview(started.interview_id).questions) == 2

    def test_repeated_call_does_not_generate_twice(self, engine, provider):
        started = engine.start_interview(OWNER, Role.FRONTEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)

        first = engine.get_next_question(started.interview_id, OWNER)
        second = engine.get_next_question(started.interview_id, OWNER)

        assert first.question.id == second.question.id
        assert provider.call_count("generate_question") == 2

    def test_question_number_returns_existing_position(self, engine, provider):
        started = engine.start_interview(OWNER, Role.FRONTEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)
        second = engine.get_next_question(started.interview_id, OWNER, question_number=2)

        again = engine.get_next_question(started.interview_id, OWNER, question_number=2)
        first = engine.get_next_question(started.interview_id, OWNER, question_number=1)

        assert again.question.id == second.question.id
        assert first.question.id == started.question.id
        assert provider.call_count("generate_question") == 2

    def test_question_number_cannot_skip_ahead(self, engine):
        started = engine.start_interview(OWNER, Role.FRONTEND, 1)

        with pytest.raises(InvalidArgumentError):
            engine.get_next_question(started.interview_id, OWNER, question_number=3)

    @pytest.mark.parametrize("number", [0, -2, True])
    def test_question_number_must_be_positive(self, engine, number):
        started = engine.start_interview(OWNER, Role.FRONTEND, 1)

        with pytest.raises(InvalidArgumentError):
            engine.get_next_question(started.interview_id, OWNER, question_number=number)

    def test_exhausted_interview_makes_no_model_call(self, engine, provider):
        started = engine.start_interview(OWNER, Role.HR, 0)
        answer_all(engine, started.interview_id, started.question)
        calls_before = provider.call_count("generate_question")

        outcome = engine.get_next_question(started.interview_id, OWNER)

        assert isinstance(outcome, InterviewExhausted)
        assert outcome.is_complete is True
        assert outcome.total_questions == 8
        assert provider.call_count("generate_question") == calls_before == 8

    def test_generation_failure_leaves_interview_unchanged(self, engine, storage, provider):
        started = engine.start_interview(OWNER, Role.FRONTEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)
        before = storage.load_interview(started.interview_id)
        provider.fail_operations.add("generate_question")

        with pytest.raises(GenerationFailure):
            engine.get_next_question(started.interview_id, OWNER)

        after = storage.load_interview(started.interview_id)
        assert after.version == before.version
        assert len(after.questions) == 1

    def test_requires_in_progress(self, engine):
        started = engine.start_interview(OWNER, Role.FRONTEND, 1)
        engine.abandon_interview(started.interview_id, OWNER)

        with pytest.raises(InvalidStateError):
            engine.get_next_question(started.interview_id, OWNER)


class TestSubmitAnswer:
    def test_records_evaluation(self, engine, storage):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        submitted = engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 45)

        assert submitted.evaluation.score == 7
        assert submitted.answered_count == 1
        assert submitted.total_questions == 10
        assert submitted.duplicate is False
        answer = storage.load_interview(started.interview_id).answers[0]
        assert answer.question_text == started.question.text
        assert answer.time_spent_seconds == 45

    def test_duplicate_returns_existing_evaluation(self, engine, storage, provider):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        first = engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 45)

        second = engine.submit_answer(
            started.interview_id, OWNER, started.question.id, "A different and much longer answer text", 10
        )

        assert second.duplicate is True
        assert second.evaluation == first.evaluation
        assert provider.call_count("evaluate_answer") == 1
        assert len(storage.load_interview(started.interview_id).answers) == 1

    def test_short_answer_is_recorded_with_zero(self, engine, provider):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        submitted = engine.submit_answer(started.interview_id, OWNER, started.question.id, "idk", 5)

        assert submitted.evaluation.score == 0
        assert provider.call_count("evaluate_answer") == 0

    def test_unknown_question_is_rejected(self, engine):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        with pytest.raises(InvalidArgumentError):
            engine.submit_answer(started.interview_id, OWNER, "q_unknown", SUBSTANTIVE_ANSWER, 5)

    @pytest.mark.parametrize(
        "question_id, text, seconds",
        [("", SUBSTANTIVE_ANSWER, 5), (None, SUBSTANTIVE_ANSWER, 5), ("q", None, 5), ("q", "x" * 10001, 5),
         ("q", SUBSTANTIVE_ANSWER, -1), ("q", SUBSTANTIVE_ANSWER, 1.5)],
    )
    def test_input_validation(self, engine, question_id, text, seconds):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        with pytest.raises(InvalidArgumentError):
            engine.submit_answer(started.interview_id, OWNER, question_id, text, seconds)

    def test_evaluation_failure_records_nothing(self, engine, storage, provider):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        provider.fail_operations.add("evaluate_answer")

        with pytest.raises(EvaluationFailure):
            engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 5)

        assert storage.load_interview(started.interview_id).answers == []

    def test_rejected_once_abandoned(self, engine):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        engine.abandon_interview(started.interview_id, OWNER)

        with pytest.raises(InvalidStateError):
            engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 5)


class TestOwnership:
    @pytest.mark.parametrize(
        "call",
        [
            lambda e, i, q: e.get_next_question(i, INTRUDER),
            lambda e, i, q: e.submit_answer(i, INTRUDER, q, SUBSTANTIVE_ANSWER, 5),
            lambda e, i, q: e.complete_interview(i, INTRUDER),
            lambda e, i, q: e.get_results(i, INTRUDER),
            lambda e, i, q: e.get_interview(i, INTRUDER),
            lambda e, i, q: e.abandon_interview(i, INTRUDER),
        ],
    )
    def test_other_users_are_forbidden(self, engine, storage, provider, call):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        before = storage.load_interview(started.interview_id)
        calls_before = provider.call_count()

        with pytest.raises(ForbiddenError):
            call(engine, started.interview_id, started.question.id)

        assert storage.load_interview(started.interview_id) == before
        assert provider.call_count() == calls_before

    def test_unknown_interview_is_not_found(self, engine):
        with pytest.raises(InterviewNotFoundError):
            engine.get_interview("missing", OWNER)
        with pytest.raises(InterviewNotFoundError):
            engine.submit_answer("missing", OWNER, "q_1", SUBSTANTIVE_ANSWER, 5)


class TestCompleteInterview:
    def test_full_backend_interview(self, engine, storage, provider, clock):
        provider.scores = [6, 7, 8, 7, 9, 8, 7, 8, 9, 8]
        started = engine.start_interview(OWNER, Role.BACKEND, 2)
        answer_all(engine, started.interview_id, started.question)
        clock.advance(minutes=35, seconds=12)

        report = engine.complete_interview(started.interview_id, OWNER)

        assert len(report.per_question_breakdown) == 10
        assert report.overall_score_percent == 77
        assert report.average_score == 7.7
        assert report.passed is True
        assert report.duration_seconds == 35 * 60 + 12
        assert [b.difficulty for b in report.per_question_breakdown[:2]] == [Difficulty.EASY] * 2
        assert [b.difficulty for b in report.per_question_breakdown[-2:]] == [Difficulty.HARD] * 2
        assert provider.call_count("generate_question") == 10
        assert provider.call_count("evaluate_answer") == 10
        assert provider.call_count("final_feedback") == 1

        interview = storage.load_interview(started.interview_id)
        assert interview.status == InterviewStatus.COMPLETED
        assert interview.completed_at == clock.now

    def test_completing_twice_synthesizes_once(self, engine, storage, provider, clock):
        report = run_interview(engine, clock=clock)

        again = engine.complete_interview(report.interview_id, OWNER)

        assert again == report
        assert provider.call_count("final_feedback") == 1
        profile = storage.get_user_profile(OWNER)
        assert profile.total_interviews == 1

    def test_requires_answers(self, engine, provider):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        with pytest.raises(InvalidStateError):
            engine.complete_interview(started.interview_id, OWNER)

        assert provider.call_count("final_feedback") == 0

    def test_requires_every_question_answered(self, engine):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)
        engine.get_next_question(started.interview_id, OWNER)

        with pytest.raises(InvalidStateError):
            engine.complete_interview(started.interview_id, OWNER)

    def test_early_completion_after_answering_tail(self, engine, clock):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)
        clock.advance(minutes=3)

        report = engine.complete_interview(started.interview_id, OWNER)

        assert len(report.per_question_breakdown) == 1
        assert report.overall_score_percent == 70
        assert report.passed is False
        assert report.duration_seconds == 180

    def test_synthesis_failure_keeps_interview_open(self, engine, storage, provider):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)
        provider.fail_operations.add("final_feedback")

        with pytest.raises(SynthesisFailure):
            engine.complete_interview(started.interview_id, OWNER)

        interview = storage.load_interview(started.interview_id)
        assert interview.status == InterviewStatus.IN_PROGRESS
        assert interview.results is None
        assert storage.get_user_profile(OWNER) is None

    def test_abandoned_interview_cannot_complete(self, engine):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)
        engine.abandon_interview(started.interview_id, OWNER)

        with pytest.raises(InvalidStateError):
            engine.complete_interview(started.interview_id, OWNER)

    def test_profile_counters_follow_completions(self, engine, storage, provider, clock):
        provider.scores = [8]
        run_interview(engine, level=0, clock=clock, minutes=10)
        provider.scores = [5]
        run_interview(engine, level=0, clock=clock, minutes=20)

        profile = storage.get_user_profile(OWNER)
        assert profile.total_interviews == 2
        assert profile.total_score == 80 + 50
        assert profile.total_practice_time == 600 + 1200
        assert profile.average_score == 65.0

    def test_completed_interview_is_frozen(self, engine, storage, provider, clock):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)
        engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)
        clock.advance(minutes=2)
        engine.complete_interview(started.interview_id, OWNER)
        before = storage.load_interview(started.interview_id)
        calls = provider.call_count()

        with pytest.raises(InvalidStateError):
            engine.get_next_question(started.interview_id, OWNER)
        with pytest.raises(InvalidStateError):
            engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 30)
        with pytest.raises(InvalidStateError):
            engine.abandon_interview(started.interview_id, OWNER)
        engine.complete_interview(started.interview_id, OWNER)

        after = storage.load_interview(started.interview_id)
        assert after.status == InterviewStatus.COMPLETED
        assert after.version == before.version
        assert after.questions == before.questions
        assert after.answers == before.answers
        assert after.results == before.results
        assert provider.call_count() == calls


class TestResults:
    def test_results_before_completion(self, engine):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        with pytest.raises(InvalidStateError):
            engine.get_results(started.interview_id, OWNER)

    def test_results_match_completion_report(self, engine, clock):
        report = run_interview(engine, level=0, clock=clock)

        assert engine.get_results(report.interview_id, OWNER) == report


class TestAbandon:
    def test_abandon_in_progress(self, engine):
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        interview = engine.abandon_interview(started.interview_id, OWNER)

        assert interview.status == InterviewStatus.ABANDONED

    def test_completed_interview_cannot_be_abandoned(self, engine, clock):
        report = run_interview(engine, level=0, clock=clock)

        with pytest.raises(InvalidStateError):
            engine.abandon_interview(report.interview_id, OWNER)


class TestHistory:
    def test_filters(self, engine, provider, clock):
        provider.scores = [9]
        passed = run_interview(engine, level=0, clock=clock)
        provider.scores = [4]
        failed = run_interview(engine, level=0, clock=clock)
        open_one = engine.start_interview(OWNER, Role.HR, 1)
        dropped = engine.start_interview(OWNER, Role.HR, 1)
        engine.abandon_interview(dropped.interview_id, OWNER)
        engine.start_interview(INTRUDER, Role.HR, 1)

        def ids(status):
            return {item.interview_id for item in engine.get_history(OWNER, status).items}

        assert ids("completed") == {passed.interview_id, failed.interview_id}
        assert ids("passed") == {passed.interview_id}
        assert ids("in-progress") == {open_one.interview_id}
        assert ids("abandoned") == {dropped.interview_id}
        assert len(ids("all")) == 4

    def test_newest_completion_first_and_paged(self, engine, clock):
        completed = []
        for _ in range(5):
            completed.append(run_interview(engine, level=0, clock=clock).interview_id)
            clock.advance(hours=1)

        first = engine.get_history(OWNER, "completed", page=1, limit=2)
        last = engine.get_history(OWNER, "completed", page=3, limit=2)

        assert first.total == 5
        assert first.pages == 3
        assert [i.interview_id for i in first.items] == completed[::-1][:2]
        assert [i.interview_id for i in last.items] == [completed[0]]

    def test_empty_history(self, engine):
        page = engine.get_history(OWNER)

        assert page.items == []
        assert page.total == 0
        assert page.pages == 0

    @pytest.mark.parametrize(
        "kwargs", [{"status_filter": "done"}, {"page": 0}, {"limit": 0}, {"limit": 101}]
    )
    def test_rejects_bad_parameters(self, engine, kwargs):
        with pytest.raises(InvalidArgumentError):
            engine.get_history(OWNER, **kwargs)


class FlakyStorage:
    """Wraps a store and makes the first N versioned writes report a conflict."""

    def __init__(self, inner, conflicts):
        self._inner = inner
        self.conflicts = conflicts
        self.writes = 0

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def append_answer(self, interview_id, answer, expected_version):
        self.writes += 1
        if self.conflicts:
            self.conflicts -= 1
            raise ConcurrencyConflictError(interview_id, expected_version)
        return self._inner.append_answer(interview_id, answer, expected_version)


class TestConflictRetries:
    def test_conflict_is_retried(self, storage, gateway, clock):
        flaky = FlakyStorage(storage, conflicts=2)
        engine = InterviewSessionEngine(flaky, gateway, settings=EngineSettings(max_conflict_retries=3), clock=clock)
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        submitted = engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 5)

        assert submitted.answered_count == 1
        assert flaky.writes == 3

    def test_conflict_budget_exhausted(self, storage, gateway, clock):
        flaky = FlakyStorage(storage, conflicts=10)
        engine = InterviewSessionEngine(flaky, gateway, settings=EngineSettings(max_conflict_retries=1), clock=clock)
        started = engine.start_interview(OWNER, Role.BACKEND, 1)

        with pytest.raises(ConflictFailure) as exc_info:
            engine.submit_answer(started.interview_id, OWNER, started.question.id, SUBSTANTIVE_ANSWER, 5)

        assert exc_info.value.attempts == 2
        assert storage.load_interview(started.interview_id).answers == []


class TestInterviewLocks:
    def test_locks_are_released_after_each_cycle(self, engine):
        for _ in range(20):
            started = engine.start_interview(OWNER, Role.BACKEND, 1)
            engine.get_next_question(started.interview_id, OWNER)

        assert len(engine._interview_locks) == 0

    def test_unknown_ids_leave_no_lock_behind(self, engine):
        for i in range(20):
            with pytest.raises(InterviewNotFoundError):
                engine.get_next_question(f"missing-{i}", OWNER)

        gc.collect()
        assert len(engine._interview_locks) == 0

    def test_held_lock_is_shared(self, engine):
        lock = engine._get_interview_lock("interview-1")

        assert engine._get_interview_lock("interview-1") is lock
        assert engine._get_interview_lock("interview-2") is not lock
