"""Boundary between the interview engine and the generative model.

Every call goes through the same retry budget. Provider errors and replies
that do not match the expected JSON shape are retried; once the budget is
spent the caller gets a GenerationFailure, EvaluationFailure or
SynthesisFailure and nothing has been written anywhere.
"""

import itertools
import logging
import secrets
import time
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import TypeVar

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from interview_coach.core.config import GatewaySettings
from interview_coach.core.constants import DEFAULT_QUESTION_CATEGORY, MAX_SCORE, MIN_ANSWER_LENGTH, MIN_SCORE
from interview_coach.core.errors import (
    EvaluationFailure,
    ExternalServiceFailure,
    GenerationFailure,
    InvalidArgumentError,
    SynthesisFailure,
)
from interview_coach.core.interview_config import resolve_interview_config
from interview_coach.core.logging import log_event, mask_text
from interview_coach.core.models import Answer, Difficulty, Evaluation, InterviewResults, Question, Role
from interview_coach.core.prompts import (
    SYSTEM_INSTRUCTIONS,
    evaluate_answer_prompt,
    final_feedback_prompt,
    generate_question_prompt,
    question_system_instructions,
)
from interview_coach.providers.base import Provider
from interview_coach.providers.exceptions import ProviderError, retry_with_exponential_backoff

T = TypeVar("T")

# FinalFeedback is exactly what gets stored as the interview's results
FinalFeedback = InterviewResults

SHORT_ANSWER_FEEDBACK = (
    "No substantial answer provided. Please provide a detailed response to demonstrate your understanding."
)
SHORT_ANSWER_IMPROVEMENTS = ["Provide a complete answer", "Explain your reasoning", "Give specific examples"]
DEFAULT_SUMMARY = "Interview completed successfully."

_question_counter = itertools.count(1)


def new_question_id() -> str:
    return f"q_{time.time_ns()}_{next(_question_counter)}_{secrets.token_hex(4)}"


def difficulty_for_position(position: int, total_questions: int) -> Difficulty:
    """Positions 1-2 are easy, the last two are hard, the rest medium."""
    if position <= 2:
        return Difficulty.EASY
    if position > total_questions - 2:
        return Difficulty.HARD
    return Difficulty.MEDIUM


def round_half_up(value: Decimal | float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def overall_score_percent(scores: list[float]) -> int:
    """round_half_up(mean(scores) / 10 * 100), computed in decimal to avoid 72.4999... artifacts."""
    total = sum((Decimal(str(s)) for s in scores), Decimal(0))
    return round_half_up(total * 10 / len(scores))


class _QuestionPayload(BaseModel):
    question: str
    category: str | None = None

    @field_validator("question")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question text is empty")
        return value.strip()


class _EvaluationPayload(BaseModel):
    score: float = Field(allow_inf_nan=False)
    feedback: str = ""
    strengths: list[str] = []
    improvements: list[str] = []

    @field_validator("score")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return min(MAX_SCORE, max(MIN_SCORE, value))

    @field_validator("feedback", mode="before")
    @classmethod
    def _null_feedback(cls, value):
        return "" if value is None else value

    @field_validator("strengths", "improvements", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value


class _FeedbackPayload(BaseModel):
    strengths: list[str] = []
    weak_areas: list[str] = Field(default=[], validation_alias=AliasChoices("weakAreas", "weak_areas"))
    improvements: list[str] = []
    summary: str | None = None

    @field_validator("strengths", "weak_areas", "improvements", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value


class EvaluatorGateway:
    def __init__(
        self,
        provider: Provider,
        settings: GatewaySettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.settings = settings or GatewaySettings()
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self.settings.max_retries + 1

    def _call(
        self,
        operation: str,
        request: Callable[[], T],
        failure: type[ExternalServiceFailure],
    ) -> T:
        try:
            return retry_with_exponential_backoff(
                request,
                max_retries=self.settings.max_retries,
                base_delay=self.settings.base_delay,
                max_delay=self.settings.max_delay,
                retry_on=(ProviderError, ValidationError),
                operation=operation,
                sleep=self._sleep,
            )
        except (ProviderError, ValidationError) as e:
            log_event(
                "llm.failed",
                component="gateway",
                operation=operation,
                attempts=self.max_attempts,
                error_type=type(e).__name__,
                error_msg=str(e),
                level=logging.ERROR,
            )
            raise failure(f"{operation} failed after {self.max_attempts} attempts: {e}", self.max_attempts) from e

    def generate_question(self, role: Role, experience_level: int, previous_question_texts: list[str]) -> Question:
        config = resolve_interview_config(experience_level)
        position = len(previous_question_texts) + 1
        difficulty = difficulty_for_position(position, config.question_count)
        prompt = generate_question_prompt(
            role, experience_level, config, position, difficulty, previous_question_texts
        )
        system = question_system_instructions(role)

        def request() -> _QuestionPayload:
            data = self.provider.complete_json(
                system, prompt, temperature=0.8, max_tokens=500, operation="generate_question"
            )
            return _QuestionPayload.model_validate(data)

        payload = self._call("generate_question", request, GenerationFailure)
        return Question(
            id=new_question_id(),
            text=payload.question,
            category=(payload.category or "").strip() or DEFAULT_QUESTION_CATEGORY,
            difficulty=difficulty,
            expected_duration_seconds=config.seconds_per_question,
        )

    def evaluate_answer(self, question_text: str, answer_text: str, role: Role, experience_level: int) -> Evaluation:
        if len(answer_text.strip()) < MIN_ANSWER_LENGTH:
            log_event(
                "gateway.short_answer",
                component="gateway",
                operation="evaluate_answer",
                answer_length=len(answer_text.strip()),
            )
            return Evaluation(
                score=0,
                feedback=SHORT_ANSWER_FEEDBACK,
                strengths=[],
                improvements=list(SHORT_ANSWER_IMPROVEMENTS),
            )

        prompt = evaluate_answer_prompt(question_text, answer_text, role, experience_level)

        def request() -> _EvaluationPayload:
            data = self.provider.complete_json(
                SYSTEM_INSTRUCTIONS["evaluation"], prompt, temperature=0.3, max_tokens=600, operation="evaluate_answer"
            )
            return _EvaluationPayload.model_validate(data)

        payload = self._call("evaluate_answer", request, EvaluationFailure)
        log_event(
            "gateway.answer_scored",
            component="gateway",
            operation="evaluate_answer",
            score=payload.score,
            answer_preview=mask_text(answer_text[:80]),
            level=logging.DEBUG,
        )
        return Evaluation(
            score=payload.score,
            feedback=payload.feedback.strip() or "No feedback provided.",
            strengths=payload.strengths,
            improvements=payload.improvements,
        )

    def synthesize_final_feedback(self, role: Role, experience_level: int, answers: list[Answer]) -> FinalFeedback:
        if not answers:
            raise InvalidArgumentError("Cannot synthesize feedback without answers")

        scores = [a.evaluation.score for a in answers]
        average = sum(scores) / len(scores)
        percent = overall_score_percent(scores)
        prompt = final_feedback_prompt(role, experience_level, answers, average, percent)

        def request() -> _FeedbackPayload:
            data = self.provider.complete_json(
                SYSTEM_INSTRUCTIONS["feedback"], prompt, temperature=0.5, max_tokens=1000, operation="final_feedback"
            )
            return _FeedbackPayload.model_validate(data)

        payload = self._call("final_feedback", request, SynthesisFailure)
        return FinalFeedback(
            overall_score_percent=percent,
            average_score=round(average, 2),
            strengths=payload.strengths,
            weak_areas=payload.weak_areas,
            improvements=payload.improvements,
            summary=(payload.summary or "").strip() or DEFAULT_SUMMARY,
        )
