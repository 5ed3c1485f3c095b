from datetime import datetime

from pydantic import BaseModel, Field

from interview_coach.core.constants import MAX_ANSWER_LENGTH
from interview_coach.core.models import (
    Answer,
    Interview,
    InterviewResults,
    InterviewStatus,
    Question,
    Role,
)


class StartInterviewRequest(BaseModel):
    # Role and level are checked by the engine so bad values map to 400, not 422
    role: str = Field(..., description="One of: frontend, backend, hr, aiml, fullstack, devops")
    experience_level: int = Field(..., description="0 (Fresher) to 4 (Expert)")


class SubmitAnswerRequest(BaseModel):
    question_id: str = Field(..., min_length=1)
    answer: str = Field(..., max_length=MAX_ANSWER_LENGTH)
    time_spent_seconds: int = Field(default=0, ge=0)


class InterviewDetailResponse(BaseModel):
    id: str
    role: Role
    experience_level: int
    status: InterviewStatus
    total_questions: int
    seconds_per_question: int
    estimated_duration_minutes: int
    questions: list[Question]
    answers: list[Answer]
    results: InterviewResults | None
    started_at: datetime
    completed_at: datetime | None
    duration_seconds: int

    @classmethod
    def from_interview(cls, interview: Interview) -> "InterviewDetailResponse":
        return cls.model_validate(interview.model_dump())
