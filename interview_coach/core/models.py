from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field

from interview_coach.core.constants import DEFAULT_QUESTION_CATEGORY, MAX_SCORE, MIN_SCORE, PASS_SCORE_THRESHOLD


class Role(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    HR = "hr"
    AIML = "aiml"
    FULLSTACK = "fullstack"
    DEVOPS = "devops"


class InterviewStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Question(BaseModel):
    id: str
    text: str
    category: str = DEFAULT_QUESTION_CATEGORY
    difficulty: Difficulty = Difficulty.MEDIUM
    expected_duration_seconds: int = 120


class Evaluation(BaseModel):
    score: float = Field(ge=MIN_SCORE, le=MAX_SCORE)
    feedback: str
    strengths: list[str] = []
    improvements: list[str] = []


class Answer(BaseModel):
    question_id: str
    question_text: str
    text: str
    time_spent_seconds: int = Field(ge=0)
    evaluation: Evaluation
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class InterviewResults(BaseModel):
    overall_score_percent: int = Field(ge=0, le=100)
    average_score: float = Field(ge=MIN_SCORE, le=MAX_SCORE)
    strengths: list[str] = []
    weak_areas: list[str] = []
    improvements: list[str] = []
    summary: str


class Interview(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    owner_id: str
    role: Role
    experience_level: int = Field(ge=0, le=4)
    status: InterviewStatus = InterviewStatus.IN_PROGRESS
    total_questions: int = Field(gt=0)
    seconds_per_question: int
    estimated_duration_minutes: int
    questions: list[Question] = []
    answers: list[Answer] = []
    results: InterviewResults | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    duration_seconds: int = 0
    version: int = 1

    def get_question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)

    def get_answer(self, question_id: str) -> Answer | None:
        return next((a for a in self.answers if a.question_id == question_id), None)

    def is_answered(self, question_id: str) -> bool:
        return self.get_answer(question_id) is not None

    def unanswered_questions(self) -> list[Question]:
        answered = {a.question_id for a in self.answers}
        return [q for q in self.questions if q.id not in answered]

    def get_qa_history(self) -> list[tuple[Question, Answer | None]]:
        """Get Q&A pairs in question order."""
        answer_map = {a.question_id: a for a in self.answers}
        return [(q, answer_map.get(q.id)) for q in self.questions]

    @property
    def score(self) -> int:
        return self.results.overall_score_percent if self.results else 0

    @property
    def passed(self) -> bool:
        return self.status == InterviewStatus.COMPLETED and self.score >= PASS_SCORE_THRESHOLD


class InterviewSummary(BaseModel):
    """Row of the history listing."""

    interview_id: str
    role: Role
    experience_level: int
    status: InterviewStatus
    score: int
    started_at: datetime
    completed_at: datetime | None
    duration_seconds: int
    questions_answered: int

    @classmethod
    def from_interview(cls, interview: Interview) -> "InterviewSummary":
        return cls(
            interview_id=interview.id,
            role=interview.role,
            experience_level=interview.experience_level,
            status=interview.status,
            score=interview.score,
            started_at=interview.started_at,
            completed_at=interview.completed_at,
            duration_seconds=interview.duration_seconds,
            questions_answered=len(interview.answers),
        )


class UserProfile(BaseModel):
    """Denormalized per-user counters, updated once per completed interview."""

    owner_id: str
    total_interviews: int = 0
    total_score: int = 0
    total_practice_time: int = 0
    updated_at: datetime | None = None

    @computed_field
    @property
    def average_score(self) -> float:
        if not self.total_interviews:
            return 0.0
        return round(self.total_score / self.total_interviews, 2)


# Engine results. Callers branch on `kind` instead of inspecting flags.


class StartedInterview(BaseModel):
    kind: Literal["started"] = "started"
    interview_id: str
    question: Question
    question_number: int = 1
    total_questions: int
    seconds_per_question: int
    estimated_minutes: int


class NextQuestion(BaseModel):
    kind: Literal["question"] = "question"
    question: Question
    question_number: int
    total_questions: int
    is_complete: Literal[False] = False


class InterviewExhausted(BaseModel):
    kind: Literal["exhausted"] = "exhausted"
    total_questions: int
    is_complete: Literal[True] = True


NextQuestionOutcome = Annotated[NextQuestion | InterviewExhausted, Field(discriminator="kind")]


class SubmittedAnswer(BaseModel):
    kind: Literal["answer"] = "answer"
    question_id: str
    evaluation: Evaluation
    answered_count: int
    total_questions: int
    duplicate: bool = False


class QuestionBreakdown(BaseModel):
    question_id: str
    question: str
    category: str
    difficulty: Difficulty
    answer: str
    score: float
    feedback: str
    strengths: list[str] = []
    improvements: list[str] = []
    time_spent_seconds: int


class ResultsReport(BaseModel):
    kind: Literal["results"] = "results"
    interview_id: str
    role: Role
    experience_level: int
    overall_score_percent: int
    average_score: float
    strengths: list[str]
    weak_areas: list[str]
    improvements: list[str]
    summary: str
    per_question_breakdown: list[QuestionBreakdown]
    duration_seconds: int
    completed_at: datetime | None
    passed: bool

    @classmethod
    def from_interview(cls, interview: Interview) -> "ResultsReport":
        if interview.results is None:
            raise ValueError(f"Interview {interview.id} has no results")
        questions = {q.id: q for q in interview.questions}
        breakdown = [
            QuestionBreakdown(
                question_id=a.question_id,
                question=a.question_text,
                category=questions[a.question_id].category,
                difficulty=questions[a.question_id].difficulty,
                answer=a.text,
                score=a.evaluation.score,
                feedback=a.evaluation.feedback,
                strengths=a.evaluation.strengths,
                improvements=a.evaluation.improvements,
                time_spent_seconds=a.time_spent_seconds,
            )
            for a in interview.answers
        ]
        results = interview.results
        return cls(
            interview_id=interview.id,
            role=interview.role,
            experience_level=interview.experience_level,
            overall_score_percent=results.overall_score_percent,
            average_score=results.average_score,
            strengths=results.strengths,
            weak_areas=results.weak_areas,
            improvements=results.improvements,
            summary=results.summary,
            per_question_breakdown=breakdown,
            duration_seconds=interview.duration_seconds,
            completed_at=interview.completed_at,
            passed=interview.passed,
        )


class HistoryPage(BaseModel):
    items: list[InterviewSummary]
    total: int
    page: int
    limit: int
    pages: int
