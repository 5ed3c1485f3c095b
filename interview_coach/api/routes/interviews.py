from typing import Annotated

from fastapi import APIRouter, Depends, Query
from starlette.status import HTTP_201_CREATED

from interview_coach.api.dependencies import get_current_user_id, get_interview_engine
from interview_coach.api.schemas import InterviewDetailResponse, StartInterviewRequest, SubmitAnswerRequest
from interview_coach.core.constants import DEFAULT_HISTORY_LIMIT
from interview_coach.core.models import (
    HistoryPage,
    NextQuestionOutcome,
    ResultsReport,
    StartedInterview,
    SubmittedAnswer,
)
from interview_coach.core.services import InterviewSessionEngine

router = APIRouter()

Engine = Annotated[InterviewSessionEngine, Depends(get_interview_engine)]
CurrentUser = Annotated[str, Depends(get_current_user_id)]


@router.post("/interviews", response_model=StartedInterview, status_code=HTTP_201_CREATED)
def start_interview(request: StartInterviewRequest, engine: Engine, user_id: CurrentUser) -> StartedInterview:
    """Start a new interview and return its first question."""
    return engine.start_interview(user_id, request.role, request.experience_level)


@router.get("/interviews/history", response_model=HistoryPage)
def get_history(
    engine: Engine,
    user_id: CurrentUser,
    status: Annotated[str, Query()] = "completed",
    page: Annotated[int, Query()] = 1,
    limit: Annotated[int, Query()] = DEFAULT_HISTORY_LIMIT,
) -> HistoryPage:
    """Page through the caller's interviews, most recently completed first."""
    return engine.get_history(user_id, status_filter=status, page=page, limit=limit)


@router.get("/interviews/{interview_id}", response_model=InterviewDetailResponse)
def get_interview(interview_id: str, engine: Engine, user_id: CurrentUser) -> InterviewDetailResponse:
    return InterviewDetailResponse.from_interview(engine.get_interview(interview_id, user_id))


@router.get("/interviews/{interview_id}/next-question", response_model=NextQuestionOutcome)
def get_next_question(
    interview_id: str,
    engine: Engine,
    user_id: CurrentUser,
    question_number: Annotated[int | None, Query()] = None,
):
    """Return the next question, or `{"kind": "exhausted", "is_complete": true}` once all are generated.

    Passing `question_number` makes a retried request return the question
    already generated at that position instead of a new one.
    """
    return engine.get_next_question(interview_id, user_id, question_number=question_number)


@router.post("/interviews/{interview_id}/answers", response_model=SubmittedAnswer)
def submit_answer(
    interview_id: str, request: SubmitAnswerRequest, engine: Engine, user_id: CurrentUser
) -> SubmittedAnswer:
    return engine.submit_answer(
        interview_id,
        user_id,
        request.question_id,
        request.answer,
        time_spent_seconds=request.time_spent_seconds,
    )


@router.post("/interviews/{interview_id}/complete", response_model=ResultsReport)
def complete_interview(interview_id: str, engine: Engine, user_id: CurrentUser) -> ResultsReport:
    """Finalize the interview. Calling it again returns the stored results."""
    return engine.complete_interview(interview_id, user_id)


@router.get("/interviews/{interview_id}/results", response_model=ResultsReport)
def get_results(interview_id: str, engine: Engine, user_id: CurrentUser) -> ResultsReport:
    return engine.get_results(interview_id, user_id)


@router.post("/interviews/{interview_id}/abandon", response_model=InterviewDetailResponse)
def abandon_interview(interview_id: str, engine: Engine, user_id: CurrentUser) -> InterviewDetailResponse:
    return InterviewDetailResponse.from_interview(engine.abandon_interview(interview_id, user_id))
