from typing import Annotated

from fastapi import APIRouter, Depends, Query

from interview_coach.api.dependencies import get_aggregation_engine, get_current_user_id
from interview_coach.core.aggregation import AggregationEngine, Dashboard, TimeWindow
from interview_coach.core.models import UserProfile

router = APIRouter()


@router.get("/users/me/profile", response_model=UserProfile)
def get_profile(
    aggregation: Annotated[AggregationEngine, Depends(get_aggregation_engine)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> UserProfile:
    """Denormalized counters kept up to date on every completed interview."""
    return aggregation.profile(user_id)


@router.get("/users/me/stats", response_model=Dashboard)
def get_stats(
    aggregation: Annotated[AggregationEngine, Depends(get_aggregation_engine)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    window: Annotated[TimeWindow, Query()] = TimeWindow.ALL,
) -> Dashboard:
    return aggregation.dashboard(user_id, window=window)
