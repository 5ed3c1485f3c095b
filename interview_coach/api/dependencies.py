from functools import lru_cache

from fastapi import HTTPException, Request, status

from interview_coach.core.aggregation import AggregationEngine
from interview_coach.core.config import Settings
from interview_coach.core.logging import get_logger
from interview_coach.core.services import EvaluatorGateway, InterviewSessionEngine
from interview_coach.core.storage import DatabaseManager
from interview_coach.core.storage_interface import StorageInterface
from interview_coach.providers.base import Provider


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_storage() -> StorageInterface:
    """Get storage instance (cached)."""
    return DatabaseManager(get_settings().database_url)


@lru_cache
def get_evaluator_gateway() -> EvaluatorGateway:
    settings = get_settings()
    provider = Provider.from_id(settings.model_id, timeout=settings.gateway.request_timeout_seconds)
    return EvaluatorGateway(provider, settings.gateway)


@lru_cache
def get_interview_engine() -> InterviewSessionEngine:
    """One engine per process so its per-interview locks are shared by all requests."""
    return InterviewSessionEngine(
        get_storage(),
        get_evaluator_gateway(),
        settings=get_settings().engine,
        logger=get_logger(),
    )


@lru_cache
def get_aggregation_engine() -> AggregationEngine:
    return AggregationEngine(get_storage())


def get_current_user_id(request: Request) -> str:
    """Get current user ID from request state."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id
