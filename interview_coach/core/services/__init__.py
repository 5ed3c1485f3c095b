"""Core services for the interview coach."""

from .evaluator_gateway import EvaluatorGateway
from .interview_session_engine import InterviewSessionEngine

__all__ = [
    "EvaluatorGateway",
    "InterviewSessionEngine",
]
