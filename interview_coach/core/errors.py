"""Typed outcomes of interview operations.

Every error carries a stable `kind` that the API layer maps onto a transport
status. None of these are retried by the engine except where noted on the
class.
"""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    GENERATION_FAILURE = "generation_failure"
    EVALUATION_FAILURE = "evaluation_failure"
    SYNTHESIS_FAILURE = "synthesis_failure"
    CONFLICT = "conflict"


class InterviewError(Exception):
    """Base class for all interview operation errors."""

    kind: ErrorKind

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidArgumentError(InterviewError):
    """Raised for malformed input: unknown role, out-of-range level, missing field."""

    kind = ErrorKind.INVALID_ARGUMENT


class ForbiddenError(InterviewError):
    """Raised when the caller does not own the interview."""

    kind = ErrorKind.FORBIDDEN

    def __init__(self, interview_id: str):
        self.interview_id = interview_id
        super().__init__(f"Unauthorized access to interview {interview_id}")


class InterviewNotFoundError(InterviewError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, interview_id: str):
        self.interview_id = interview_id
        super().__init__(f"Interview {interview_id} not found")


class InvalidStateError(InterviewError):
    """Raised when an operation does not fit the interview's lifecycle state."""

    kind = ErrorKind.INVALID_STATE


class ExternalServiceFailure(InterviewError):
    """Raised once the generative service retry budget is exhausted.

    No interview state was changed when this is raised.
    """

    def __init__(self, message: str, attempts: int):
        self.attempts = attempts
        super().__init__(message)


class GenerationFailure(ExternalServiceFailure):
    kind = ErrorKind.GENERATION_FAILURE


class EvaluationFailure(ExternalServiceFailure):
    kind = ErrorKind.EVALUATION_FAILURE


class SynthesisFailure(ExternalServiceFailure):
    kind = ErrorKind.SYNTHESIS_FAILURE


class ConflictFailure(InterviewError):
    """Raised when concurrent writes kept colliding after the internal retries."""

    kind = ErrorKind.CONFLICT

    def __init__(self, interview_id: str, attempts: int):
        self.interview_id = interview_id
        self.attempts = attempts
        super().__init__(f"Interview {interview_id} was modified concurrently ({attempts} attempts)")
