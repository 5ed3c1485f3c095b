from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_CONTENT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from interview_coach.core.errors import ErrorKind, InterviewError
from interview_coach.core.logging import log_event
from interview_coach.core.storage_interface import StorageError

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_ARGUMENT: HTTP_400_BAD_REQUEST,
    ErrorKind.FORBIDDEN: HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: HTTP_422_UNPROCESSABLE_CONTENT,
    ErrorKind.CONFLICT: HTTP_409_CONFLICT,
    ErrorKind.GENERATION_FAILURE: HTTP_502_BAD_GATEWAY,
    ErrorKind.EVALUATION_FAILURE: HTTP_502_BAD_GATEWAY,
    ErrorKind.SYNTHESIS_FAILURE: HTTP_502_BAD_GATEWAY,
}


class AuthenticationError(Exception):
    """Raised when a request carries no usable bearer token."""

    pass


def error_body(error: str, message: str, details: dict | str | None = None) -> dict:
    return {"error": error, "message": message, "details": details}


async def interview_error_handler(request: Request, exc: InterviewError) -> JSONResponse:
    status_code = ERROR_STATUS[exc.kind]
    details = {"attempts": exc.attempts} if hasattr(exc, "attempts") else None
    log_event(
        "api.interview_error",
        component="api",
        method=request.method,
        path=request.url.path,
        error_kind=exc.kind.value,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=error_body(exc.kind.value, exc.message, details))


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("storage_error", "Storage operation failed"),
    )
