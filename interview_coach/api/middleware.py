"""Middleware for exception handling and authentication."""

import logging
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_500_INTERNAL_SERVER_ERROR

from interview_coach.api.auth import JWTService
from interview_coach.api.exceptions import ERROR_STATUS, AuthenticationError, error_body
from interview_coach.core.errors import InterviewError
from interview_coach.core.logging import audit_log, set_request_id, short_uuid
from interview_coach.core.storage_interface import StorageError

logger = logging.getLogger(__name__)


class ExceptionHandlingMiddleware(BaseHTTPMiddleware):
    """Turns anything the route-level handlers did not catch into a JSON error body."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        set_request_id(request.headers.get("X-Request-ID") or short_uuid())
        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc)
        finally:
            set_request_id(None)

    def _handle_exception(self, request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Exception in {request.method} {request.url.path}: {exc}")

        if isinstance(exc, InterviewError):
            return JSONResponse(
                status_code=ERROR_STATUS[exc.kind],
                content=error_body(exc.kind.value, exc.message),
            )
        if isinstance(exc, StorageError):
            return JSONResponse(
                status_code=HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_body("storage_error", "Storage operation failed"),
            )
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("internal_error", "An unexpected error occurred"),
        )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Middleware for JWT bearer authentication.

    The JWT service is resolved per request so configuration can change
    between app construction and the first call (tests rely on this).
    """

    PUBLIC_PATHS = {"/", "/health", "/openapi.json"}
    PUBLIC_PREFIXES = ("/docs", "/redoc")

    def __init__(self, app, jwt_service_factory: Callable[[], JWTService]):
        super().__init__(app)
        self.jwt_service_factory = jwt_service_factory

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._is_public_route(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        try:
            token = self._extract_token(request)
            user_info = self.jwt_service_factory().verify_token(token)
        except AuthenticationError as exc:
            client_ip = request.client.host if request.client else None
            audit_log("auth.rejected", None, client_ip=client_ip, path=request.url.path, reason=str(exc))
            return self._create_auth_error_response(str(exc))

        request.state.user_id = user_info["user_id"]
        request.state.user_email = user_info["email"]
        return await call_next(request)

    def _is_public_route(self, path: str) -> bool:
        return path in self.PUBLIC_PATHS or path.startswith(self.PUBLIC_PREFIXES)

    def _extract_token(self, request: Request) -> str:
        authorization = request.headers.get("Authorization")
        if not authorization:
            raise AuthenticationError("Missing Authorization header")

        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthenticationError("Invalid Authorization header format")
        return token.strip()

    def _create_auth_error_response(self, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=HTTP_401_UNAUTHORIZED,
            content=error_body("authentication_error", message),
            headers={"WWW-Authenticate": "Bearer"},
        )
