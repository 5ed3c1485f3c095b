from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_422_UNPROCESSABLE_CONTENT

from interview_coach.api.auth import get_jwt_service
from interview_coach.api.dependencies import get_settings
from interview_coach.api.exceptions import error_body, interview_error_handler, storage_error_handler
from interview_coach.api.middleware import AuthenticationMiddleware, ExceptionHandlingMiddleware
from interview_coach.api.routes import interviews, users
from interview_coach.core.errors import InterviewError
from interview_coach.core.storage_interface import StorageError

API_VERSION = "0.1.0"

app = FastAPI(
    title="Interview Coach API",
    description="HTTP API for AI-assisted mock interviews",
    version=API_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    max_age=86400,
)

# Authentication runs inside exception handling
app.add_middleware(AuthenticationMiddleware, jwt_service_factory=get_jwt_service)
app.add_middleware(ExceptionHandlingMiddleware)

app.include_router(interviews.router, prefix="/api/v1", tags=["interviews"])
app.include_router(users.router, prefix="/api/v1", tags=["users"])

app.add_exception_handler(InterviewError, interview_error_handler)
app.add_exception_handler(StorageError, storage_error_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_body("validation_error", "Request validation failed", str(exc.errors())),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body("http_error", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.get("/")
async def root():
    return {"message": "Interview Coach API", "version": API_VERSION}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
