from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

from jose import JWTError, jwt

from interview_coach.api.exceptions import AuthenticationError
from interview_coach.core.config import Settings

MIN_SECRET_LENGTH = 32


class JWTService:
    """Verifies bearer tokens; `sub` is the interview owner id."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", access_token_expire_minutes: int = 60):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes

    def create_access_token(self, user_id: str, email: str | None = None) -> str:
        now = datetime.now(UTC)
        to_encode: dict[str, Any] = {
            "sub": user_id,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
            "iat": now,
        }
        if email:
            to_encode["email"] = email
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            raise AuthenticationError("Invalid token") from None

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid token: missing user information")
        return {"user_id": user_id, "email": payload.get("email")}


def build_jwt_service(settings: Settings) -> JWTService:
    secret_key = settings.jwt_secret
    if not secret_key or len(secret_key) < MIN_SECRET_LENGTH:
        raise ValueError(f"INTERVIEW_COACH_JWT_SECRET must be set to at least {MIN_SECRET_LENGTH} characters")
    return JWTService(secret_key, algorithm=settings.jwt_algorithm)


@lru_cache
def get_jwt_service() -> JWTService:
    return build_jwt_service(Settings.from_env())
