"""Shared test fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from interview_coach.api.auth import JWTService, get_jwt_service
from interview_coach.api.dependencies import get_aggregation_engine, get_interview_engine
from interview_coach.api.main import app
from tests.api.helpers import TEST_SECRET

USER_ID = "user-alice"
OTHER_USER_ID = "user-bob"


@pytest.fixture
def jwt_service(monkeypatch):
    monkeypatch.setenv("INTERVIEW_COACH_JWT_SECRET", TEST_SECRET)
    get_jwt_service.cache_clear()
    yield JWTService(TEST_SECRET)
    get_jwt_service.cache_clear()


@pytest.fixture
def client(jwt_service, engine, aggregation):
    """Test client backed by in-memory storage and the scripted provider."""
    app.dependency_overrides[get_interview_engine] = lambda: engine
    app.dependency_overrides[get_aggregation_engine] = lambda: aggregation
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(jwt_service):
    return {"Authorization": f"Bearer {jwt_service.create_access_token(USER_ID, 'alice@example.com')}"}


@pytest.fixture
def other_auth_headers(jwt_service):
    return {"Authorization": f"Bearer {jwt_service.create_access_token(OTHER_USER_ID)}"}


@pytest.fixture
def started_interview(client, auth_headers):
    response = client.post("/api/v1/interviews", json={"role": "backend", "experience_level": 0}, headers=auth_headers)
    assert response.status_code == 201
    return response.json()
