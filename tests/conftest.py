import pytest

from interview_coach.core.aggregation import AggregationEngine
from interview_coach.core.config import EngineSettings, GatewaySettings
from interview_coach.core.memory_storage import MemoryStorage
from interview_coach.core.services import EvaluatorGateway, InterviewSessionEngine
from tests.fakes import FakeClock, ScriptedProvider


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def sleeps():
    """Delays requested by the retry loop, recorded instead of slept."""
    return []


@pytest.fixture
def gateway(provider, sleeps):
    return EvaluatorGateway(
        provider,
        GatewaySettings(max_retries=2, base_delay=0.5, max_delay=4.0),
        sleep=sleeps.append,
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(storage, gateway, clock):
    return InterviewSessionEngine(storage, gateway, settings=EngineSettings(max_conflict_retries=3), clock=clock)


@pytest.fixture
def aggregation(storage, clock):
    return AggregationEngine(storage, clock=clock)
