import pytest
from fastapi.testclient import TestClient

from phoneqr.main import create_app
from phoneqr.services.sessions import InMemorySessionStore
from phoneqr.services.verification_service import VerificationService

TTL_SECONDS = 1800


class FakeClock:
    """Stands in for time.time so expiry can be tested without sleeping."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemorySessionStore(ttl_seconds=TTL_SECONDS, clock=clock)


@pytest.fixture
def service(store):
    return VerificationService(store)


@pytest.fixture
def client(store):
    return TestClient(create_app(store=store))
