"""Shared test fixtures for the bugdesk test suite.

Provides:
- kv_store: fresh in-memory key-value store per test
- clock: deterministic clock stepping one minute per call
- identity / store / aggregator: services wired to kv_store + clock
- client: FastAPI TestClient over an in-memory app
- make_ticket: Ticket factory for analytics snapshots
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from bugdesk.api.app import create_app
from bugdesk.config import Settings
from bugdesk.models import Ticket
from bugdesk.services import AnalyticsAggregator, EntityStore, IdentityContext
from bugdesk.storage import InMemoryKeyValueStore


START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class StepClock:
    """Returns start, start + step, start + 2*step, ... on successive calls."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def identity(kv_store, clock):
    return IdentityContext(kv_store, clock=clock)


@pytest.fixture
def store(kv_store, clock, identity):
    # identity first: the roster is seeded on construction
    return EntityStore(kv_store, clock=clock)


@pytest.fixture
def aggregator():
    return AnalyticsAggregator()


@pytest.fixture
def client():
    app = create_app(settings=Settings(), kv_store=InMemoryKeyValueStore())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_ticket():
    def factory(created_at: datetime = START, **fields) -> Ticket:
        fields.setdefault("title", "Crash on save")
        fields.setdefault("reporter_id", "1")
        fields.setdefault("updated_at", created_at)
        return Ticket(created_at=created_at, **fields)

    return factory
