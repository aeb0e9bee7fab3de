"""
Pytest configuration for the gateway console.

Provides fixtures for:
- A controllable clock and seeded random generators
- Ingest request and dispatch rule factories
- An isolated FastAPI app and test client per test
"""

from __future__ import annotations

import itertools
import random

import pytest
from fastapi.testclient import TestClient

from gateway.config import Settings
from gateway.main import create_app
from gateway.models import DispatchRule, IngestRequest

NOW = 1_700_000_000_000  # 2023-11-14 22:13:20 UTC
HOUR_MS = 60 * 60 * 1000


class FixedClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def make_request():
    counter = itertools.count(1)

    def _make(url: str = "https://api.example.com/v1/users/1", timestamp: int = NOW, **fields) -> IngestRequest:
        return IngestRequest(
            id=fields.pop("id", f"req-{next(counter)}"),
            method=fields.pop("method", "POST"),
            url=url,
            timestamp=timestamp,
            **fields,
        )

    return _make


@pytest.fixture
def make_rule():
    counter = itertools.count(1)

    def _make(pattern: str, is_active: bool = True, **fields) -> DispatchRule:
        index = next(counter)
        return DispatchRule(
            id=fields.pop("id", f"rule-{index}"),
            name=fields.pop("name", f"Rule {index}"),
            pattern=pattern,
            target_url=fields.pop("target_url", "https://downstream.example.com/hook"),
            is_active=is_active,
            created_at=NOW,
            updated_at=NOW,
            **fields,
        )

    return _make


@pytest.fixture
def test_settings() -> Settings:
    return Settings(seed_ingest_requests=0, random_seed=7, log_level="DEBUG")


@pytest.fixture
def client(test_settings: Settings, clock: FixedClock) -> TestClient:
    app = create_app(test_settings, rng=random.Random(7), clock=clock)
    return TestClient(app)
