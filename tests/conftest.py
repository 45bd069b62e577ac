"""
Pytest configuration and fixtures.

Every fixture here is built on the in-memory stores, so the suite never
touches Snowflake or R2.
"""

import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing app modules
os.environ["SNOWFLAKE_MOCK_MODE"] = "true"
os.environ["R2_MOCK_MODE"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"

from cliphub.config.settings import Settings  # noqa: E402
from cliphub.context import AppContext, wire_context  # noqa: E402
from cliphub.core.clips.lifecycle import ClipLifecycleController  # noqa: E402
from cliphub.infrastructure.snowflake.repositories.clips import MockClipRepository  # noqa: E402
from cliphub.infrastructure.snowflake.repositories.users import MockUserRepository  # noqa: E402
from cliphub.infrastructure.storage.client import MockStorageClient  # noqa: E402
from cliphub.infrastructure.storage.grants import AccessGrantIssuer  # noqa: E402

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class SequentialIds:
    """Predictable clip ids: clip-1, clip-2, ..."""

    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"clip-{self.count}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def clip_repo() -> MockClipRepository:
    return MockClipRepository()


@pytest.fixture
def user_repo() -> MockUserRepository:
    return MockUserRepository()


@pytest.fixture
def storage(clock) -> MockStorageClient:
    return MockStorageClient(bucket_name="test-media", signing_key=b"test-signing-key", clock=clock)


@pytest.fixture
def issuer(storage, clock) -> AccessGrantIssuer:
    return AccessGrantIssuer(storage, clock_skew_seconds=60, clock=clock)


@pytest.fixture
def controller(clip_repo, storage, issuer, clock) -> ClipLifecycleController:
    return ClipLifecycleController(
        clip_repo,
        storage,
        issuer,
        upload_ttl_minutes=15,
        read_ttl_minutes=60,
        clock=clock,
        id_factory=SequentialIds(),
    )


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        snowflake_mock_mode=True,
        r2_mock_mode=True,
        log_level="WARNING",
    )


@pytest.fixture
def app_context(test_settings) -> AppContext:
    """A context wired around fresh in-memory stores, using the real clock."""
    return wire_context(
        test_settings,
        MockClipRepository(),
        MockUserRepository(),
        MockStorageClient(bucket_name="test-media", signing_key=b"test-signing-key"),
    )


@pytest.fixture
def test_client(app_context) -> Generator[TestClient, None, None]:
    """Create a test client for an app running on app_context."""
    from cliphub.main import create_app

    with TestClient(create_app(context=app_context)) as client:
        yield client
