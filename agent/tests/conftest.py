"""Shared test fixtures for the tracker test suite.

Provides mock database sessions and model factories so tests run without a
database.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.config import Settings
from shared.models.emergency_contact import EmergencyContact
from shared.models.location_sample import LocationSample


# ---------------------------------------------------------------------------
# Database mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db_session():
    """Mock async SQLAlchemy session.

    Supports the patterns used by the sample store:
        session.execute(stmt) -> result
        session.add(obj)
        session.commit()
        session.refresh(obj)
        session.get(User, id)  -> existing owner row by default
    """
    session = AsyncMock()
    session.add = MagicMock()
    default_result = MagicMock()
    default_result.scalar_one_or_none.return_value = None
    default_result.scalars.return_value.all.return_value = []
    default_result.rowcount = 1
    session.get = AsyncMock(return_value=MagicMock(name="owner"))
    session.execute = AsyncMock(return_value=default_result)
    return session


@pytest.fixture
def mock_session_factory(mock_db_session):
    """Mock async session factory compatible with ``async with factory() as session:``."""

    @asynccontextmanager
    async def _session_ctx():
        yield mock_db_session

    factory = MagicMock(side_effect=lambda: _session_ctx())
    return factory


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings():
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        resend_api_key="re_test",
        local_timezone="UTC",
        prediction_min_samples=3,
        prediction_history_limit=1000,
    )


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_user_id():
    """Return a stable UUID string for test user."""
    return str(uuid.uuid4())


@pytest.fixture
def make_location_sample():
    """Factory for LocationSample rows.

    Each call is stamped one minute after the previous one so a list built
    in call order is already chronological.
    """
    clock = {"t": datetime(2026, 10, 5, tzinfo=timezone.utc)}

    def _make(
        label: str | None = None,
        day: int = 1,
        hour: int = 8,
        latitude: float = 40.0,
        longitude: float = -74.0,
        user_id: uuid.UUID | None = None,
        source: str = "manual",
    ) -> LocationSample:
        clock["t"] += timedelta(minutes=1)
        return LocationSample(
            id=uuid.uuid4(),
            user_id=user_id or uuid.uuid4(),
            latitude=latitude,
            longitude=longitude,
            day=day,
            hour=hour,
            label=label,
            accuracy_m=None,
            source=source,
            created_at=clock["t"],
        )

    return _make


@pytest.fixture
def make_contact():
    """Factory for EmergencyContact rows."""

    def _make(
        name: str = "Alex",
        phone: str = "+15550100",
        email: str | None = "alex@example.com",
        relationship: str | None = None,
        user_id: uuid.UUID | None = None,
    ) -> EmergencyContact:
        return EmergencyContact(
            id=uuid.uuid4(),
            user_id=user_id or uuid.uuid4(),
            name=name,
            phone=phone,
            email=email,
            relationship=relationship,
            created_at=datetime.now(timezone.utc),
        )

    return _make
