"""Tests for the SQLAlchemy-backed sample store (session mocked)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from modules.tracker.errors import PersistenceWriteError
from modules.tracker.prediction import PredictionResult
from modules.tracker.store import SampleStore
from shared.models.prediction import Prediction
from shared.models.user import User


def _result_with(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


@pytest.fixture
def store(mock_session_factory):
    return SampleStore(mock_session_factory)


@pytest.fixture
def prediction_result():
    return PredictionResult(
        latitude=40.75,
        longitude=-73.98,
        confidence=0.95,
        label="office",
        based_on_data_points=2,
        tier="transition",
        total_data_points=4,
        labeled_data_points=4,
    )


@pytest.mark.asyncio
async def test_list_samples_returns_oldest_first(store, mock_db_session, make_location_sample):
    older = make_location_sample(label="home")
    newer = make_location_sample(label="office")
    mock_db_session.execute = AsyncMock(return_value=_result_with([newer, older]))

    samples = await store.list_samples(uuid.uuid4(), limit=2)

    assert samples == [older, newer]


@pytest.mark.asyncio
async def test_list_samples_read_failure_raises(store, mock_db_session):
    mock_db_session.execute = AsyncMock(side_effect=SQLAlchemyError("connection reset"))

    with pytest.raises(PersistenceWriteError) as exc_info:
        await store.list_samples(uuid.uuid4())

    assert str(exc_info.value) == "Failed to fetch location samples"


@pytest.mark.asyncio
async def test_latest_sample_none_when_empty(store):
    assert await store.latest_sample(uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_insert_sample_adds_and_commits(store, mock_db_session):
    uid = uuid.uuid4()

    sample = await store.insert_sample(
        uid, latitude=40.0, longitude=-74.0, day=1, hour=8, label="home"
    )

    mock_db_session.add.assert_called_once_with(sample)
    mock_db_session.commit.assert_awaited_once()
    assert sample.user_id == uid
    assert sample.label == "home"
    assert sample.created_at is not None


@pytest.mark.asyncio
async def test_insert_prediction_appends_record(store, mock_db_session, prediction_result):
    uid = uuid.uuid4()

    record = await store.insert_prediction(uid, prediction_result)

    added = mock_db_session.add.call_args.args[0]
    assert added is record
    assert isinstance(record, Prediction)
    assert record.user_id == uid
    assert record.predicted_lat == 40.75
    assert record.predicted_lng == -73.98
    assert record.confidence == 0.95
    assert record.label == "office"
    assert record.tier == "transition"
    assert record.based_on_data_points == 2


@pytest.mark.asyncio
async def test_insert_prediction_failure_raises(store, mock_db_session, prediction_result):
    mock_db_session.commit = AsyncMock(
        side_effect=OperationalError("INSERT", {}, Exception("disk full"))
    )

    with pytest.raises(PersistenceWriteError):
        await store.insert_prediction(uuid.uuid4(), prediction_result)


@pytest.mark.asyncio
async def test_delete_returns_false_when_nothing_matched(store, mock_db_session):
    result = MagicMock()
    result.rowcount = 0
    mock_db_session.execute = AsyncMock(return_value=result)

    assert await store.delete_sample(uuid.uuid4(), uuid.uuid4()) is False


@pytest.mark.asyncio
async def test_delete_contact_commits(store, mock_db_session):
    assert await store.delete_contact(uuid.uuid4(), uuid.uuid4()) is True
    mock_db_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_list_contacts(store, mock_db_session, make_contact):
    contacts = [make_contact(), make_contact(email=None)]
    mock_db_session.execute = AsyncMock(return_value=_result_with(contacts))

    assert await store.list_contacts(uuid.uuid4()) == contacts


# ---------------------------------------------------------------------------
# Owner rows
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_first_write_creates_owner(store, mock_db_session):
    uid = uuid.uuid4()
    mock_db_session.get = AsyncMock(return_value=None)

    sample = await store.insert_sample(uid, latitude=1.0, longitude=2.0, day=0, hour=0)

    added = [c.args[0] for c in mock_db_session.add.call_args_list]
    assert isinstance(added[0], User)
    assert added[0].id == uid
    assert added[1] is sample
    mock_db_session.get.assert_awaited_once_with(User, uid)
    mock_db_session.flush.assert_awaited_once()


@pytest.mark.asyncio
async def test_existing_owner_is_not_recreated(store, mock_db_session):
    uid = uuid.uuid4()
    mock_db_session.get = AsyncMock(return_value=User(id=uid))

    contact = await store.add_contact(uid, name="Alex", phone="+15550100")

    mock_db_session.add.assert_called_once_with(contact)
    mock_db_session.flush.assert_not_awaited()


@pytest.mark.asyncio
async def test_prediction_write_creates_owner(store, mock_db_session, prediction_result):
    uid = uuid.uuid4()
    mock_db_session.get = AsyncMock(return_value=None)

    record = await store.insert_prediction(uid, prediction_result)

    added = [c.args[0] for c in mock_db_session.add.call_args_list]
    assert [type(obj) for obj in added] == [User, Prediction]
    assert added[1] is record


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_hourly_pattern_rows(store, mock_db_session):
    result = MagicMock()
    result.all.return_value = [(8, 2, 40.1, -74.1), (9, 1, 40.75, -73.98)]
    mock_db_session.execute = AsyncMock(return_value=result)

    hours = await store.hourly_pattern(uuid.uuid4(), day=1)

    assert hours == [
        {"hour": 8, "count": 2, "latitude": 40.1, "longitude": -74.1},
        {"hour": 9, "count": 1, "latitude": 40.75, "longitude": -73.98},
    ]


@pytest.mark.asyncio
async def test_hourly_pattern_read_failure(store, mock_db_session):
    mock_db_session.execute = AsyncMock(side_effect=SQLAlchemyError("timeout"))

    with pytest.raises(PersistenceWriteError):
        await store.hourly_pattern(uuid.uuid4(), day=1)


@pytest.mark.asyncio
async def test_user_stats_counts(store, mock_db_session):
    uid = uuid.uuid4()
    owner = User(id=uid, created_at=datetime(2026, 10, 1, tzinfo=timezone.utc))
    mock_db_session.scalar = AsyncMock(side_effect=[12, 4, None])
    mock_db_session.get = AsyncMock(return_value=owner)

    stats = await store.user_stats(uid)

    assert stats == {
        "samples": 12,
        "predictions": 4,
        "contacts": 0,
        "since": owner.created_at,
    }


@pytest.mark.asyncio
async def test_user_stats_unknown_user(store, mock_db_session):
    mock_db_session.scalar = AsyncMock(return_value=0)
    mock_db_session.get = AsyncMock(return_value=None)

    stats = await store.user_stats(uuid.uuid4())

    assert stats["since"] is None
    assert stats["samples"] == 0
