"""Sample store — per-user reads and append-only writes over SQLAlchemy."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from modules.tracker.errors import PersistenceWriteError
from modules.tracker.prediction import PredictionResult
from shared.models.emergency_contact import EmergencyContact
from shared.models.location_sample import LocationSample
from shared.models.prediction import Prediction
from shared.models.user import User

logger = structlog.get_logger()


async def _ensure_owner(session: AsyncSession, user_id: uuid.UUID) -> None:
    """Create the owner row on a user's first write.

    Identities are issued by the auth collaborator, so a verified user may
    not exist locally yet.
    """
    if await session.get(User, user_id) is None:
        session.add(User(id=user_id, created_at=datetime.now(timezone.utc)))
        await session.flush()


class SampleStore:
    """Data access for samples, predictions and emergency contacts.

    Every method is scoped to a single user. Database errors are logged with
    full detail and re-raised as PersistenceWriteError with a short message.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    # --- Samples ---

    async def insert_sample(
        self,
        user_id: uuid.UUID,
        latitude: float,
        longitude: float,
        day: int,
        hour: int,
        label: str | None = None,
        accuracy_m: float | None = None,
        source: str = "manual",
        created_at: datetime | None = None,
    ) -> LocationSample:
        sample = LocationSample(
            user_id=user_id,
            latitude=latitude,
            longitude=longitude,
            day=day,
            hour=hour,
            label=label,
            accuracy_m=accuracy_m,
            source=source,
            created_at=created_at or datetime.now(timezone.utc),
        )
        try:
            async with self.session_factory() as session:
                await _ensure_owner(session, user_id)
                session.add(sample)
                await session.commit()
                await session.refresh(sample)
        except SQLAlchemyError as e:
            logger.error("sample_insert_failed", user_id=str(user_id), error=str(e))
            raise PersistenceWriteError("Failed to save location") from e
        return sample

    async def list_samples(
        self,
        user_id: uuid.UUID,
        limit: int = 1000,
    ) -> list[LocationSample]:
        """Return the user's most recent ``limit`` samples, oldest first."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(LocationSample)
                    .where(LocationSample.user_id == user_id)
                    .order_by(LocationSample.created_at.desc())
                    .limit(limit)
                )
                newest_first = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("sample_list_failed", user_id=str(user_id), error=str(e))
            raise PersistenceWriteError("Failed to fetch location samples") from e
        newest_first.reverse()
        return newest_first

    async def latest_sample(self, user_id: uuid.UUID) -> LocationSample | None:
        samples = await self.list_samples(user_id, limit=1)
        return samples[0] if samples else None

    async def delete_sample(self, user_id: uuid.UUID, sample_id: uuid.UUID) -> bool:
        return await self._delete(LocationSample, user_id, sample_id)

    async def hourly_pattern(self, user_id: uuid.UUID, day: int) -> list[dict]:
        """Per-hour sample count and mean position for one weekday, by hour."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(
                        LocationSample.hour,
                        func.count(LocationSample.id),
                        func.avg(LocationSample.latitude),
                        func.avg(LocationSample.longitude),
                    )
                    .where(
                        LocationSample.user_id == user_id,
                        LocationSample.day == day,
                    )
                    .group_by(LocationSample.hour)
                    .order_by(LocationSample.hour)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("hourly_pattern_failed", user_id=str(user_id), error=str(e))
            raise PersistenceWriteError("Failed to fetch location samples") from e
        return [
            {
                "hour": hour,
                "count": count,
                "latitude": float(lat),
                "longitude": float(lng),
            }
            for hour, count, lat, lng in rows
        ]

    async def user_stats(self, user_id: uuid.UUID) -> dict:
        """Row counts per table and the owner's first-seen time (None if unknown)."""
        try:
            async with self.session_factory() as session:
                counts = {}
                for key, model in (
                    ("samples", LocationSample),
                    ("predictions", Prediction),
                    ("contacts", EmergencyContact),
                ):
                    counts[key] = await session.scalar(
                        select(func.count(model.id)).where(model.user_id == user_id)
                    ) or 0
                owner = await session.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("user_stats_failed", user_id=str(user_id), error=str(e))
            raise PersistenceWriteError("Failed to fetch statistics") from e
        counts["since"] = owner.created_at if owner is not None else None
        return counts

    # --- Predictions ---

    async def insert_prediction(
        self,
        user_id: uuid.UUID,
        result: PredictionResult,
    ) -> Prediction:
        now = datetime.now(timezone.utc)
        record = Prediction(
            user_id=user_id,
            predicted_lat=result.latitude,
            predicted_lng=result.longitude,
            confidence=result.confidence,
            label=result.label,
            tier=result.tier,
            based_on_data_points=result.based_on_data_points,
            prediction_timestamp=now,
            created_at=now,
        )
        try:
            async with self.session_factory() as session:
                await _ensure_owner(session, user_id)
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("prediction_insert_failed", user_id=str(user_id), error=str(e))
            raise PersistenceWriteError("Failed to save prediction") from e
        return record

    async def list_predictions(
        self,
        user_id: uuid.UUID,
        limit: int = 50,
    ) -> list[Prediction]:
        """Return the user's predictions, newest first."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Prediction)
                    .where(Prediction.user_id == user_id)
                    .order_by(Prediction.created_at.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("prediction_list_failed", user_id=str(user_id), error=str(e))
            raise PersistenceWriteError("Failed to fetch predictions") from e

    async def delete_prediction(
        self, user_id: uuid.UUID, prediction_id: uuid.UUID
    ) -> bool:
        return await self._delete(Prediction, user_id, prediction_id)

    # --- Emergency contacts ---

    async def add_contact(
        self,
        user_id: uuid.UUID,
        name: str,
        phone: str,
        email: str | None = None,
        relationship: str | None = None,
    ) -> EmergencyContact:
        contact = EmergencyContact(
            user_id=user_id,
            name=name,
            phone=phone,
            email=email,
            relationship=relationship,
        )
        try:
            async with self.session_factory() as session:
                await _ensure_owner(session, user_id)
                session.add(contact)
                await session.commit()
                await session.refresh(contact)
        except SQLAlchemyError as e:
            logger.error("contact_insert_failed", user_id=str(user_id), error=str(e))
            raise PersistenceWriteError("Failed to save contact") from e
        return contact

    async def list_contacts(self, user_id: uuid.UUID) -> list[EmergencyContact]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(EmergencyContact)
                    .where(EmergencyContact.user_id == user_id)
                    .order_by(EmergencyContact.created_at)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("contact_list_failed", user_id=str(user_id), error=str(e))
            raise PersistenceWriteError("Failed to fetch contacts") from e

    async def delete_contact(self, user_id: uuid.UUID, contact_id: uuid.UUID) -> bool:
        return await self._delete(EmergencyContact, user_id, contact_id)

    async def _delete(self, model, user_id: uuid.UUID, row_id: uuid.UUID) -> bool:
        """Delete one row owned by ``user_id``. Returns False if none matched."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(model).where(model.id == row_id, model.user_id == user_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "delete_failed",
                table=model.__tablename__,
                user_id=str(user_id),
                error=str(e),
            )
            raise PersistenceWriteError("Failed to delete record") from e
        return result.rowcount > 0
