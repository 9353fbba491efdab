"""Location sample model — one logged GPS fix per row, never updated."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.models.base import Base


class LocationSample(Base):
    __tablename__ = "location_samples"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE")
    )
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = Sunday
    hour: Mapped[int] = mapped_column(Integer, nullable=False)  # local time
    label: Mapped[str | None] = mapped_column(String, default=None)
    accuracy_m: Mapped[float | None] = mapped_column(Float, default=None)
    source: Mapped[str] = mapped_column(String, default="manual")  # manual, tracking
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_location_samples_user_created", "user_id", "created_at"),
    )
