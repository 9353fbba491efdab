"""Tracker module tool implementations."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog

from modules.tracker.alerts import AlertContact, AlertDispatcher
from modules.tracker.clustering import cluster_by_label, cluster_by_proximity
from modules.tracker.errors import PersistenceWriteError
from modules.tracker.prediction import predict_next_location
from modules.tracker.store import SampleStore
from shared.auth import parse_user_id
from shared.config import Settings
from shared.models.emergency_contact import EmergencyContact
from shared.models.location_sample import LocationSample
from shared.models.prediction import Prediction

logger = structlog.get_logger()


def local_day_hour(moment: datetime, tz_name: str) -> tuple[int, int]:
    """Weekday (0 = Sunday) and hour of ``moment`` in the given zone."""
    local = moment.astimezone(ZoneInfo(tz_name))
    return local.isoweekday() % 7, local.hour


MAX_LIST_LIMIT = 1000


def _check_limit(limit: int) -> None:
    if not 1 <= limit <= MAX_LIST_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIST_LIMIT}")


def _sample_to_dict(s: LocationSample) -> dict:
    return {
        "id": str(s.id),
        "latitude": s.latitude,
        "longitude": s.longitude,
        "day": s.day,
        "hour": s.hour,
        "label": s.label,
        "accuracy_m": s.accuracy_m,
        "source": s.source,
        "created_at": s.created_at.isoformat(),
    }


def _prediction_to_dict(p: Prediction) -> dict:
    return {
        "id": str(p.id),
        "predicted_lat": p.predicted_lat,
        "predicted_lng": p.predicted_lng,
        "confidence": p.confidence,
        "label": p.label,
        "tier": p.tier,
        "based_on_data_points": p.based_on_data_points,
        "prediction_timestamp": p.prediction_timestamp.isoformat(),
    }


def _contact_to_dict(c: EmergencyContact) -> dict:
    return {
        "id": str(c.id),
        "name": c.name,
        "phone": c.phone,
        "email": c.email,
        "relationship": c.relationship,
    }


class TrackerTools:
    """Tool implementations for the tracker module.

    Every tool takes the verified ``user_id`` injected by the caller and
    raises AuthenticationError without one.
    """

    def __init__(
        self,
        store: SampleStore,
        dispatcher: AlertDispatcher,
        settings: Settings,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.settings = settings

    # --- Samples ---

    async def log_location(
        self,
        latitude: float,
        longitude: float,
        label: str | None = None,
        accuracy_m: float | None = None,
        source: str = "manual",
        user_id: str | None = None,
    ) -> dict:
        """Append one location sample, deriving day/hour from local time."""
        uid = parse_user_id(user_id)

        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise ValueError("latitude/longitude out of range")
        if source not in ("manual", "tracking"):
            raise ValueError("source must be 'manual' or 'tracking'")

        label = label.strip() if label else None
        now = datetime.now(timezone.utc)
        day, hour = local_day_hour(now, self.settings.local_timezone)

        sample = await self.store.insert_sample(
            uid,
            latitude=latitude,
            longitude=longitude,
            day=day,
            hour=hour,
            label=label or None,
            accuracy_m=accuracy_m,
            source=source,
            created_at=now,
        )
        logger.info("sample_logged", user_id=str(uid), labeled=bool(label), source=source)
        return {"success": True, "sample": _sample_to_dict(sample)}

    async def list_samples(
        self,
        limit: int = 100,
        user_id: str | None = None,
    ) -> dict:
        """List the user's most recent samples, oldest first."""
        uid = parse_user_id(user_id)
        _check_limit(limit)
        samples = await self.store.list_samples(uid, limit=limit)
        return {
            "samples": [_sample_to_dict(s) for s in samples],
            "count": len(samples),
        }

    async def delete_sample(
        self,
        sample_id: str,
        user_id: str | None = None,
    ) -> dict:
        uid = parse_user_id(user_id)
        deleted = await self.store.delete_sample(uid, uuid.UUID(sample_id))
        if not deleted:
            return {"success": False, "error": "Sample not found"}
        return {"success": True, "sample_id": sample_id}

    # --- Places ---

    async def frequent_places(
        self,
        mode: str = "label",
        limit: int = 10,
        user_id: str | None = None,
    ) -> dict:
        """Cluster the user's history into places, most visited first."""
        uid = parse_user_id(user_id)
        _check_limit(limit)
        if mode not in ("label", "proximity"):
            raise ValueError("mode must be 'label' or 'proximity'")

        samples = await self.store.list_samples(
            uid, limit=self.settings.prediction_history_limit
        )
        if mode == "label":
            places = sorted(
                cluster_by_label(samples).values(),
                key=lambda c: c.sample_count,
                reverse=True,
            )
        else:
            places = cluster_by_proximity(
                samples, tolerance_deg=self.settings.proximity_tolerance_deg
            )

        return {
            "mode": mode,
            "places": [p.to_dict() for p in places[:limit]],
            "total_samples": len(samples),
        }

    async def daily_pattern(
        self,
        day: int | None = None,
        user_id: str | None = None,
    ) -> dict:
        """Samples per hour on one weekday (default today) with mean positions."""
        uid = parse_user_id(user_id)
        if day is None:
            day, _ = local_day_hour(datetime.now(timezone.utc), self.settings.local_timezone)
        if not 0 <= day <= 6:
            raise ValueError(f"day must be between 0 and 6, got {day}")

        hours = await self.store.hourly_pattern(uid, day)
        return {
            "day": day,
            "hours": hours,
            "total_samples": sum(h["count"] for h in hours),
        }

    async def stats(self, user_id: str | None = None) -> dict:
        """Counts of logged samples, predictions and contacts, and days active."""
        uid = parse_user_id(user_id)
        counts = await self.store.user_stats(uid)

        days_active = 0
        since = counts["since"]
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            elapsed = datetime.now(timezone.utc) - since
            days_active = elapsed.days + 1

        return {
            "locations": counts["samples"],
            "predictions": counts["predictions"],
            "contacts": counts["contacts"],
            "days_active": days_active,
        }

    # --- Predictions ---

    async def predict_next_location(
        self,
        hour: int | None = None,
        day: int | None = None,
        current_label: str | None = None,
        user_id: str | None = None,
    ) -> dict:
        """Predict the user's next location and record the prediction.

        A failure to save the prediction is logged and does not fail the
        request.
        """
        uid = parse_user_id(user_id)

        if hour is None or day is None:
            now_day, now_hour = local_day_hour(
                datetime.now(timezone.utc), self.settings.local_timezone
            )
            hour = now_hour if hour is None else hour
            day = now_day if day is None else day

        samples = await self.store.list_samples(
            uid, limit=self.settings.prediction_history_limit
        )
        result = predict_next_location(
            samples,
            hour=hour,
            day=day,
            current_label=current_label,
            min_samples=self.settings.prediction_min_samples,
        )

        try:
            await self.store.insert_prediction(uid, result)
        except PersistenceWriteError:
            logger.warning("prediction_save_failed", user_id=str(uid), tier=result.tier)

        logger.info(
            "prediction_created",
            user_id=str(uid),
            tier=result.tier,
            label=result.label,
            confidence=round(result.confidence, 3),
            samples=result.total_data_points,
        )
        return result.to_response()

    async def list_predictions(
        self,
        limit: int = 20,
        user_id: str | None = None,
    ) -> dict:
        uid = parse_user_id(user_id)
        _check_limit(limit)
        predictions = await self.store.list_predictions(uid, limit=limit)
        return {
            "predictions": [_prediction_to_dict(p) for p in predictions],
            "count": len(predictions),
        }

    async def delete_prediction(
        self,
        prediction_id: str,
        user_id: str | None = None,
    ) -> dict:
        uid = parse_user_id(user_id)
        deleted = await self.store.delete_prediction(uid, uuid.UUID(prediction_id))
        if not deleted:
            return {"success": False, "error": "Prediction not found"}
        return {"success": True, "prediction_id": prediction_id}

    # --- Emergency contacts ---

    async def add_contact(
        self,
        name: str,
        phone: str,
        email: str | None = None,
        relationship: str | None = None,
        user_id: str | None = None,
    ) -> dict:
        uid = parse_user_id(user_id)
        contact = await self.store.add_contact(
            uid,
            name=name.strip(),
            phone=phone.strip(),
            email=email.strip() if email and email.strip() else None,
            relationship=relationship,
        )
        return {"success": True, "contact": _contact_to_dict(contact)}

    async def list_contacts(self, user_id: str | None = None) -> dict:
        uid = parse_user_id(user_id)
        contacts = await self.store.list_contacts(uid)
        return {
            "contacts": [_contact_to_dict(c) for c in contacts],
            "count": len(contacts),
        }

    async def delete_contact(
        self,
        contact_id: str,
        user_id: str | None = None,
    ) -> dict:
        uid = parse_user_id(user_id)
        deleted = await self.store.delete_contact(uid, uuid.UUID(contact_id))
        if not deleted:
            return {"success": False, "error": "Contact not found"}
        return {"success": True, "contact_id": contact_id}

    # --- SOS ---

    async def send_sos_alert(
        self,
        location: str | None = None,
        coordinates: dict | None = None,
        contacts: list[dict] | None = None,
        user_id: str | None = None,
    ) -> dict:
        """Email an emergency alert to the user's contacts.

        Uses the supplied contacts, or the saved emergency contacts when none
        are given. Without coordinates, the latest logged sample is used.
        """
        uid = parse_user_id(user_id)

        if contacts is None:
            saved = await self.store.list_contacts(uid)
            recipients = [
                AlertContact(name=c.name, email=c.email, phone=c.phone) for c in saved
            ]
        else:
            recipients = [
                AlertContact(
                    name=c.get("name") or "",
                    email=c.get("email"),
                    phone=c.get("phone"),
                )
                for c in contacts
            ]

        if coordinates is None:
            latest = await self.store.latest_sample(uid)
            if latest is not None:
                coordinates = {"lat": latest.latitude, "lng": latest.longitude}

        if not location:
            if coordinates:
                location = f"{coordinates['lat']:.4f}, {coordinates['lng']:.4f}"
            else:
                location = "Unknown location"

        return await self.dispatcher.send_sos(recipients, location, coordinates)
