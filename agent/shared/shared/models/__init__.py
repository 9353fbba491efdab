"""SQLAlchemy models."""

from shared.models.base import Base
from shared.models.emergency_contact import EmergencyContact
from shared.models.location_sample import LocationSample
from shared.models.prediction import Prediction
from shared.models.user import User

__all__ = [
    "Base",
    "EmergencyContact",
    "LocationSample",
    "Prediction",
    "User",
]
