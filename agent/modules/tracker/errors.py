"""Tracker error taxonomy.

Every message here is safe to show to the end user; raw backend detail is
logged where the error is raised.
"""

from __future__ import annotations

from shared.auth import AuthenticationError


class TrackerError(Exception):
    """Base class for tracker failures surfaced to the caller."""


class InsufficientDataError(TrackerError):
    """Not enough location samples to make a prediction."""

    def __init__(self, data_points: int, min_samples: int):
        self.data_points = data_points
        self.min_samples = min_samples
        super().__init__(
            "Please log more labeled locations to enable predictions "
            f"(minimum {min_samples} needed)"
        )


class NoQualifyingContactsError(TrackerError):
    """No emergency contact has an email address to alert."""


class PersistenceWriteError(TrackerError):
    """The sample store could not complete a read or write."""


class AlertConfigurationError(TrackerError):
    """Alert delivery is not configured on this server."""


__all__ = [
    "AlertConfigurationError",
    "AuthenticationError",
    "InsufficientDataError",
    "NoQualifyingContactsError",
    "PersistenceWriteError",
    "TrackerError",
]
