"""Pydantic models for tracker request validation."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LogSampleRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    label: str | None = None
    accuracy_m: float | None = Field(default=None, ge=0)
    source: str = "manual"


class PredictRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hour: int | None = Field(default=None, ge=0, le=23)
    day: int | None = Field(default=None, ge=0, le=6)
    current_label: str | None = Field(default=None, alias="currentLabel")


class ContactCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    phone: str
    email: str | None = None
    relationship: str | None = None


class SOSContact(BaseModel):
    name: str = ""
    email: str | None = None
    phone: str | None = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class SOSRequest(BaseModel):
    # Omitted contacts fall back to the user's saved emergency contacts
    contacts: list[SOSContact] | None = None
    location: str | None = None
    coordinates: Coordinates | None = None
