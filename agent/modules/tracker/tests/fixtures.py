"""Canned Resend API responses and SOS payloads for tracker module tests."""

from __future__ import annotations

RESEND_ACCEPTED = {"id": "49a3999c-0ce1-4ea6-ab68-afcd6dc2e794"}

RESEND_VALIDATION_ERROR = {
    "statusCode": 422,
    "name": "validation_error",
    "message": "Invalid `to` field.",
}

SOS_CONTACTS = [
    {"name": "Alice", "email": "a@x.com", "phone": "+15550101"},
    {"name": "Bob", "email": "", "phone": "+15550102"},
    {"name": "Carol", "email": "b@x.com", "phone": "+15550103"},
]

SOS_CONTACTS_NO_EMAIL = [
    {"name": "Bob", "email": "", "phone": "+15550102"},
    {"name": "Dan", "email": None, "phone": "+15550104"},
]

PREDICTION_RESPONSE = {
    "prediction": {
        "latitude": 40.75,
        "longitude": -73.98,
        "confidence": 0.95,
        "label": "office",
        "basedOnDataPoints": 2,
    },
    "totalDataPoints": 4,
    "labeledDataPoints": 4,
    "availableLabels": ["home", "office"],
    "transitions": [
        {"label": "office", "count": 2, "coords": {"lat": 40.75, "lng": -73.98}},
    ],
}
