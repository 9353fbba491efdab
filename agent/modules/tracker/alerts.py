"""Emergency SOS email dispatch via the Resend HTTP API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from html import escape

import httpx
import structlog

from modules.tracker.errors import AlertConfigurationError, NoQualifyingContactsError

logger = structlog.get_logger()

SUBJECT = "EMERGENCY SOS ALERT - Immediate Attention Required"
MAPS_URL = "https://www.google.com/maps?q={lat},{lng}"


@dataclass
class AlertContact:
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass
class DeliveryResult:
    email: str
    success: bool
    error: str | None = None

    def to_dict(self) -> dict:
        data = {"email": self.email, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        return data


def map_link(location: str, coordinates: dict | None) -> str:
    """Google Maps link for the coordinates, or the free-text location."""
    if coordinates:
        return MAPS_URL.format(lat=coordinates["lat"], lng=coordinates["lng"])
    return location


def build_alert_html(contact_name: str, location: str, coordinates: dict | None) -> str:
    link = escape(map_link(location, coordinates), quote=True)
    coords_line = ""
    if coordinates:
        coords_line = (
            f"<p>Last known position: {coordinates['lat']:.6f}&deg;, "
            f"{coordinates['lng']:.6f}&deg;</p>"
        )
    return (
        "<html><body>"
        "<h1>EMERGENCY ALERT</h1>"
        f"<p>Dear {escape(contact_name)},</p>"
        "<p>This is an <strong>emergency SOS alert</strong> from SafeTrack. "
        "The user has triggered an emergency signal and may need immediate "
        "assistance.</p>"
        f"{coords_line}"
        f'<p><a href="{link}">View on Google Maps</a></p>'
        "<p><strong>Please take immediate action:</strong><br>"
        "Try to contact the person directly.<br>"
        "If unreachable, consider contacting local emergency services.</p>"
        "</body></html>"
    )


class AlertDispatcher:
    """Send one SOS email per contact, concurrently, collecting every outcome."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.api_url = api_url
        self.timeout = timeout

    async def send_sos(
        self,
        contacts: list[AlertContact],
        location: str,
        coordinates: dict | None = None,
    ) -> dict:
        """Alert every contact that has an email address.

        Raises NoQualifyingContactsError when no contact has an email. A
        failed delivery is reported in ``results`` and never raised.
        """
        if not contacts:
            raise NoQualifyingContactsError("No contacts provided")

        recipients = [c for c in contacts if c.email and c.email.strip()]
        if not recipients:
            raise NoQualifyingContactsError("No contacts with email addresses")

        if not self.api_key:
            logger.error("sos_delivery_not_configured")
            raise AlertConfigurationError("Emergency alerts are not configured")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            results = await asyncio.gather(
                *(
                    self._send_one(client, contact, location, coordinates)
                    for contact in recipients
                )
            )

        sent = sum(1 for r in results if r.success)
        logger.info("sos_alert_sent", sent=sent, total=len(recipients))

        return {
            "success": True,
            "sent": sent,
            "total": len(recipients),
            "results": [r.to_dict() for r in results],
        }

    async def _send_one(
        self,
        client: httpx.AsyncClient,
        contact: AlertContact,
        location: str,
        coordinates: dict | None,
    ) -> DeliveryResult:
        email = contact.email.strip()
        payload = {
            "from": self.from_address,
            "to": [email],
            "subject": SUBJECT,
            "html": build_alert_html(contact.name, location, coordinates),
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            resp = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("sos_email_failed", email=email, error=str(e))
            return DeliveryResult(email=email, success=False, error="Delivery failed")

        if resp.status_code >= 400:
            logger.warning(
                "sos_email_rejected",
                email=email,
                status=resp.status_code,
                body=resp.text[:500],
            )
            return DeliveryResult(
                email=email,
                success=False,
                error=f"Delivery rejected (HTTP {resp.status_code})",
            )

        return DeliveryResult(email=email, success=True)
