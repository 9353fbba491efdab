"""Tests for SOS alert dispatch — all Resend HTTP calls are mocked."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from modules.tracker.alerts import (
    AlertContact,
    AlertDispatcher,
    build_alert_html,
    map_link,
)
from modules.tracker.errors import AlertConfigurationError, NoQualifyingContactsError
from modules.tracker.tests.fixtures import (
    RESEND_ACCEPTED,
    RESEND_VALIDATION_ERROR,
    SOS_CONTACTS,
    SOS_CONTACTS_NO_EMAIL,
)


def _contacts(raw: list[dict]) -> list[AlertContact]:
    return [AlertContact(name=c["name"], email=c["email"], phone=c["phone"]) for c in raw]


def _response(status_code: int, body: dict) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    resp.text = str(body)
    return resp


def _mock_client(post):
    mock_client = AsyncMock()
    mock_client.post = AsyncMock(side_effect=post)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


@pytest.fixture
def dispatcher():
    return AlertDispatcher(api_key="re_test", from_address="SOS <sos@example.com>")


# ---------------------------------------------------------------------------
# Filtering and refusal
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_contacts_without_email_are_skipped(dispatcher):
    async def post(url, json, headers):
        return _response(200, RESEND_ACCEPTED)

    mock_client = _mock_client(post)
    with patch("modules.tracker.alerts.httpx.AsyncClient", return_value=mock_client):
        result = await dispatcher.send_sos(
            _contacts(SOS_CONTACTS), "Main St", {"lat": 40.0, "lng": -74.0}
        )

    assert mock_client.post.await_count == 2
    assert result == {
        "success": True,
        "sent": 2,
        "total": 2,
        "results": [
            {"email": "a@x.com", "success": True},
            {"email": "b@x.com", "success": True},
        ],
    }


@pytest.mark.asyncio
async def test_no_emailable_contacts_raises(dispatcher):
    with patch("modules.tracker.alerts.httpx.AsyncClient") as mock_client_cls:
        with pytest.raises(NoQualifyingContactsError):
            await dispatcher.send_sos(_contacts(SOS_CONTACTS_NO_EMAIL), "Main St")

    mock_client_cls.assert_not_called()


@pytest.mark.asyncio
async def test_empty_contact_list_raises(dispatcher):
    with pytest.raises(NoQualifyingContactsError):
        await dispatcher.send_sos([], "Main St")


@pytest.mark.asyncio
async def test_missing_api_key_raises():
    dispatcher = AlertDispatcher(api_key="", from_address="sos@example.com")
    with pytest.raises(AlertConfigurationError):
        await dispatcher.send_sos(_contacts(SOS_CONTACTS), "Main St")


# ---------------------------------------------------------------------------
# Partial failure
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_rejected_delivery_is_collected(dispatcher):
    async def post(url, json, headers):
        if json["to"] == ["b@x.com"]:
            return _response(422, RESEND_VALIDATION_ERROR)
        return _response(200, RESEND_ACCEPTED)

    with patch("modules.tracker.alerts.httpx.AsyncClient", return_value=_mock_client(post)):
        result = await dispatcher.send_sos(_contacts(SOS_CONTACTS), "Main St")

    assert result["success"] is True
    assert result["sent"] == 1
    assert result["total"] == 2
    assert result["results"][0] == {"email": "a@x.com", "success": True}
    assert result["results"][1]["email"] == "b@x.com"
    assert result["results"][1]["success"] is False
    assert "422" in result["results"][1]["error"]


@pytest.mark.asyncio
async def test_transport_error_is_collected(dispatcher):
    async def post(url, json, headers):
        if json["to"] == ["a@x.com"]:
            raise httpx.ConnectError("connection refused")
        return _response(200, RESEND_ACCEPTED)

    with patch("modules.tracker.alerts.httpx.AsyncClient", return_value=_mock_client(post)):
        result = await dispatcher.send_sos(_contacts(SOS_CONTACTS), "Main St")

    assert result["sent"] == 1
    assert result["results"][0] == {
        "email": "a@x.com",
        "success": False,
        "error": "Delivery failed",
    }


@pytest.mark.asyncio
async def test_request_payload(dispatcher):
    captured = []

    async def post(url, json, headers):
        captured.append((url, json, headers))
        return _response(200, RESEND_ACCEPTED)

    contacts = [AlertContact(name="Alice", email="  a@x.com ")]
    with patch("modules.tracker.alerts.httpx.AsyncClient", return_value=_mock_client(post)):
        await dispatcher.send_sos(contacts, "Main St", {"lat": 40.0, "lng": -74.0})

    url, payload, headers = captured[0]
    assert url == "https://api.resend.com/emails"
    assert payload["to"] == ["a@x.com"]
    assert payload["from"] == "SOS <sos@example.com>"
    assert headers == {"Authorization": "Bearer re_test"}
    assert "https://www.google.com/maps?q=40.0,-74.0" in payload["html"]


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sends_run_concurrently(dispatcher):
    contacts = [AlertContact(name=f"c{i}", email=f"c{i}@x.com") for i in range(4)]
    all_started = asyncio.Event()
    in_flight = 0
    peak = 0

    async def post(url, json, headers):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        if peak == len(contacts):
            all_started.set()
        # A sequential sender never gets past the first request
        await asyncio.wait_for(all_started.wait(), timeout=1)
        # Finish in reverse order of start
        await asyncio.sleep(0.01 * (len(contacts) - int(json["to"][0][1])))
        in_flight -= 1
        return _response(200, RESEND_ACCEPTED)

    with patch("modules.tracker.alerts.httpx.AsyncClient", return_value=_mock_client(post)):
        result = await dispatcher.send_sos(contacts, "Main St")

    assert peak == len(contacts)
    assert result["sent"] == 4
    assert [r["email"] for r in result["results"]] == [c.email for c in contacts]


# ---------------------------------------------------------------------------
# Message content
# ---------------------------------------------------------------------------


def test_map_link_prefers_coordinates():
    assert map_link("Main St", {"lat": 1.5, "lng": 2.5}) == "https://www.google.com/maps?q=1.5,2.5"
    assert map_link("Main St", None) == "Main St"


def test_alert_html_escapes_name():
    html = build_alert_html("<Eve>", "Main St", None)
    assert "&lt;Eve&gt;" in html
    assert "Last known position" not in html


def test_alert_html_includes_coordinates():
    html = build_alert_html("Alice", "Main St", {"lat": 40.7128, "lng": -74.006})
    assert "40.712800" in html
    assert "-74.006000" in html
