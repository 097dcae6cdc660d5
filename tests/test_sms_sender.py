# tests/test_sms_sender.py

from __future__ import annotations

from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
import pytest

from takt.connectors.sms_sender import TwilioSmsSender


def _sender(handler) -> TwilioSmsSender:
    return TwilioSmsSender("AC123", "secret", "+15550000", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_send_posts_form_to_messages_endpoint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"sid": "SM1"})

    ok = await _sender(handler).send_text(text="Good morning!", to_address="+15551111")

    assert ok is True
    (req,) = seen
    assert req.method == "POST"
    assert str(req.url) == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert req.headers["authorization"].startswith("Basic ")
    form = parse_qs(req.content.decode())
    assert form == {"To": ["+15551111"], "From": ["+15550000"], "Body": ["Good morning!"]}


@pytest.mark.asyncio
async def test_http_error_returns_false() -> None:
    sender = _sender(lambda request: httpx.Response(400, json={"message": "bad number"}))
    assert await sender.send_text(text="x", to_address="+1") is False


@pytest.mark.asyncio
async def test_transport_error_returns_false() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    assert await _sender(handler).send_text(text="x", to_address="+1") is False


def test_from_settings_requires_all_credentials() -> None:
    missing = SimpleNamespace(twilio_account_sid="AC1", twilio_auth_token="", twilio_from_number="+1")
    full = SimpleNamespace(twilio_account_sid="AC1", twilio_auth_token="t", twilio_from_number="+1")

    assert TwilioSmsSender.from_settings(missing) is None
    assert isinstance(TwilioSmsSender.from_settings(full), TwilioSmsSender)
