# src/takt/connectors/sms_sender.py

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioSmsSender:
    """
    OutboundMessenger over the Twilio Messages REST endpoint.

    send_text() never raises for delivery problems: any HTTP or transport error
    is logged and reported as False so the caller can carry on.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        api_base: str = TWILIO_API_BASE,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._sid = (account_sid or "").strip()
        self._token = (auth_token or "").strip()
        self._from = (from_number or "").strip()
        self._api_base = api_base.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> TwilioSmsSender | None:
        sid = getattr(settings, "twilio_account_sid", "") or ""
        token = getattr(settings, "twilio_auth_token", "") or ""
        from_number = getattr(settings, "twilio_from_number", "") or ""
        if not (sid and token and from_number):
            logger.info("Twilio credentials not set; outbound SMS disabled.")
            return None
        return cls(sid, token, from_number)

    @property
    def messages_url(self) -> str:
        return f"{self._api_base}/Accounts/{self._sid}/Messages.json"

    async def send_text(self, *, text: str, to_address: str) -> bool:
        if not (self._sid and self._token and self._from):
            logger.error("Missing Twilio credentials")
            return False
        if not to_address:
            logger.warning("send_text called without a destination")
            return False

        data = {"To": to_address, "From": self._from, "Body": text}
        try:
            async with httpx.AsyncClient(
                auth=(self._sid, self._token),
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(self.messages_url, data=data)
        except httpx.HTTPError:
            logger.exception("Failed to send SMS to %s", to_address)
            return False

        if resp.is_error:
            logger.error("Twilio API error %s: %s", resp.status_code, resp.text[:500])
            return False

        logger.info("SMS sent to %s", to_address)
        return True
