# src/takt/connectors/sms_webhook.py

"""
Inbound SMS webhook (Twilio-style form POST).

POST /sms with form fields From, Body, MessageSid. The reply always goes
back as TwiML so the carrier delivers it as an SMS. Status is 200 for every
handled message (including failures the sender should just read about) and
500 only when the backend is not configured, so the carrier's own retry and
alerting can kick in.
"""

from __future__ import annotations

import logging
from xml.sax.saxutils import escape

from fastapi import FastAPI, Form
from fastapi.responses import Response

from ..core.models import InboundMessage
from ..core.state import AppState
from ..ingest.orchestrator import GENERIC_APOLOGY, IngestionState

logger = logging.getLogger(__name__)

TWIML_MEDIA_TYPE = "application/xml"


def twiml_message(text: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{escape(text or '')}</Message></Response>"
    )


def _twiml_response(text: str, status_code: int = 200) -> Response:
    return Response(content=twiml_message(text), media_type=TWIML_MEDIA_TYPE, status_code=status_code)


def create_app(state: AppState) -> FastAPI:
    app = FastAPI(title=f"{getattr(state.settings, 'app_name', 'takt')} webhook", docs_url=None, redoc_url=None)
    app.state.takt = state

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "items": state.items.count_items()}

    # sync on purpose: runs in the threadpool
    @app.post("/sms")
    def inbound_sms(
        From: str = Form(""),
        Body: str = Form(""),
        MessageSid: str | None = Form(None),
    ) -> Response:
        message = InboundMessage(sender=From, body=Body, delivery_id=MessageSid or None)
        try:
            outcome = state.orchestrator.handle_message(message)
        except Exception:
            logger.exception("Webhook ingestion crashed delivery=%s", MessageSid)
            return _twiml_response(GENERIC_APOLOGY)

        if outcome.state == IngestionState.CONFIG_ERROR:
            return _twiml_response(outcome.reply, status_code=500)

        logger.info("Webhook delivery=%s -> %s", MessageSid, outcome.state.value)
        return _twiml_response(outcome.reply)

    return app
