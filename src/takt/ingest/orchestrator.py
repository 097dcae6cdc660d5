# src/takt/ingest/orchestrator.py

"""
Ingestion orchestrator: one inbound message end-to-end.

    received -> extracting -> extract_failed
                           -> normalizing -> persisting -> all_failed | partial | all_ok

plus three short-circuit terminals: config_error, duplicate, malformed.

Key invariants:
- a delivery id is claimed in the store before extraction; a second delivery
  with the same id never extracts or writes again,
- every claimed attempt writes exactly one audit entry, including one that
  dies on an unexpected error (all_failed, generic apology),
- candidates are normalized and persisted independently: one bad candidate or
  one failed insert never undoes or blocks its siblings,
- the returned reply is the only user-visible output; technical detail goes to
  the audit log and the process log.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from ..core.errors import (
    CandidateRejected,
    ConfigurationError,
    ExtractionFailure,
    ExtractionFailureKind,
    MalformedRequest,
    PersistenceFailure,
)
from ..core.models import InboundMessage, Item, NewItem
from ..core.ports import AuditRepo, CategoryRepo, ItemRepo, PreferenceRepo
from ..time_utils import load_zone
from .extraction import ExtractionClient, ExtractionContext
from .normalizer import normalize_candidate

logger = logging.getLogger(__name__)

GENERIC_APOLOGY = "Sorry, I had trouble understanding that. Please try again."
CONFIG_APOLOGY = "Sorry, I can't process messages right now. Please try again later."
MISSING_DATA_REPLY = "Sorry, that message was empty or missing its sender."
IN_FLIGHT_REPLY = "Got it, I'm already working on that message."
NOTHING_CREATED_REPLY = "Sorry, I couldn't create any items from that message."

MISSING_DATA_ERROR = "missing-data: message body or sender is empty"
UNHANDLED_ERROR_PREFIX = "Unhandled error: "

_FAILURE_REPLIES = {
    ExtractionFailureKind.UNPARSEABLE: "Sorry, I had trouble parsing that. Please try a simpler message.",
    ExtractionFailureKind.NO_ITEMS: "Sorry, I couldn't find any tasks or events in your message.",
}


class IngestionState(StrEnum):
    RECEIVED = "received"
    EXTRACTING = "extracting"
    EXTRACT_FAILED = "extract_failed"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"
    ALL_FAILED = "all_failed"
    PARTIAL = "partial"
    ALL_OK = "all_ok"
    DUPLICATE = "duplicate"
    MALFORMED = "malformed"
    CONFIG_ERROR = "config_error"


@dataclass(slots=True)
class IngestionOutcome:
    state: IngestionState
    reply: str
    items_created: int = 0
    failures: list[str] = field(default_factory=list)
    created: list[Item] = field(default_factory=list)


def _require_fields(sender: str, body: str) -> None:
    if not body or not sender:
        raise MalformedRequest(MISSING_DATA_ERROR)


def apology_for(failure: ExtractionFailure) -> str:
    return _FAILURE_REPLIES.get(failure.kind, GENERIC_APOLOGY)


def render_confirmation(created: Sequence[Item], failures: Sequence[str]) -> str:
    if not created:
        msg = NOTHING_CREATED_REPLY
        if failures:
            msg += f" Error: {failures[0]}"
        return msg

    if len(created) == 1:
        item = created[0]
        return f'Created {item.kind.value}: "{item.title}"'

    lines = [f"Created {len(created)} items:"]
    lines.extend(f"• {item.title}" for item in created)
    return "\n".join(lines)


class IngestionOrchestrator:
    def __init__(
        self,
        extraction: ExtractionClient,
        items: ItemRepo,
        categories: CategoryRepo,
        audit: AuditRepo,
        preferences: PreferenceRepo | None = None,
        *,
        default_timezone: str = "America/New_York",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._extraction = extraction
        self._items = items
        self._categories = categories
        self._audit = audit
        self._preferences = preferences
        self._default_timezone = default_timezone
        self._clock = clock or (lambda: datetime.now(UTC))

    # ---- helpers ----

    @staticmethod
    def _advance(message: InboundMessage, state: IngestionState) -> IngestionState:
        logger.debug("ingest delivery=%s -> %s", message.delivery_id, state.value)
        return state

    def _record(
        self,
        message: InboundMessage,
        *,
        sender: str | None = None,
        body: str | None = None,
        parsed_result: Any | None = None,
        items_created: int = 0,
        error: str | None = None,
        reply: str,
    ) -> None:
        try:
            self._audit.record(
                sender=sender if sender is not None else message.sender,
                body=body if body is not None else message.body,
                delivery_id=(message.delivery_id or "").strip() or None,
                parsed_result=parsed_result,
                items_created=items_created,
                error=error,
                reply=reply,
            )
        except Exception:
            # The sender still gets the reply; the process log keeps the trace.
            logger.exception("Failed to write audit entry delivery=%s", message.delivery_id)

    def _timezone_for(self, sender: str) -> str:
        if self._preferences is not None:
            pref = self._preferences.get_by_address(sender)
            if pref is not None and pref.timezone:
                return pref.timezone
        return self._default_timezone

    # ---- entry point ----

    def handle_message(self, message: InboundMessage) -> IngestionOutcome:
        self._advance(message, IngestionState.RECEIVED)
        sender = (message.sender or "").strip()
        body = (message.body or "").strip()
        delivery_id = (message.delivery_id or "").strip() or None

        try:
            self._extraction.ensure_ready()
        except ConfigurationError:
            logger.exception("Extraction backend is not configured; rejecting message")
            return IngestionOutcome(state=IngestionState.CONFIG_ERROR, reply=CONFIG_APOLOGY)

        if delivery_id is not None and not self._audit.claim(delivery_id):
            prior = self._audit.find_by_delivery_id(delivery_id)
            logger.info("Duplicate delivery %s (prior entry: %s)", delivery_id, prior.id if prior else None)
            if prior is None:
                return IngestionOutcome(state=IngestionState.DUPLICATE, reply=IN_FLIGHT_REPLY)
            return IngestionOutcome(
                state=IngestionState.DUPLICATE,
                reply=prior.reply or IN_FLIGHT_REPLY,
                items_created=prior.items_created,
            )

        # Past the claim, every attempt must leave exactly one audit entry.
        try:
            return self._process(message, sender, body, delivery_id)
        except Exception as e:
            logger.exception("Unhandled error while processing delivery=%s", delivery_id)
            error = f"{UNHANDLED_ERROR_PREFIX}{type(e).__name__}: {e}"
            self._record(
                message,
                sender=sender or "unknown",
                body=body or "(empty)",
                error=error,
                reply=GENERIC_APOLOGY,
            )
            return IngestionOutcome(state=IngestionState.ALL_FAILED, reply=GENERIC_APOLOGY, failures=[error])

    def _process(
        self,
        message: InboundMessage,
        sender: str,
        body: str,
        delivery_id: str | None,
    ) -> IngestionOutcome:
        try:
            _require_fields(sender, body)
        except MalformedRequest as e:
            logger.warning("Rejecting message delivery=%s: %s", delivery_id, e)
            self._record(
                message,
                sender=sender or "unknown",
                body=body or "(empty)",
                error=MISSING_DATA_ERROR,
                reply=MISSING_DATA_REPLY,
            )
            return IngestionOutcome(
                state=IngestionState.MALFORMED,
                reply=MISSING_DATA_REPLY,
                failures=[MISSING_DATA_ERROR],
            )

        logger.info("Received message from %s delivery=%s", sender, delivery_id)

        categories = self._categories.list_categories()
        tz_name = self._timezone_for(sender)
        tz = load_zone(tz_name)
        ctx = ExtractionContext.for_now(tz_name, [c.name for c in categories], now=self._clock())

        state = self._advance(message, IngestionState.EXTRACTING)
        try:
            result = self._extraction.extract(body, ctx)
        except ExtractionFailure as failure:
            state = self._advance(message, IngestionState.EXTRACT_FAILED)
            logger.warning("Extraction failed delivery=%s: %s", delivery_id, failure)
            reply = apology_for(failure)
            self._record(message, parsed_result=failure.payload, error=str(failure), reply=reply)
            return IngestionOutcome(state=state, reply=reply, failures=[str(failure)])

        failures: list[str] = []

        state = self._advance(message, IngestionState.NORMALIZING)
        pending: list[NewItem] = []
        for candidate in result.candidates:
            try:
                pending.append(normalize_candidate(candidate, categories, tz=tz, raw_text=body))
            except CandidateRejected as e:
                logger.info("Candidate rejected (%s): %r", e.reason, candidate)
                failures.append(f"Invalid item: {e.reason}")

        state = self._advance(message, IngestionState.PERSISTING)
        created: list[Item] = []
        for new_item in pending:
            try:
                created.append(self._items.add_item(new_item))
            except PersistenceFailure as e:
                logger.warning("Insert failed for %r: %s", new_item.title, e)
                failures.append(f'Failed to create "{new_item.title}": {e}')

        if not created:
            state = IngestionState.ALL_FAILED
        elif failures:
            state = IngestionState.PARTIAL
        else:
            state = IngestionState.ALL_OK
        self._advance(message, state)

        reply = render_confirmation(created, failures)
        self._record(
            message,
            parsed_result=result.payload,
            items_created=len(created),
            error="; ".join(failures) if failures else None,
            reply=reply,
        )

        logger.info(
            "Message processed delivery=%s state=%s created=%d failed=%d",
            delivery_id,
            state.value,
            len(created),
            len(failures),
        )
        return IngestionOutcome(
            state=state,
            reply=reply,
            items_created=len(created),
            failures=failures,
            created=created,
        )
