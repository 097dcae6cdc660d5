# tests/test_orchestrator.py

from __future__ import annotations

import sqlite3
from datetime import UTC, date, datetime

from takt.core.errors import ExtractionFailure, ExtractionFailureKind, PersistenceFailure
from takt.core.models import InboundMessage, ItemKind, ItemOrigin
from takt.ingest.extraction import ExtractionClient
from takt.ingest.orchestrator import (
    UNHANDLED_ERROR_PREFIX,
    GENERIC_APOLOGY,
    IN_FLIGHT_REPLY,
    MISSING_DATA_REPLY,
    NOTHING_CREATED_REPLY,
    IngestionOrchestrator,
    IngestionState,
)

from .conftest import FIXED_NOW

SENDER = "+15551234567"


def _msg(body: str, delivery_id: str | None = None, sender: str = SENDER) -> InboundMessage:
    return InboundMessage(sender=sender, body=body, delivery_id=delivery_id)


class FlakyItems:
    """ItemRepo wrapper that fails inserts for selected titles."""

    def __init__(self, inner, fail_titles: set[str]) -> None:
        self._inner = inner
        self._fail = fail_titles

    def add_item(self, item):
        if item.title in self._fail:
            raise PersistenceFailure("disk I/O error")
        return self._inner.add_item(item)

    def __getattr__(self, name):
        return getattr(self._inner, name)


class BrokenAudit:
    """AuditRepo whose writes always fail."""

    def __init__(self, inner) -> None:
        self._inner = inner

    def claim(self, delivery_id):
        return self._inner.claim(delivery_id)

    def find_by_delivery_id(self, delivery_id):
        return self._inner.find_by_delivery_id(delivery_id)

    def record(self, **kwargs):
        raise PersistenceFailure("database is locked")


def test_reminder_tomorrow_creates_task_due_next_day(orchestrator, completer, items) -> None:
    completer.reply_with({"items": [{"type": "task", "title": "call mom", "due_date": "2024-05-02"}]})

    outcome = orchestrator.handle_message(_msg("remind me to call mom tomorrow", "SM1"))

    assert outcome.state == IngestionState.ALL_OK
    assert outcome.reply == 'Created task: "call mom"'
    assert outcome.items_created == 1

    (item,) = items.list_items()
    assert item.kind == ItemKind.TASK
    assert item.due_date == date(2024, 5, 2)
    assert item.start_time is None
    assert item.origin == ItemOrigin.MESSAGE
    assert item.raw_text == "remind me to call mom tomorrow"

    # The capability is told what "tomorrow" means in the sender's frame.
    _, user_prompt = completer.calls[0]
    assert "Tomorrow: 2024-05-02" in user_prompt
    assert "America/New_York" in user_prompt


def test_event_time_is_interpreted_in_sender_timezone(orchestrator, completer, items) -> None:
    completer.reply_with({"type": "event", "title": "haircut", "start_time": "2024-05-02T11:00:00"})

    outcome = orchestrator.handle_message(_msg("haircut tomorrow at 11am", "SM2"))

    assert outcome.state == IngestionState.ALL_OK
    assert outcome.reply == 'Created event: "haircut"'
    (item,) = items.list_items()
    assert item.kind == ItemKind.EVENT
    assert item.due_date is None
    # 11:00 EDT
    assert item.start_time == datetime(2024, 5, 2, 15, 0, tzinfo=UTC)


def test_sender_preference_timezone_overrides_default(orchestrator, completer, items, preferences) -> None:
    preferences.upsert(SENDER, timezone="Asia/Tokyo")
    completer.reply_with({"type": "event", "title": "lunch", "start_time": "2024-05-02T11:00"})

    orchestrator.handle_message(_msg("lunch tomorrow 11", "SM3"))

    _, user_prompt = completer.calls[0]
    assert "Asia/Tokyo" in user_prompt
    # 22:00 in Tokyo at the fixed clock, still May 1st there
    assert "Today: 2024-05-01" in user_prompt
    (item,) = items.list_items()
    assert item.start_time == datetime(2024, 5, 2, 2, 0, tzinfo=UTC)


def test_extraction_timeout_creates_nothing_and_audits(orchestrator, completer, items, audit) -> None:
    completer.error = ExtractionFailure(ExtractionFailureKind.TIMEOUT, "extraction call timed out after 25s")

    outcome = orchestrator.handle_message(_msg("buy milk", "SM4"))

    assert outcome.state == IngestionState.EXTRACT_FAILED
    assert outcome.reply == GENERIC_APOLOGY
    assert items.count_items() == 0

    entry = audit.find_by_delivery_id("SM4")
    assert entry is not None
    assert entry.items_created == 0
    assert "extraction" in (entry.error or "")
    assert entry.reply == GENERIC_APOLOGY


def test_duplicate_delivery_replays_reply_without_side_effects(orchestrator, completer, items, audit) -> None:
    completer.reply_with({"items": [{"type": "task", "title": "pay rent"}]})

    first = orchestrator.handle_message(_msg("pay rent", "SM5"))
    second = orchestrator.handle_message(_msg("pay rent", "SM5"))

    assert first.state == IngestionState.ALL_OK
    assert second.state == IngestionState.DUPLICATE
    assert second.reply == first.reply
    assert second.items_created == 1
    assert len(completer.calls) == 1
    assert items.count_items() == 1
    assert audit.count_entries() == 1


def test_duplicate_while_first_is_in_flight_gets_ack(orchestrator, completer, audit) -> None:
    # Claimed but no audit entry yet: the first delivery is still running.
    assert audit.claim("SM6")

    outcome = orchestrator.handle_message(_msg("pay rent", "SM6"))

    assert outcome.state == IngestionState.DUPLICATE
    assert outcome.reply == IN_FLIGHT_REPLY
    assert completer.calls == []


def test_messages_without_delivery_id_are_never_deduplicated(orchestrator, completer, items) -> None:
    completer.reply_with({"type": "task", "title": "stretch"})

    orchestrator.handle_message(_msg("stretch"))
    orchestrator.handle_message(_msg("stretch"))

    assert items.count_items() == 2


def test_partial_success_keeps_valid_items(orchestrator, completer, items, audit) -> None:
    completer.reply_with(
        {
            "items": [
                {"type": "task", "title": "email Bob"},
                {"type": "note", "title": "not a kind"},
                {"type": "task", "title": "   "},
            ]
        }
    )

    outcome = orchestrator.handle_message(_msg("email bob and stuff", "SM7"))

    assert outcome.state == IngestionState.PARTIAL
    assert outcome.items_created == 1
    assert outcome.failures == ["Invalid item: unknown type 'note'", "Invalid item: missing title"]
    assert outcome.reply == 'Created task: "email Bob"'
    assert [i.title for i in items.list_items()] == ["email Bob"]

    entry = audit.find_by_delivery_id("SM7")
    assert entry.items_created == 1
    assert entry.error == "Invalid item: unknown type 'note'; Invalid item: missing title"
    assert entry.parsed_result["items"][0]["title"] == "email Bob"


def test_failed_insert_does_not_block_siblings(completer, items, categories, audit) -> None:
    orchestrator = IngestionOrchestrator(
        ExtractionClient(completer),
        FlakyItems(items, {"boom"}),
        categories,
        audit,
        clock=lambda: FIXED_NOW,
    )
    completer.reply_with(
        {
            "items": [
                {"type": "task", "title": "first"},
                {"type": "task", "title": "boom"},
                {"type": "task", "title": "third"},
            ]
        }
    )

    outcome = orchestrator.handle_message(_msg("three things", "SM8"))

    assert outcome.state == IngestionState.PARTIAL
    assert sorted(i.title for i in items.list_items()) == ["first", "third"]
    assert outcome.failures == ['Failed to create "boom": disk I/O error']
    assert outcome.reply == "Created 2 items:\n• first\n• third"


def test_all_candidates_rejected(orchestrator, completer, items) -> None:
    completer.reply_with({"items": [{"title": "no kind"}]})

    outcome = orchestrator.handle_message(_msg("???", "SM9"))

    assert outcome.state == IngestionState.ALL_FAILED
    assert outcome.reply == f"{NOTHING_CREATED_REPLY} Error: Invalid item: missing type"
    assert items.count_items() == 0


def test_missing_body_is_audited_without_extraction(orchestrator, completer, audit) -> None:
    outcome = orchestrator.handle_message(_msg("   ", "SM10"))

    assert outcome.state == IngestionState.MALFORMED
    assert outcome.reply == MISSING_DATA_REPLY
    assert completer.calls == []

    entry = audit.find_by_delivery_id("SM10")
    assert entry.sender == SENDER
    assert entry.body == "(empty)"
    assert entry.error.startswith("missing-data")


def test_missing_sender_is_recorded_as_unknown(orchestrator, audit) -> None:
    outcome = orchestrator.handle_message(_msg("hello", "SM11", sender=""))

    assert outcome.state == IngestionState.MALFORMED
    assert audit.find_by_delivery_id("SM11").sender == "unknown"


def test_config_error_does_not_audit_or_burn_delivery_id(orchestrator, completer, audit, items) -> None:
    completer.ready_error = "LLM API key is not set"

    outcome = orchestrator.handle_message(_msg("buy milk", "SM12"))

    assert outcome.state == IngestionState.CONFIG_ERROR
    assert audit.count_entries() == 0

    # Redelivery after the operator fixes the configuration is processed normally.
    completer.ready_error = None
    completer.reply_with({"type": "task", "title": "buy milk"})
    retry = orchestrator.handle_message(_msg("buy milk", "SM12"))
    assert retry.state == IngestionState.ALL_OK
    assert items.count_items() == 1


def test_unparseable_and_empty_responses_get_specific_apologies(orchestrator, completer) -> None:
    completer.reply_with("I'm sorry, I can't help with that.")
    bad = orchestrator.handle_message(_msg("gibberish", "SM13"))
    assert bad.state == IngestionState.EXTRACT_FAILED
    assert "parsing" in bad.reply

    completer.reply_with({"items": []})
    empty = orchestrator.handle_message(_msg("nothing here", "SM14"))
    assert empty.state == IngestionState.EXTRACT_FAILED
    assert "couldn't find any tasks or events" in empty.reply


def test_category_hint_resolves_case_insensitively(orchestrator, completer, items, categories) -> None:
    work = next(c for c in categories.list_categories() if c.name == "Work")
    completer.reply_with(
        {
            "items": [
                {"type": "task", "title": "report", "category_hint": "work"},
                {"type": "task", "title": "mystery", "category_hint": "Hobbies"},
            ]
        }
    )

    orchestrator.handle_message(_msg("report and mystery", "SM15"))

    by_title = {i.title: i for i in items.list_items()}
    assert by_title["report"].category_id == work.id
    assert by_title["mystery"].category_id is None


def test_audit_write_failure_still_replies(completer, items, categories, audit) -> None:
    orchestrator = IngestionOrchestrator(
        ExtractionClient(completer),
        items,
        categories,
        BrokenAudit(audit),
        clock=lambda: FIXED_NOW,
    )
    completer.reply_with({"type": "task", "title": "water plants"})

    outcome = orchestrator.handle_message(_msg("water plants", "SM16"))

    assert outcome.state == IngestionState.ALL_OK
    assert outcome.reply == 'Created task: "water plants"'


class LockedOnceItems:
    """ItemRepo wrapper whose first insert dies with a raw SQLite error."""

    def __init__(self, inner) -> None:
        self._inner = inner
        self.locked = True

    def add_item(self, item):
        if self.locked:
            self.locked = False
            raise sqlite3.OperationalError("database is locked")
        return self._inner.add_item(item)

    def __getattr__(self, name):
        return getattr(self._inner, name)


def test_unexpected_error_after_claim_is_audited_and_replayed(completer, items, categories, audit) -> None:
    orchestrator = IngestionOrchestrator(
        ExtractionClient(completer),
        LockedOnceItems(items),
        categories,
        audit,
        clock=lambda: FIXED_NOW,
    )
    completer.reply_with({"type": "task", "title": "pay rent"})

    outcome = orchestrator.handle_message(_msg("pay rent", "SMX"))

    assert outcome.state == IngestionState.ALL_FAILED
    assert outcome.reply == GENERIC_APOLOGY
    entry = audit.find_by_delivery_id("SMX")
    assert entry is not None
    assert entry.error.startswith(UNHANDLED_ERROR_PREFIX)
    assert "OperationalError" in entry.error
    assert entry.reply == GENERIC_APOLOGY

    again = orchestrator.handle_message(_msg("pay rent", "SMX"))

    assert again.state == IngestionState.DUPLICATE
    assert again.reply == GENERIC_APOLOGY
    assert audit.count_entries() == 1
    assert items.list_items() == []


def test_untyped_completer_error_is_an_extraction_failure(orchestrator, completer, audit) -> None:
    completer.error = RuntimeError("backend exploded")

    outcome = orchestrator.handle_message(_msg("buy milk", "SM20"))

    assert outcome.state == IngestionState.EXTRACT_FAILED
    assert outcome.reply == GENERIC_APOLOGY
    entry = audit.find_by_delivery_id("SM20")
    assert entry is not None
    assert "RuntimeError: backend exploded" in entry.error

    again = orchestrator.handle_message(_msg("buy milk", "SM20"))
    assert again.state == IngestionState.DUPLICATE
    assert again.reply == GENERIC_APOLOGY
