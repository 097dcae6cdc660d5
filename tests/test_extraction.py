# tests/test_extraction.py

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from takt.core.errors import ExtractionFailure, ExtractionFailureKind
from takt.core.models import Candidate
from takt.ingest.extraction import (
    ExtractionClient,
    ExtractionContext,
    build_user_prompt,
    decode_candidates,
    strip_code_fences,
)
from takt.llm.offline import OfflineCompleter

from .fakes import FakeCompleter


def _ctx(tz: str = "America/New_York") -> ExtractionContext:
    return ExtractionContext.for_now(tz, ["Work", "Home"], now=datetime(2024, 5, 1, 13, 0, tzinfo=UTC))


def test_strip_code_fences_handles_json_tag() -> None:
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n{"a": 1}```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_decode_items_shape() -> None:
    result = decode_candidates(
        '{"items": [{"type": "task", "title": "a", "due_date": "2024-05-02", "category_hint": "Work"},'
        ' {"type": "event", "title": "b", "start_time": "2024-05-02T10:00"}]}'
    )
    assert result.candidates == [
        Candidate(kind="task", title="a", due_date="2024-05-02", category_hint="Work"),
        Candidate(kind="event", title="b", start_time="2024-05-02T10:00"),
    ]


def test_decode_single_object_shape_in_fences() -> None:
    result = decode_candidates('```json\n{"type": "task", "title": "call mom"}\n```')
    assert result.candidates == [Candidate(kind="task", title="call mom")]
    assert result.payload == {"type": "task", "title": "call mom"}


def test_decode_tolerates_prose_around_json() -> None:
    result = decode_candidates('Sure! Here you go: {"items": [{"type": "task", "title": "x"}]} Enjoy.')
    assert [c.title for c in result.candidates] == ["x"]


def test_decode_keeps_non_object_elements_as_empty_candidates() -> None:
    result = decode_candidates('{"items": ["oops", {"type": "task", "title": "ok"}]}')
    assert result.candidates[0] == Candidate()
    assert result.candidates[1].title == "ok"


@pytest.mark.parametrize(
    ("raw", "kind"),
    [
        ("not json", ExtractionFailureKind.UNPARSEABLE),
        ("[1, 2, 3]", ExtractionFailureKind.UNPARSEABLE),
        ('{"items": []}', ExtractionFailureKind.NO_ITEMS),
        ('{"items": "task"}', ExtractionFailureKind.NO_ITEMS),
    ],
)
def test_decode_failures(raw: str, kind: ExtractionFailureKind) -> None:
    with pytest.raises(ExtractionFailure) as exc:
        decode_candidates(raw)
    assert exc.value.kind == kind
    assert "extraction" in str(exc.value)


def test_context_is_rendered_in_sender_frame() -> None:
    prompt = build_user_prompt("dentist friday", _ctx())

    assert "Timezone: America/New_York" in prompt
    assert "Today: 2024-05-01 (Wednesday)" in prompt
    assert "Tomorrow: 2024-05-02 (Thursday)" in prompt
    assert "friday: 2024-05-03" in prompt
    assert "Available categories in the app: Work, Home" in prompt
    assert prompt.rstrip().endswith('"dentist friday"')


def test_context_falls_back_to_default_category_names() -> None:
    ctx = ExtractionContext.for_now("UTC", [], now=datetime(2024, 5, 1, tzinfo=UTC))
    assert "Available categories in the app: Work, Personal, Home" in build_user_prompt("x", ctx)


def test_client_reports_empty_response() -> None:
    client = ExtractionClient(FakeCompleter(next_text="   "))
    with pytest.raises(ExtractionFailure) as exc:
        client.extract("hi", _ctx())
    assert exc.value.kind == ExtractionFailureKind.EMPTY_RESPONSE


def test_client_passes_system_prompt_and_message() -> None:
    completer = FakeCompleter(next_text='{"type": "task", "title": "x"}')
    client = ExtractionClient(completer, system_prompt="SYSTEM")

    result = client.extract("buy x", _ctx())

    assert result.candidates[0].title == "x"
    system, user = completer.calls[0]
    assert system == "SYSTEM"
    assert '"buy x"' in user


def test_offline_completer_turns_message_into_one_task() -> None:
    client = ExtractionClient(OfflineCompleter())
    result = client.extract("water the plants", _ctx())

    (candidate,) = result.candidates
    assert candidate.kind == "task"
    assert candidate.title == "water the plants"
    assert candidate.due_date is None


def test_client_wraps_untyped_completer_errors_as_upstream() -> None:
    completer = FakeCompleter()
    completer.error = RuntimeError("socket closed")

    with pytest.raises(ExtractionFailure) as exc:
        ExtractionClient(completer).extract("hi", _ctx())

    assert exc.value.kind == ExtractionFailureKind.UPSTREAM
    assert exc.value.detail == "extraction call failed: RuntimeError: socket closed"
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_client_passes_typed_failures_through() -> None:
    completer = FakeCompleter()
    completer.error = ExtractionFailure(ExtractionFailureKind.TIMEOUT, "extraction call timed out after 2.0s")

    with pytest.raises(ExtractionFailure) as exc:
        ExtractionClient(completer).extract("hi", _ctx())

    assert exc.value.kind == ExtractionFailureKind.TIMEOUT
