# tests/test_llm_client.py

from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from takt.core.errors import ConfigurationError, ExtractionFailure, ExtractionFailureKind
from takt.llm.client import OpenRouterCompleter


def _settings(**overrides) -> SimpleNamespace:
    base = dict(
        openrouter_api_key="sk-test",
        openrouter_base_url="https://openrouter.example/api/v1",
        llm_model="test/model",
        extra_headers={},
        llm_connect_timeout_seconds=1.0,
        llm_read_timeout_seconds=2.0,
        llm_max_tokens=256,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


class _Completions:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.kwargs: dict = {}

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.result


def _with_fake_client(completer: OpenRouterCompleter, completions: _Completions) -> None:
    completer._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.mark.parametrize(
    "missing",
    ["openrouter_api_key", "openrouter_base_url", "llm_model"],
)
def test_ensure_ready_requires_configuration(missing: str) -> None:
    completer = OpenRouterCompleter(_settings(**{missing: ""}))
    with pytest.raises(ConfigurationError):
        completer.ensure_ready()


def test_complete_returns_text_and_sends_both_prompts() -> None:
    completer = OpenRouterCompleter(_settings())
    completions = _Completions(result=_response('{"items": []}'))
    _with_fake_client(completer, completions)

    assert completer.complete("SYS", "USER") == '{"items": []}'
    assert completions.kwargs["model"] == "test/model"
    assert [m["role"] for m in completions.kwargs["messages"]] == ["system", "user"]


def test_timeout_becomes_timeout_failure() -> None:
    completer = OpenRouterCompleter(_settings())
    _with_fake_client(completer, _Completions(error=httpx.ReadTimeout("read timed out")))

    with pytest.raises(ExtractionFailure) as exc:
        completer.complete("SYS", "USER")
    assert exc.value.kind == ExtractionFailureKind.TIMEOUT
    assert "timed out" in str(exc.value)


def test_other_errors_become_upstream_failure() -> None:
    completer = OpenRouterCompleter(_settings())
    _with_fake_client(completer, _Completions(error=httpx.ConnectError("refused")))

    with pytest.raises(ExtractionFailure) as exc:
        completer.complete("SYS", "USER")
    assert exc.value.kind == ExtractionFailureKind.UPSTREAM
    assert "network error" in exc.value.detail


def test_blank_content_is_empty_response() -> None:
    completer = OpenRouterCompleter(_settings())
    _with_fake_client(completer, _Completions(result=_response("   ")))

    with pytest.raises(ExtractionFailure) as exc:
        completer.complete("SYS", "USER")
    assert exc.value.kind == ExtractionFailureKind.EMPTY_RESPONSE


def test_client_construction_error_becomes_upstream_failure(monkeypatch) -> None:
    def broken_client(**kwargs):
        raise ValueError("bad base url")

    monkeypatch.setattr("takt.llm.client.OpenAI", broken_client)
    completer = OpenRouterCompleter(_settings())

    with pytest.raises(ExtractionFailure) as exc:
        completer.complete("SYS", "USER")
    assert exc.value.kind == ExtractionFailureKind.UPSTREAM
    assert "ValueError: bad base url" in exc.value.detail
