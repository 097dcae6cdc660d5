# src/takt/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any, Dict

import httpx
import openai
from openai import OpenAI

from ..core.errors import ConfigurationError, ExtractionFailure, ExtractionFailureKind

logger = logging.getLogger(__name__)


def _is_timeout_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APITimeoutError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {"Timeout", "ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.APIConnectionError, httpx.TransportError))


def _describe_upstream_error(exc: Exception) -> str:
    if _is_auth_error(exc):
        return "authentication failed (check TAKT_OPENROUTER_API_KEY)"
    if _is_rate_limit_error(exc):
        return "rate-limited or out of quota"
    if _is_connection_error(exc):
        return f"network error: {exc.__class__.__name__}"
    return f"{exc.__class__.__name__}: {str(exc).strip() or 'no detail'}"


class OpenRouterCompleter:
    """
    Single-shot chat completion against an OpenAI-compatible endpoint.

    - No secrets are read until the first call (ensure_ready / complete).
    - The SDK's automatic retries are disabled: redelivery is the transport's job.
    - connect/read timeouts are bounded; a timeout surfaces as ExtractionFailure(timeout).
    """

    def __init__(self, settings) -> None:
        self._api_key = (getattr(settings, "openrouter_api_key", None) or "").strip()
        self._base_url = (getattr(settings, "openrouter_base_url", "") or "").strip()
        self._model = (getattr(settings, "llm_model", "") or "").strip()
        self._headers: Dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        self._connect_s = float(getattr(settings, "llm_connect_timeout_seconds", 5.0))
        self._read_s = float(getattr(settings, "llm_read_timeout_seconds", 25.0))
        self._max_tokens = int(getattr(settings, "llm_max_tokens", 2048))
        self._client: OpenAI | None = None

    @property
    def model(self) -> str:
        return self._model

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._connect_s,
            read=self._read_s,
            write=10.0,
            pool=self._connect_s,
        )

    def ensure_ready(self) -> None:
        if not self._api_key:
            raise ConfigurationError("LLM API key is not set. Set TAKT_OPENROUTER_API_KEY in your .env.")
        if not self._base_url:
            raise ConfigurationError("LLM base URL is not set. Set TAKT_OPENROUTER_BASE_URL in your .env.")
        if not self._model:
            raise ConfigurationError("LLM model is not set. Set TAKT_LLM_MODEL in your .env.")

    def _get_client(self) -> OpenAI:
        if self._client is not None:
            return self._client
        self.ensure_ready()
        self._client = OpenAI(
            base_url=self._base_url,
            api_key=self._api_key,
            timeout=self._timeout(),
            max_retries=0,
        )
        return self._client

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        logger.info(
            "LLM: calling model=%s (connect_timeout=%.1fs, read_timeout=%.1fs)",
            self._model,
            self._connect_s,
            self._read_s,
        )
        t0 = time.monotonic()
        try:
            client = self._get_client()
            resp: Any = client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                extra_headers=self._headers or None,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except Exception as e:
            if _is_timeout_error(e):
                logger.warning("LLM: timeout on model=%s after %.2fs", self._model, time.monotonic() - t0)
                raise ExtractionFailure(
                    ExtractionFailureKind.TIMEOUT,
                    f"extraction call timed out after {time.monotonic() - t0:.1f}s",
                ) from e
            logger.warning("LLM: error on model=%s (%s)", self._model, e.__class__.__name__)
            raise ExtractionFailure(
                ExtractionFailureKind.UPSTREAM,
                f"extraction call failed: {_describe_upstream_error(e)}",
            ) from e

        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            content = None

        if not content or not str(content).strip():
            raise ExtractionFailure(
                ExtractionFailureKind.EMPTY_RESPONSE,
                f"extraction response from {self._model} had no text content",
            )

        logger.info("LLM: response from model=%s (%.2fs)", self._model, time.monotonic() - t0)
        return str(content)
