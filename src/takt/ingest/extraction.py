# src/takt/ingest/extraction.py

"""
Extraction client: message text -> candidate items.

The external capability is opaque (any Completer). This module owns:
- the context block sent with every call (dates in the sender's frame,
  known category names),
- decoding of the untrusted response into Candidate objects.

Accepted response shapes:
- {"items": [ {...}, ... ]}
- a single candidate object {...}
Either may be wrapped in ``` / ```json fences.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from ..core.errors import ExtractionFailure, ExtractionFailureKind
from ..core.models import Candidate
from ..core.ports import Completer
from ..time_utils import load_zone
from .prompts import DEFAULT_CATEGORY_NAMES, EXTRACTION_SYSTEM_PROMPT, MESSAGE_MARKER

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[A-Za-z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


@dataclass(slots=True, frozen=True)
class ExtractionContext:
    reference: datetime
    timezone: str
    category_names: list[str] = field(default_factory=list)

    @classmethod
    def for_now(cls, timezone: str, category_names: Sequence[str], *, now: datetime | None = None) -> ExtractionContext:
        tz = load_zone(timezone)
        ref = (now or datetime.now(tz)).astimezone(tz)
        return cls(reference=ref, timezone=tz.key, category_names=list(category_names))


@dataclass(slots=True)
class ExtractionResult:
    payload: Any
    candidates: list[Candidate]


def render_context(ctx: ExtractionContext) -> str:
    ref = ctx.reference
    today = ref.date()
    tomorrow = today + timedelta(days=1)

    lines = [
        "CURRENT DATE/TIME CONTEXT:",
        f"- Timezone: {ctx.timezone}",
        f"- Today: {today.isoformat()} ({today.strftime('%A')})",
        f"- Tomorrow: {tomorrow.isoformat()} ({tomorrow.strftime('%A')})",
        f"- Current time: {ref.strftime('%I:%M %p')}",
        "- This week's dates:",
    ]
    for i in range(7):
        d = today + timedelta(days=i)
        lines.append(f"  - {d.strftime('%A').lower()}: {d.isoformat()}")
    lines.append("")
    lines.append("Use these EXACT dates when the user mentions relative days.")
    return "\n".join(lines)


def build_user_prompt(text: str, ctx: ExtractionContext) -> str:
    names = [n for n in ctx.category_names if n and n.strip()] or list(DEFAULT_CATEGORY_NAMES)
    return (
        f"{render_context(ctx)}\n\n"
        f"Available categories in the app: {', '.join(names)}\n\n"
        f'{MESSAGE_MARKER}\n"{text}"'
    )


def strip_code_fences(raw: str) -> str:
    text = (raw or "").strip()
    text = _FENCE_OPEN.sub("", text, count=1)
    text = _FENCE_CLOSE.sub("", text, count=1)
    return text.strip()


def _extract_json_object(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def _field(obj: dict[str, Any], *keys: str) -> str | None:
    for k in keys:
        if k not in obj or obj[k] is None:
            continue
        v = obj[k]
        if isinstance(v, (dict, list)):
            return None
        return str(v).strip()
    return None


def _to_candidate(obj: Any) -> Candidate:
    if not isinstance(obj, dict):
        return Candidate()
    return Candidate(
        kind=_field(obj, "type", "kind"),
        title=_field(obj, "title"),
        description=_field(obj, "description") or None,
        due_date=_field(obj, "due_date") or None,
        start_time=_field(obj, "start_time") or None,
        end_time=_field(obj, "end_time") or None,
        category_hint=_field(obj, "category_hint", "category", "category_name") or None,
    )


def decode_candidates(raw: str) -> ExtractionResult:
    """
    Decode the capability's text response.

    Raises ExtractionFailure(unparseable | no_items).
    """
    text = strip_code_fences(raw)
    try:
        payload = json.loads(text)
    except ValueError:
        try:
            payload = json.loads(_extract_json_object(text))
        except ValueError as e:
            raise ExtractionFailure(
                ExtractionFailureKind.UNPARSEABLE,
                f"extraction response is not valid JSON: {raw.strip()[:200]}",
            ) from e

    if not isinstance(payload, dict):
        raise ExtractionFailure(
            ExtractionFailureKind.UNPARSEABLE,
            f"extraction response has unexpected top-level type {type(payload).__name__}",
            payload=payload,
        )

    if "items" in payload:
        items = payload["items"]
        if not isinstance(items, list):
            raise ExtractionFailure(
                ExtractionFailureKind.NO_ITEMS,
                "extraction response 'items' is not a list",
                payload=payload,
            )
    else:
        items = [payload]

    if not items:
        raise ExtractionFailure(
            ExtractionFailureKind.NO_ITEMS,
            "extraction found no items in the message",
            payload=payload,
        )

    return ExtractionResult(payload=payload, candidates=[_to_candidate(x) for x in items])


class ExtractionClient:
    """Wraps a Completer with context construction and response decoding."""

    def __init__(self, completer: Completer, *, system_prompt: str = EXTRACTION_SYSTEM_PROMPT) -> None:
        self._completer = completer
        self._system_prompt = system_prompt

    def ensure_ready(self) -> None:
        self._completer.ensure_ready()

    def extract(self, text: str, ctx: ExtractionContext) -> ExtractionResult:
        user_prompt = build_user_prompt(text, ctx)
        logger.debug("Extraction context tz=%s today=%s", ctx.timezone, ctx.reference.date())

        try:
            raw = self._completer.complete(self._system_prompt, user_prompt)
        except ExtractionFailure:
            raise
        except Exception as e:
            logger.warning("Completer raised %s", type(e).__name__)
            raise ExtractionFailure(
                ExtractionFailureKind.UPSTREAM,
                f"extraction call failed: {type(e).__name__}: {e}",
            ) from e

        if not raw or not raw.strip():
            raise ExtractionFailure(ExtractionFailureKind.EMPTY_RESPONSE, "extraction response was empty")

        logger.debug("Extraction raw response: %s", raw[:500])
        result = decode_candidates(raw)
        logger.info("Extraction decoded %d candidate(s)", len(result.candidates))
        return result
