# src/takt/llm/offline.py

from __future__ import annotations

import json

from ..ingest.prompts import MESSAGE_MARKER


class OfflineCompleter:
    """
    Offline deterministic completer used for demos when no external API is configured.

    Behavior:
    - Every message becomes a single undated task titled with the message text.
    """

    def ensure_ready(self) -> None:
        return

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        text = ""
        _, sep, tail = user_prompt.partition(MESSAGE_MARKER)
        if sep:
            text = tail.strip().strip('"').strip()

        item = {
            "type": "task",
            "title": text or "Untitled",
            "description": "Created offline (no external LLM configured)",
            "due_date": None,
            "start_time": None,
            "end_time": None,
            "category_hint": None,
        }
        return json.dumps({"items": [item]}, ensure_ascii=False)
