# tests/test_config.py

from __future__ import annotations

from datetime import time
from pathlib import Path

from takt.config import DEFAULT_TIMEZONE, Settings


def test_defaults(monkeypatch) -> None:
    for name in ("TAKT_DATA_DIR", "TAKT_DB_PATH", "TAKT_DEFAULT_TIMEZONE", "TAKT_LLM_OFFLINE"):
        monkeypatch.delenv(name, raising=False)

    s = Settings.from_env()

    assert s.default_timezone == DEFAULT_TIMEZONE
    assert s.db_path == Path(".local/takt") / "takt.sqlite3"
    assert s.llm_offline is False
    assert s.digest_default_time == time(8, 0)


def test_env_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TAKT_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TAKT_DEFAULT_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("TAKT_LLM_OFFLINE", "yes")
    monkeypatch.setenv("TAKT_DIGEST_DEFAULT_TIME", "06:45")
    monkeypatch.setenv("TAKT_WEBHOOK_PORT", "not-a-number")

    s = Settings.from_env()

    assert s.db_path == tmp_path / "takt.sqlite3"
    assert s.default_timezone == "Europe/Berlin"
    assert s.llm_offline is True
    assert s.digest_default_time == time(6, 45)
    assert s.webhook_port == 8000
