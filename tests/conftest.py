# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime, time
from pathlib import Path
from types import SimpleNamespace

import pytest

from takt.core.state import AppState
from takt.ingest.extraction import ExtractionClient
from takt.ingest.orchestrator import IngestionOrchestrator
from takt.storage.audit_log import AuditLog
from takt.storage.category_store import CategoryStore
from takt.storage.db import Database
from takt.storage.dependency_store import DependencyStore
from takt.storage.item_store import ItemStore
from takt.storage.preferences_store import PreferenceStore

from .fakes import FakeCompleter, FakeMessenger

# 2024-05-01 09:00 in America/New_York
FIXED_NOW = datetime(2024, 5, 1, 13, 0, tzinfo=UTC)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="takt-test",
        data_dir=tmp_path,
        db_path=tmp_path / "takt.sqlite3",
        default_timezone="America/New_York",
        llm_offline=False,
        llm_model="test/model",
        digest_enabled=False,
        digest_interval_seconds=0.5,
        digest_concurrency=2,
        digest_default_time=time(8, 0),
        webhook_enabled=False,
        webhook_host="127.0.0.1",
        webhook_port=0,
        twilio_account_sid="",
        twilio_auth_token="",
        twilio_from_number="",
    )


@pytest.fixture()
def db(settings: SimpleNamespace) -> Database:
    return Database(settings.db_path)


@pytest.fixture()
def items(db: Database) -> ItemStore:
    return ItemStore(db)


@pytest.fixture()
def categories(db: Database) -> CategoryStore:
    store = CategoryStore(db)
    for name in ("Work", "Personal", "Home"):
        store.add_category(name)
    return store


@pytest.fixture()
def audit(db: Database) -> AuditLog:
    return AuditLog(db)


@pytest.fixture()
def preferences(db: Database) -> PreferenceStore:
    return PreferenceStore(db)


@pytest.fixture()
def dependencies(db: Database) -> DependencyStore:
    return DependencyStore(db)


@pytest.fixture()
def completer() -> FakeCompleter:
    return FakeCompleter()


@pytest.fixture()
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture()
def orchestrator(
    completer: FakeCompleter,
    items: ItemStore,
    categories: CategoryStore,
    audit: AuditLog,
    preferences: PreferenceStore,
) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        ExtractionClient(completer),
        items,
        categories,
        audit,
        preferences,
        default_timezone="America/New_York",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    db: Database,
    items: ItemStore,
    categories: CategoryStore,
    dependencies: DependencyStore,
    audit: AuditLog,
    preferences: PreferenceStore,
    completer: FakeCompleter,
    orchestrator: IngestionOrchestrator,
    messenger: FakeMessenger,
) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: We keep real SQLite stores here because their correctness is part
    of what we want to test.
    """
    return AppState(
        settings=settings,
        db=db,
        items=items,
        categories=categories,
        dependencies=dependencies,
        audit=audit,
        preferences=preferences,
        completer=completer,
        extraction=ExtractionClient(completer),
        orchestrator=orchestrator,
        messenger=messenger,
    )
