# src/takt/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (stores/LLM/orchestrator/SMS).

Initialization is explicit and happens once per process: a second
initialize() raises AlreadyInitialized until shutdown() has run. Nothing
is built at import time.
"""

from __future__ import annotations

import logging
import threading

from ..config import get_settings
from ..connectors.sms_sender import TwilioSmsSender
from ..core.errors import AlreadyInitialized, ConfigurationError
from ..core.ports import Completer
from ..core.state import AppState
from ..ingest.extraction import ExtractionClient
from ..ingest.orchestrator import IngestionOrchestrator
from ..ingest.prompts import DEFAULT_CATEGORY_NAMES
from ..llm.client import OpenRouterCompleter
from ..llm.offline import OfflineCompleter
from ..storage.audit_log import AuditLog
from ..storage.category_store import CategoryStore
from ..storage.db import Database
from ..storage.dependency_store import DependencyStore
from ..storage.item_store import ItemStore
from ..storage.preferences_store import PreferenceStore

logger = logging.getLogger(__name__)

_guard = threading.Lock()
_state: AppState | None = None


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def _seed_categories(categories: CategoryStore) -> None:
    if categories.list_categories():
        return
    for name in DEFAULT_CATEGORY_NAMES:
        categories.add_category(name)
    logger.info("Seeded default categories: %s", ", ".join(DEFAULT_CATEGORY_NAMES))


def _build_completer(settings) -> Completer:
    if getattr(settings, "llm_offline", False):
        logger.info("LLM offline mode: messages become single undated tasks.")
        return OfflineCompleter()

    completer = OpenRouterCompleter(settings)
    try:
        completer.ensure_ready()
    except ConfigurationError as e:
        # Keep the real completer: every message then ends in config_error,
        # which is what the transport should see.
        logger.warning("LLM is not configured: %s", e)
    return completer


def create_state(settings) -> AppState:
    """Wire an AppState from settings without touching the process guard."""
    _ensure_local_dirs(settings)

    db = Database(settings.db_path)
    items = ItemStore(db)
    categories = CategoryStore(db)
    audit = AuditLog(db)
    preferences = PreferenceStore(db)
    _seed_categories(categories)

    completer = _build_completer(settings)
    extraction = ExtractionClient(completer)
    orchestrator = IngestionOrchestrator(
        extraction,
        items,
        categories,
        audit,
        preferences,
        default_timezone=settings.default_timezone,
    )

    return AppState(
        settings=settings,
        db=db,
        items=items,
        categories=categories,
        dependencies=DependencyStore(db),
        audit=audit,
        preferences=preferences,
        completer=completer,
        extraction=extraction,
        orchestrator=orchestrator,
        messenger=TwilioSmsSender.from_settings(settings),
    )


def initialize(*, settings=None) -> AppState:
    """
    Build the process-wide AppState.

    If settings is None, falls back to get_settings().
    Raises AlreadyInitialized on a second call (until shutdown()).
    """
    global _state
    with _guard:
        if _state is not None:
            raise AlreadyInitialized("takt is already initialized in this process")
        if settings is None:
            settings = get_settings()
        _state = create_state(settings)
        logger.info("Initialized (db=%s)", settings.db_path)
        return _state


def get_app_state() -> AppState:
    with _guard:
        if _state is None:
            raise RuntimeError("takt is not initialized; call initialize() first")
        return _state


def shutdown() -> None:
    """Release the process guard. Stores hold no open connections, nothing to close."""
    global _state
    with _guard:
        _state = None
