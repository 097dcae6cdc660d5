# src/takt/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..ingest.extraction import ExtractionClient
from ..ingest.orchestrator import IngestionOrchestrator
from ..storage.audit_log import AuditLog
from ..storage.category_store import CategoryStore
from ..storage.db import Database
from ..storage.dependency_store import DependencyStore
from ..storage.item_store import ItemStore
from ..storage.preferences_store import PreferenceStore
from .ports import Completer, OutboundMessenger


@dataclass
class AppState:
    """
    Shared runtime state (wired once by the bootstrap).

    Notes:
    - Keep this object small and explicit: it is passed to connectors and commands.
    - Stores open short-lived sqlite connections per call, so sharing them across
      the console thread and background threads is fine.
    """

    settings: Any

    db: Database
    items: ItemStore
    categories: CategoryStore
    dependencies: DependencyStore
    audit: AuditLog
    preferences: PreferenceStore

    completer: Completer
    extraction: ExtractionClient
    orchestrator: IngestionOrchestrator

    # None when no outbound transport is configured (digests are then disabled).
    messenger: OutboundMessenger | None = None

    lock: threading.RLock = field(default_factory=threading.RLock)
