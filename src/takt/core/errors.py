# src/takt/core/errors.py

"""
Error taxonomy.

Adapters (LLM backend, SQLite stores) raise these; the ingestion
orchestrator turns them into outcomes and user-facing text.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class TaktError(Exception):
    """Base class for domain errors."""


class ConfigurationError(TaktError):
    """Required external configuration is missing (API key, base URL, model...)."""


class AlreadyInitialized(TaktError):
    """Process-scoped initialization was requested twice."""


class MalformedRequest(TaktError):
    """Inbound message without body or sender."""


class ExtractionFailureKind(StrEnum):
    TIMEOUT = "timeout"
    UPSTREAM = "upstream"
    EMPTY_RESPONSE = "empty_response"
    UNPARSEABLE = "unparseable"
    NO_ITEMS = "no_items"


class ExtractionFailure(TaktError):
    """
    The text -> candidates call failed.

    `payload` holds whatever was decoded before the failure (for the audit log).
    """

    def __init__(self, kind: ExtractionFailureKind, detail: str, *, payload: Any | None = None) -> None:
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.payload = payload

    def __str__(self) -> str:
        return f"extraction failed ({self.kind.value}): {self.detail}"


class CandidateRejected(TaktError):
    """One decoded candidate is not persistable; siblings are unaffected."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PersistenceFailure(TaktError):
    """A single store write failed."""


class DependencyError(TaktError):
    """Base for dependency-edge constraint violations."""


class SelfReference(DependencyError):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"item {item_id} cannot depend on itself")
        self.item_id = item_id


class DuplicateEdge(DependencyError):
    def __init__(self, predecessor_id: int, successor_id: int) -> None:
        super().__init__(f"dependency {predecessor_id} -> {successor_id} already exists")
        self.predecessor_id = predecessor_id
        self.successor_id = successor_id


class UnknownItem(DependencyError):
    def __init__(self, predecessor_id: int, successor_id: int) -> None:
        super().__init__(f"dependency {predecessor_id} -> {successor_id} references a missing item")
        self.predecessor_id = predecessor_id
        self.successor_id = successor_id


class DependencyCycle(DependencyError):
    def __init__(self, predecessor_id: int, successor_id: int) -> None:
        super().__init__(f"dependency {predecessor_id} -> {successor_id} would create a cycle")
        self.predecessor_id = predecessor_id
        self.successor_id = successor_id
