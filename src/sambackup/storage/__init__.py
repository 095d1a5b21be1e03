"""
Entity storage for SAM.

This module provides the live data store that backups are taken from and
restored into. A store holds three interlinked collections: people,
organizational contexts, and evidence items linked to both.

Features:
    - Unit-of-work staging: insert() and delete_all() apply on save()
    - Atomic commits, so a failed save() leaves committed data untouched
    - Stable UUID identities that callers choose and the store never rewrites

Backends:
    MemoryStore   In-process dicts, for tests and embedding
    SQLiteStore   Single-file SQLite database with link join tables

Usage:
    from sambackup.storage import Person, SQLiteStore

    store = SQLiteStore(data_dir)
    store.insert(Person.create("Ada Lovelace"))
    store.save()
    people = store.fetch_all(Person)
"""

from sambackup.storage.base import StorageError, Store
from sambackup.storage.memory import MemoryStore
from sambackup.storage.models import (
    Context,
    ContextKind,
    EvidenceItem,
    EvidenceSignal,
    EvidenceSource,
    EvidenceTriageState,
    Insight,
    InsightKind,
    LinkStatus,
    LinkTarget,
    ParticipantHint,
    Person,
    ProposedLink,
)
from sambackup.storage.sqlite import SQLiteStore

__all__ = [
    # Stores
    "Store",
    "MemoryStore",
    "SQLiteStore",
    # Entities
    "Person",
    "Context",
    "EvidenceItem",
    "EvidenceSignal",
    "Insight",
    "ParticipantHint",
    "ProposedLink",
    # Enums
    "ContextKind",
    "EvidenceSource",
    "EvidenceTriageState",
    "InsightKind",
    "LinkTarget",
    "LinkStatus",
    # Exceptions
    "StorageError",
]
