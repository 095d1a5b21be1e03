"""
In-memory entity store.

Keeps committed records in insertion-ordered dicts keyed by id. A commit
builds the new state on the side and swaps it in only when every step has
succeeded, so a failed save() leaves the previous state intact.
"""

from __future__ import annotations

import uuid
from typing import Any

from sambackup.storage.base import PendingChanges, StorageError, Store
from sambackup.storage.models import ENTITY_TYPES, EvidenceItem


class MemoryStore(Store):
    """
    Store backed by plain Python dicts.

    Useful for tests and for embedding the backup engine in an application
    that owns its own persistence. Deleting people or contexts removes them
    from the links of surviving evidence items.
    """

    def __init__(self) -> None:
        super().__init__()
        self._records: dict[type, dict[uuid.UUID, Any]] = {
            entity_type: {} for entity_type in ENTITY_TYPES
        }

    def fetch_all(self, entity_type: type) -> list[Any]:
        """Fetch every committed record of one type, in insertion order."""
        return list(self._records[self._check_type(entity_type)].values())

    def _committed_ids(self, entity_type: type) -> set[uuid.UUID]:
        return set(self._records[entity_type])

    def _commit(self, pending: PendingChanges) -> None:
        staged = {entity_type: dict(records) for entity_type, records in self._records.items()}

        for entity_type in pending.deletes:
            staged[entity_type] = {}

        for entity in pending.inserts:
            records = staged[type(entity)]
            if entity.id in records:
                raise StorageError(f"Duplicate id on commit: {entity.id}")
            records[entity.id] = entity

        # Nullify links to deleted entities on surviving evidence
        for evidence in staged[EvidenceItem].values():
            evidence.linked_people = [
                p for p in evidence.linked_people if p.id in staged[type(p)]
            ]
            evidence.linked_contexts = [
                c for c in evidence.linked_contexts if c.id in staged[type(c)]
            ]

        self._records = staged
