"""
Abstract persistence backend for the SAM entity collections.

The backup pipeline only needs three operations from a store: fetch every
record of a type, insert a record, and delete every record of a type. Stores
follow a unit-of-work model: insert() and delete_all() are staged, and
save() commits the whole unit atomically. rollback() discards it.

Because links are read from the live EvidenceItem objects when save() runs,
an entity can be inserted first and linked afterwards, as long as both
happen before save().
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from sambackup.storage.models import (
    ENTITY_NAMES,
    ENTITY_TYPES,
    Context,
    EvidenceItem,
    Person,
)

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage errors."""

    pass


@dataclass
class PendingChanges:
    """Work staged since the last save() or rollback()."""

    deletes: list[type] = field(default_factory=list)
    inserts: list[Any] = field(default_factory=list)

    def is_empty(self) -> bool:
        """Check if nothing is staged."""
        return not self.deletes and not self.inserts

    def inserted(self, entity_type: type) -> list[Any]:
        """Staged inserts of one entity type, in staging order."""
        return [e for e in self.inserts if type(e) is entity_type]


class Store(ABC):
    """
    Base class for entity stores.

    Subclasses implement fetching committed records and committing a
    PendingChanges unit. Staging, validation and rollback are shared.

    Usage:
        store = MemoryStore()
        person = Person.create("Ada Lovelace")
        store.insert(person)
        store.save()

        people = store.fetch_all(Person)
    """

    def __init__(self) -> None:
        self._pending = PendingChanges()

    # -------------------------------------------------------------------------
    # Backend hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def fetch_all(self, entity_type: type) -> list[Any]:
        """
        Fetch every committed record of one type, in insertion order.

        Staged changes are not visible until save().

        Args:
            entity_type: Person, Context or EvidenceItem.

        Returns:
            List of live entities.
        """

    @abstractmethod
    def _committed_ids(self, entity_type: type) -> set[uuid.UUID]:
        """Ids of the committed records of one type."""

    @abstractmethod
    def _commit(self, pending: PendingChanges) -> None:
        """
        Apply a unit of work atomically.

        Deletes run first in staging order, then inserts. Implementations
        must either apply everything or nothing, raising StorageError on
        failure.
        """

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    def insert(self, entity: Any) -> None:
        """
        Stage an entity for insertion.

        Args:
            entity: A Person, Context or EvidenceItem.

        Raises:
            StorageError: If the type is not managed or the id is already used.
        """
        entity_type = self._check_type(type(entity))

        if any(e.id == entity.id for e in self._pending.inserted(entity_type)):
            raise StorageError(
                f"Duplicate {ENTITY_NAMES[entity_type]} id staged: {entity.id}"
            )
        if entity_type not in self._pending.deletes and entity.id in self._committed_ids(
            entity_type
        ):
            raise StorageError(
                f"{ENTITY_NAMES[entity_type].capitalize()} id already exists: {entity.id}"
            )

        self._pending.inserts.append(entity)

    def delete_all(self, entity_type: type) -> None:
        """
        Stage removal of every record of one type.

        Staged inserts of that type are dropped as well.

        Args:
            entity_type: Person, Context or EvidenceItem.
        """
        entity_type = self._check_type(entity_type)
        self._pending.inserts = [
            e for e in self._pending.inserts if type(e) is not entity_type
        ]
        if entity_type not in self._pending.deletes:
            self._pending.deletes.append(entity_type)

    def save(self) -> None:
        """
        Commit staged changes atomically.

        Raises:
            StorageError: If the commit fails. Nothing is applied and the
                staged work is discarded.
        """
        if self._pending.is_empty():
            return

        pending = self._pending
        self._pending = PendingChanges()
        self._validate_links(pending)
        self._commit(pending)

        logger.debug(
            f"Committed {len(pending.inserts)} inserts, "
            f"{len(pending.deletes)} bulk deletes"
        )

    def rollback(self) -> None:
        """Discard staged changes."""
        if not self._pending.is_empty():
            logger.debug(
                f"Discarding {len(self._pending.inserts)} staged inserts, "
                f"{len(self._pending.deletes)} staged bulk deletes"
            )
        self._pending = PendingChanges()

    def has_pending_changes(self) -> bool:
        """Check if there is staged work."""
        return not self._pending.is_empty()

    def counts(self) -> dict[str, int]:
        """Number of committed records per collection."""
        return {
            ENTITY_NAMES[entity_type]: len(self._committed_ids(entity_type))
            for entity_type in ENTITY_TYPES
        }

    def is_empty(self) -> bool:
        """Check if no committed records exist."""
        return not any(self.counts().values())

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _check_type(self, entity_type: type) -> type:
        if entity_type not in ENTITY_NAMES:
            raise StorageError(f"Unsupported entity type: {entity_type.__name__}")
        return entity_type

    def _ids_after(self, pending: PendingChanges, entity_type: type) -> set[uuid.UUID]:
        """Ids of one type as they will be once pending is committed."""
        ids = set() if entity_type in pending.deletes else set(self._committed_ids(entity_type))
        ids.update(e.id for e in pending.inserted(entity_type))
        return ids

    def _validate_links(self, pending: PendingChanges) -> None:
        """Reject staged evidence whose links point outside the resulting store."""
        people = self._ids_after(pending, Person)
        contexts = self._ids_after(pending, Context)

        for evidence in pending.inserted(EvidenceItem):
            for person in evidence.linked_people:
                if person.id not in people:
                    raise StorageError(
                        f"Evidence {evidence.id} links unknown person {person.id}"
                    )
            for context in evidence.linked_contexts:
                if context.id not in contexts:
                    raise StorageError(
                        f"Evidence {evidence.id} links unknown context {context.id}"
                    )
