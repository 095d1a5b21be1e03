"""
Applies a snapshot to a store, replacing all three collections.

Restore runs in two passes because evidence links reach across collections
that must all exist first:

    1. Wipe evidence, then contexts, then people
    2. Recreate every record as a bare entity with its original id
    3. Re-link evidence to people and contexts through id lookups,
       dropping ids that do not resolve
    4. Commit

All four steps are staged on the store and committed by a single save(),
so a failure at any point rolls back and leaves the previous data in place.
Callers must keep other writers away from the store while apply() runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sambackup.backup.errors import RestoreFailed
from sambackup.backup.snapshot import Snapshot
from sambackup.storage.base import Store
from sambackup.storage.models import Context, EvidenceItem, Person

logger = logging.getLogger(__name__)

# Most dependent collection first
WIPE_ORDER: tuple[type, ...] = (EvidenceItem, Context, Person)


@dataclass
class RestoreSummary:
    """Outcome of applying a snapshot."""

    people: int = 0
    contexts: int = 0
    evidence: int = 0
    links_restored: int = 0
    links_dropped: int = 0


class RestoreOrchestrator:
    """
    Sequences the store mutations of a restore.

    Usage:
        orchestrator = RestoreOrchestrator()
        summary = orchestrator.apply(snapshot, store)
    """

    def apply(self, snapshot: Snapshot, store: Store) -> RestoreSummary:
        """
        Replace the store's contents with the snapshot's.

        Args:
            snapshot: Decoded, version-checked snapshot.
            store: Store to overwrite.

        Returns:
            RestoreSummary with entity and link counts.

        Raises:
            RestoreFailed: If any step fails. Staged work is rolled back.
        """
        # Anything staged by the caller must not ride along with the restore
        store.rollback()

        try:
            for entity_type in WIPE_ORDER:
                store.delete_all(entity_type)

            people = [record.make_entity() for record in snapshot.people]
            contexts = [record.make_entity() for record in snapshot.contexts]
            evidence = [record.make_entity() for record in snapshot.evidence]

            for entity in [*people, *contexts, *evidence]:
                store.insert(entity)

            summary = self._relink(snapshot, people, contexts, evidence)

            store.save()

        except Exception as e:
            store.rollback()
            logger.error(f"Restore failed, changes rolled back: {e}")
            raise RestoreFailed(
                f"Restoring the backup failed. Existing data was left unchanged: {e}"
            ) from e

        logger.info(
            f"Restored {summary.people} people, {summary.contexts} contexts, "
            f"{summary.evidence} evidence items ({summary.links_restored} links)"
        )
        return summary

    def _relink(
        self,
        snapshot: Snapshot,
        people: list[Person],
        contexts: list[Context],
        evidence: list[EvidenceItem],
    ) -> RestoreSummary:
        """Attach live references to freshly created evidence entities."""
        people_by_id = {p.id: p for p in people}
        contexts_by_id = {c.id: c for c in contexts}

        summary = RestoreSummary(
            people=len(people),
            contexts=len(contexts),
            evidence=len(evidence),
        )

        for record, item in zip(snapshot.evidence, evidence, strict=True):
            item.linked_people = [
                people_by_id[i] for i in record.linked_people if i in people_by_id
            ]
            item.linked_contexts = [
                contexts_by_id[i] for i in record.linked_contexts if i in contexts_by_id
            ]

            restored = len(item.linked_people) + len(item.linked_contexts)
            dropped = len(record.linked_people) + len(record.linked_contexts) - restored
            summary.links_restored += restored
            summary.links_dropped += dropped

            if dropped:
                logger.warning(f"Evidence {item.id}: dropped {dropped} dangling link(s)")

        return summary
