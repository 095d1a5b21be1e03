"""
SQLite entity store.

Persists people, contexts and evidence items in a single SQLite database.
Evidence links live in two join tables so that relationships are stored as
ids and rebuilt into live references on fetch.

Storage Structure:
    data/
        sam.db          # SQLite database

Design Decisions:
    - SQLite for its simplicity, portability and ACID transactions
    - Scalar fields are columns; embedded lists are JSON TEXT columns
    - A save() is one BEGIN ... COMMIT, so a failed unit never half-applies
    - Join tables cascade on delete, which nullifies links to removed entities

Thread Safety:
    Connection-per-operation. Staged changes belong to the SQLiteStore
    instance and must not be shared between threads.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sambackup.storage.base import PendingChanges, StorageError, Store
from sambackup.storage.models import (
    Context,
    ContextKind,
    EvidenceItem,
    EvidenceSignal,
    EvidenceSource,
    EvidenceTriageState,
    Insight,
    ParticipantHint,
    Person,
    ProposedLink,
    format_datetime,
    parse_datetime,
)

logger = logging.getLogger(__name__)

DATABASE_FILE = "sam.db"

# Database schema version for migrations
SCHEMA_VERSION = 2

CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS people (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL,
    role_badges_json TEXT NOT NULL,
    contact_identifier TEXT,
    email TEXT,
    consent_alerts_count INTEGER NOT NULL,
    review_alerts_count INTEGER NOT NULL,
    responsibility_notes_json TEXT NOT NULL,
    recent_interactions_json TEXT NOT NULL,
    insights_json TEXT NOT NULL DEFAULT '[]',
    context_chips_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS contexts (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    kind TEXT NOT NULL,
    consent_alert_count INTEGER NOT NULL,
    review_alert_count INTEGER NOT NULL,
    follow_up_alert_count INTEGER NOT NULL,
    product_cards_json TEXT NOT NULL,
    recent_interactions_json TEXT NOT NULL,
    insights_json TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS evidence_items (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    source_uid TEXT,
    source TEXT NOT NULL,
    state TEXT NOT NULL,
    occurred_at TEXT NOT NULL,
    title TEXT NOT NULL,
    snippet TEXT NOT NULL,
    body_text TEXT,
    signals_json TEXT NOT NULL,
    participant_hints_json TEXT NOT NULL,
    proposed_links_json TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_evidence_occurred_at ON evidence_items(occurred_at);

-- Evidence relationships, stored by id
CREATE TABLE IF NOT EXISTS evidence_people (
    evidence_id TEXT NOT NULL REFERENCES evidence_items(id) ON DELETE CASCADE,
    person_id TEXT NOT NULL REFERENCES people(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    PRIMARY KEY (evidence_id, person_id)
);

CREATE TABLE IF NOT EXISTS evidence_contexts (
    evidence_id TEXT NOT NULL REFERENCES evidence_items(id) ON DELETE CASCADE,
    context_id TEXT NOT NULL REFERENCES contexts(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    PRIMARY KEY (evidence_id, context_id)
);

CREATE INDEX IF NOT EXISTS idx_evidence_people_person ON evidence_people(person_id);
CREATE INDEX IF NOT EXISTS idx_evidence_contexts_context ON evidence_contexts(context_id);
"""

TABLES: dict[type, str] = {
    Person: "people",
    Context: "contexts",
    EvidenceItem: "evidence_items",
}


class SQLiteStore(Store):
    """
    Store persisted in a SQLite database file.

    Example:
        store = SQLiteStore(data_dir=Path("./data"))
        store.insert(Person.create("Ada Lovelace"))
        store.save()

    Attributes:
        data_dir: Base directory for data storage.
        db_path: Path to the SQLite database file.
    """

    def __init__(self, data_dir: Path | str | None = None) -> None:
        """
        Initialize the store, creating the database if needed.

        Args:
            data_dir: Base directory for data storage. Defaults to ~/.sam-backup/data
        """
        super().__init__()

        if data_dir is None:
            data_dir = Path.home() / ".sam-backup" / "data"
        elif isinstance(data_dir, str):
            data_dir = Path(data_dir)

        self.data_dir = data_dir
        self.db_path = data_dir / DATABASE_FILE

        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._init_database()

    def _init_database(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(CREATE_TABLES_SQL)

            cursor = conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = cursor.fetchone()

            if row is None:
                conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, datetime.now(UTC).isoformat()),
                )
                logger.info(f"Initialized database schema version {SCHEMA_VERSION}")
            elif row[0] < SCHEMA_VERSION:
                self._migrate(conn, row[0])

    def _migrate(self, conn: sqlite3.Connection, from_version: int) -> None:
        """Bring an older database up to SCHEMA_VERSION."""
        try:
            conn.execute("BEGIN TRANSACTION")
            if from_version < 2:
                for table in ("people", "contexts"):
                    columns = {
                        row["name"] for row in conn.execute(f"PRAGMA table_info({table})")
                    }
                    if "insights_json" not in columns:
                        conn.execute(
                            f"ALTER TABLE {table} "
                            "ADD COLUMN insights_json TEXT NOT NULL DEFAULT '[]'"
                        )
            conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (SCHEMA_VERSION, datetime.now(UTC).isoformat()),
            )
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            conn.execute("ROLLBACK")
            raise StorageError(f"Failed to migrate database schema: {e}") from e

        logger.info(f"Migrated database schema from version {from_version} to {SCHEMA_VERSION}")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get a database connection with proper settings.

        Yields:
            SQLite connection with row factory set.
        """
        conn = sqlite3.connect(
            str(self.db_path),
            isolation_level=None,  # Autocommit mode, we manage transactions manually
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def fetch_all(self, entity_type: type) -> list[Any]:
        """
        Fetch every committed record of one type, in insertion order.

        Evidence links are resolved against people and contexts loaded in
        the same call.
        """
        entity_type = self._check_type(entity_type)

        with self._get_connection() as conn:
            if entity_type is Person:
                return list(self._load_people(conn).values())
            if entity_type is Context:
                return list(self._load_contexts(conn).values())
            return self._load_evidence(conn)

    def _committed_ids(self, entity_type: type) -> set[uuid.UUID]:
        with self._get_connection() as conn:
            rows = conn.execute(f"SELECT id FROM {TABLES[entity_type]}").fetchall()  # noqa: S608
        return {uuid.UUID(row["id"]) for row in rows}

    def _load_people(self, conn: sqlite3.Connection) -> dict[uuid.UUID, Person]:
        people: dict[uuid.UUID, Person] = {}
        for row in conn.execute("SELECT * FROM people ORDER BY seq"):
            person = Person(
                id=uuid.UUID(row["id"]),
                display_name=row["display_name"],
                role_badges=json.loads(row["role_badges_json"]),
                contact_identifier=row["contact_identifier"],
                email=row["email"],
                consent_alerts_count=row["consent_alerts_count"],
                review_alerts_count=row["review_alerts_count"],
                responsibility_notes=json.loads(row["responsibility_notes_json"]),
                recent_interactions=json.loads(row["recent_interactions_json"]),
                insights=[Insight.from_dict(d) for d in json.loads(row["insights_json"])],
                context_chips=json.loads(row["context_chips_json"]),
            )
            people[person.id] = person
        return people

    def _load_contexts(self, conn: sqlite3.Connection) -> dict[uuid.UUID, Context]:
        contexts: dict[uuid.UUID, Context] = {}
        for row in conn.execute("SELECT * FROM contexts ORDER BY seq"):
            context = Context(
                id=uuid.UUID(row["id"]),
                name=row["name"],
                kind=ContextKind(row["kind"]),
                consent_alert_count=row["consent_alert_count"],
                review_alert_count=row["review_alert_count"],
                follow_up_alert_count=row["follow_up_alert_count"],
                product_cards=json.loads(row["product_cards_json"]),
                recent_interactions=json.loads(row["recent_interactions_json"]),
                insights=[Insight.from_dict(d) for d in json.loads(row["insights_json"])],
            )
            contexts[context.id] = context
        return contexts

    def _load_evidence(self, conn: sqlite3.Connection) -> list[EvidenceItem]:
        people = self._load_people(conn)
        contexts = self._load_contexts(conn)

        evidence: dict[str, EvidenceItem] = {}
        for row in conn.execute("SELECT * FROM evidence_items ORDER BY seq"):
            evidence[row["id"]] = EvidenceItem(
                id=uuid.UUID(row["id"]),
                source_uid=row["source_uid"],
                source=EvidenceSource(row["source"]),
                state=EvidenceTriageState(row["state"]),
                occurred_at=parse_datetime(row["occurred_at"]),
                title=row["title"],
                snippet=row["snippet"],
                body_text=row["body_text"],
                signals=[
                    EvidenceSignal.from_dict(d) for d in json.loads(row["signals_json"])
                ],
                participant_hints=[
                    ParticipantHint.from_dict(d)
                    for d in json.loads(row["participant_hints_json"])
                ],
                proposed_links=[
                    ProposedLink.from_dict(d)
                    for d in json.loads(row["proposed_links_json"])
                ],
            )

        for row in conn.execute(
            "SELECT evidence_id, person_id FROM evidence_people ORDER BY evidence_id, position"
        ):
            evidence[row["evidence_id"]].linked_people.append(
                people[uuid.UUID(row["person_id"])]
            )

        for row in conn.execute(
            "SELECT evidence_id, context_id FROM evidence_contexts ORDER BY evidence_id, position"
        ):
            evidence[row["evidence_id"]].linked_contexts.append(
                contexts[uuid.UUID(row["context_id"])]
            )

        return list(evidence.values())

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _commit(self, pending: PendingChanges) -> None:
        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")

                for entity_type in pending.deletes:
                    conn.execute(f"DELETE FROM {TABLES[entity_type]}")  # noqa: S608

                # Rows first, then links, so link order never trips a foreign key
                for entity in pending.inserts:
                    self._insert_row(conn, entity)
                for entity in pending.inserts:
                    if isinstance(entity, EvidenceItem):
                        self._insert_links(conn, entity)

                conn.execute("COMMIT")

            except Exception as e:
                conn.execute("ROLLBACK")
                logger.error(f"Failed to commit changes: {e}")
                raise StorageError(f"Failed to commit changes: {e}") from e

    def _insert_row(self, conn: sqlite3.Connection, entity: Any) -> None:
        if isinstance(entity, Person):
            conn.execute(
                """
                INSERT INTO people (
                    id, display_name, role_badges_json, contact_identifier, email,
                    consent_alerts_count, review_alerts_count,
                    responsibility_notes_json, recent_interactions_json, insights_json,
                    context_chips_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(entity.id),
                    entity.display_name,
                    json.dumps(entity.role_badges),
                    entity.contact_identifier,
                    entity.email,
                    entity.consent_alerts_count,
                    entity.review_alerts_count,
                    json.dumps(entity.responsibility_notes),
                    json.dumps(entity.recent_interactions),
                    json.dumps([i.to_dict() for i in entity.insights]),
                    json.dumps(entity.context_chips),
                ),
            )
        elif isinstance(entity, Context):
            conn.execute(
                """
                INSERT INTO contexts (
                    id, name, kind, consent_alert_count, review_alert_count,
                    follow_up_alert_count, product_cards_json, recent_interactions_json,
                    insights_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(entity.id),
                    entity.name,
                    ContextKind(entity.kind).value,
                    entity.consent_alert_count,
                    entity.review_alert_count,
                    entity.follow_up_alert_count,
                    json.dumps(entity.product_cards),
                    json.dumps(entity.recent_interactions),
                    json.dumps([i.to_dict() for i in entity.insights]),
                ),
            )
        else:
            conn.execute(
                """
                INSERT INTO evidence_items (
                    id, source_uid, source, state, occurred_at, title, snippet,
                    body_text, signals_json, participant_hints_json, proposed_links_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(entity.id),
                    entity.source_uid,
                    EvidenceSource(entity.source).value,
                    EvidenceTriageState(entity.state).value,
                    format_datetime(entity.occurred_at),
                    entity.title,
                    entity.snippet,
                    entity.body_text,
                    json.dumps([s.to_dict() for s in entity.signals]),
                    json.dumps([h.to_dict() for h in entity.participant_hints]),
                    json.dumps([p.to_dict() for p in entity.proposed_links]),
                ),
            )

    def _insert_links(self, conn: sqlite3.Connection, evidence: EvidenceItem) -> None:
        conn.executemany(
            "INSERT OR IGNORE INTO evidence_people (evidence_id, person_id, position) "
            "VALUES (?, ?, ?)",
            [
                (str(evidence.id), str(person.id), position)
                for position, person in enumerate(evidence.linked_people)
            ],
        )
        conn.executemany(
            "INSERT OR IGNORE INTO evidence_contexts (evidence_id, context_id, position) "
            "VALUES (?, ?, ?)",
            [
                (str(evidence.id), str(context.id), position)
                for position, context in enumerate(evidence.linked_contexts)
            ],
        )
