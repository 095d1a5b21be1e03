"""
Conversion between a live store, Snapshot objects, and payload bytes.

encode() reads the three collections and flattens relationships to ids.
serialize() and decode() move a Snapshot to and from UTF-8 JSON. Decoding
checks the format version before looking at anything else, so a snapshot
from a newer writer is refused as UnsupportedVersion even if its shape has
changed.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sambackup.backup.errors import (
    DeserializationFailed,
    SerializationFailed,
    UnsupportedVersion,
)
from sambackup.backup.snapshot import (
    SUPPORTED_VERSION,
    ContextRecord,
    EvidenceRecord,
    PersonRecord,
    Snapshot,
)
from sambackup.storage.base import Store
from sambackup.storage.models import Context, EvidenceItem, Person

logger = logging.getLogger(__name__)


class SnapshotCodec:
    """
    Encodes stores into snapshots and snapshots into bytes.

    Attributes:
        supported_version: Highest format version this codec will read.
    """

    def __init__(self, supported_version: int = SUPPORTED_VERSION) -> None:
        self.supported_version = supported_version

    def encode(self, store: Store) -> Snapshot:
        """
        Build a snapshot of the store's committed state.

        Side-effect free: the store is only read.

        Args:
            store: Store to read from.

        Returns:
            Snapshot at the current format version.
        """
        snapshot = Snapshot.create(
            people=[PersonRecord.from_entity(p) for p in store.fetch_all(Person)],
            contexts=[ContextRecord.from_entity(c) for c in store.fetch_all(Context)],
            evidence=[EvidenceRecord.from_entity(e) for e in store.fetch_all(EvidenceItem)],
        )
        logger.debug(f"Encoded snapshot: {snapshot.counts()}")
        return snapshot

    def serialize(self, snapshot: Snapshot) -> bytes:
        """
        Serialize a snapshot to UTF-8 JSON.

        Raises:
            SerializationFailed: If the snapshot holds values JSON cannot represent.
        """
        try:
            return json.dumps(snapshot.to_dict(), ensure_ascii=False, allow_nan=False).encode(
                "utf-8"
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise SerializationFailed(f"Failed to serialize data for export: {e}") from e

    def decode(self, payload: bytes) -> Snapshot:
        """
        Parse and validate payload bytes into a snapshot.

        Args:
            payload: Decrypted UTF-8 JSON.

        Returns:
            Validated snapshot.

        Raises:
            UnsupportedVersion: If the version is newer than supported.
            DeserializationFailed: If the payload is not a valid snapshot.
        """
        try:
            data = json.loads(bytes(payload).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as e:
            raise DeserializationFailed(
                f"Failed to restore data from the backup file: {e}"
            ) from e

        if not isinstance(data, dict):
            raise DeserializationFailed(
                "Failed to restore data from the backup file: payload is not an object"
            )

        self.check_version(self._read_version(data))

        try:
            snapshot = Snapshot.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise DeserializationFailed(
                f"Failed to restore data from the backup file: {e}"
            ) from e

        self._check_unique_ids(snapshot)
        logger.debug(f"Decoded snapshot version {snapshot.version}: {snapshot.counts()}")
        return snapshot

    # Inverse of serialize()
    deserialize = decode

    def check_version(self, version: int) -> None:
        """
        Refuse versions this codec does not understand.

        Raises:
            UnsupportedVersion: If version is newer than supported.
        """
        if version > self.supported_version:
            raise UnsupportedVersion(version, self.supported_version)

    def _read_version(self, data: dict[str, Any]) -> int:
        version = data.get("version")
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise DeserializationFailed(
                f"Failed to restore data from the backup file: invalid version {version!r}"
            )
        return version

    def _check_unique_ids(self, snapshot: Snapshot) -> None:
        for name, records in (
            ("people", snapshot.people),
            ("contexts", snapshot.contexts),
            ("evidence", snapshot.evidence),
        ):
            seen = set()
            for record in records:
                if record.id in seen:
                    raise DeserializationFailed(
                        f"Failed to restore data from the backup file: "
                        f"duplicate id {record.id} in {name}"
                    )
                seen.add(record.id)
