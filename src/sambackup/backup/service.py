"""
Backup service: the entry point the application calls.

Composes the crypto engine, snapshot codec and restore orchestrator:

    export:  store -> encode -> serialize -> encrypt(password) -> blob
    import:  blob -> decrypt(password) -> decode -> version check -> apply -> store

The password is scoped to a single call. It is never logged, kept on the
service, or written anywhere except as the input to key derivation.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from sambackup.backup.codec import SnapshotCodec
from sambackup.backup.crypto import CryptoEngine
from sambackup.backup.errors import BackupError, InvalidFile
from sambackup.backup.restore import RestoreOrchestrator, RestoreSummary
from sambackup.backup.snapshot import SUPPORTED_VERSION, Snapshot
from sambackup.storage.base import Store

logger = logging.getLogger(__name__)

BACKUP_EXTENSION = ".sam-backup"


@dataclass
class SnapshotInfo:
    """What a backup contains, read without touching the store."""

    version: int
    created_at: str
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def schema_match(self) -> bool:
        """True if the backup was written with the current format version."""
        return self.version == SUPPORTED_VERSION

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> SnapshotInfo:
        """Summarize a decoded snapshot."""
        return cls(
            version=snapshot.version,
            created_at=snapshot.created_at,
            counts=snapshot.counts(),
        )


@dataclass
class BackupResult:
    """Result of writing a backup file."""

    path: Path
    size_bytes: int
    info: SnapshotInfo


@dataclass
class RestoreResult:
    """Result of restoring from a backup file."""

    path: Path
    info: SnapshotInfo
    summary: RestoreSummary
    backup_created: Path | None = None


class BackupService:
    """
    Encrypted export and import of the whole store.

    Usage:
        service = BackupService()

        blob = service.export_store(store, password)
        service.import_blob(blob, password, other_store)

        # File helpers
        result = service.export_to_file(store, password, output_dir)
        service.import_from_file(result.path, password, store)

    All failures are raised as BackupError subclasses; see
    sambackup.backup.errors.
    """

    def __init__(
        self,
        crypto: CryptoEngine | None = None,
        codec: SnapshotCodec | None = None,
        orchestrator: RestoreOrchestrator | None = None,
    ) -> None:
        self.crypto = crypto or CryptoEngine()
        self.codec = codec or SnapshotCodec()
        self.orchestrator = orchestrator or RestoreOrchestrator()

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def export_store(self, store: Store, password: str) -> bytes:
        """
        Snapshot and encrypt the store.

        Args:
            store: Store to back up. Only read.
            password: Password protecting the backup.

        Returns:
            Encrypted blob.

        Raises:
            SerializationFailed: If the snapshot cannot be serialized.
        """
        blob, _ = self._export(store, password)
        return blob

    def import_blob(self, blob: bytes, password: str, store: Store) -> RestoreSummary:
        """
        Decrypt a blob and replace the store's contents with it.

        Decryption, decoding and the version check all happen before the
        store is touched.

        Args:
            blob: Encrypted backup.
            password: Password used at export.
            store: Store to overwrite.

        Returns:
            RestoreSummary with entity and link counts.

        Raises:
            InvalidFile: If the blob is too short.
            WrongPassword: If the password is wrong or the blob was modified.
            DeserializationFailed: If the payload is not a valid snapshot.
            UnsupportedVersion: If the backup is from a newer format version.
            RestoreFailed: If applying the snapshot fails (rolled back).
        """
        snapshot = self._open(blob, password)
        return self.orchestrator.apply(snapshot, store)

    def preview_blob(self, blob: bytes, password: str) -> SnapshotInfo:
        """
        Decrypt and validate a blob without restoring it.

        Raises:
            Same as import_blob(), except RestoreFailed.
        """
        return SnapshotInfo.from_snapshot(self._open(blob, password))

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def export_to_file(
        self,
        store: Store,
        password: str,
        output_dir: Path | str | None = None,
        filename: str | None = None,
    ) -> BackupResult:
        """
        Export the store to an encrypted backup file.

        The file is written atomically with owner-only permissions. An
        existing file is never overwritten; a numeric suffix is added.

        Args:
            store: Store to back up.
            password: Password protecting the backup.
            output_dir: Directory for the file (default: current directory).
            filename: File name (default: "SAM Backup YYYY-MM-DD.sam-backup").

        Returns:
            BackupResult with the path and size of the file.

        Raises:
            BackupError: If the output location is unusable.
            SerializationFailed: If the snapshot cannot be serialized.
        """
        output_dir = Path(output_dir) if output_dir is not None else Path.cwd()
        if output_dir.is_file():
            raise BackupError(f"Output path is a file: {output_dir}")

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupError(f"Cannot create output directory {output_dir}: {e}") from e

        blob, snapshot = self._export(store, password)
        path = self._unique_path(output_dir / (filename or default_backup_filename()))
        self._write_secure_file(path, blob)

        logger.info(f"Backup written: {path} ({len(blob):,} bytes)")
        return BackupResult(
            path=path,
            size_bytes=len(blob),
            info=SnapshotInfo.from_snapshot(snapshot),
        )

    def read_file(self, path: Path | str) -> bytes:
        """
        Read a backup file.

        Raises:
            InvalidFile: If the file is missing or unreadable.
        """
        path = Path(path)
        try:
            return path.read_bytes()
        except OSError as e:
            raise InvalidFile(f"Could not read file {path}: {e.strerror or e}") from e

    def preview_file(self, path: Path | str, password: str) -> SnapshotInfo:
        """Decrypt and validate a backup file without restoring it."""
        return self.preview_blob(self.read_file(path), password)

    def import_from_file(
        self,
        path: Path | str,
        password: str,
        store: Store,
        backup_existing: bool = False,
        backup_dir: Path | str | None = None,
    ) -> RestoreResult:
        """
        Restore the store from a backup file.

        The file is fully decrypted and validated first. If backup_existing
        is set and the store holds data, a safety backup of the current
        contents is written to backup_dir, encrypted with the same password,
        before anything is replaced.

        Args:
            path: Backup file to restore.
            password: Password used at export.
            store: Store to overwrite.
            backup_existing: Write a pre-restore backup of the current data.
            backup_dir: Directory for the pre-restore backup.

        Returns:
            RestoreResult with counts and the safety backup path, if any.
        """
        path = Path(path)
        snapshot = self._open(self.read_file(path), password)

        backup_created = None
        if backup_existing and not store.is_empty():
            timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
            pre_result = self.export_to_file(
                store,
                password,
                output_dir=backup_dir,
                filename=f"SAM Pre-Restore {timestamp}{BACKUP_EXTENSION}",
            )
            backup_created = pre_result.path
            logger.info(f"Pre-restore backup created: {backup_created}")

        summary = self.orchestrator.apply(snapshot, store)

        return RestoreResult(
            path=path,
            info=SnapshotInfo.from_snapshot(snapshot),
            summary=summary,
            backup_created=backup_created,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _export(self, store: Store, password: str) -> tuple[bytes, Snapshot]:
        snapshot = self.codec.encode(store)
        payload = self.codec.serialize(snapshot)
        blob = self.crypto.encrypt(payload, password)
        logger.info(
            f"Exported {snapshot.counts()} ({len(payload):,} bytes payload, "
            f"{len(blob):,} bytes encrypted)"
        )
        return blob, snapshot

    def _open(self, blob: bytes, password: str) -> Snapshot:
        payload = self.crypto.decrypt(blob, password)
        snapshot = self.codec.decode(payload)
        self.codec.check_version(snapshot.version)
        return snapshot

    def _unique_path(self, path: Path) -> Path:
        candidate = path
        counter = 2
        while candidate.exists():
            candidate = path.with_name(f"{path.stem} {counter}{path.suffix}")
            counter += 1
        return candidate

    def _write_secure_file(self, path: Path, data: bytes) -> None:
        """
        Write data to file with restrictive permissions.

        Uses atomic write (write to temp, then rename) to prevent
        partial writes from leaving a truncated backup behind.
        """
        temp_fd, temp_path = tempfile.mkstemp(suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(temp_fd, "wb") as f:
                f.write(data)

            try:
                os.chmod(temp_path, 0o600)
            except OSError:
                # Windows or permission error - continue anyway
                pass

            os.replace(temp_path, path)

        except OSError as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise BackupError(f"Could not write file {path}: {e}") from e


def default_backup_filename(now: datetime | None = None) -> str:
    """Default file name for a backup taken on the given day."""
    now = now or datetime.now()
    return f"SAM Backup {now.strftime('%Y-%m-%d')}{BACKUP_EXTENSION}"
