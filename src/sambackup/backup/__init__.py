"""
Encrypted backup and restore for the SAM store.

This module turns the whole store into a versioned snapshot, encrypts it
under a user password with AES-256-GCM, and restores it by replacing the
store's contents while keeping every entity id and evidence link.

Backup files (.sam-backup) are exactly salt || nonce || ciphertext || tag.

Usage:
    from sambackup.backup import BackupService

    service = BackupService()

    # Export to bytes or to a file
    blob = service.export_store(store, password)
    result = service.export_to_file(store, password, output_dir)

    # Inspect without restoring
    info = service.preview_blob(blob, password)

    # Restore
    summary = service.import_blob(blob, password, store)
"""

from sambackup.backup.codec import SnapshotCodec
from sambackup.backup.crypto import CryptoEngine
from sambackup.backup.errors import (
    BackupError,
    DeserializationFailed,
    InvalidFile,
    RestoreFailed,
    SerializationFailed,
    UnsupportedVersion,
    WrongPassword,
)
from sambackup.backup.restore import RestoreOrchestrator, RestoreSummary
from sambackup.backup.service import (
    BACKUP_EXTENSION,
    BackupResult,
    BackupService,
    RestoreResult,
    SnapshotInfo,
    default_backup_filename,
)
from sambackup.backup.snapshot import (
    SUPPORTED_VERSION,
    ContextRecord,
    EvidenceRecord,
    PersonRecord,
    Snapshot,
)

__all__ = [
    # Service
    "BackupService",
    "BackupResult",
    "RestoreResult",
    "SnapshotInfo",
    "BACKUP_EXTENSION",
    "default_backup_filename",
    # Components
    "CryptoEngine",
    "SnapshotCodec",
    "RestoreOrchestrator",
    "RestoreSummary",
    # Snapshot
    "Snapshot",
    "PersonRecord",
    "ContextRecord",
    "EvidenceRecord",
    "SUPPORTED_VERSION",
    # Exceptions
    "BackupError",
    "InvalidFile",
    "WrongPassword",
    "SerializationFailed",
    "DeserializationFailed",
    "UnsupportedVersion",
    "RestoreFailed",
]
