"""
sam-backup - Encrypted backup and restore for the SAM relationship store

Serializes people, organizational contexts and evidence items into a
versioned snapshot, encrypts it with a password, and restores it by
replacing the store's contents while keeping every id and relationship.

Key Features:
    - AES-256-GCM with PBKDF2-HMAC-SHA256 key derivation (100,000 iterations)
    - Wrong passwords and tampered files are always detected
    - Relationships stored as ids and rebuilt in two passes on restore
    - Atomic restore: a failure never leaves the store half-replaced
    - Version gate refuses backups from newer writers
"""

__version__ = "0.1.0"

from sambackup.backup import BackupService
from sambackup.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "BackupService",
    "Settings",
    "load_config",
]
