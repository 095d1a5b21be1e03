"""
Error kinds raised by the backup and restore pipeline.

Every failure the pipeline can report is a subclass of BackupError so that
callers can catch one type and show ``str(error)`` to the user. None of these
errors are retried internally: given the same inputs they are deterministic.

The password is never part of an error message.
"""


class BackupError(Exception):
    """Base exception for backup and restore errors."""

    default_message = "The backup operation failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidFile(BackupError):
    """Raised when a blob is too short or structurally unusable before decryption."""

    default_message = "The selected file is not a valid SAM backup."


class WrongPassword(BackupError):
    """
    Raised when authenticated decryption fails.

    An incorrect password and a tampered or corrupted file are
    cryptographically indistinguishable, so both are reported with this
    single error kind.
    """

    default_message = "The password is incorrect or the file has been tampered with."


class SerializationFailed(BackupError):
    """Raised when the store snapshot cannot be turned into bytes."""

    default_message = "Failed to serialize data for export."


class DeserializationFailed(BackupError):
    """Raised when decrypted bytes are not a valid snapshot encoding."""

    default_message = "Failed to restore data from the backup file."


class UnsupportedVersion(BackupError):
    """Raised when a snapshot was written by a newer format version."""

    default_message = (
        "This backup was created by a newer version of SAM. "
        "Please update the app first."
    )

    def __init__(self, version: int | None = None, supported: int | None = None) -> None:
        self.version = version
        self.supported = supported
        message = None
        if version is not None and supported is not None:
            message = (
                f"Backup format version {version} is newer than the supported "
                f"version {supported}. Please update the app first."
            )
        super().__init__(message)


class RestoreFailed(BackupError):
    """Raised when applying a snapshot to the store fails; staged changes are discarded."""

    default_message = "Restoring the backup failed. Existing data was left unchanged."
