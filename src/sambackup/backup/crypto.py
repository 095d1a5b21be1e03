"""
Password-based authenticated encryption for backup files.

The engine knows nothing about the data model: it turns an opaque byte
buffer into a self-contained blob and back.

Security Design:
    - Key derived from the password with PBKDF2-HMAC-SHA256 (100,000 iterations)
    - Fresh random 16-byte salt and 12-byte nonce for every encryption
    - AES-256-GCM seals the plaintext and produces a 16-byte tag
    - Salt and nonce are stored in the clear; neither is secret

Wire Format (plain concatenation, no length prefixes):
    salt        16 bytes
    nonce       12 bytes
    ciphertext  variable
    tag         16 bytes

Threat Model:
    - Protects against: reading a backup file without the password, and any
      modification of the file (detected by the GCM tag)
    - Does NOT protect against: weak passwords, keyloggers, or inspection of
      the running process
"""

from __future__ import annotations

import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sambackup.backup.errors import InvalidFile, WrongPassword

logger = logging.getLogger(__name__)

# Format parameters - changing any of these breaks existing backup files
PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32  # 256 bits
SALT_LENGTH = 16
NONCE_LENGTH = 12  # 96 bits, GCM standard
TAG_LENGTH = 16
HEADER_LENGTH = SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH  # 44
MIN_BLOB_LENGTH = HEADER_LENGTH + 1


class CryptoEngine:
    """
    Stateless AES-256-GCM encryption keyed by a password.

    Each call is independent and allocates its own salt and nonce, so one
    engine can be shared freely. Key derivation takes tens
    to hundreds of milliseconds; callers on a latency-sensitive thread
    should run encrypt/decrypt elsewhere.

    Usage:
        engine = CryptoEngine()
        blob = engine.encrypt(b"payload", "correct horse")
        plaintext = engine.decrypt(blob, "correct horse")
    """

    def encrypt(self, plaintext: bytes, password: str) -> bytes:
        """
        Encrypt plaintext with a key derived from password.

        Args:
            plaintext: Bytes to protect.
            password: User-supplied password.

        Returns:
            The wire-format blob, exactly 44 bytes longer than plaintext.
        """
        salt = secrets.token_bytes(SALT_LENGTH)
        nonce = secrets.token_bytes(NONCE_LENGTH)
        key = self._derive_key(password, salt)

        # AESGCM appends the tag to the ciphertext, which is the wire layout
        sealed = AESGCM(key).encrypt(nonce, bytes(plaintext), None)

        return salt + nonce + sealed

    def decrypt(self, blob: bytes, password: str) -> bytes:
        """
        Decrypt a blob produced by encrypt().

        Args:
            blob: Wire-format blob.
            password: Password used at encryption time.

        Returns:
            The original plaintext.

        Raises:
            InvalidFile: If the blob is shorter than 45 bytes or not bytes-like.
            WrongPassword: If authentication fails (wrong password or tampering).
        """
        # bytes(int) would build a zero-filled buffer instead of failing
        if not isinstance(blob, (bytes, bytearray, memoryview)):
            raise InvalidFile()
        blob = bytes(blob)

        if len(blob) < MIN_BLOB_LENGTH:
            raise InvalidFile(
                f"The selected file is not a valid SAM backup "
                f"({len(blob)} bytes, need at least {MIN_BLOB_LENGTH})."
            )

        salt = blob[:SALT_LENGTH]
        nonce = blob[SALT_LENGTH : SALT_LENGTH + NONCE_LENGTH]
        sealed = blob[SALT_LENGTH + NONCE_LENGTH :]

        key = self._derive_key(password, salt)

        try:
            return AESGCM(key).decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise WrongPassword() from e

    def _derive_key(self, password: str, salt: bytes) -> bytes:
        """
        Derive the AES key from password and salt.

        Args:
            password: User-supplied password (encoded as UTF-8).
            salt: Random salt bytes.

        Returns:
            32-byte key.
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        logger.debug(f"Deriving backup key ({PBKDF2_ITERATIONS:,} PBKDF2 iterations)")
        return kdf.derive(password.encode("utf-8"))


_default_engine = CryptoEngine()


def encrypt(plaintext: bytes, password: str) -> bytes:
    """Encrypt plaintext with the shared engine."""
    return _default_engine.encrypt(plaintext, password)


def decrypt(blob: bytes, password: str) -> bytes:
    """Decrypt a blob with the shared engine."""
    return _default_engine.decrypt(blob, password)
