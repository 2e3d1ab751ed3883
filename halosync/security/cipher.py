"""At-rest encryption for PSA connection credentials.

AES-256-GCM with a 128-bit IV and 128-bit tag. The stored blob is
``base64(salt || iv || tag || ciphertext)``. The 32-byte salt is random per
call and only kept for format compatibility; the key itself is resolved once
from ``ENCRYPTION_KEY``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from halosync.psa.errors import AuthenticationFailure, ConfigurationError

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 16
SALT_LENGTH = 32
TAG_LENGTH = 16
KDF_SALT = b"halopsa-ai-salt"

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


def derive_key(secret: str) -> bytes:
    """Resolve the 256-bit key from the configured secret.

    A 64-character hex string is used as raw key bytes; anything else is run
    through scrypt (N=16384, r=8, p=1) with the fixed application salt.

    Raises:
        ConfigurationError: If the secret is empty
    """
    if not secret:
        raise ConfigurationError("ENCRYPTION_KEY environment variable is not set")

    if _HEX_KEY.match(secret):
        return bytes.fromhex(secret)

    kdf = Scrypt(salt=KDF_SALT, length=KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


class CredentialCipher:
    """Encrypts and decrypts small secrets with a single resolved key."""

    def __init__(self, secret: str | None = None, key: bytes | None = None):
        if key is None:
            key = derive_key(secret or "")
        if len(key) != KEY_LENGTH:
            raise ConfigurationError("Encryption key must be 32 bytes")
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt text and return the base64 blob."""
        salt = secrets.token_bytes(SALT_LENGTH)
        iv = secrets.token_bytes(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        # AESGCM appends the tag; the stored layout puts it before the ciphertext
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """Decrypt a blob produced by ``encrypt``.

        Raises:
            AuthenticationFailure: If the blob is malformed, truncated or tampered
        """
        try:
            data = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise AuthenticationFailure("Encrypted value is not valid base64") from exc

        header = SALT_LENGTH + IV_LENGTH + TAG_LENGTH
        if len(data) < header:
            raise AuthenticationFailure("Encrypted value is truncated")

        iv = data[SALT_LENGTH : SALT_LENGTH + IV_LENGTH]
        tag = data[SALT_LENGTH + IV_LENGTH : header]
        ciphertext = data[header:]

        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            logger.warning("Credential decryption failed: authentication tag mismatch")
            raise AuthenticationFailure(
                "Stored credentials could not be decrypted. Please reconfigure the connection."
            ) from exc

        return plaintext.decode("utf-8")

    def encrypt_credentials(self, client_id: str, client_secret: str) -> tuple[str, str]:
        return self.encrypt(client_id), self.encrypt(client_secret)

    def decrypt_credentials(
        self, client_id_encrypted: str, client_secret_encrypted: str
    ) -> tuple[str, str]:
        return self.decrypt(client_id_encrypted), self.decrypt(client_secret_encrypted)


# Process-wide cipher, resolved on first use
_cipher: CredentialCipher | None = None


def get_cipher() -> CredentialCipher:
    """Get or create the process-wide cipher from ENCRYPTION_KEY.

    Raises:
        ConfigurationError: If ENCRYPTION_KEY is not set
    """
    global _cipher
    if _cipher is None:
        _cipher = CredentialCipher(os.environ.get("ENCRYPTION_KEY", ""))
    return _cipher


def reset_cipher() -> None:
    """Forget the resolved key (tests and key rotation)."""
    global _cipher
    _cipher = None


def encrypt(plaintext: str) -> str:
    return get_cipher().encrypt(plaintext)


def decrypt(blob: str) -> str:
    return get_cipher().decrypt(blob)


def encrypt_credentials(client_id: str, client_secret: str) -> tuple[str, str]:
    """Encrypt a client id/secret pair for storage."""
    return get_cipher().encrypt_credentials(client_id, client_secret)


def decrypt_credentials(
    client_id_encrypted: str, client_secret_encrypted: str
) -> tuple[str, str]:
    """Decrypt a stored client id/secret pair."""
    return get_cipher().decrypt_credentials(client_id_encrypted, client_secret_encrypted)
