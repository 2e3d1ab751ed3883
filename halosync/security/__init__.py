"""Credential encryption."""

from halosync.security.cipher import (
    CredentialCipher,
    decrypt,
    decrypt_credentials,
    encrypt,
    encrypt_credentials,
    get_cipher,
)

__all__ = [
    "CredentialCipher",
    "decrypt",
    "decrypt_credentials",
    "encrypt",
    "encrypt_credentials",
    "get_cipher",
]
