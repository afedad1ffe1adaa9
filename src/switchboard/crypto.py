"""API key encryption for synced provider lists.

Each key is encrypted on its own with AES-256-GCM under a key derived from the
sync password (PBKDF2-HMAC-SHA256, 100k iterations, random 32-byte salt).
The stored form is base64(salt | iv | tag | ciphertext).
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from switchboard.errors import DecryptionError
from switchboard.models import Provider

KEY_LENGTH = 32
SALT_LENGTH = 32
IV_LENGTH = 16
TAG_LENGTH = 16
PBKDF2_ITERATIONS = 100_000

_HEADER = SALT_LENGTH + IV_LENGTH + TAG_LENGTH


def _derive_key(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt_api_key(api_key: str, password: str) -> str:
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(_derive_key(password, salt)).encrypt(iv, api_key.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")


def decrypt_api_key(token: str, password: str) -> str:
    """Decrypt one API key.

    Raises DecryptionError for a wrong password, a tampered or truncated
    payload, or anything that is not base64.
    """
    try:
        data = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecryptionError() from e
    if len(data) < _HEADER:
        raise DecryptionError()

    salt = data[:SALT_LENGTH]
    iv = data[SALT_LENGTH : SALT_LENGTH + IV_LENGTH]
    tag = data[SALT_LENGTH + IV_LENGTH : _HEADER]
    ciphertext = data[_HEADER:]
    try:
        plain = AESGCM(_derive_key(password, salt)).decrypt(iv, ciphertext + tag, None)
        return plain.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError) as e:
        raise DecryptionError() from e


def _with_key(provider: Provider, api_key: str) -> Provider:
    return dataclasses.replace(provider, api_key=api_key, extra=dict(provider.extra))


def encrypt_providers(providers: list[Provider], password: str) -> list[Provider]:
    """Copies of providers with apiKey encrypted. Other fields are untouched."""
    return [_with_key(p, encrypt_api_key(p.api_key, password)) for p in providers]


def decrypt_providers(providers: list[Provider], password: str) -> list[Provider]:
    return [_with_key(p, decrypt_api_key(p.api_key, password)) for p in providers]
