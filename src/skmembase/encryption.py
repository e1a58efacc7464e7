"""
Memory encryption — password-based authenticated encryption.

Every memory file is sealed on its own:

    password + random salt ──PBKDF2-HMAC-SHA256 (100k)──> 256-bit key
    key + random IV ──AES-256-GCM──> ciphertext + 16-byte tag

Salt and IV are fresh for every call. Decryption re-derives the key
from the stored salt and verifies the tag before releasing a single
byte. A wrong password and a tampered blob fail the same way.

Usage:
    blob = encrypt(b"remember this", password)
    plaintext = decrypt(blob, password)
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
import re
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .models import EncryptedBlob

KEY_LENGTH = 32
IV_LENGTH = 16
SALT_LENGTH = 32
TAG_LENGTH = 16
PBKDF2_ITERATIONS = 100_000
MIN_PASSWORD_LENGTH = 12

_DECRYPTION_FAILED = "Decryption failed. Invalid password or corrupted data."


class DecryptionError(Exception):
    """Raised when a blob cannot be authenticated with the given password."""


class PasswordTooWeakError(ValueError):
    """Raised when a password does not meet the strength policy."""


def _derive_key(password: str, salt: bytes) -> bytes:
    """Derive a 256-bit key with PBKDF2-HMAC-SHA256.

    Args:
        password: User password.
        salt: Per-blob random salt.

    Returns:
        Derived key bytes.
    """
    kdf = PBKDF2HMAC(
        algorithm=SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"), validate=True)


def encrypt(plaintext: Union[bytes, str], password: str) -> EncryptedBlob:
    """Encrypt one memory file's content.

    Args:
        plaintext: Raw content. Text is encoded as UTF-8.
        password: Encryption password.

    Returns:
        EncryptedBlob with base64 ciphertext, iv, tag and salt.
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")

    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = _derive_key(password, salt)

    sealed = AESGCM(key).encrypt(iv, plaintext, None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return EncryptedBlob(
        ciphertext=_b64(ciphertext),
        iv=_b64(iv),
        auth_tag=_b64(tag),
        salt=_b64(salt),
    )


def decrypt(blob: EncryptedBlob, password: str) -> bytes:
    """Decrypt and authenticate a blob.

    Args:
        blob: Blob produced by :func:`encrypt`.
        password: Password used at encryption time.

    Returns:
        The original plaintext bytes.

    Raises:
        DecryptionError: Wrong password, tampered or malformed blob.
    """
    try:
        ciphertext = _unb64(blob.ciphertext)
        iv = _unb64(blob.iv)
        tag = _unb64(blob.auth_tag)
        salt = _unb64(blob.salt)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError(_DECRYPTION_FAILED) from exc

    if len(tag) != TAG_LENGTH or not salt or not iv:
        raise DecryptionError(_DECRYPTION_FAILED)

    key = _derive_key(password, salt)
    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except (InvalidTag, ValueError) as exc:
        raise DecryptionError(_DECRYPTION_FAILED) from exc


def decrypt_text(blob: EncryptedBlob, password: str) -> str:
    """Decrypt a blob holding UTF-8 text.

    Raises:
        DecryptionError: As for :func:`decrypt`, or if the plaintext
            is not valid UTF-8.
    """
    data = decrypt(blob, password)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError(_DECRYPTION_FAILED) from exc


def fingerprint(content: Union[str, bytes]) -> str:
    """SHA-256 hex digest used to detect content changes."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def validate_password(password: str) -> None:
    """Enforce the backup password policy.

    At least 12 characters with an uppercase letter, a lowercase
    letter, a digit and a special character.

    Raises:
        PasswordTooWeakError: If any rule is not met.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordTooWeakError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )

    checks = (
        re.search(r"[A-Z]", password),
        re.search(r"[a-z]", password),
        re.search(r"[0-9]", password),
        re.search(r"[^A-Za-z0-9]", password),
    )
    if not all(checks):
        raise PasswordTooWeakError(
            "Password must include uppercase, lowercase, number, and special character"
        )
