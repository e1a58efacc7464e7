"""Tests for memory encryption — AES-256-GCM, PBKDF2, password policy."""

from __future__ import annotations

import base64
import json

import pytest

from skmembase.encryption import (
    IV_LENGTH,
    SALT_LENGTH,
    TAG_LENGTH,
    DecryptionError,
    PasswordTooWeakError,
    decrypt,
    decrypt_text,
    encrypt,
    fingerprint,
    validate_password,
)
from skmembase.models import EncryptedBlob

PASSWORD = "Abcdefghijkl1!"


def _flip_bit(value: str) -> str:
    """Flip the lowest bit of the first decoded byte."""
    raw = bytearray(base64.b64decode(value))
    raw[0] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


class TestRoundTrip:
    """Encrypt then decrypt returns the original plaintext."""

    @pytest.mark.parametrize("plaintext", [
        b"This is a secret message from the agent!",
        b"",
        "# Memories\n\n- café ☕ \U0001f9e0\r\n".encode("utf-8"),
        bytes(range(256)),
    ])
    def test_bytes_roundtrip(self, plaintext: bytes):
        """Arbitrary bytes survive a round trip."""
        blob = encrypt(plaintext, PASSWORD)
        assert decrypt(blob, PASSWORD) == plaintext

    def test_text_is_utf8_encoded(self):
        """Text input is encrypted as UTF-8 and decrypt_text restores it."""
        blob = encrypt("notes über alles", PASSWORD)
        assert decrypt(blob, PASSWORD) == "notes über alles".encode("utf-8")
        assert decrypt_text(blob, PASSWORD) == "notes über alles"

    def test_field_lengths(self):
        """Salt, IV and tag decode to their fixed sizes."""
        blob = encrypt(b"hello", PASSWORD)
        assert len(base64.b64decode(blob.salt)) == SALT_LENGTH
        assert len(base64.b64decode(blob.iv)) == IV_LENGTH
        assert len(base64.b64decode(blob.auth_tag)) == TAG_LENGTH
        assert len(base64.b64decode(blob.ciphertext)) == len(b"hello")

    def test_fresh_salt_and_iv_every_call(self):
        """Encrypting the same input twice never reuses salt or IV."""
        first = encrypt(b"same content", PASSWORD)
        second = encrypt(b"same content", PASSWORD)
        assert first.salt != second.salt
        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext


class TestFailClosed:
    """Wrong passwords and tampering never release plaintext."""

    def test_wrong_password(self):
        """A different password fails with DecryptionError."""
        blob = encrypt(b"secret", PASSWORD)
        with pytest.raises(DecryptionError):
            decrypt(blob, "WrongPassword123!")

    @pytest.mark.parametrize("field", ["ciphertext", "iv", "auth_tag", "salt"])
    def test_tampered_field(self, field: str):
        """Flipping a bit in any field fails authentication."""
        blob = encrypt(b"tamper with me", PASSWORD)
        tampered = blob.model_copy(update={field: _flip_bit(getattr(blob, field))})
        with pytest.raises(DecryptionError):
            decrypt(tampered, PASSWORD)

    def test_wrong_password_and_tamper_are_indistinguishable(self):
        """Both failure modes raise the same error message."""
        blob = encrypt(b"secret", PASSWORD)

        with pytest.raises(DecryptionError) as wrong:
            decrypt(blob, "NotThePassword9!")

        tampered = blob.model_copy(update={"auth_tag": _flip_bit(blob.auth_tag)})
        with pytest.raises(DecryptionError) as corrupted:
            decrypt(tampered, PASSWORD)

        assert str(wrong.value) == str(corrupted.value)

    def test_invalid_base64(self):
        """Garbage in any field is a DecryptionError, not a crash."""
        blob = encrypt(b"secret", PASSWORD)
        broken = blob.model_copy(update={"ciphertext": "not base64!!"})
        with pytest.raises(DecryptionError):
            decrypt(broken, PASSWORD)

    def test_truncated_tag(self):
        """A short tag is rejected."""
        blob = encrypt(b"secret", PASSWORD)
        short_tag = base64.b64encode(base64.b64decode(blob.auth_tag)[:8]).decode()
        with pytest.raises(DecryptionError):
            decrypt(blob.model_copy(update={"auth_tag": short_tag}), PASSWORD)

    def test_empty_blob(self):
        """A blob with missing fields fails closed."""
        with pytest.raises(DecryptionError):
            decrypt(EncryptedBlob(ciphertext="", iv="", auth_tag="", salt=""), PASSWORD)

    def test_decrypt_text_rejects_binary(self):
        """Non-UTF-8 plaintext cannot be returned as text."""
        blob = encrypt(b"\xff\xfe\xfd", PASSWORD)
        with pytest.raises(DecryptionError):
            decrypt_text(blob, PASSWORD)


class TestBlobSerialization:
    """The blob travels as a JSON string in message content."""

    def test_wire_keys(self):
        """Serialized blob uses the authTag key existing backups expect."""
        blob = encrypt(b"x", PASSWORD)
        data = json.loads(blob.to_json())
        assert set(data) == {"ciphertext", "iv", "authTag", "salt"}

    def test_parse_and_decrypt(self):
        """A parsed blob still decrypts."""
        blob = encrypt(b"persisted", PASSWORD)
        parsed = EncryptedBlob.from_json(blob.to_json())
        assert parsed == blob
        assert decrypt(parsed, PASSWORD) == b"persisted"

    def test_from_json_rejects_non_object(self):
        """A JSON list is not a blob."""
        with pytest.raises(ValueError):
            EncryptedBlob.from_json("[1, 2, 3]")


class TestFingerprint:
    """Content fingerprints for diffing."""

    def test_deterministic(self):
        assert fingerprint("same") == fingerprint("same")

    def test_differs_for_different_content(self):
        assert fingerprint("version 1") != fingerprint("version 2")

    def test_text_and_bytes_agree(self):
        """str and its UTF-8 bytes fingerprint the same."""
        assert fingerprint("café") == fingerprint("café".encode("utf-8"))

    def test_sha256_hex(self):
        digest = fingerprint("")
        assert len(digest) == 64
        assert digest == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


class TestValidatePassword:
    """Password strength policy."""

    def test_strong_password_passes(self):
        validate_password("StrongPass123!@#")

    def test_too_short(self):
        with pytest.raises(PasswordTooWeakError, match="at least 12"):
            validate_password("Ab1!")

    @pytest.mark.parametrize("password", [
        "alllowercase123!",
        "ALLUPPERCASE123!",
        "NoDigitsHere!!!!",
        "NoSpecialChar123",
    ])
    def test_missing_character_class(self, password: str):
        with pytest.raises(PasswordTooWeakError, match="uppercase, lowercase, number"):
            validate_password(password)

    def test_is_a_value_error(self):
        """Callers can catch it as ValueError."""
        with pytest.raises(ValueError):
            validate_password("weak")
