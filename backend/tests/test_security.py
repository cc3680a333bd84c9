"""
Unit tests for password hashing, JWT helpers and note encryption.
"""

from datetime import timedelta

import pytest

from carebridge.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    decrypt_text,
    encrypt_text,
    hash_password,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_verifies(self) -> None:
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)

    def test_wrong_password_rejected(self) -> None:
        assert not verify_password("wrong", hash_password("correct horse"))


class TestTokens:
    def test_access_token_carries_type(self) -> None:
        payload = decode_token(create_access_token({"sub": "abc"}))
        assert payload["sub"] == "abc"
        assert payload["type"] == "access"

    def test_refresh_tokens_are_unique(self) -> None:
        first = create_refresh_token({"sub": "abc"})
        second = create_refresh_token({"sub": "abc"})
        assert first != second
        assert decode_token(first)["type"] == "refresh"

    def test_expired_token_is_rejected(self) -> None:
        token = create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-5))
        assert decode_token(token) is None

    def test_garbage_token_is_rejected(self) -> None:
        assert decode_token("not-a-jwt") is None


class TestNoteEncryption:
    def test_encrypt_decrypt(self) -> None:
        ciphertext = encrypt_text("Observed regression at school")
        assert b"regression" not in ciphertext
        assert decrypt_text(ciphertext) == "Observed regression at school"

    def test_empty_text(self) -> None:
        assert encrypt_text("") == b""
        assert decrypt_text(b"") == ""

    def test_corrupted_ciphertext_raises(self) -> None:
        with pytest.raises(ValueError):
            decrypt_text(b"definitely-not-fernet")
