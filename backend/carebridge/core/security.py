"""
Security utilities for authentication and encryption.

Provides password hashing, JWT utilities, and symmetric encryption for
clinical free text (internal case notes) stored at rest.
"""

import base64
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.backends import default_backend

import bcrypt as _bcrypt
from jose import JWTError, jwt

from .config import settings


# =============================================================================
# Password Hashing (bcrypt)
# =============================================================================


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return _bcrypt.hashpw(password.encode("utf-8"), _bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    return _bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


# =============================================================================
# JWT Token Management
# =============================================================================

ALGORITHM = "HS256"


def create_access_token(
    data: dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode in token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def create_refresh_token(data: dict[str, Any]) -> str:
    """
    Create a JWT refresh token with longer expiration.

    Args:
        data: Payload data to encode in token

    Returns:
        Encoded JWT refresh token string
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days)
    to_encode.update({"exp": expire, "type": "refresh", "jti": secrets.token_hex(8)})

    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """
    Decode and verify a JWT token.

    Args:
        token: JWT token string

    Returns:
        Decoded payload dict or None if invalid
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


# =============================================================================
# Encryption for clinical free text
# =============================================================================

def _get_fernet_key() -> bytes:
    """
    Derive a Fernet-compatible key from the encryption key.

    Fernet requires a 32-byte base64-urlsafe encoded key.
    PBKDF2 gives a stable derivation from the configured key material.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"carebridge_clinical_salt",
        iterations=100000,
        backend=default_backend()
    )
    return base64.urlsafe_b64encode(
        kdf.derive(settings.encryption_key.encode())
    )


_fernet = Fernet(_get_fernet_key())


def encrypt_text(plaintext: str) -> bytes:
    """
    Encrypt clinical free text before it is written to the database.

    Example:
        note.content_encrypted = encrypt_text("Observed regression at school")
    """
    if not plaintext:
        return b""

    return _fernet.encrypt(plaintext.encode("utf-8"))


def decrypt_text(ciphertext: bytes) -> str:
    """
    Decrypt text produced by ``encrypt_text``.

    Raises:
        ValueError: If decryption fails (invalid or corrupted data)
    """
    if not ciphertext:
        return ""

    try:
        return _fernet.decrypt(ciphertext).decode("utf-8")
    except InvalidToken as e:
        raise ValueError("Failed to decrypt clinical note") from e
