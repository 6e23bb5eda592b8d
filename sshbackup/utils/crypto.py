"""
Key derivation for passphrase-encrypted backup artifacts.
Uses Fernet symmetric encryption with a key derived from the passphrase.
"""

import os
import base64
from typing import Optional

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


SALT_LENGTH = 16
KDF_ITERATIONS = 480000  # OWASP recommended iterations for 2023+


def generate_salt() -> bytes:
    """Return a fresh random salt for key derivation."""
    return os.urandom(SALT_LENGTH)


def derive_fernet(passphrase: str, salt: Optional[bytes] = None) -> Fernet:
    """
    Build a Fernet instance from a passphrase.

    Args:
        passphrase: Backup passphrase to derive the key from
        salt: 16-byte salt (generated if None)

    Returns:
        Fernet keyed with the derived 32-byte key

    Raises:
        ValueError: If passphrase is empty or salt has the wrong length
    """
    if not passphrase:
        raise ValueError("Passphrase must not be empty")

    if salt is None:
        salt = generate_salt()
    if len(salt) != SALT_LENGTH:
        raise ValueError(f"Salt must be {SALT_LENGTH} bytes, got {len(salt)}")

    # Derive a 32-byte key from passphrase using PBKDF2
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    key = base64.urlsafe_b64encode(kdf.derive(passphrase.encode()))

    return Fernet(key)
