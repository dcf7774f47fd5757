"""
Fernet helpers shared by the file store and the admin tools.

Encrypted payloads come in two flavours:
- key-file: the raw Fernet token, decrypted with a base64 Fernet key
- password: b'SALT' + 16-byte salt + Fernet token, key derived with PBKDF2
"""

import base64
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


SALT_PREFIX = b'SALT'
SALT_LENGTH = 16
KDF_ITERATIONS = 480000  # OWASP recommendation for 2024


def derive_key_from_password(password: str, salt: bytes) -> bytes:
    """Derive a Fernet key from a password using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    key_material = kdf.derive(password.encode('utf-8'))
    return base64.urlsafe_b64encode(key_material)


def generate_key() -> bytes:
    return Fernet.generate_key()


def is_password_encrypted(data: bytes) -> bool:
    return data.startswith(SALT_PREFIX)


def encrypt(plaintext: bytes, key: Optional[bytes] = None, password: Optional[str] = None) -> bytes:
    """Encrypt with a Fernet key, or with a password (salt is generated and prefixed)."""
    if password is not None:
        salt = os.urandom(SALT_LENGTH)
        token = Fernet(derive_key_from_password(password, salt)).encrypt(plaintext)
        return SALT_PREFIX + salt + token
    if key is None:
        raise ValueError("Either a key or a password is required")
    return Fernet(key).encrypt(plaintext)


def decrypt(data: bytes, key: Optional[bytes] = None, password: Optional[str] = None) -> bytes:
    """
    Decrypt a payload produced by ``encrypt``.

    Raises:
        ValueError: wrong key/password, missing credential, or corrupted data
    """
    if is_password_encrypted(data):
        if password is None:
            raise ValueError("This file was encrypted with a password")
        salt = data[len(SALT_PREFIX):len(SALT_PREFIX) + SALT_LENGTH]
        token = data[len(SALT_PREFIX) + SALT_LENGTH:]
        fernet_key = derive_key_from_password(password, salt)
    else:
        if key is None:
            raise ValueError("This file was encrypted with a key file")
        token = data
        fernet_key = key

    try:
        return Fernet(fernet_key).decrypt(token)
    except InvalidToken as e:
        raise ValueError("Decryption failed: invalid key/password or corrupted file") from e
