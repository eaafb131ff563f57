"""
Password hashing helpers (Argon2id via argon2-cffi).
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

ph = PasswordHasher()


def hash_password(plaintext: str) -> str:
    """Hash a password with a fresh random salt."""
    return ph.hash(plaintext)


def verify_password(plaintext: str, password_hash: str) -> bool:
    """
    Check a password against a stored hash.

    Never raises: a mismatch, an empty hash or a hash that is not a valid
    Argon2 string all return False.
    """
    if not password_hash or not isinstance(plaintext, str):
        return False
    try:
        return ph.verify(password_hash, plaintext)
    except (VerificationError, InvalidHashError):
        return False
