"""Centralized password hashing configuration.

All modules requiring password hashing import from here so signup, login and
password reset share the same Argon2id parameters.
"""

from argon2 import PasswordHasher
from argon2 import exceptions as argon_exc

MIN_PASSWORD_LENGTH = 8

PASSWORD_HASHER = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    return PASSWORD_HASHER.hash(password)


def verify_password(hashed: str | None, password: str) -> bool:
    """Return True when the password matches; accounts without a hash never match."""
    if not hashed:
        return False
    try:
        return PASSWORD_HASHER.verify(hashed, password)
    except (argon_exc.VerifyMismatchError, argon_exc.VerificationError, argon_exc.InvalidHashError):
        return False


def check_needs_rehash(hashed: str) -> bool:
    return PASSWORD_HASHER.check_needs_rehash(hashed)
