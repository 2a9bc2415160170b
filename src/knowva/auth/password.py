"""
Credential storage (argon2id) and the password strength policy.

Hashes embed their own parameters, so raising the cost below only affects
new hashes; check_needs_rehash() flags the old ones for upgrade on login.
"""

from __future__ import annotations

from collections.abc import Callable

import argon2

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,  # argon2id
)

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full hash string."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its argon2id hash.

    Returns True if the password matches. Never raises: a mismatch, an empty
    hash or a malformed hash all return False.
    """
    if not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, password)
    except (argon2.exceptions.VerificationError, argon2.exceptions.InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    """Check if the hash needs to be updated (parameters changed)."""
    return _hasher.check_needs_rehash(password_hash)


# Each rule is (predicate that must hold, message when it does not).
PasswordRule = tuple[Callable[[str], bool], str]

PASSWORD_RULES: list[PasswordRule] = [
    (lambda p: len(p) >= PASSWORD_MIN_LENGTH, "Password must be at least 8 characters long"),
    (lambda p: len(p) <= PASSWORD_MAX_LENGTH, "Password must be less than 128 characters long"),
    (lambda p: any(c.isdigit() for c in p), "Password must contain at least one number"),
    (lambda p: any(c.isupper() for c in p), "Password must contain at least one uppercase letter"),
    (lambda p: any(c.islower() for c in p), "Password must contain at least one lowercase letter"),
    (lambda p: any(c in SPECIAL_CHARACTERS for c in p), "Password must contain at least one special character"),
]


def check_password_strength(password: str, rules: list[PasswordRule] | None = None) -> list[str]:
    """
    Evaluate every strength rule and return the messages of the ones violated.

    An empty list means the password satisfies the policy. Rules are checked
    independently so callers can report all problems at once.
    """
    active = PASSWORD_RULES if rules is None else rules
    return [message for predicate, message in active if not predicate(password)]
