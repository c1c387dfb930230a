"""Bot API key generation and verification using argon2id.

Keys look like `oc_<32 lowercase alphanumerics>`. Only a short lookup prefix
and the argon2 hash are stored; the full key is shown to the owner once.
"""

from __future__ import annotations

import secrets
import string

import argon2

KEY_PREFIX = "oc_"
KEY_RANDOM_LENGTH = 32
LOOKUP_PREFIX_LENGTH = 12  # "oc_" + 9 random chars

_KEY_CHARSET = string.ascii_lowercase + string.digits

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)


def generate_api_key() -> tuple[str, str, str]:
    """
    Generate a new bot API key.

    Returns:
        (full_key, lookup_prefix, argon2_hash).
    """
    random_part = "".join(secrets.choice(_KEY_CHARSET) for _ in range(KEY_RANDOM_LENGTH))
    full_key = f"{KEY_PREFIX}{random_part}"
    return full_key, lookup_prefix(full_key), _hasher.hash(full_key)


def lookup_prefix(full_key: str) -> str:
    """Indexed prefix used to find candidate bots for a presented key."""
    return full_key[:LOOKUP_PREFIX_LENGTH]


def looks_like_api_key(value: str) -> bool:
    """True when a bearer token is a bot key rather than a user JWT."""
    return value.startswith(KEY_PREFIX)


def verify_api_key(full_key: str, stored_hash: str) -> bool:
    """Verify an API key against its stored argon2 hash."""
    try:
        return _hasher.verify(stored_hash, full_key)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False
