"""
API key generation and hashing.

Keys are shown to their owner once; only the SHA-256 digest and a short
display prefix are stored.
"""

import hashlib
import hmac
import secrets

API_KEY_PREFIX = "nh_"


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_urlsafe(32)


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()


def display_prefix(key: str) -> str:
    """First characters of a key, safe to show in listings."""
    return key[: len(API_KEY_PREFIX) + 6]


def keys_match(candidate: str, expected: str) -> bool:
    """Constant-time comparison of two plaintext keys."""
    return hmac.compare_digest(candidate.encode(), expected.encode())
