"""
Security utilities for authentication and authorization.
"""

from .api_keys import generate_api_key, hash_api_key
from .password import PasswordHasher, check_password_strength, password_hasher
from .tokens import TokenPayload, TokenService

__all__ = [
    "PasswordHasher",
    "TokenService",
    "TokenPayload",
    "check_password_strength",
    "password_hasher",
    "generate_api_key",
    "hash_api_key",
]
