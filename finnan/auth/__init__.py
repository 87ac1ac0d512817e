"""Auth package: password hashing, JWT issuance and verification."""

from finnan.auth.service import (
    DEFAULT_CATEGORIES,
    AuthenticatedUser,
    AuthService,
    hash_password,
    verify_password,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "AuthenticatedUser",
    "AuthService",
    "hash_password",
    "verify_password",
]
