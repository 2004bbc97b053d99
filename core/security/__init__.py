"""Security module - JWT access tokens."""

from core.security.tokens import (
    ADMIN_ROLE,
    TokenClaims,
    TokenError,
    create_access_token,
    decode_access_token,
)

__all__ = [
    "ADMIN_ROLE",
    "TokenClaims",
    "TokenError",
    "create_access_token",
    "decode_access_token",
]
