"""JWT access tokens for the Order Scrub API.

Tokens are HS256-signed with the configured secret and carry the user's
ID, name and role. Issuer and audience are checked on every decode.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import jwt

from core import config

ALGORITHM = "HS256"
ADMIN_ROLE = "Admin"


class TokenError(Exception):
    """The bearer token is missing, expired or invalid."""


@dataclass
class TokenClaims:
    """Identity carried by a decoded access token."""
    user_id: str
    username: str
    role: str
    expires_at: datetime
    
    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def create_access_token(
    user_id: str,
    username: str,
    role: str = ADMIN_ROLE,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a signed access token.
    
    Args:
        user_id: Stable user identifier (the ``sub`` claim)
        username: Display name recorded on reports and audit events
        role: Authorization role; "Admin" may delete reports
        expires_minutes: Lifetime override, defaults to JWT_EXPIRE_MINUTES
        
    Returns:
        Encoded JWT string
    """
    now = datetime.utcnow()
    lifetime = config.JWT_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    payload = {
        "sub": str(user_id),
        "name": username,
        "role": role,
        "iss": config.JWT_ISSUER,
        "aud": config.JWT_AUDIENCE,
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    """Verify and decode an access token.
    
    Raises:
        TokenError: If the token is expired, has a bad signature, or names
            the wrong issuer or audience
    """
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET_KEY,
            algorithms=[ALGORITHM],
            issuer=config.JWT_ISSUER,
            audience=config.JWT_AUDIENCE,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}") from e
    
    return TokenClaims(
        user_id=payload["sub"],
        username=payload.get("name") or payload["sub"],
        role=payload.get("role", ""),
        expires_at=datetime.utcfromtimestamp(payload["exp"]),
    )
