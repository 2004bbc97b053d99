"""Authentication Routes.

Implements:
- POST /api/auth/token - Issue a signed test token (development only)

Production deployments obtain tokens from the organisation's identity
provider; this endpoint returns 404 unless ORDER_SCRUB_ENV=development.
"""

from datetime import datetime, timedelta
from uuid import uuid4

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from core import config
from core.observability.logging import get_logger
from core.security.tokens import ADMIN_ROLE, create_access_token

router = APIRouter(prefix="/auth")

logger = get_logger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class TokenRequest(BaseModel):
    """Identity to embed in the test token."""
    user_id: str = Field(default_factory=lambda: str(uuid4()))
    username: str = "testuser"
    role: str = ADMIN_ROLE


class TokenResponse(BaseModel):
    """Issued token and its expiry (UTC)."""
    token: str
    expires: datetime


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/token", response_model=TokenResponse)
async def issue_token(request: TokenRequest) -> TokenResponse:
    """Generate a test JWT token (development only)."""
    if not config.is_development():
        raise HTTPException(status_code=404, detail="Not Found")
    
    expires = datetime.utcnow() + timedelta(minutes=config.JWT_EXPIRE_MINUTES)
    token = create_access_token(request.user_id, request.username, request.role)
    
    logger.info(
        "Issued development token",
        extra_fields={"user_id": request.user_id, "username": request.username, "role": request.role},
    )
    return TokenResponse(token=token, expires=expires)
