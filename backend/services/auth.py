"""
Session Token Verification

Tokens are issued by the identity provider; this service only verifies them.
The auth session id is the token subject ("sub"), falling back to the
provider's "user_id" claim.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
import logging

from jose import JWTError, jwt
from pydantic import BaseModel, Field

from config import Settings, get_settings

logger = logging.getLogger(__name__)


# ==================== MODELS ====================

class TokenData(BaseModel):
    """Data extracted from a verified session token"""
    uid: str
    email: Optional[str] = None
    exp: Optional[datetime] = None
    claims: Dict[str, Any] = Field(default_factory=dict)


class AuthSession(BaseModel):
    """Authenticated caller context"""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    is_admin: bool = False


# ==================== JWT UTILITIES ====================

def decode_token(token: str, settings: Optional[Settings] = None) -> Optional[TokenData]:
    """
    Verify a session token and extract the caller's uid.

    Returns None when the token is invalid, expired, has the wrong audience,
    or carries no uid. Audience is only checked when AUTH_TOKEN_AUDIENCE is set.
    """
    settings = settings or get_settings()
    if not settings.AUTH_TOKEN_SECRET:
        logger.error("AUTH_TOKEN_SECRET not configured; rejecting session token")
        return None

    audience = settings.AUTH_TOKEN_AUDIENCE or None
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_TOKEN_SECRET,
            algorithms=[settings.AUTH_TOKEN_ALGORITHM],
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None

    uid = payload.get("sub") or payload.get("user_id")
    if not uid or not str(uid).strip():
        logger.warning("Session token carries no subject")
        return None

    exp = payload.get("exp")
    return TokenData(
        uid=str(uid).strip(),
        email=payload.get("email"),
        exp=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
        claims=payload,
    )
