"""
Authentication Middleware and Dependencies

Provides:
- get_current_session: verified caller identity from the bearer token
- require_admin: caller whose person record carries the admin role
"""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from identity.dependencies import get_person_repository
from identity.errors import IdentityError, to_http_exception
from identity.repository import PersonRepository
from logging_config import set_request_context
from sentry_integration import set_session_user
from services.auth import decode_token, AuthSession

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


# ==================== DEPENDENCIES ====================

async def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthSession:
    """
    Extract the caller from the bearer token.
    Raises 401 if no token or invalid token.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    token_data = decode_token(credentials.credentials)
    if not token_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    set_request_context(auth_session_id=token_data.uid)
    set_session_user(token_data.uid)

    return AuthSession(uid=token_data.uid, email=token_data.email)


async def require_admin(
    session: AuthSession = Depends(get_current_session),
    persons: PersonRepository = Depends(get_person_repository)
) -> AuthSession:
    """
    Admin-only dependency.

    The caller's person record is found by record key, then by stored authId;
    its role_name must be "admin".
    """
    try:
        record = await persons.get_by_key(session.uid)
        if record is None:
            record = await persons.find_by_auth_id(session.uid)
    except IdentityError as e:
        raise to_http_exception(e) from e

    if record is None or not record.is_admin:
        logger.warning(
            f"Admin access denied for {session.uid}",
            extra={"auth_session_id": session.uid, "has_record": record is not None},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Required role: admin"
        )

    return session.model_copy(update={"display_name": record.display_name, "is_admin": True})
