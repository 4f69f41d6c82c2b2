"""
Identity Reconciliation - Access Guard

Single authorization primitive for person-scoped data: the resolved identity
must be the caller. Runs after resolution and before any data is assembled.
Role and permission sets are a separate layer and are not consulted here.
"""

import logging

from .errors import PermissionDenied
from .models import IdentityResolutionResult

logger = logging.getLogger(__name__)


class AccessGuard:
    """Rejects access to another person's data."""

    def authorize(self, resolved: IdentityResolutionResult, auth_session_id: str) -> None:
        """
        Raises:
            PermissionDenied: resolved.canonical_auth_id != auth_session_id
        """
        if not auth_session_id or resolved.canonical_auth_id != auth_session_id:
            logger.warning(
                "Access denied for person-scoped data",
                extra={
                    "auth_session_id": auth_session_id,
                    "requested_record_key": resolved.record_key,
                    "requested_auth_id": resolved.canonical_auth_id,
                },
            )
            # Message must not reveal the other identity
            raise PermissionDenied("Not permitted to access another person's data")
