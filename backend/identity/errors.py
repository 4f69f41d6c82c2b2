"""
Identity Reconciliation - Error Taxonomy

Every failure surfaced by the identity layer maps to one of these types.
Data-quality problems (drifted identifiers) are never raised; they are
returned as ConsistencyDiagnostic data.

HTTP mapping:
- InvalidArgument  -> 400
- PermissionDenied -> 403
- NotFound         -> 404
- Internal         -> 500 (generic message, full context in logs)
"""

from typing import Optional, Dict, Any

from fastapi import HTTPException, status

from utils.validation_errors import ValidationErrorResponse


class IdentityError(Exception):
    """Base class for identity reconciliation errors."""

    code = "internal"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class InvalidArgument(IdentityError):
    """Missing or malformed caller input."""

    code = "invalid_argument"
    http_status = status.HTTP_400_BAD_REQUEST


class NotFound(IdentityError):
    """No identity or record matched the searched candidate."""

    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str, candidate: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.candidate = candidate


class PermissionDenied(IdentityError):
    """Resolved identity does not belong to the caller."""

    code = "permission_denied"
    http_status = status.HTTP_403_FORBIDDEN


class Internal(IdentityError):
    """Store or provider unavailable, or an unexpected failure."""

    code = "internal"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    PUBLIC_MESSAGE = "Identity service temporarily unavailable"


class RecordMappingError(Internal):
    """A stored document could not be mapped to a PersonIdentityRecord."""

    def __init__(self, message: str, record_key: Optional[str] = None):
        super().__init__(message, {"record_key": record_key})
        self.record_key = record_key


class RepositoryError(Internal):
    """The backing store rejected or failed an operation."""


class ProviderUnavailable(Internal):
    """The external identity provider could not be reached."""


def to_http_exception(error: IdentityError) -> HTTPException:
    """Translate an IdentityError into the structured HTTPException routers raise."""
    if isinstance(error, Internal):
        detail = ValidationErrorResponse.error(error.code, Internal.PUBLIC_MESSAGE)
    elif isinstance(error, NotFound):
        detail = ValidationErrorResponse.error(error.code, error.message)
        if error.candidate is not None:
            detail["candidate"] = error.candidate
    else:
        detail = ValidationErrorResponse.error(error.code, error.message)

    return HTTPException(status_code=error.http_status, detail=detail)
