"""
Identity Reconciliation Module

Maps the identifiers a caller may present (auth session id, employee code,
user id, personnel id) onto one canonical person record.

Features:
- Identifier validation against provider uid rules
- Identity resolution with ordered hint and lookup strategies
- Consistency checking of stored identifier fields
- Access guard for per-person data
"""

from .errors import (
    IdentityError,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    Internal,
    RecordMappingError,
    RepositoryError,
    ProviderUnavailable,
)
from .models import (
    PersonIdentityRecord,
    PersonStatus,
    ConsistencyLevel,
    ConsistencyDiagnostic,
    IdentityHints,
    IdentityResolutionResult,
    ResolutionSource,
    ValidationResult,
)
from .validator import validate_identifier
from .checker import ConsistencyChecker
from .resolver import IdentityResolver
from .guard import AccessGuard
from .service import IdentityService

__all__ = [
    'IdentityError',
    'InvalidArgument',
    'NotFound',
    'PermissionDenied',
    'Internal',
    'RecordMappingError',
    'RepositoryError',
    'ProviderUnavailable',
    'PersonIdentityRecord',
    'PersonStatus',
    'ConsistencyLevel',
    'ConsistencyDiagnostic',
    'IdentityHints',
    'IdentityResolutionResult',
    'ResolutionSource',
    'ValidationResult',
    'validate_identifier',
    'ConsistencyChecker',
    'IdentityResolver',
    'AccessGuard',
    'IdentityService',
]
