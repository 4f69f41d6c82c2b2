"""
Identity Reconciliation - Service Layer

Request-level operations composed from the resolver, checker and guard:
- resolve_identity: hints -> canonical identity
- authorize_time_access: resolve + access guard
- list_time_entries: authorized time-entry listing for one person
- diagnose_id_mapping: consistency report for the caller's own record
"""

import logging
from typing import Optional, Dict, Any, List, Set

from .checker import ConsistencyChecker
from .errors import IdentityError, NotFound, Internal
from .guard import AccessGuard
from .models import IdentityHints, IdentityResolutionResult, ConsistencyDiagnostic, TimeEntry
from .repository import PersonRepository, TimeEntryRepository
from .resolver import IdentityResolver

logger = logging.getLogger(__name__)

TIME_ENTRY_LIMIT = 100


class IdentityService:
    """
    Identity Service - request/response identity operations.

    Stateless apart from the injected repositories; one instance per request.
    """

    def __init__(
        self,
        persons: PersonRepository,
        time_entries: Optional[TimeEntryRepository] = None,
        checker: Optional[ConsistencyChecker] = None,
        guard: Optional[AccessGuard] = None
    ):
        self.persons = persons
        self.time_entries = time_entries
        self.checker = checker or ConsistencyChecker()
        self.guard = guard or AccessGuard()
        self.resolver = IdentityResolver(persons, self.checker)

    # ==================== RESOLUTION ====================

    async def resolve_identity(
        self,
        auth_session_id: Optional[str],
        hints: Optional[IdentityHints] = None
    ) -> IdentityResolutionResult:
        return await self.resolver.resolve(auth_session_id, hints)

    async def authorize_time_access(
        self,
        auth_session_id: str,
        hints: Optional[IdentityHints] = None
    ) -> IdentityResolutionResult:
        """
        Resolve the requested identity and make sure it is the caller.

        Raises:
            PermissionDenied: the resolved identity is someone else
        """
        identity = await self.resolver.resolve(auth_session_id, hints)
        self.guard.authorize(identity, auth_session_id)

        logger.info(
            f"Time access granted for {identity.record_key}",
            extra={
                "auth_session_id": auth_session_id,
                "record_key": identity.record_key,
                "personnel_id": identity.personnel_id,
                "is_consistent": identity.is_consistent,
            },
        )
        return identity

    # ==================== TIME ENTRIES ====================

    async def list_time_entries(
        self,
        auth_session_id: str,
        hints: Optional[IdentityHints] = None,
        limit: int = TIME_ENTRY_LIMIT
    ) -> Dict[str, Any]:
        """
        Authorized listing of one person's time entries.

        Nothing is read from the time-entry store until the guard has passed.
        """
        if self.time_entries is None:
            raise Internal("Time entry store not configured")

        identity = await self.authorize_time_access(auth_session_id, hints)
        personnel_id = identity.personnel_id or identity.record_key

        entries = await self.time_entries.list_for_personnel(personnel_id, limit)

        return {
            "identity": identity.to_dict(),
            "records": [entry.to_dict() for entry in entries],
            "summary": summarize_time_entries(entries),
        }

    # ==================== DIAGNOSTICS ====================

    async def diagnose_id_mapping(self, auth_session_id: str) -> ConsistencyDiagnostic:
        """
        Consistency report for the caller's own person record.

        The record is looked up by record key first, then by stored authId.

        Raises:
            NotFound: the caller has no person record
        """
        try:
            record = await self.persons.get_by_key(auth_session_id)
            if record is None:
                record = await self.persons.find_by_auth_id(auth_session_id)
        except IdentityError:
            raise
        except Exception as e:
            logger.error(f"Diagnostic lookup failed for {auth_session_id}: {e}", exc_info=True)
            raise Internal("Identity lookup failed", {"auth_session_id": auth_session_id}) from e

        if record is None:
            raise NotFound(f"No person record found for {auth_session_id}", candidate=auth_session_id)

        diagnostic = self.checker.check(record, auth_session_id)
        logger.info(
            f"ID mapping diagnosed for {record.record_key}: {diagnostic.level.value}",
            extra={"record_key": record.record_key, "mismatch_count": len(diagnostic.mismatches)},
        )
        return diagnostic


def summarize_time_entries(entries: List[TimeEntry]) -> Dict[str, Any]:
    """Totals for a time-entry listing."""
    work_orders: Set[str] = {e.work_order_id for e in entries if e.work_order_id}
    return {
        "total_records": len(entries),
        "total_hours": round(sum(e.duration_hours for e in entries), 2),
        "unique_work_orders": len(work_orders),
    }
