"""
Identity Reconciliation - Identity Resolver

Resolves a canonical person record from partial hints.

Candidate selection (first non-blank wins, no merging):
    employeeCode > userId > personnelId > authSessionId

Lookup (first hit wins):
    1. direct record-key lookup with the candidate
    2. employee_code equality lookup with the candidate
    3. NotFound

Consistency of the resolved record is always computed by the
ConsistencyChecker; resolution never trusts the stored identifiers.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Callable, Awaitable, Tuple

from .checker import ConsistencyChecker
from .errors import IdentityError, InvalidArgument, NotFound, Internal
from .models import (
    IdentityHints,
    IdentityResolutionResult,
    PersonIdentityRecord,
    ResolutionSource,
)
from .repository import PersonRepository

logger = logging.getLogger(__name__)


# ==================== CANDIDATE STRATEGIES ====================

@dataclass(frozen=True)
class CandidateStrategy:
    """Named rule that picks a candidate id from the request, or nothing."""
    name: str
    select: Callable[[IdentityHints, Optional[str]], Optional[str]]
    from_session: bool = False

    def __call__(self, hints: IdentityHints, auth_session_id: Optional[str]) -> Optional[str]:
        value = self.select(hints, auth_session_id)
        if value is None:
            return None
        value = value.strip()
        return value or None


CANDIDATE_STRATEGIES: Tuple[CandidateStrategy, ...] = (
    CandidateStrategy("employeeCode", lambda hints, session: hints.employee_code),
    CandidateStrategy("userId", lambda hints, session: hints.user_id),
    CandidateStrategy("personnelId", lambda hints, session: hints.personnel_id),
    CandidateStrategy("authSessionId", lambda hints, session: session, from_session=True),
)

# The resolution order as a first-class artifact
RESOLUTION_ORDER = tuple(strategy.name for strategy in CANDIDATE_STRATEGIES)


def select_candidate(
    hints: IdentityHints,
    auth_session_id: Optional[str],
    strategies: Tuple[CandidateStrategy, ...] = CANDIDATE_STRATEGIES
) -> Tuple[str, CandidateStrategy]:
    """
    Pick the candidate id.

    Raises:
        InvalidArgument: no strategy produced a candidate
    """
    for strategy in strategies:
        candidate = strategy(hints, auth_session_id)
        if candidate is not None:
            return candidate, strategy
    raise InvalidArgument("Unable to determine identity: no hint or session id supplied")


# ==================== LOOKUP STRATEGIES ====================

@dataclass(frozen=True)
class LookupStrategy:
    """Named store lookup that returns a record or None."""
    name: str
    lookup: Callable[[PersonRepository, str], Awaitable[Optional[PersonIdentityRecord]]]
    found_in_store: bool = False


LOOKUP_STRATEGIES: Tuple[LookupStrategy, ...] = (
    LookupStrategy("recordKey", lambda repo, candidate: repo.get_by_key(candidate)),
    LookupStrategy(
        "employeeCode",
        lambda repo, candidate: repo.find_by_employee_code(candidate),
        found_in_store=True,
    ),
)


# ==================== RESOLVER ====================

class IdentityResolver:
    """
    Identity Resolver - maps request hints to one canonical person record.

    Stateless; safe to share between requests.
    """

    def __init__(
        self,
        person_repository: PersonRepository,
        checker: Optional[ConsistencyChecker] = None,
        candidate_strategies: Tuple[CandidateStrategy, ...] = CANDIDATE_STRATEGIES,
        lookup_strategies: Tuple[LookupStrategy, ...] = LOOKUP_STRATEGIES
    ):
        self.persons = person_repository
        self.checker = checker or ConsistencyChecker()
        self.candidate_strategies = candidate_strategies
        self.lookup_strategies = lookup_strategies

    async def _lookup(self, candidate: str) -> Tuple[PersonIdentityRecord, LookupStrategy]:
        for strategy in self.lookup_strategies:
            try:
                record = await strategy.lookup(self.persons, candidate)
            except IdentityError:
                raise
            except Exception as e:
                logger.error(
                    f"Identity lookup '{strategy.name}' failed for candidate {candidate}: {e}",
                    exc_info=True,
                    extra={"candidate": candidate, "lookup": strategy.name},
                )
                raise Internal("Identity lookup failed", {"candidate": candidate}) from e
            if record is not None:
                return record, strategy
        raise NotFound(f"No person record found for {candidate}", candidate=candidate)

    async def resolve(
        self,
        auth_session_id: Optional[str],
        hints: Optional[IdentityHints] = None
    ) -> IdentityResolutionResult:
        """
        Resolve the canonical identity.

        Args:
            auth_session_id: Provider id of the authenticated caller
            hints: Optional employeeCode / userId / personnelId

        Raises:
            InvalidArgument: neither a hint nor a session id present
            NotFound: no record matches the chosen candidate
            Internal: store unavailable
        """
        hints = hints or IdentityHints()
        candidate, chosen = select_candidate(hints, auth_session_id, self.candidate_strategies)

        record, lookup = await self._lookup(candidate)

        if lookup.found_in_store:
            source = ResolutionSource.DOCUMENT_STORE
        elif chosen.from_session:
            source = ResolutionSource.AUTH_SESSION
        else:
            source = ResolutionSource.REQUEST

        diagnostic = self.checker.check(record, auth_session_id)

        result = IdentityResolutionResult(
            canonical_auth_id=record.auth_id or record.record_key,
            employee_code=record.employee_code,
            personnel_id=record.personnel_id,
            record_key=record.record_key,
            source_hint=source,
            candidate=candidate,
            candidate_field=chosen.name,
            is_consistent=diagnostic.is_consistent,
            record=record,
        )

        log_fields = {
            "auth_session_id": auth_session_id,
            "hints": hints.to_dict(),
            "candidate": candidate,
            "candidate_field": chosen.name,
            "lookup": lookup.name,
            "source_hint": source.value,
            "record_key": record.record_key,
            "is_consistent": diagnostic.is_consistent,
        }
        logger.info(f"Identity resolved: {candidate} -> {record.record_key} via {lookup.name}", extra=log_fields)

        if not diagnostic.is_consistent:
            logger.warning(
                f"Identity drift on {record.record_key}: {diagnostic.level.value}",
                extra={**log_fields, "mismatches": [m.to_dict() for m in diagnostic.mismatches]},
            )

        return result
