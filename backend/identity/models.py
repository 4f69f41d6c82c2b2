"""
Identity Reconciliation - Domain Models

Value types shared by the validator, resolver, checker, guard and the bulk
remediation tools. Store payloads are mapped into these types at the
repository boundary; nothing downstream sees raw documents.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, FrozenSet, Mapping

from .errors import RecordMappingError


# ==================== ENUMS ====================

class PersonStatus(str, Enum):
    """Person account status"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class ResolutionSource(str, Enum):
    """Where the resolved identity was found."""
    REQUEST = "request"
    AUTH_SESSION = "authSession"
    DOCUMENT_STORE = "documentStore"


class ConsistencyLevel(str, Enum):
    """Classification of the (authId, employeeCode, recordKey) triple."""
    CONSISTENT = "consistent"
    PARTIAL = "partial"
    INCONSISTENT = "inconsistent"


# ==================== PERSON RECORD ====================

def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class PersonIdentityRecord:
    """
    Person identity as stored in the persons collection.

    Target invariant: record_key == auth_id == employee_code == personnel_id.
    The invariant is checked by ConsistencyChecker, never assumed here.
    """
    record_key: str
    auth_id: Optional[str] = None
    employee_code: Optional[str] = None
    display_name: Optional[str] = None
    role_name: Optional[str] = None
    permissions: FrozenSet[str] = frozenset()
    status: PersonStatus = PersonStatus.ACTIVE

    @property
    def personnel_id(self) -> Optional[str]:
        """Identifier used by time entries; always the employee code."""
        return self.employee_code

    @property
    def is_admin(self) -> bool:
        return self.role_name == "admin"

    @classmethod
    def from_document(cls, record_key: Any, payload: Mapping[str, Any]) -> "PersonIdentityRecord":
        """
        Map a stored document into a record.

        Raises:
            RecordMappingError: record key missing or status unknown
        """
        key = _clean(record_key)
        if key is None:
            raise RecordMappingError("Person document has no record key")

        raw_status = payload.get("status") or PersonStatus.ACTIVE.value
        try:
            person_status = PersonStatus(raw_status)
        except ValueError:
            raise RecordMappingError(f"Unknown person status '{raw_status}'", record_key=key)

        raw_permissions = payload.get("permissions") or []
        if isinstance(raw_permissions, str):
            raw_permissions = [raw_permissions]

        return cls(
            record_key=key,
            auth_id=_clean(payload.get("auth_id")),
            employee_code=_clean(payload.get("employee_code")),
            display_name=_clean(payload.get("display_name")),
            role_name=_clean(payload.get("role_name")),
            permissions=frozenset(str(p) for p in raw_permissions),
            status=person_status,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "record_key": self.record_key,
            "auth_id": self.auth_id,
            "employee_code": self.employee_code,
            "personnel_id": self.personnel_id,
            "display_name": self.display_name,
            "role_name": self.role_name,
            "permissions": sorted(self.permissions),
            "status": self.status.value,
        }


# ==================== VALIDATION ====================

@dataclass(frozen=True)
class CharsetInfo:
    """Character classes present in an identifier."""
    has_digits: bool
    has_lowercase: bool
    has_uppercase: bool
    has_other_script: bool
    has_special: bool
    special_characters: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_digits": self.has_digits,
            "has_lowercase": self.has_lowercase,
            "has_uppercase": self.has_uppercase,
            "has_other_script": self.has_other_script,
            "has_special": self.has_special,
            "special_characters": list(self.special_characters),
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking one candidate identifier."""
    candidate: str
    is_valid: bool
    issues: List[str]
    warnings: List[str]
    length: int
    starts_with_digit: bool
    charset: CharsetInfo

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            "length": self.length,
            "starts_with_digit": self.starts_with_digit,
            "charset": self.charset.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": self.candidate,
            "is_valid": self.is_valid,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "metadata": self.metadata,
        }


# ==================== CONSISTENCY ====================

@dataclass(frozen=True)
class Mismatch:
    """One identifier field that disagrees with the record key."""
    field: str
    actual_value: Optional[str]
    expected_value: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "actual_value": self.actual_value,
            "expected_value": self.expected_value,
        }


@dataclass(frozen=True)
class ConsistencyDiagnostic:
    """Field-by-field consistency report for one person record."""
    subject_id: str
    field_values: Dict[str, Optional[str]]
    level: ConsistencyLevel
    mismatches: List[Mismatch]
    recommendations: List[str]
    session_matches: Optional[bool] = None
    display_name: Optional[str] = None

    @property
    def is_consistent(self) -> bool:
        return self.level == ConsistencyLevel.CONSISTENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "display_name": self.display_name,
            "field_values": dict(self.field_values),
            "level": self.level.value,
            "is_consistent": self.is_consistent,
            "mismatches": [m.to_dict() for m in self.mismatches],
            "recommendations": list(self.recommendations),
            "session_matches": self.session_matches,
        }


# ==================== RESOLUTION ====================

@dataclass(frozen=True)
class IdentityHints:
    """Optional identifiers supplied by the caller."""
    employee_code: Optional[str] = None
    user_id: Optional[str] = None
    personnel_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "employeeCode": self.employee_code,
            "userId": self.user_id,
            "personnelId": self.personnel_id,
        }


@dataclass(frozen=True)
class IdentityResolutionResult:
    """Canonical identity resolved from hints."""
    canonical_auth_id: str
    employee_code: Optional[str]
    personnel_id: Optional[str]
    record_key: str
    source_hint: ResolutionSource
    candidate: str
    candidate_field: str
    is_consistent: bool
    record: PersonIdentityRecord

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canonical_auth_id": self.canonical_auth_id,
            "employee_code": self.employee_code,
            "personnel_id": self.personnel_id,
            "record_key": self.record_key,
            "source_hint": self.source_hint.value,
            "candidate": self.candidate,
            "candidate_field": self.candidate_field,
            "is_consistent": self.is_consistent,
            "record": self.record.to_dict(),
        }


# ==================== TIME ENTRIES / PURCHASE ORDERS ====================

@dataclass(frozen=True)
class TimeEntry:
    """Time-tracking entry referencing a person by personnel id."""
    id: str
    personnel_id: Optional[str]
    work_order_id: Optional[str] = None
    duration_hours: float = 0.0
    start_date: Optional[str] = None
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "personnel_id": self.personnel_id,
            "work_order_id": self.work_order_id,
            "duration_hours": self.duration_hours,
            "start_date": self.start_date,
            "status": self.status,
        }


@dataclass(frozen=True)
class PurchaseOrder:
    """Purchase order with line items referencing materials or fragrances."""
    id: str
    code: Optional[str]
    status: Optional[str]
    items: List[Dict[str, Any]]
    created_at: Optional[str] = None
