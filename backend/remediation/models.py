"""
Remediation - Plan and Report Models

A plan is always produced before any write. Plans carry no timestamps so that
planning twice against an unchanged store yields identical plans.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List


@dataclass
class RemediationItem:
    """One offending record (or purchase-order line) and what would fix it."""
    id: str
    detected_issues: List[str]
    proposed_write: Optional[Dict[str, Any]] = None
    applied: bool = False
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_fixable(self) -> bool:
        return self.proposed_write is not None and self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "detected_issues": list(self.detected_issues),
            "proposed_write": self.proposed_write,
            "applied": self.applied,
            "error": self.error,
            "details": self.details,
        }


@dataclass
class RemediationPlan:
    """Dry-run output: what apply() would write."""
    kind: str
    items: List[RemediationItem]
    scanned: int
    target_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def flagged(self) -> int:
        return sum(1 for item in self.items if item.error is None)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if item.error is not None)

    @property
    def fixable(self) -> List[RemediationItem]:
        return [item for item in self.items if item.is_fixable]

    def summary(self, applied: int = 0) -> Dict[str, int]:
        return {
            "scanned": self.scanned,
            "flagged": self.flagged,
            "applied": applied,
            "failed": self.failed,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "target_id": self.target_id,
            "dry_run": True,
            "metadata": self.metadata,
            "summary": self.summary(),
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class RemediationResult:
    """Outcome of applying a plan."""
    plan: RemediationPlan
    applied: int

    @property
    def failed(self) -> int:
        return self.plan.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.plan.kind,
            "target_id": self.plan.target_id,
            "dry_run": False,
            "metadata": self.plan.metadata,
            "summary": self.plan.summary(applied=self.applied),
            "items": [item.to_dict() for item in self.plan.items],
        }


@dataclass
class FormatAuditReport:
    """Collection-wide employee-code format audit."""
    total: int = 0
    valid: int = 0
    invalid: int = 0
    failed: int = 0
    charset_histogram: Dict[str, int] = field(default_factory=dict)
    duplicates: List[str] = field(default_factory=list)
    issues: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "valid": self.valid,
            "invalid": self.invalid,
            "failed": self.failed,
            "charset_histogram": dict(self.charset_histogram),
            "duplicates": list(self.duplicates),
            "issues": list(self.issues),
            "summary": {
                "scanned": self.total,
                "flagged": self.invalid,
                "applied": 0,
                "failed": self.failed,
            },
        }


@dataclass
class OrphanScanResult:
    """Time entries whose personnel id matches no person record key."""
    checked: int = 0
    orphan_count: int = 0
    orphan_ids: List[str] = field(default_factory=list)
    orphan_entry_ids: List[str] = field(default_factory=list)
    missing_personnel_id: int = 0
    matched_by_employee_code: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "orphan_count": self.orphan_count,
            "orphan_ids": list(self.orphan_ids),
            "orphan_entry_ids": list(self.orphan_entry_ids),
            "missing_personnel_id": self.missing_personnel_id,
            "matched_by_employee_code": list(self.matched_by_employee_code),
        }


@dataclass
class CrossStoreAuditReport:
    """Consistency, provider-account and orphan audit across stores."""
    scanned: int = 0
    consistent: int = 0
    partial: int = 0
    inconsistent: int = 0
    failed: int = 0
    drifted: List[Dict[str, Any]] = field(default_factory=list)
    provider_checked: bool = False
    provider_missing: List[str] = field(default_factory=list)
    label_mismatches: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    orphans: Optional[OrphanScanResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "consistent": self.consistent,
            "partial": self.partial,
            "inconsistent": self.inconsistent,
            "failed": self.failed,
            "drifted": list(self.drifted),
            "provider": {
                "checked": self.provider_checked,
                "missing_accounts": list(self.provider_missing),
                "label_mismatches": list(self.label_mismatches),
            },
            "failures": list(self.failures),
            "orphans": self.orphans.to_dict() if self.orphans else None,
            "summary": {
                "scanned": self.scanned,
                "flagged": self.partial + self.inconsistent,
                "applied": 0,
                "failed": self.failed,
            },
        }
