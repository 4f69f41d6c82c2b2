"""
Bulk Remediation Module

Admin tooling over whole collections:
- Identifier format audit over employee codes
- Cross-store audit (consistency, provider accounts, orphan time entries)
- authId correction with plan / apply
- Purchase-order reference correction with plan / apply

Every write path takes a plan produced beforehand; planning never writes.
"""

from .models import (
    RemediationItem,
    RemediationPlan,
    RemediationResult,
    FormatAuditReport,
    OrphanScanResult,
    CrossStoreAuditReport,
)
from .format_audit import FormatAuditor
from .cross_store import CrossStoreAuditor, scan_orphan_time_entries
from .identity_fix import IdentityFixPlanner
from .reference_fix import ReferenceFixPlanner

__all__ = [
    'RemediationItem',
    'RemediationPlan',
    'RemediationResult',
    'FormatAuditReport',
    'OrphanScanResult',
    'CrossStoreAuditReport',
    'FormatAuditor',
    'CrossStoreAuditor',
    'scan_orphan_time_entries',
    'IdentityFixPlanner',
    'ReferenceFixPlanner',
]
