"""
Bulk Remediation - API Router

Admin-only endpoints:
- GET /api/remediation/identifier-formats - Employee-code format audit
- GET /api/remediation/cross-store - Consistency, provider and orphan audit
- GET /api/remediation/orphan-time-entries - Orphan scan over sampled time entries
- POST /api/remediation/identity-fix - Plan (dry run) or apply authId corrections
- POST /api/remediation/purchase-orders/{purchase_order_id}/reference-fix - Plan or apply item reference fixes
- GET /api/remediation/purchase-orders/scan - Recent purchase orders needing reference fixes

Write endpoints default to dry_run=true.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from config import Settings, get_settings
from identity.dependencies import (
    get_person_repository,
    get_time_entry_repository,
    get_purchase_order_repository,
    get_provider_directory,
)
from identity.errors import IdentityError, Internal, to_http_exception
from identity.provider import ProviderDirectory
from identity.repository import PersonRepository, TimeEntryRepository, PurchaseOrderRepository
from middleware.auth import require_admin
from services.auth import AuthSession
from utils.validation_errors import raise_invalid_parameter

from .cross_store import CrossStoreAuditor, scan_orphan_time_entries
from .format_audit import FormatAuditor
from .identity_fix import IdentityFixPlanner
from .reference_fix import ReferenceFixPlanner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/remediation", tags=["Remediation"])


# ==================== REQUEST MODELS ====================

class DryRunRequest(BaseModel):
    """Body for plan/apply endpoints"""
    dry_run: bool = Field(True, description="Return the plan without writing")


def _http_error(error: IdentityError):
    if isinstance(error, Internal):
        logger.error(f"Remediation request failed: {error.message}", extra={"context": error.context})
    return to_http_exception(error)


def _checked_sample_size(sample_size: Optional[int]) -> Optional[int]:
    if sample_size is not None and sample_size < 1:
        raise_invalid_parameter("sample_size", "sample_size must be positive", sample_size)
    return sample_size


# ==================== AUDITS ====================

@router.get("/identifier-formats")
async def audit_identifier_formats(
    admin: AuthSession = Depends(require_admin),
    persons: PersonRepository = Depends(get_person_repository),
    settings: Settings = Depends(get_settings)
):
    """
    Validate every person's employee code against provider uid rules.

    **Permissions:** admin
    """
    auditor = FormatAuditor(persons, page_size=settings.REMEDIATION_PAGE_SIZE)
    try:
        report = await auditor.audit()
    except IdentityError as e:
        raise _http_error(e) from e
    return report.to_dict()


@router.get("/cross-store")
async def audit_cross_store(
    sample_size: Optional[int] = Query(None, description="Time entries to sample for the orphan scan"),
    admin: AuthSession = Depends(require_admin),
    persons: PersonRepository = Depends(get_person_repository),
    time_entries: TimeEntryRepository = Depends(get_time_entry_repository),
    provider: Optional[ProviderDirectory] = Depends(get_provider_directory),
    settings: Settings = Depends(get_settings)
):
    """
    Check identifier consistency, provider accounts and orphan time entries.

    Provider checks are skipped when no provider project is configured.

    **Permissions:** admin
    """
    sample_size = _checked_sample_size(sample_size) or settings.REMEDIATION_DEFAULT_SAMPLE
    auditor = CrossStoreAuditor(
        persons,
        time_entries,
        provider=provider,
        label_domain=settings.AUTH_LABEL_DOMAIN,
        page_size=settings.REMEDIATION_PAGE_SIZE,
        max_sample=settings.REMEDIATION_MAX_SAMPLE,
    )
    try:
        report = await auditor.audit(sample_size)
    except IdentityError as e:
        raise _http_error(e) from e
    return report.to_dict()


@router.get("/orphan-time-entries")
async def find_orphan_time_entries(
    sample_size: Optional[int] = Query(None, description="Time entries to sample"),
    admin: AuthSession = Depends(require_admin),
    persons: PersonRepository = Depends(get_person_repository),
    time_entries: TimeEntryRepository = Depends(get_time_entry_repository),
    settings: Settings = Depends(get_settings)
):
    """
    Sampled time entries whose personnel id matches no person record.

    **Permissions:** admin
    """
    sample_size = _checked_sample_size(sample_size) or settings.REMEDIATION_DEFAULT_SAMPLE
    try:
        result = await scan_orphan_time_entries(
            persons, time_entries, sample_size, settings.REMEDIATION_MAX_SAMPLE
        )
    except IdentityError as e:
        raise _http_error(e) from e
    return result.to_dict()


# ==================== CORRECTIONS ====================

@router.post("/identity-fix")
async def fix_identity_fields(
    request: Optional[DryRunRequest] = None,
    admin: AuthSession = Depends(require_admin),
    persons: PersonRepository = Depends(get_person_repository),
    settings: Settings = Depends(get_settings)
):
    """
    Plan authId corrections; apply them when dry_run is false.

    **Permissions:** admin
    """
    request = request or DryRunRequest()
    planner = IdentityFixPlanner(
        persons,
        page_size=settings.REMEDIATION_PAGE_SIZE,
        group_size=settings.REMEDIATION_WRITE_GROUP_SIZE,
    )
    try:
        plan = await planner.plan()
        if request.dry_run:
            return plan.to_dict()
        result = await planner.apply(plan, performed_by=admin.uid)
    except IdentityError as e:
        raise _http_error(e) from e
    return result.to_dict()


@router.post("/purchase-orders/{purchase_order_id}/reference-fix")
async def fix_purchase_order_references(
    purchase_order_id: str,
    request: Optional[DryRunRequest] = None,
    admin: AuthSession = Depends(require_admin),
    purchase_orders: PurchaseOrderRepository = Depends(get_purchase_order_repository)
):
    """
    Plan item type/reference fixes for one purchase order; apply them when
    dry_run is false.

    **Permissions:** admin
    """
    request = request or DryRunRequest()
    planner = ReferenceFixPlanner(purchase_orders)
    try:
        plan = await planner.plan_reference_fix(purchase_order_id)
        if request.dry_run:
            return plan.to_dict()
        result = await planner.apply_reference_fix(plan, admin.uid, admin.display_name)
    except IdentityError as e:
        raise _http_error(e) from e
    return result.to_dict()


@router.get("/purchase-orders/scan")
async def scan_purchase_orders(
    admin: AuthSession = Depends(require_admin),
    purchase_orders: PurchaseOrderRepository = Depends(get_purchase_order_repository),
    settings: Settings = Depends(get_settings)
):
    """
    Recent purchase orders with items that need reference fixes.

    **Permissions:** admin
    """
    planner = ReferenceFixPlanner(purchase_orders)
    try:
        return await planner.scan_purchase_orders(settings.PURCHASE_ORDER_SCAN_LIMIT)
    except IdentityError as e:
        raise _http_error(e) from e
