"""
Identity Reconciliation - API Router

Provides REST API endpoints for identity reconciliation:
- POST /api/identity/resolve - Resolve hints to the canonical identity
- POST /api/identity/time-access - Resolve and check the caller may read that person's time data
- POST /api/identity/time-entries - Authorized time-entry listing with summary
- GET /api/identity/diagnose - Consistency report for the caller's own record
- POST /api/identity/validate - Validate a candidate identifier
- GET /api/identity/status - Module status

Permissions:
- status: public
- everything else: any verified session
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from middleware.auth import get_current_session
from services.auth import AuthSession

from .dependencies import get_person_repository, get_time_entry_repository
from .errors import IdentityError, Internal, to_http_exception
from .models import IdentityHints
from .repository import PersonRepository, TimeEntryRepository
from .resolver import RESOLUTION_ORDER
from .service import IdentityService, TIME_ENTRY_LIMIT
from .validator import validate_identifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/identity", tags=["Identity Reconciliation"])


# ==================== REQUEST/RESPONSE MODELS ====================

class IdentityHintsRequest(BaseModel):
    """Optional identifiers naming the person being asked about"""
    model_config = ConfigDict(populate_by_name=True)

    employee_code: Optional[str] = Field(None, alias="employeeCode", max_length=256)
    user_id: Optional[str] = Field(None, alias="userId", max_length=256)
    personnel_id: Optional[str] = Field(None, alias="personnelId", max_length=256)

    def to_hints(self) -> IdentityHints:
        return IdentityHints(
            employee_code=self.employee_code,
            user_id=self.user_id,
            personnel_id=self.personnel_id,
        )


class ValidateIdentifierRequest(BaseModel):
    """Request model for identifier validation"""
    candidate: str = Field(..., description="Identifier to check against provider uid rules")


# ==================== DEPENDENCIES ====================

async def get_identity_service(
    persons: PersonRepository = Depends(get_person_repository),
    time_entries: TimeEntryRepository = Depends(get_time_entry_repository)
) -> IdentityService:
    return IdentityService(persons, time_entries)


def _http_error(error: IdentityError):
    if isinstance(error, Internal):
        logger.error(f"Identity request failed: {error.message}", extra={"context": error.context})
    return to_http_exception(error)


def _hints(request: Optional[IdentityHintsRequest]) -> Optional[IdentityHints]:
    return request.to_hints() if request is not None else None


# ==================== ENDPOINTS ====================

@router.get("/status")
async def get_identity_status():
    """
    Get identity module status.
    No authentication required.
    """
    return {
        "status": "ok",
        "module": "identity_reconciliation",
        "version": "1.0.0",
        "resolution_order": list(RESOLUTION_ORDER),
        "features": {
            "resolve": True,
            "time_access_guard": True,
            "diagnose": True,
            "identifier_validation": True,
        }
    }


@router.post("/resolve")
async def resolve_identity(
    request: Optional[IdentityHintsRequest] = None,
    session: AuthSession = Depends(get_current_session),
    service: IdentityService = Depends(get_identity_service)
):
    """
    Resolve hints (or the caller's own session) to one person record.

    **Errors:** 400 when nothing identifies a person, 404 when no record matches
    """
    try:
        result = await service.resolve_identity(session.uid, _hints(request))
    except IdentityError as e:
        raise _http_error(e) from e
    return result.to_dict()


@router.post("/time-access")
async def authorize_time_access(
    request: Optional[IdentityHintsRequest] = None,
    session: AuthSession = Depends(get_current_session),
    service: IdentityService = Depends(get_identity_service)
):
    """
    Resolve the requested person and check it is the caller.

    **Errors:** 403 when the resolved person is someone else
    """
    try:
        result = await service.authorize_time_access(session.uid, _hints(request))
    except IdentityError as e:
        raise _http_error(e) from e
    return {"authorized": True, "identity": result.to_dict()}


@router.post("/time-entries")
async def list_time_entries(
    request: Optional[IdentityHintsRequest] = None,
    limit: int = Query(TIME_ENTRY_LIMIT, ge=1, le=500),
    session: AuthSession = Depends(get_current_session),
    service: IdentityService = Depends(get_identity_service)
):
    """
    Time entries of the resolved person, after the access check.

    Returns records plus total_records / total_hours / unique_work_orders.
    """
    try:
        return await service.list_time_entries(session.uid, _hints(request), limit)
    except IdentityError as e:
        raise _http_error(e) from e


@router.get("/diagnose")
async def diagnose_id_mapping(
    session: AuthSession = Depends(get_current_session),
    service: IdentityService = Depends(get_identity_service)
):
    """
    Consistency report for the caller's own person record.

    **Errors:** 404 when the caller has no record
    """
    try:
        diagnostic = await service.diagnose_id_mapping(session.uid)
    except IdentityError as e:
        raise _http_error(e) from e
    return diagnostic.to_dict()


@router.post("/validate")
async def validate_candidate_identifier(
    request: ValidateIdentifierRequest,
    session: AuthSession = Depends(get_current_session)
):
    """Check a candidate identifier against provider uid rules."""
    return validate_identifier(request.candidate).to_dict()
