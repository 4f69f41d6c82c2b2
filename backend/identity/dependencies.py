"""
Identity Reconciliation - FastAPI Dependencies

Repositories and the provider directory are built per request from the
database session. Tests replace them through app.dependency_overrides.
"""

from typing import AsyncIterator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings, get_settings
from database import get_db

from .provider import HttpProviderDirectory, ProviderDirectory
from .repository import (
    PersonRepository,
    TimeEntryRepository,
    PurchaseOrderRepository,
    SqlPersonRepository,
    SqlTimeEntryRepository,
    SqlPurchaseOrderRepository,
)


async def get_person_repository(db: AsyncSession = Depends(get_db)) -> PersonRepository:
    return SqlPersonRepository(db)


async def get_time_entry_repository(db: AsyncSession = Depends(get_db)) -> TimeEntryRepository:
    return SqlTimeEntryRepository(db)


async def get_purchase_order_repository(db: AsyncSession = Depends(get_db)) -> PurchaseOrderRepository:
    return SqlPurchaseOrderRepository(db)


async def get_provider_directory(
    settings: Settings = Depends(get_settings)
) -> AsyncIterator[Optional[ProviderDirectory]]:
    """Provider directory for the request, or None when no project is configured."""
    if not settings.AUTH_PROVIDER_PROJECT_ID:
        yield None
        return

    async with HttpProviderDirectory.from_settings(settings) as directory:
        yield directory
