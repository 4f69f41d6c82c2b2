"""
Shared fixtures: signed session tokens and an API client wired to in-memory
stores through dependency overrides.
"""

from types import SimpleNamespace

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from config import get_settings
from identity.dependencies import (
    get_person_repository,
    get_time_entry_repository,
    get_purchase_order_repository,
    get_provider_directory,
)
from identity.models import TimeEntry, PurchaseOrder
from identity.router import router as identity_router
from remediation.router import router as remediation_router

from fakes import (
    InMemoryPersonRepository,
    InMemoryTimeEntryRepository,
    InMemoryPurchaseOrderRepository,
    TEST_SECRET,
)


@pytest.fixture
def auth_settings(monkeypatch):
    """Settings with a known token secret and no audience check."""
    monkeypatch.setenv("AUTH_TOKEN_SECRET", TEST_SECRET)
    monkeypatch.setenv("AUTH_TOKEN_AUDIENCE", "")
    monkeypatch.setenv("AUTH_PROVIDER_PROJECT_ID", "")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def stores():
    persons = InMemoryPersonRepository()
    persons.add("adm", auth_id="adm", employee_code="adm", role_name="admin", display_name="Ada Admin")
    persons.add("052", auth_id="052", employee_code="052")
    persons.add("061", auth_id="old-061", employee_code="061")

    time_entries = InMemoryTimeEntryRepository([
        TimeEntry(id="t1", personnel_id="052", work_order_id="WO-1", duration_hours=3.0),
        TimeEntry(id="t2", personnel_id="ghost", work_order_id="WO-2", duration_hours=1.0),
    ])

    purchase_orders = InMemoryPurchaseOrderRepository([
        PurchaseOrder(
            id="po-1",
            code="PO-1",
            status="open",
            items=[{"code": "M1", "unit": "pcs", "item_ref": "materials/m1"}],
            created_at="2024-05-01T00:00:00",
        ),
    ])

    return SimpleNamespace(persons=persons, time_entries=time_entries, purchase_orders=purchase_orders)


@pytest.fixture
def client(auth_settings, stores):
    app = FastAPI()
    api_router = APIRouter(prefix="/api")
    api_router.include_router(identity_router)
    api_router.include_router(remediation_router)
    app.include_router(api_router)

    app.dependency_overrides[get_person_repository] = lambda: stores.persons
    app.dependency_overrides[get_time_entry_repository] = lambda: stores.time_entries
    app.dependency_overrides[get_purchase_order_repository] = lambda: stores.purchase_orders
    app.dependency_overrides[get_provider_directory] = lambda: None

    with TestClient(app) as test_client:
        yield test_client
