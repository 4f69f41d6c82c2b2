"""
Identity Reconciliation - Repositories

Store access for the identity layer. Components receive repositories through
their constructors; nothing reaches for a module-level client.

- PersonRepository: persons collection (keyed by record_key)
- TimeEntryRepository: time-tracking entries (personnel_id references)
- PurchaseOrderRepository: purchase orders (item reference repair)

The Sql* classes implement the interfaces on an async SQLAlchemy session.
Every SQLAlchemy failure is re-raised as RepositoryError so callers only deal
with the identity error taxonomy.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Iterable, Set, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database.identity_models import PersonDB, TimeEntryDB, PurchaseOrderDB, IdentityAuditLogDB

from .errors import RepositoryError
from .models import PersonIdentityRecord, TimeEntry, PurchaseOrder

logger = logging.getLogger(__name__)


# ==================== TRANSFER TYPES ====================

@dataclass(frozen=True)
class PersonDocument:
    """Raw person payload as read from the store, not yet mapped."""
    record_key: str
    payload: Dict[str, Any]

    def to_record(self) -> PersonIdentityRecord:
        return PersonIdentityRecord.from_document(self.record_key, self.payload)


@dataclass(frozen=True)
class PersonUpdate:
    """Identifier-field write for one person record."""
    record_key: str
    fields: Dict[str, Any]
    details: Dict[str, Any] = field(default_factory=dict)


# ==================== INTERFACES ====================

class PersonRepository(Protocol):
    async def get_by_key(self, record_key: str) -> Optional[PersonIdentityRecord]: ...

    async def find_by_employee_code(self, employee_code: str) -> Optional[PersonIdentityRecord]: ...

    async def find_by_auth_id(self, auth_id: str) -> Optional[PersonIdentityRecord]: ...

    async def list_page(self, after_key: Optional[str], limit: int) -> List[PersonDocument]: ...

    async def existing_keys(self, keys: Iterable[str]) -> Set[str]: ...

    async def existing_employee_codes(self, codes: Iterable[str]) -> Set[str]: ...

    async def apply_updates(self, updates: List[PersonUpdate], performed_by: str) -> int: ...


class TimeEntryRepository(Protocol):
    async def sample(self, limit: int) -> List[TimeEntry]: ...

    async def list_for_personnel(self, personnel_id: str, limit: int) -> List[TimeEntry]: ...


class PurchaseOrderRepository(Protocol):
    async def get(self, purchase_order_id: str) -> Optional[PurchaseOrder]: ...

    async def list_recent(self, limit: int) -> List[PurchaseOrder]: ...

    async def save_items(
        self,
        purchase_order_id: str,
        items: List[Dict[str, Any]],
        fixed_by: str,
        fixed_by_name: Optional[str],
        details: Dict[str, Any]
    ) -> None: ...


# ==================== CONVERSION HELPERS ====================

def db_to_time_entry(db_obj: TimeEntryDB) -> TimeEntry:
    """Convert database model to domain model"""
    return TimeEntry(
        id=db_obj.id,
        personnel_id=db_obj.personnel_id or None,
        work_order_id=db_obj.work_order_id,
        duration_hours=float(db_obj.duration or 0),
        start_date=db_obj.start_date,
        status=db_obj.status,
    )


def db_to_purchase_order(db_obj: PurchaseOrderDB) -> PurchaseOrder:
    """Convert database model to domain model"""
    return PurchaseOrder(
        id=db_obj.id,
        code=db_obj.code,
        status=db_obj.status,
        items=[dict(item) for item in (db_obj.items or [])],
        created_at=db_obj.created_at.isoformat() if db_obj.created_at else None,
    )


# ==================== SQL IMPLEMENTATIONS ====================

class SqlPersonRepository:
    """PersonRepository backed by the persons table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_key(self, record_key: str) -> Optional[PersonIdentityRecord]:
        try:
            row = await self.db.get(PersonDB, record_key)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Person lookup failed: {e}", {"record_key": record_key}) from e
        if row is None:
            return None
        return PersonIdentityRecord.from_document(row.record_key, row.to_document())

    async def _find_one(self, column, value: str) -> Optional[PersonIdentityRecord]:
        try:
            result = await self.db.execute(
                select(PersonDB).where(column == value).order_by(PersonDB.record_key).limit(1)
            )
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Person query failed: {e}", {column.key: value}) from e
        if row is None:
            return None
        return PersonIdentityRecord.from_document(row.record_key, row.to_document())

    async def find_by_employee_code(self, employee_code: str) -> Optional[PersonIdentityRecord]:
        return await self._find_one(PersonDB.employee_code, employee_code)

    async def find_by_auth_id(self, auth_id: str) -> Optional[PersonIdentityRecord]:
        return await self._find_one(PersonDB.auth_id, auth_id)

    async def list_page(self, after_key: Optional[str], limit: int) -> List[PersonDocument]:
        query = select(PersonDB).order_by(PersonDB.record_key).limit(limit)
        if after_key is not None:
            query = query.where(PersonDB.record_key > after_key)
        try:
            result = await self.db.execute(query)
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Person page read failed: {e}", {"after_key": after_key}) from e
        return [PersonDocument(row.record_key, row.to_document()) for row in rows]

    async def existing_keys(self, keys: Iterable[str]) -> Set[str]:
        wanted = list(set(keys))
        if not wanted:
            return set()
        try:
            result = await self.db.execute(
                select(PersonDB.record_key).where(PersonDB.record_key.in_(wanted))
            )
            return {row[0] for row in result.fetchall()}
        except SQLAlchemyError as e:
            raise RepositoryError(f"Person key lookup failed: {e}") from e

    async def existing_employee_codes(self, codes: Iterable[str]) -> Set[str]:
        wanted = list(set(codes))
        if not wanted:
            return set()
        try:
            result = await self.db.execute(
                select(PersonDB.employee_code).where(PersonDB.employee_code.in_(wanted))
            )
            return {row[0] for row in result.fetchall()}
        except SQLAlchemyError as e:
            raise RepositoryError(f"Employee code lookup failed: {e}") from e

    async def apply_updates(self, updates: List[PersonUpdate], performed_by: str) -> int:
        """Apply one write group in a single transaction."""
        if not updates:
            return 0
        now = datetime.now(timezone.utc)
        try:
            for item in updates:
                await self.db.execute(
                    update(PersonDB)
                    .where(PersonDB.record_key == item.record_key)
                    .values(**item.fields, updated_at=now, updated_by=performed_by)
                )
                self.db.add(IdentityAuditLogDB(
                    action="identity_fix",
                    target_type="person",
                    target_id=item.record_key,
                    performed_by=performed_by,
                    details={"fields": item.fields, **item.details},
                ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RepositoryError(f"Person write group failed: {e}", {"size": len(updates)}) from e

        logger.info(f"Applied {len(updates)} person identity updates by {performed_by}")
        return len(updates)


class SqlTimeEntryRepository:
    """TimeEntryRepository backed by the time_entries table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def sample(self, limit: int) -> List[TimeEntry]:
        try:
            result = await self.db.execute(
                select(TimeEntryDB).order_by(TimeEntryDB.created_at.desc(), TimeEntryDB.id).limit(limit)
            )
            return [db_to_time_entry(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Time entry sample failed: {e}", {"limit": limit}) from e

    async def list_for_personnel(self, personnel_id: str, limit: int) -> List[TimeEntry]:
        try:
            result = await self.db.execute(
                select(TimeEntryDB)
                .where(TimeEntryDB.personnel_id == personnel_id)
                .order_by(TimeEntryDB.start_date.desc(), TimeEntryDB.id)
                .limit(limit)
            )
            return [db_to_time_entry(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Time entry query failed: {e}", {"personnel_id": personnel_id}) from e


class SqlPurchaseOrderRepository:
    """PurchaseOrderRepository backed by the purchase_orders table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, purchase_order_id: str) -> Optional[PurchaseOrder]:
        try:
            row = await self.db.get(PurchaseOrderDB, purchase_order_id)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Purchase order lookup failed: {e}", {"id": purchase_order_id}) from e
        return db_to_purchase_order(row) if row else None

    async def list_recent(self, limit: int) -> List[PurchaseOrder]:
        try:
            result = await self.db.execute(
                select(PurchaseOrderDB).order_by(PurchaseOrderDB.created_at.desc()).limit(limit)
            )
            return [db_to_purchase_order(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise RepositoryError(f"Purchase order scan failed: {e}", {"limit": limit}) from e

    async def save_items(
        self,
        purchase_order_id: str,
        items: List[Dict[str, Any]],
        fixed_by: str,
        fixed_by_name: Optional[str],
        details: Dict[str, Any]
    ) -> None:
        try:
            await self.db.execute(
                update(PurchaseOrderDB)
                .where(PurchaseOrderDB.id == purchase_order_id)
                .values(
                    items=items,
                    fixed_at=datetime.now(timezone.utc),
                    fixed_by=fixed_by,
                    fixed_by_name=fixed_by_name,
                )
            )
            self.db.add(IdentityAuditLogDB(
                action="reference_fix",
                target_type="purchase_order",
                target_id=purchase_order_id,
                performed_by=fixed_by,
                details=details,
            ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RepositoryError(f"Purchase order write failed: {e}", {"id": purchase_order_id}) from e
