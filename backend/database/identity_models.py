"""
Identity Reconciliation - SQLAlchemy Database Models

Tables:
- persons: person identity records keyed by record_key
- time_entries: time-tracking entries referencing persons by personnel_id
- purchase_orders: purchase orders whose items reference materials/fragrances
- identity_audit_log: trail of applied remediation writes
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy import Column, String, Float, DateTime, Index, JSON

from database.connection import Base


# ==================== HELPER FUNCTIONS ====================

def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ==================== PERSONS ====================

class PersonDB(Base):
    """
    Person identity record.

    record_key is immutable once created; auth_id and employee_code are
    expected to equal it but are independently writable and may drift.
    """
    __tablename__ = "persons"

    record_key = Column(String(128), primary_key=True)
    auth_id = Column(String(128), nullable=True, index=True)
    employee_code = Column(String(128), nullable=True, index=True)
    display_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role_name = Column(String(50), nullable=True)
    permissions = Column(JSON, default=list)
    status = Column(String(30), default="active")
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utc_now)
    updated_by = Column(String(128), nullable=True)

    def to_document(self) -> Dict[str, Any]:
        """Raw payload handed to PersonIdentityRecord.from_document."""
        return {
            "auth_id": self.auth_id,
            "employee_code": self.employee_code,
            "display_name": self.display_name,
            "role_name": self.role_name,
            "permissions": self.permissions,
            "status": self.status,
        }


# ==================== TIME ENTRIES ====================

class TimeEntryDB(Base):
    """Time-tracking entry; personnel_id must equal some person's record_key."""
    __tablename__ = "time_entries"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    personnel_id = Column(String(128), nullable=True, index=True)
    personnel_name = Column(String(255), nullable=True)
    work_order_id = Column(String(64), nullable=True)
    duration = Column(Float, nullable=True)
    start_date = Column(String(10), nullable=True)
    status = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)


# ==================== PURCHASE ORDERS ====================

class PurchaseOrderDB(Base):
    """
    Purchase order.

    items is a JSON list; each item carries an item_ref path
    ("materials/<id>" or "fragrances/<id>") and a type.
    """
    __tablename__ = "purchase_orders"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    code = Column(String(64), nullable=True)
    status = Column(String(30), nullable=True)
    items = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
    fixed_at = Column(DateTime(timezone=True), nullable=True)
    fixed_by = Column(String(128), nullable=True)
    fixed_by_name = Column(String(255), nullable=True)


# ==================== AUDIT ====================

class IdentityAuditLogDB(Base):
    """Audit trail for remediation writes."""
    __tablename__ = "identity_audit_log"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    action = Column(String(50), nullable=False)  # identity_fix, reference_fix
    target_type = Column(String(50), nullable=False)  # person, purchase_order
    target_id = Column(String(128), nullable=False)
    performed_by = Column(String(128), nullable=False)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index('ix_identity_audit_log_target', 'target_type', 'target_id'),
    )
