from .connection import get_db, get_engine, get_session_factory, init_db, dispose_db, Base

# Import identity models to ensure they are registered with Base
from .identity_models import (
    PersonDB, TimeEntryDB, PurchaseOrderDB, IdentityAuditLogDB
)

__all__ = [
    'get_db', 'get_engine', 'get_session_factory', 'init_db', 'dispose_db', 'Base',
    # Identity models
    'PersonDB', 'TimeEntryDB', 'PurchaseOrderDB', 'IdentityAuditLogDB',
]
