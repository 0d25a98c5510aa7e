"""Database models for StoreSync"""

from storesync.models.base import Base, SessionLocal, init_db
from storesync.models.store import Store, StoreConnection, StoreConfigurationError, TLSPolicy
from storesync.models.entities import Product, Customer, Order, ENTITY_MODELS
from storesync.models.audit import SyncAuditEvent

__all__ = [
    "Base",
    "SessionLocal",
    "init_db",
    "Store",
    "StoreConnection",
    "StoreConfigurationError",
    "TLSPolicy",
    "Product",
    "Customer",
    "Order",
    "ENTITY_MODELS",
    "SyncAuditEvent",
]
