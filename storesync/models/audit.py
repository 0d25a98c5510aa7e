"""
Sync audit trail

One row per completed push or pull operation against a remote store.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, BigInteger
from datetime import datetime

from storesync.models.base import Base


class SyncAuditEvent(Base):
    """Audit record of a push/pull operation"""
    __tablename__ = "sync_audit_events"

    id = Column(Integer, primary_key=True, index=True)

    action = Column(String, index=True)  # e.g. woocommerce_create_product
    operation = Column(String, index=True)  # create, update, delete, pull
    entity_type = Column(String, index=True)  # product, customer, order
    entity_id = Column(String, nullable=True)  # Local id (None for pulls)
    remote_id = Column(BigInteger, nullable=True)

    store_id = Column(String, index=True)
    organization_id = Column(String, index=True, nullable=True)
    user_id = Column(String, nullable=True)

    status = Column(String, index=True)  # success, failed, cancelled
    error = Column(JSON, nullable=True)
    details = Column(JSON, nullable=True)  # e.g. pull summary counts

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
