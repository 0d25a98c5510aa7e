"""
Sync audit logging

Records one structured event per completed push or pull operation.
A failure to write the audit trail is logged and never fails the sync.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from storesync.models.audit import SyncAuditEvent
from storesync.utils.logger import log


class AuditSink(ABC):
    """Destination for audit events"""

    @abstractmethod
    def write(self, event: Dict[str, Any]):
        pass


class SqlAlchemyAuditSink(AuditSink):
    """Writes events to the sync_audit_events table"""

    def __init__(self, db: Session):
        self.db = db

    def write(self, event: Dict[str, Any]):
        try:
            self.db.add(SyncAuditEvent(
                action=event.get("action"),
                operation=event.get("operation"),
                entity_type=event.get("entityType"),
                entity_id=str(event["entityId"]) if event.get("entityId") is not None else None,
                remote_id=event.get("remoteId"),
                store_id=str(event.get("storeId")) if event.get("storeId") is not None else None,
                organization_id=event.get("organizationId"),
                user_id=event.get("userId"),
                status=event.get("status"),
                error=event.get("error"),
                details=event.get("details"),
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise


class MemoryAuditSink(AuditSink):
    """Keeps events in a list owned by the sink (one per job or test)"""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def write(self, event: Dict[str, Any]):
        self.events.append(event)


class SyncAuditLogger:
    """Builds audit events and hands them to a sink"""

    def __init__(self, sink: AuditSink):
        self.sink = sink

    def record(
        self,
        operation: str,
        entity_type: str,
        store_id: Any,
        status: str,
        entity_id: Any = None,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        error: Optional[Dict[str, Any]] = None,
        remote_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Record a completed operation.

        Args:
            operation: create, update, delete or pull
            entity_type: product, customer or order
            store_id: Store the operation ran against
            status: success, failed or cancelled
            entity_id: Local record id (None for pulls)
            error: Error payload for failed operations
            remote_id: Remote platform id, when known

        Returns:
            The event as written
        """
        event = {
            "action": f"woocommerce_{operation}_{entity_type}",
            "operation": operation,
            "entityType": entity_type,
            "entityId": entity_id,
            "storeId": store_id,
            "status": status,
            "userId": user_id or "system",
            "organizationId": organization_id,
            "error": error,
            "remoteId": remote_id,
            "details": details,
            "timestamp": datetime.utcnow().isoformat(),
        }

        try:
            self.sink.write(event)
        except Exception as e:
            log.error(f"Failed to log WooCommerce sync event {event['action']}: {str(e)}")
            return event

        level = "info" if status == "success" else "warning"
        getattr(log, level)(
            f"Sync audit: {event['action']} store={store_id} status={status}"
            + (f" remote_id={remote_id}" if remote_id is not None else "")
        )
        return event
