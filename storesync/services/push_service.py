"""
Push synchronization: local changes -> remote store

Create, update or delete a single product, customer or order on the
remote store. Every call returns a result dict instead of raising: on
failure the error is classified, audited and returned.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from storesync.connectors.base_connector import BaseStoreClient, InvalidRemoteResponse, RemoteResponse
from storesync.connectors.woocommerce_connector import create_store_client
from storesync.models.store import StoreConnection
from storesync.services.audit_logger import SyncAuditLogger
from storesync.services.entity_mapper import TO_REMOTE
from storesync.services.entity_store import EntityStore
from storesync.services.error_classifier import classify_error, log_classified_error
from storesync.services.sync_job import ENTITY_ENDPOINTS
from storesync.utils.cancellation import CancellationToken
from storesync.utils.logger import log
from storesync.utils.retry import RateLimitedExecutor

# Fields a create/update response must carry for each entity type
REQUIRED_RESPONSE_FIELDS = {
    "product": ("id", "name"),
    "customer": ("id", "email"),
    "order": ("id", "number"),
}


def _check_entity_type(entity_type: str) -> str:
    if entity_type not in ENTITY_ENDPOINTS:
        raise ValueError(f"Unknown entity type: {entity_type}")
    return entity_type


def validate_remote_response(response: Optional[RemoteResponse], entity_type: str, operation: str) -> Dict[str, Any]:
    """
    Check a push response has the fields the caller relies on.

    Raises:
        InvalidRemoteResponse: if the body is missing or incomplete
    """
    data = response.data if response is not None else None
    if not data or not isinstance(data, dict):
        raise InvalidRemoteResponse(f"Invalid response from WooCommerce {operation} {entity_type}")

    required = ("id",) if operation == "delete" else REQUIRED_RESPONSE_FIELDS[entity_type]
    missing = [name for name in required if not data.get(name)]
    if missing:
        raise InvalidRemoteResponse(
            f"Invalid {entity_type} response from WooCommerce: missing {', '.join(missing)}"
        )
    return data


class StorePushService:
    """Pushes single local records to a remote store"""

    def __init__(
        self,
        entity_store: Optional[EntityStore] = None,
        audit: Optional[SyncAuditLogger] = None,
        client_factory: Callable[[StoreConnection], BaseStoreClient] = create_store_client,
        token: Optional[CancellationToken] = None
    ):
        self.entity_store = entity_store
        self.audit = audit
        self.client_factory = client_factory
        self.token = token

    async def create_entity(
        self,
        entity_type: str,
        local_record: Dict[str, Any],
        store: StoreConnection,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """POST /{entity}"""
        payload = TO_REMOTE[_check_entity_type(entity_type)](local_record)
        return await self._push(
            "create", entity_type, local_record, store, user_id, organization_id,
            lambda client: client.post(ENTITY_ENDPOINTS[entity_type], payload),
        )

    async def update_entity(
        self,
        entity_type: str,
        external_id: Any,
        local_record: Dict[str, Any],
        store: StoreConnection,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """PUT /{entity}/{id}"""
        payload = TO_REMOTE[_check_entity_type(entity_type)](local_record)
        return await self._push(
            "update", entity_type, local_record, store, user_id, organization_id,
            lambda client: client.put(f"{ENTITY_ENDPOINTS[entity_type]}/{external_id}", payload),
            external_id=external_id,
        )

    async def delete_entity(
        self,
        entity_type: str,
        external_id: Any,
        local_record: Dict[str, Any],
        store: StoreConnection,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """DELETE /{entity}/{id}?force=true"""
        return await self._push(
            "delete", entity_type, local_record, store, user_id, organization_id,
            lambda client: client.delete(f"{ENTITY_ENDPOINTS[entity_type]}/{external_id}", {"force": True}),
            external_id=external_id,
        )

    async def _push(
        self,
        operation: str,
        entity_type: str,
        local_record: Dict[str, Any],
        store: StoreConnection,
        user_id: Optional[str],
        organization_id: Optional[str],
        call: Callable[[BaseStoreClient], Any],
        external_id: Any = None
    ) -> Dict[str, Any]:
        _check_entity_type(entity_type)

        local_id = local_record.get("id")
        user_id = user_id or local_record.get("user_id") or "system"
        organization_id = organization_id or local_record.get("organization_id") or "system"
        context = f"push_service.{operation}_{entity_type}"

        try:
            if operation in ("update", "delete") and not external_id:
                raise ValueError(f"WooCommerce {entity_type} ID is required for {operation}")

            client = self.client_factory(store)
            async with client:
                executor = RateLimitedExecutor(token=self.token)
                response = await executor.execute(call, client)

            data = validate_remote_response(response, entity_type, operation)
            remote_id = data.get("id") or external_id

        except Exception as e:
            classified = classify_error(e, store, f"{entity_type} {operation}")
            log_classified_error(classified, context)
            payload = {"success": False, **classified.to_payload()}

            self._write_back(entity_type, local_id, {
                "sync_status": "failed",
                "sync_error": str(e)[:500],
            })
            self._audit(operation, entity_type, local_id, store, "failed", user_id, organization_id,
                        error=payload, remote_id=external_id)
            return payload

        if operation != "delete":
            self._write_back(entity_type, local_id, {
                "external_id": remote_id,
                "sync_status": "synced",
                "sync_error": None,
                "last_synced_at": datetime.utcnow(),
            })
        self._audit(operation, entity_type, local_id, store, "success", user_id, organization_id,
                    remote_id=remote_id)

        log.info(f"WooCommerce {operation} {entity_type} succeeded (WooCommerce ID: {remote_id})")
        result = {
            "success": True,
            "status": "success",
            "externalId": remote_id,
        }
        if operation != "delete":
            result["data"] = data
        return result

    def _write_back(self, entity_type: str, local_id: Any, values: Dict[str, Any]):
        """Record push outcome on the local row; failures here never fail the push"""
        if self.entity_store is None or local_id is None:
            return
        try:
            self.entity_store.find_one_and_update(entity_type, {"id": local_id}, values)
        except Exception as e:
            log.warning(f"Could not update sync status of {entity_type} {local_id}: {str(e)}")

    def _audit(self, operation, entity_type, local_id, store, status, user_id, organization_id,
               error=None, remote_id=None):
        if self.audit is None:
            return
        self.audit.record(
            operation=operation,
            entity_type=entity_type,
            entity_id=local_id,
            store_id=store.store_id,
            status=status,
            user_id=user_id,
            organization_id=organization_id,
            error=error,
            remote_id=remote_id,
        )
