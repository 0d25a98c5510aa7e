"""
Pull synchronization: remote store catalog -> local records

One SyncJob per (store, entity type). The job fetches every page of the
remote list endpoint, then reconciles and upserts each record in order.

    idle -> fetching -> terminated (fetch failed, classified error)
                     -> reconciling -> terminated (success with summary)
    any state -> cancelled (token cancelled at a checkpoint)

A fetch failure ends the job. A failure on one record is counted in
`failed` and the loop moves on; nothing is rolled back.
"""
import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from storesync.config import get_settings
from storesync.connectors.base_connector import BaseStoreClient, InvalidRemoteResponse
from storesync.connectors.woocommerce_connector import create_store_client
from storesync.models.store import StoreConnection
from storesync.services.audit_logger import SyncAuditLogger
from storesync.services.entity_mapper import FROM_REMOTE, order_from_remote
from storesync.services.entity_store import EntityStore
from storesync.services.error_classifier import classify_error, log_classified_error
from storesync.services.reconciler import EntityReconciler
from storesync.utils.cancellation import CancellationToken, JobCancelled
from storesync.utils.logger import log
from storesync.utils.retry import RateLimitedExecutor

settings = get_settings()

ENTITY_ENDPOINTS = {
    "product": "products",
    "customer": "customers",
    "order": "orders",
}


@dataclass(frozen=True)
class SyncJobSpec:
    """Input for one pull job"""
    store_id: str
    entity_type: str
    organization_id: Optional[str]
    user_id: Optional[str]
    store: StoreConnection

    @property
    def job_id(self) -> str:
        return f"{self.store_id}:{self.entity_type}"

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], entity_type: str) -> "SyncJobSpec":
        """
        Build from a job invocation payload:
        {storeId, store: {url, apiKey, secretKey}, organizationId, userId}
        """
        if entity_type not in ENTITY_ENDPOINTS:
            raise ValueError(f"Unknown entity type: {entity_type}")
        store_id = str(payload["storeId"])
        return cls(
            store_id=store_id,
            entity_type=entity_type,
            organization_id=payload.get("organizationId"),
            user_id=payload.get("userId"),
            store=StoreConnection.from_payload(store_id, payload.get("store") or {}),
        )


@dataclass(frozen=True)
class SyncResult:
    """Outcome counts of one pull job"""
    total: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class JobState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    TERMINATED = "terminated"
    CANCELLED = "cancelled"


class PaginatedFetcher:
    """
    Reads a remote list endpoint page by page until an empty page.

    Each page request goes through a RateLimitedExecutor. Any other failure
    propagates and ends the fetch; there is no resume from a later page.
    """

    def __init__(
        self,
        client: BaseStoreClient,
        endpoint: str,
        page_size: Optional[int] = None,
        token: Optional[CancellationToken] = None,
        executor: Optional[RateLimitedExecutor] = None
    ):
        self.client = client
        self.endpoint = endpoint
        self.page_size = page_size or settings.sync_page_size
        self.token = token
        self.executor = executor or RateLimitedExecutor(token=token)
        self.pages_requested = 0

    async def fetch_page(self, page: int) -> List[Dict[str, Any]]:
        params = {"per_page": self.page_size, "page": page}
        self.pages_requested += 1
        response = await self.executor.execute(self.client.get, self.endpoint, params)

        items = response.data if response.data is not None else []
        if not isinstance(items, list):
            raise InvalidRemoteResponse(
                f"Invalid response from WooCommerce {self.endpoint} page {page}: expected a list",
                status=response.status,
            )
        return items

    async def iter_pages(self) -> AsyncIterator[Tuple[int, List[Dict[str, Any]]]]:
        """Yield (page number, items) from page 1; stops at the first empty page"""
        page = 1
        while True:
            if self.token is not None:
                self.token.raise_if_cancelled()

            items = await self.fetch_page(page)
            if not items:
                log.debug(f"{self.endpoint}: page {page} empty, pagination complete")
                return

            log.info(f"Fetching {self.endpoint} page {page}: got {len(items)} records")
            yield page, items
            page += 1

    async def fetch_all(self) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        async for _, items in self.iter_pages():
            records.extend(items)
        return records


class SyncJob:
    """Pulls one entity type from one store into local storage"""

    def __init__(
        self,
        spec: SyncJobSpec,
        entity_store: EntityStore,
        audit: Optional[SyncAuditLogger] = None,
        client_factory: Callable[[StoreConnection], BaseStoreClient] = create_store_client,
        token: Optional[CancellationToken] = None,
        page_size: Optional[int] = None
    ):
        if spec.entity_type not in ENTITY_ENDPOINTS:
            raise ValueError(f"Unknown entity type: {spec.entity_type}")
        self.spec = spec
        self.entity_store = entity_store
        self.audit = audit
        self.client_factory = client_factory
        self.token = token or CancellationToken()
        self.page_size = page_size
        self.state = JobState.IDLE

        self.endpoint = ENTITY_ENDPOINTS[spec.entity_type]
        self.operation = f"{spec.entity_type} sync"
        self.reconciler = EntityReconciler(entity_store, spec.entity_type)
        self._linkers: Dict[str, EntityReconciler] = {}

    # ── terminal messages ────────────────────────────────

    def _success(self, result: SyncResult) -> Dict[str, Any]:
        self.state = JobState.TERMINATED
        log.info(f"{self.spec.entity_type.capitalize()} sync completed for store {self.spec.store_id}: {result.to_dict()}")
        self._audit("success", details=result.to_dict())
        return {
            "status": "success",
            "message": f"{self.endpoint.capitalize()} synchronized successfully",
            "data": result.to_dict(),
        }

    def fail(self, error: BaseException, context: str) -> Dict[str, Any]:
        self.state = JobState.TERMINATED
        classified = classify_error(error, self.spec.store, self.operation)
        log_classified_error(classified, context)
        payload = classified.to_payload()
        self._audit("failed", error=payload)
        return payload

    def _cancelled(self, reason: str, result: SyncResult) -> Dict[str, Any]:
        self.state = JobState.CANCELLED
        log.warning(
            f"{self.spec.entity_type.capitalize()} sync cancelled for store {self.spec.store_id} "
            f"({reason}): {result.to_dict()}"
        )
        self._audit("cancelled", details=result.to_dict())
        return {
            "status": "cancelled",
            "message": f"{self.endpoint.capitalize()} sync cancelled: {reason}",
            "data": result.to_dict(),
        }

    def _audit(self, status: str, error: Optional[Dict] = None, details: Optional[Dict] = None):
        if self.audit is None:
            return
        self.audit.record(
            operation="pull",
            entity_type=self.spec.entity_type,
            store_id=self.spec.store_id,
            status=status,
            user_id=self.spec.user_id,
            organization_id=self.spec.organization_id,
            error=error,
            details=details,
        )

    # ── job ──────────────────────────────────────────────

    async def fetch(self) -> List[Dict[str, Any]]:
        """Fetch every remote record of this job's entity type"""
        self.state = JobState.FETCHING
        client = self.client_factory(self.spec.store)
        async with client:
            fetcher = PaginatedFetcher(client, self.endpoint, self.page_size, self.token)
            records = await fetcher.fetch_all()
        log.info(f"Total {self.endpoint} to sync for store {self.spec.store_id}: {len(records)}")
        return records

    async def run(self) -> Dict[str, Any]:
        """
        Run the job to completion.

        Returns:
            Exactly one terminal message: success with counts, a classified
            error, or cancelled with the counts reached so far
        """
        log.info(f"Starting {self.operation} for store: {self.spec.store_id}")

        try:
            records = await self.fetch()
        except JobCancelled as e:
            return self._cancelled(str(e), SyncResult())
        except Exception as e:
            return self.fail(e, f"sync_job.fetch_{self.endpoint}")

        self.state = JobState.RECONCILING
        created = updated = failed = skipped = 0

        for remote in records:
            # Yield between records so timeouts and cancel requests can land
            await asyncio.sleep(0)
            if self.token.cancelled:
                partial = SyncResult(len(records), created, updated, failed, skipped)
                return self._cancelled(self.token.reason or "cancelled", partial)

            if remote.get("id") is None:
                skipped += 1
                log.warning(f"Skipping {self.spec.entity_type} without remote id in store {self.spec.store_id}")
                continue

            try:
                if self.sync_record(remote) == "created":
                    created += 1
                else:
                    updated += 1
            except Exception as e:
                failed += 1
                log.error(
                    f"Failed to sync {self.spec.entity_type} (WooCommerce ID: {remote.get('id')}) "
                    f"store={self.spec.store_id} organization={self.spec.organization_id}: {str(e)}"
                )

        return self._success(SyncResult(len(records), created, updated, failed, skipped))

    def sync_record(self, remote: Dict[str, Any]) -> str:
        """
        Reconcile and upsert one remote record.

        Returns:
            'created' or 'updated'
        """
        scope = {"store_id": self.spec.store_id}
        match = self.reconciler.find_match(remote, scope)

        values = self.map_record(remote)
        values.update(
            store_id=self.spec.store_id,
            organization_id=self.spec.organization_id,
            user_id=self.spec.user_id,
            last_synced_at=datetime.utcnow(),
            sync_status="synced",
            sync_error=None,
        )

        if match:
            self.entity_store.find_one_and_update(
                self.spec.entity_type, {"id": match.record["id"]}, values
            )
            log.debug(
                f"Updated {self.spec.entity_type} {match.record['id']} "
                f"(WooCommerce ID: {remote['id']}, matched by {match.tier})"
            )
            return "updated"

        self.entity_store.create(self.spec.entity_type, values)
        log.debug(f"Created {self.spec.entity_type} (WooCommerce ID: {remote['id']})")
        return "created"

    def map_record(self, remote: Dict[str, Any]) -> Dict[str, Any]:
        if self.spec.entity_type != "order":
            return FROM_REMOTE[self.spec.entity_type](remote)

        # Orders link to already-synced customers and products in the same tenant
        link_scope = {"store_id": self.spec.store_id, "organization_id": self.spec.organization_id}
        billing = remote.get("billing") or {}
        customer_id = self._linker("customer").resolve_local_id(
            remote.get("customer_id"), billing.get("email"), link_scope
        )
        line_items = [
            {
                **item,
                "inventory_id": self._linker("product").resolve_local_id(
                    item.get("product_id"), item.get("sku"), link_scope
                ),
            }
            for item in remote.get("line_items") or []
        ]
        return order_from_remote(remote, customer_id=customer_id, line_items=line_items)

    def _linker(self, entity_type: str) -> EntityReconciler:
        if entity_type not in self._linkers:
            self._linkers[entity_type] = EntityReconciler(self.entity_store, entity_type)
        return self._linkers[entity_type]
