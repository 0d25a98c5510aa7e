"""
Isolated execution of sync jobs.

Each job runs as its own asyncio task with its own HTTP client, its own
database session and its own cancellation token, and hands back exactly
one terminal message. A hard wall-clock timeout bounds every job.
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy.orm import Session

from storesync.config import get_settings
from storesync.connectors.base_connector import BaseStoreClient
from storesync.connectors.woocommerce_connector import create_store_client
from storesync.models.base import SessionLocal
from storesync.models.store import StoreConnection, load_store_connection
from storesync.services.audit_logger import SqlAlchemyAuditSink, SyncAuditLogger
from storesync.services.entity_store import EntityStore, SqlAlchemyEntityStore
from storesync.services.error_classifier import classify_error, log_classified_error
from storesync.services.sync_job import SyncJob, SyncJobSpec
from storesync.utils.cancellation import CancellationToken
from storesync.utils.logger import log

settings = get_settings()


class SyncJobRunner:
    """Starts pull jobs and collects their terminal messages"""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        client_factory: Callable[[StoreConnection], BaseStoreClient] = create_store_client,
        timeout: Optional[float] = None,
        store_factory: Callable[[Session], EntityStore] = SqlAlchemyEntityStore
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.store_factory = store_factory
        self.timeout = timeout if timeout is not None else settings.sync_job_timeout_seconds
        self._tokens: Dict[str, CancellationToken] = {}

    def spec_for_store(
        self,
        db: Session,
        store_id: Any,
        entity_type: str,
        organization_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> SyncJobSpec:
        """
        Build a job spec from the store registry.

        Raises:
            StoreConfigurationError: if the store is missing, inactive or incomplete
        """
        connection = load_store_connection(db, store_id)
        return SyncJobSpec(
            store_id=connection.store_id,
            entity_type=entity_type,
            organization_id=organization_id,
            user_id=user_id,
            store=connection,
        )

    def running_jobs(self) -> List[str]:
        return list(self._tokens.keys())

    def cancel(self, job_id: str, reason: str = "cancelled by request") -> bool:
        """Ask a running job to stop at its next checkpoint"""
        token = self._tokens.get(job_id)
        if token is None:
            return False
        token.cancel(reason)
        log.info(f"Cancellation requested for sync job {job_id}: {reason}")
        return True

    async def run(self, spec: SyncJobSpec) -> Dict[str, Any]:
        """Run one job in isolation and return its terminal message"""
        if spec.job_id in self._tokens:
            classified = classify_error(
                RuntimeError(f"Sync job {spec.job_id} is already running"), spec.store, f"{spec.entity_type} sync"
            )
            log_classified_error(classified, f"job_runner.{spec.job_id}")
            return classified.to_payload()

        token = CancellationToken()
        self._tokens[spec.job_id] = token
        db = self.session_factory()

        try:
            job = SyncJob(
                spec,
                self.store_factory(db),
                audit=SyncAuditLogger(SqlAlchemyAuditSink(db)),
                client_factory=self.client_factory,
                token=token,
            )
            try:
                return await asyncio.wait_for(job.run(), timeout=self.timeout)
            except asyncio.TimeoutError:
                token.cancel("timeout")
                return job.fail(
                    asyncio.TimeoutError(f"Sync job exceeded {self.timeout:.0f}s wall-clock limit"),
                    f"job_runner.{spec.job_id}",
                )
        finally:
            self._tokens.pop(spec.job_id, None)
            db.close()

    async def run_many(self, specs: List[SyncJobSpec]) -> List[Dict[str, Any]]:
        """Run jobs concurrently; one terminal message per spec, in order"""
        return list(await asyncio.gather(*(self.run(spec) for spec in specs)))
