"""
Scheduler for automated store syncs

Uses APScheduler to pull every active store's products, customers and
orders on a cron schedule. Each (store, entity type) runs as its own job.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from typing import Any, Dict, List, Optional
import asyncio

from storesync.config import get_settings
from storesync.models.base import SessionLocal
from storesync.models.store import Store
from storesync.services.job_runner import SyncJobRunner
from storesync.services.sync_job import ENTITY_ENDPOINTS, SyncJobSpec
from storesync.utils.logger import log

settings = get_settings()
scheduler = AsyncIOScheduler()


def _entity_types() -> List[str]:
    types = [t.strip() for t in settings.sync_entity_types.split(",") if t.strip()]
    # Customers and products first so orders can link to them
    return sorted((t for t in types if t in ENTITY_ENDPOINTS), key=["customer", "product", "order"].index)


def active_store_specs(session_factory=SessionLocal) -> List[SyncJobSpec]:
    """One job spec per active store x entity type"""
    db = session_factory()
    try:
        stores = db.query(Store).filter(Store.is_active.is_(True)).all()
        specs = []
        for store in stores:
            connection = store.to_connection()
            for entity_type in _entity_types():
                specs.append(SyncJobSpec(
                    store_id=connection.store_id,
                    entity_type=entity_type,
                    organization_id=store.organization_id,
                    user_id="system",
                    store=connection,
                ))
        return specs
    finally:
        db.close()


async def sync_active_stores(runner: Optional[SyncJobRunner] = None, session_factory=SessionLocal) -> List[Dict[str, Any]]:
    """
    Pull all active stores.

    Stores run concurrently; the entity types of one store run in order.
    A job whose classified error is retryable (timeout, server or network
    error) is run once more after the first pass.
    """
    runner = runner or SyncJobRunner(session_factory=session_factory)
    specs = active_store_specs(session_factory)
    if not specs:
        log.info("No active stores to sync")
        return []

    by_store: Dict[str, List[SyncJobSpec]] = {}
    for spec in specs:
        by_store.setdefault(spec.store_id, []).append(spec)

    async def _run_store(store_specs: List[SyncJobSpec]) -> List[tuple]:
        results = []
        for spec in store_specs:
            results.append((spec, await runner.run(spec)))
        return results

    log.info(f"Starting scheduled sync: {len(by_store)} stores, {len(specs)} jobs")
    per_store = await asyncio.gather(*(_run_store(s) for s in by_store.values()))
    outcomes = [item for store_results in per_store for item in store_results]

    final = []
    for spec, result in outcomes:
        if result.get("status") == "error" and result.get("retryable"):
            log.warning(f"Retrying sync job {spec.job_id} after {result.get('errorType')}")
            result = await runner.run(spec)
        final.append({"jobId": spec.job_id, **result})

    succeeded = sum(1 for r in final if r.get("status") == "success")
    log.info(f"Scheduled sync finished: {succeeded}/{len(final)} jobs succeeded")
    return final


def setup_scheduler():
    """
    Configure the scheduler.

    Sync Frequencies:
    - Active stores (customers, products, orders): SYNC_STORE_SCHEDULE (default every 6 hours)
    """
    scheduler.add_job(
        sync_active_stores,
        trigger=CronTrigger.from_crontab(settings.sync_store_schedule, timezone=settings.scheduler_timezone),
        id='store_sync',
        name='Store Catalog Sync',
        replace_existing=True,
        max_instances=1
    )


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    scheduler.shutdown()
    log.info("Scheduler stopped")


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs

    Returns:
        List of job info dicts
    """
    jobs = []

    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)

        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })

    return jobs
