"""
Tests for isolated job execution and the scheduled multi-store sync.
"""
import asyncio
import time

import pytest

from storesync.connectors.base_connector import BaseStoreClient, RemoteAPIError, RemoteResponse
from storesync.models.audit import SyncAuditEvent
from storesync.models.entities import Customer, Order, Product
from storesync.models.store import Store, StoreConfigurationError
from storesync.scheduler import active_store_specs, get_scheduled_jobs, scheduler, setup_scheduler, sync_active_stores
from storesync.services.entity_store import SqlAlchemyEntityStore
from storesync.services.job_runner import SyncJobRunner


class HangingClient(BaseStoreClient):
    def __init__(self):
        super().__init__("hanging")

    async def request(self, method, endpoint, params=None, json=None):
        await asyncio.sleep(60)


class SlowEntityStore(SqlAlchemyEntityStore):
    """Blocks briefly on every insert, like a slow database"""

    delay = 0.02

    def create(self, entity_type, values):
        time.sleep(self.delay)
        return super().create(entity_type, values)


def _add_store(db, name, is_active=True, api_key="ck"):
    store = Store(
        organization_id="org-1", name=name, url=f"https://{name}.example",
        api_key=api_key, secret_key="cs", is_active=is_active,
    )
    db.add(store)
    db.commit()
    return store


# ────────────────────────────────────────────
# RUNNER
# ────────────────────────────────────────────


class TestSyncJobRunner:

    def test_runs_job_and_writes_audit(self, run, db, session_factory, fake_client):
        store = _add_store(db, "shop")
        runner = SyncJobRunner(session_factory, client_factory=lambda c: fake_client(records=[{"id": 1, "name": "A"}]))
        spec = runner.spec_for_store(db, store.id, "product", organization_id="org-1", user_id="u1")

        result = run(runner.run(spec))

        assert result["status"] == "success"
        assert db.query(Product).count() == 1
        assert db.query(SyncAuditEvent).one().action == "woocommerce_pull_product"
        assert runner.running_jobs() == []

    def test_spec_for_missing_store(self, db, session_factory):
        runner = SyncJobRunner(session_factory)
        with pytest.raises(StoreConfigurationError, match="not found"):
            runner.spec_for_store(db, 404, "product")
        with pytest.raises(StoreConfigurationError, match="Invalid store ID"):
            runner.spec_for_store(db, "abc", "product")

    def test_spec_for_inactive_store(self, db, session_factory):
        store = _add_store(db, "closed", is_active=False)
        with pytest.raises(StoreConfigurationError, match="not active"):
            SyncJobRunner(session_factory).spec_for_store(db, store.id, "product")

    def test_wall_clock_timeout(self, run, db, session_factory):
        store = _add_store(db, "slow")
        runner = SyncJobRunner(session_factory, client_factory=lambda c: HangingClient(), timeout=0.05)
        spec = runner.spec_for_store(db, store.id, "order")

        result = run(runner.run(spec))

        assert result["status"] == "error"
        assert result["errorType"] == "timeout"
        assert result["retryable"] is True
        assert db.query(SyncAuditEvent).one().status == "failed"
        assert runner.running_jobs() == []

    def test_cancel_running_job(self, run, db, session_factory):
        store = _add_store(db, "shop")
        runner = SyncJobRunner(session_factory)
        spec = runner.spec_for_store(db, store.id, "customer")

        class CancellingClient(BaseStoreClient):
            async def request(self, method, endpoint, params=None, json=None):
                assert runner.cancel(spec.job_id, "user request") is True
                return RemoteResponse(status=200, data=[{"id": 1, "email": "a@example.com"}])

        runner.client_factory = lambda c: CancellingClient("cancelling")
        result = run(runner.run(spec))

        assert result["status"] == "cancelled"
        assert "user request" in result["message"]
        assert db.query(Customer).count() == 0
        assert runner.cancel(spec.job_id) is False

    def test_timeout_during_reconcile(self, run, db, session_factory, fake_client):
        store = _add_store(db, "big")
        products = [{"id": i, "name": f"P{i}", "sku": f"SKU-{i}"} for i in range(1, 101)]
        runner = SyncJobRunner(
            session_factory, client_factory=lambda c: fake_client(records=products),
            timeout=0.2, store_factory=SlowEntityStore,
        )
        spec = runner.spec_for_store(db, store.id, "product")

        started = time.monotonic()
        result = run(runner.run(spec))

        assert result["status"] == "error"
        assert result["errorType"] == "timeout"
        assert time.monotonic() - started < 1.5  # 100 inserts at 20ms each would take 2s
        assert db.query(Product).count() < 100
        assert runner.running_jobs() == []

    def test_cancel_from_another_task_during_reconcile(self, run, db, session_factory, fake_client):
        store = _add_store(db, "big")
        products = [{"id": i, "name": f"P{i}", "sku": f"SKU-{i}"} for i in range(1, 51)]

        class QuickSlowStore(SlowEntityStore):
            delay = 0.01

        runner = SyncJobRunner(
            session_factory, client_factory=lambda c: fake_client(records=products),
            store_factory=QuickSlowStore,
        )
        spec = runner.spec_for_store(db, store.id, "product")
        cancelled = []

        async def cancel_later():
            await asyncio.sleep(0.1)
            cancelled.append(runner.cancel(spec.job_id, "user request"))

        async def scenario():
            canceller = asyncio.ensure_future(cancel_later())
            result = await runner.run(spec)
            await canceller
            return result

        result = run(scenario())

        assert cancelled == [True]
        assert result["status"] == "cancelled"
        assert "user request" in result["message"]
        assert result["data"]["total"] == 50
        assert 0 < result["data"]["created"] < 50
        assert db.query(Product).count() == result["data"]["created"]

    def test_duplicate_job_id_returns_error_payload(self, run, db, session_factory, fake_client):
        store = _add_store(db, "shop")
        runner = SyncJobRunner(session_factory, client_factory=lambda c: fake_client(records=[{"id": 1, "name": "A"}]))
        spec = runner.spec_for_store(db, store.id, "product")

        results = run(runner.run_many([spec, spec]))

        assert results[0]["status"] == "success"
        assert results[1]["status"] == "error"
        assert results[1]["retryable"] is False
        assert "already running" in results[1]["technicalDetails"]
        assert db.query(Product).count() == 1
        assert runner.running_jobs() == []

    def test_run_many_isolates_failures(self, run, db, session_factory, fake_client):
        good = _add_store(db, "good")
        bad = _add_store(db, "bad")

        def factory(connection):
            if connection.store_id == str(bad.id):
                return fake_client(script=[RemoteAPIError("Forbidden", status=403)])
            return fake_client(records=[{"id": 1, "order_key": "k1"}])

        runner = SyncJobRunner(session_factory, client_factory=factory)
        specs = [runner.spec_for_store(db, s.id, "order") for s in (good, bad)]

        results = run(runner.run_many(specs))

        assert results[0]["status"] == "success"
        assert results[1]["errorType"] == "permission_error"
        assert db.query(Order).count() == 1


# ────────────────────────────────────────────
# SCHEDULED SYNC
# ────────────────────────────────────────────


class TestScheduledSync:

    def test_specs_cover_active_stores_only(self, db, session_factory):
        active = _add_store(db, "open")
        _add_store(db, "closed", is_active=False)

        specs = active_store_specs(session_factory)

        assert {s.store_id for s in specs} == {str(active.id)}
        assert [s.entity_type for s in specs] == ["customer", "product", "order"]
        assert all(s.user_id == "system" and s.organization_id == "org-1" for s in specs)

    def test_syncs_every_store_and_retries_once(self, run, db, session_factory, fake_client):
        _add_store(db, "shop")
        calls = {"order": 0}

        def factory(connection):
            # first orders fetch hits a 502, the retry succeeds
            client = fake_client(records=[{"id": 1}])
            original = client.request

            async def request(method, endpoint, params=None, json=None):
                if endpoint == "orders":
                    calls["order"] += 1
                    if calls["order"] == 1:
                        raise RemoteAPIError("Bad Gateway", status=502)
                return await original(method, endpoint, params=params, json=json)

            client.request = request
            return client

        runner = SyncJobRunner(session_factory, client_factory=factory)
        results = run(sync_active_stores(runner, session_factory))

        assert [r["status"] for r in results] == ["success", "success", "success"]
        assert calls["order"] == 3  # failed page 1, then pages 1 and 2 on retry
        assert db.query(Order).count() == 1

    def test_no_stores(self, run, session_factory):
        assert run(sync_active_stores(SyncJobRunner(session_factory), session_factory)) == []

    def test_scheduler_registers_store_sync(self):
        setup_scheduler()
        try:
            jobs = get_scheduled_jobs()
            assert [j["id"] for j in jobs] == ["store_sync"]
            assert jobs[0]["name"] == "Store Catalog Sync"
        finally:
            scheduler.remove_all_jobs()
