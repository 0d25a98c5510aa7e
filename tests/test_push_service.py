"""
Tests for pushing single records to the remote store.

Covers:
  - create / update / delete requests and result payloads
  - response validation
  - sync status write-back and audit events
  - classified error results (never raised)
"""
import pytest

from storesync.connectors.base_connector import InvalidRemoteResponse, RemoteAPIError, RemoteResponse
from storesync.models.entities import Product
from storesync.services.audit_logger import MemoryAuditSink, SyncAuditLogger
from storesync.services.entity_store import SqlAlchemyEntityStore
from storesync.services.push_service import StorePushService, validate_remote_response


def _service(db, client, sink):
    return StorePushService(
        entity_store=SqlAlchemyEntityStore(db),
        audit=SyncAuditLogger(sink),
        client_factory=lambda store: client,
    )


@pytest.fixture
def local_product(db):
    return SqlAlchemyEntityStore(db).create("product", {
        "store_id": "7", "organization_id": "org-1", "name": "Mug", "sku": "MUG-1", "price": 12.0,
    })


# ────────────────────────────────────────────
# CREATE / UPDATE / DELETE
# ────────────────────────────────────────────


class TestPush:

    def test_create_product(self, run, db, connection, fake_client, local_product):
        client = fake_client(script=[RemoteResponse(status=201, data={"id": 555, "name": "Mug"})])
        sink = MemoryAuditSink()

        result = run(_service(db, client, sink).create_entity("product", local_product, connection))

        assert result["success"] is True
        assert result["externalId"] == 555
        assert result["data"]["name"] == "Mug"

        method, endpoint, _, body = client.calls[0]
        assert (method, endpoint) == ("POST", "products")
        assert body["sku"] == "MUG-1"
        assert body["regular_price"] == "12.0"

        row = db.get(Product, local_product["id"])
        assert row.external_id == 555
        assert row.sync_status == "synced"

        event = sink.events[-1]
        assert event["action"] == "woocommerce_create_product"
        assert event["status"] == "success"
        assert event["organizationId"] == "org-1"
        assert event["entityId"] == local_product["id"]

    def test_update_customer(self, run, db, connection, fake_client):
        customer = SqlAlchemyEntityStore(db).create("customer", {"store_id": "7", "email": "a@example.com"})
        client = fake_client(script=[RemoteResponse(status=200, data={"id": 8, "email": "a@example.com"})])

        result = run(_service(db, client, MemoryAuditSink()).update_entity("customer", 8, customer, connection))

        assert result["success"] is True
        assert client.calls[0][:2] == ("PUT", "customers/8")

    def test_delete_order_forces(self, run, db, connection, fake_client):
        client = fake_client(script=[RemoteResponse(status=200, data={"id": 31})])
        sink = MemoryAuditSink()

        result = run(_service(db, client, sink).delete_entity("order", 31, {"id": None}, connection))

        assert result == {"success": True, "status": "success", "externalId": 31}
        method, endpoint, params, _ = client.calls[0]
        assert (method, endpoint) == ("DELETE", "orders/31")
        assert params == {"force": True}
        assert sink.events[-1]["action"] == "woocommerce_delete_order"

    def test_update_requires_external_id(self, run, db, connection, fake_client, local_product):
        client = fake_client()
        result = run(_service(db, client, MemoryAuditSink()).update_entity("product", None, local_product, connection))

        assert result["success"] is False
        assert result["status"] == "error"
        assert client.calls == []


# ────────────────────────────────────────────
# FAILURES
# ────────────────────────────────────────────


class TestPushFailures:

    def test_remote_error_is_classified(self, run, db, connection, fake_client, local_product):
        client = fake_client(script=[RemoteAPIError("Forbidden", status=403)])
        sink = MemoryAuditSink()

        result = run(_service(db, client, sink).create_entity("product", local_product, connection))

        assert result["success"] is False
        assert result["errorType"] == "permission_error"
        assert result["message"] == "Access Denied for Example Shop during product create"

        row = db.get(Product, local_product["id"])
        assert row.sync_status == "failed"
        assert "Forbidden" in row.sync_error
        assert sink.events[-1]["status"] == "failed"

    def test_incomplete_response_is_a_failure(self, run, db, connection, fake_client, local_product):
        client = fake_client(script=[RemoteResponse(status=201, data={"id": 555})])

        result = run(_service(db, client, MemoryAuditSink()).create_entity("product", local_product, connection))

        assert result["success"] is False
        assert result["errorType"] == "unknown"
        assert "missing name" in result["technicalDetails"]

    def test_works_without_entity_store_or_audit(self, run, connection, fake_client):
        client = fake_client(script=[RemoteResponse(status=201, data={"id": 1, "number": "1"})])
        service = StorePushService(client_factory=lambda store: client)

        result = run(service.create_entity("order", {"total": 5}, connection))

        assert result["success"] is True

    def test_unknown_entity_type_raises_value_error(self, run, connection, fake_client):
        client = fake_client()
        service = StorePushService(client_factory=lambda store: client)

        with pytest.raises(ValueError, match="Unknown entity type: coupon"):
            run(service.create_entity("coupon", {"code": "X"}, connection))
        with pytest.raises(ValueError, match="Unknown entity type: coupon"):
            run(service.update_entity("coupon", 3, {"code": "X"}, connection))
        assert client.calls == []


def test_validate_remote_response():
    assert validate_remote_response(RemoteResponse(200, {"id": 1, "email": "e"}), "customer", "create")["id"] == 1
    assert validate_remote_response(RemoteResponse(200, {"id": 1}), "customer", "delete")["id"] == 1

    with pytest.raises(InvalidRemoteResponse):
        validate_remote_response(RemoteResponse(200, None), "product", "create")
    with pytest.raises(InvalidRemoteResponse):
        validate_remote_response(RemoteResponse(200, []), "order", "update")
