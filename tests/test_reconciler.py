"""
Tests for the remote-to-local match cascade.
"""
import pytest

from storesync.services.entity_store import EntityStore
from storesync.services.reconciler import EntityReconciler


class RecordingStore(EntityStore):
    """In-memory store that records every lookup"""

    def __init__(self, rows):
        self.rows = rows
        self.lookups = []

    def find_one(self, entity_type, filters):
        self.lookups.append(dict(filters))
        for row in self.rows.get(entity_type, []):
            if all(row.get(k) == v for k, v in filters.items()):
                return row
        return None

    def find_one_and_update(self, entity_type, filters, values, upsert=False):
        raise NotImplementedError

    def create(self, entity_type, values):
        raise NotImplementedError


SCOPE = {"store_id": "7"}


def test_external_id_wins_and_short_circuits():
    store = RecordingStore({"product": [
        {"id": 1, "store_id": "7", "external_id": 42},
        {"id": 2, "store_id": "7", "product_ref": "42"},
        {"id": 3, "store_id": "7", "sku": "ABC"},
    ]})
    match = EntityReconciler(store, "product").find_match({"id": 42, "sku": "ABC"}, SCOPE)

    assert match.record["id"] == 1
    assert match.tier == "external_id"
    assert len(store.lookups) == 1


def test_legacy_id_before_natural_key():
    store = RecordingStore({"product": [
        {"id": 2, "store_id": "7", "product_ref": "42"},
        {"id": 3, "store_id": "7", "sku": "ABC"},
    ]})
    match = EntityReconciler(store, "product").find_match({"id": 42, "sku": "ABC"}, SCOPE)

    assert match.record["id"] == 2
    assert match.tier == "legacy_id"
    assert store.lookups[1] == {"store_id": "7", "product_ref": "42"}


def test_natural_key_last():
    store = RecordingStore({"customer": [{"id": 5, "store_id": "7", "email": "a@example.com"}]})
    match = EntityReconciler(store, "customer").find_match({"id": 9, "email": "a@example.com"}, SCOPE)

    assert match.tier == "natural_key"
    assert len(store.lookups) == 3


def test_empty_natural_key_is_not_queried():
    store = RecordingStore({"product": [{"id": 3, "store_id": "7", "sku": ""}]})
    match = EntityReconciler(store, "product").find_match({"id": 9, "sku": ""}, SCOPE)

    assert match is None
    assert len(store.lookups) == 2


def test_scope_is_applied_to_every_tier():
    store = RecordingStore({"order": [{"id": 1, "store_id": "8", "external_id": 10, "order_key": "k"}]})
    match = EntityReconciler(store, "order").find_match({"id": 10, "order_key": "k"}, SCOPE)

    assert match is None
    assert all(lookup["store_id"] == "7" for lookup in store.lookups)


def test_resolve_local_id_treats_zero_as_missing():
    store = RecordingStore({"customer": [
        {"id": 4, "store_id": "7", "customer_ref": "0"},
        {"id": 5, "store_id": "7", "email": "g@example.com"},
    ]})
    reconciler = EntityReconciler(store, "customer")

    assert reconciler.resolve_local_id(0, "g@example.com", SCOPE) == 5
    assert reconciler.resolve_local_id(0, None, SCOPE) is None


def test_unknown_entity_type():
    with pytest.raises(ValueError):
        EntityReconciler(RecordingStore({}), "coupon")
