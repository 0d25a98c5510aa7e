"""
Remote-to-local record matching.

A remote record is linked to a local one by trying, in order, within the
store scope:

  1. external_id == remote id
  2. legacy reference field == str(remote id)
  3. natural key (sku / email / order_key)

The first tier that hits wins and later tiers are never queried. Once
external_id is populated it is authoritative; the other tiers only exist
to link legacy rows and records created before their first sync.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from storesync.services.entity_store import EntityStore


@dataclass(frozen=True)
class MatchKeys:
    legacy_field: str
    natural_key: str  # same name on the remote record and the local row


MATCH_KEYS: Dict[str, MatchKeys] = {
    "product": MatchKeys(legacy_field="product_ref", natural_key="sku"),
    "customer": MatchKeys(legacy_field="customer_ref", natural_key="email"),
    "order": MatchKeys(legacy_field="order_ref", natural_key="order_key"),
}


@dataclass(frozen=True)
class Match:
    record: Dict[str, Any]
    tier: str  # external_id, legacy_id, natural_key


class EntityReconciler:
    """Finds the local record a remote record corresponds to"""

    def __init__(self, store: EntityStore, entity_type: str):
        if entity_type not in MATCH_KEYS:
            raise ValueError(f"Unknown entity type: {entity_type}")
        self.store = store
        self.entity_type = entity_type
        self.keys = MATCH_KEYS[entity_type]

    def find_match(self, remote: Dict[str, Any], scope: Dict[str, Any]) -> Optional[Match]:
        """
        Run the cascade for one remote record.

        Args:
            remote: Remote record (must carry 'id' for tiers 1-2)
            scope: Equality filters every tier is restricted to, e.g. {'store_id': '7'}

        Returns:
            Match with the tier that hit, or None if the record is new
        """
        return self.match_by_keys(remote.get("id"), remote.get(self.keys.natural_key), scope)

    def match_by_keys(
        self,
        remote_id: Any,
        natural_key_value: Any,
        scope: Dict[str, Any]
    ) -> Optional[Match]:
        if remote_id is not None and remote_id != "":
            hit = self.store.find_one(self.entity_type, {**scope, "external_id": remote_id})
            if hit:
                return Match(hit, "external_id")

            hit = self.store.find_one(
                self.entity_type, {**scope, self.keys.legacy_field: str(remote_id)}
            )
            if hit:
                return Match(hit, "legacy_id")

        if natural_key_value:
            hit = self.store.find_one(
                self.entity_type, {**scope, self.keys.natural_key: natural_key_value}
            )
            if hit:
                return Match(hit, "natural_key")

        return None

    def resolve_local_id(
        self,
        remote_id: Any,
        natural_key_value: Any,
        scope: Dict[str, Any]
    ) -> Optional[int]:
        """Local row id for a remote id / natural key pair, or None"""
        # Remote id 0 means "none" (e.g. guest checkout customer_id)
        if remote_id in (0, "0"):
            remote_id = None
        match = self.match_by_keys(remote_id, natural_key_value, scope)
        return match.record["id"] if match else None
