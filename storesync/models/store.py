"""
Store Models

A store is one remote WooCommerce shop owned by an organization, with the
REST API credentials used to sync it.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import Session

from storesync.models.base import Base


class StoreConfigurationError(ValueError):
    """Store is missing, inactive or lacks API credentials."""


class TLSPolicy(str, Enum):
    """Certificate verification policy for one store's API calls."""
    VERIFY = "verify"
    # Diagnostics only: accepts expired and self-signed certificates
    INSECURE_SKIP_VERIFY = "insecure_skip_verify"


@dataclass(frozen=True)
class StoreConnection:
    """Everything a job needs to talk to one remote store."""
    store_id: str
    url: str
    api_key: str
    secret_key: str
    name: str = "Unknown Store"
    is_active: bool = True
    tls_policy: TLSPolicy = TLSPolicy.VERIFY

    @property
    def verify_tls(self) -> bool:
        return self.tls_policy != TLSPolicy.INSECURE_SKIP_VERIFY

    def validate(self) -> "StoreConnection":
        """
        Check the connection is usable for API calls.

        Raises:
            StoreConfigurationError: if inactive or url/key/secret is missing
        """
        if not self.is_active:
            raise StoreConfigurationError("Store is not active")
        if not self.url or not self.api_key or not self.secret_key:
            raise StoreConfigurationError("Store WooCommerce configuration is incomplete")
        return self

    @classmethod
    def from_payload(cls, store_id: str, store: Dict[str, Any]) -> "StoreConnection":
        """Build from a job payload's `store` block ({url, apiKey, secretKey})."""
        return cls(
            store_id=str(store_id),
            url=store.get("url") or "",
            api_key=store.get("apiKey") or "",
            secret_key=store.get("secretKey") or "",
            name=store.get("name") or "Unknown Store",
            is_active=store.get("isActive", True),
            tls_policy=TLSPolicy(store.get("tlsPolicy") or TLSPolicy.VERIFY.value),
        )


class Store(Base):
    """
    Remote store registry

    Credentials for the WooCommerce REST API (consumer key/secret).
    """
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(String, index=True, nullable=False)

    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    api_key = Column(String, nullable=True)
    secret_key = Column(String, nullable=True)

    is_active = Column(Boolean, default=True, index=True)
    tls_policy = Column(String, default=TLSPolicy.VERIFY.value)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_connection(self) -> StoreConnection:
        return StoreConnection(
            store_id=str(self.id),
            url=self.url,
            api_key=self.api_key or "",
            secret_key=self.secret_key or "",
            name=self.name,
            is_active=bool(self.is_active),
            tls_policy=TLSPolicy(self.tls_policy or TLSPolicy.VERIFY.value),
        )


def load_store_connection(db: Session, store_id) -> StoreConnection:
    """
    Load a validated StoreConnection by store id.

    Raises:
        StoreConfigurationError: if the store does not exist, is inactive
            or its configuration is incomplete
    """
    if not store_id:
        raise StoreConfigurationError("Store ID is required for WooCommerce sync")

    try:
        pk = int(store_id)
    except (TypeError, ValueError):
        raise StoreConfigurationError(f"Invalid store ID: {store_id}")

    store: Optional[Store] = db.query(Store).filter(Store.id == pk).first()
    if not store:
        raise StoreConfigurationError("Store not found")

    return store.to_connection().validate()
