"""Remote store connectors for StoreSync"""

from storesync.connectors.base_connector import (
    BaseStoreClient,
    InvalidRemoteResponse,
    RemoteAPIError,
    RemoteResponse,
)
from storesync.connectors.woocommerce_connector import WooCommerceClient, create_store_client

__all__ = [
    "BaseStoreClient",
    "InvalidRemoteResponse",
    "RemoteAPIError",
    "RemoteResponse",
    "WooCommerceClient",
    "create_store_client",
]
