"""
WooCommerce REST API connector

One client per store. Credentials go in the query string
(consumer_key / consumer_secret), not in an Authorization header.
"""
from typing import Any, Dict, Optional
import asyncio
import aiohttp
from storesync.connectors.base_connector import BaseStoreClient, RemoteAPIError, RemoteResponse
from storesync.config import get_settings
from storesync.models.store import StoreConnection
from storesync.services.error_classifier import error_code
from storesync.utils.logger import log

settings = get_settings()


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _error_message(body: Any, status: int) -> str:
    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"])
        if body.get("code"):
            return f"WooCommerce API Error: {body['code']}"
    return f"WooCommerce API Error: {status}"


class WooCommerceClient(BaseStoreClient):
    """Async client for one store's WooCommerce REST API"""

    def __init__(
        self,
        connection: StoreConnection,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        super().__init__(f"WooCommerce:{connection.store_id}")
        self.connection = connection
        self.base_url = (
            f"{connection.url.rstrip('/')}/{settings.remote_api_prefix}/{settings.remote_api_version}"
        )
        self.timeout = aiohttp.ClientTimeout(
            total=timeout if timeout is not None else settings.remote_request_timeout_seconds
        )
        self._session = session
        self._owns_session = session is None

        if not connection.verify_tls:
            log.warning(
                f"SSL certificate verification is DISABLED for store {connection.store_id} "
                f"({connection.url}). Use for diagnostics only; renew the certificate instead."
            )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # ssl=False skips certificate verification
            connector = aiohttp.TCPConnector(ssl=self.connection.verify_tls)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    def _auth_params(self) -> Dict[str, str]:
        return {
            "consumer_key": self.connection.api_key,
            "consumer_secret": self.connection.secret_key,
        }

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> RemoteResponse:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        query = {k: _query_value(v) for k, v in {**(params or {}), **self._auth_params()}.items()}
        session = self._get_session()

        try:
            async with session.request(method.upper(), url, params=query, json=json) as response:
                headers = dict(response.headers)
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = await response.text()

                if response.status >= 400:
                    self._record_request(failed=True)
                    raise RemoteAPIError(
                        _error_message(body, response.status),
                        status=response.status,
                        headers=headers,
                        body=body,
                    )

                self._record_request()
                return RemoteResponse(status=response.status, data=body, headers=headers)

        except RemoteAPIError:
            raise
        except (asyncio.TimeoutError, aiohttp.ServerTimeoutError) as e:
            self._record_request(failed=True)
            raise RemoteAPIError(
                f"Request to {url} timed out", code="ETIMEDOUT"
            ) from e
        except aiohttp.ClientError as e:
            self._record_request(failed=True)
            raise RemoteAPIError(
                f"{type(e).__name__}: {str(e)}", code=error_code(e)
            ) from e

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()


def create_store_client(connection: StoreConnection, timeout: Optional[float] = None) -> WooCommerceClient:
    """
    Build an authenticated client for one store.

    Raises:
        StoreConfigurationError: if the store is inactive or incomplete
    """
    connection.validate()
    return WooCommerceClient(connection, timeout=timeout)
