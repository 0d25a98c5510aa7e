"""
Base connector class for remote store APIs
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from datetime import datetime


class RemoteAPIError(Exception):
    """
    A failed call to a remote store API.

    Carries whatever the transport knew about the failure: the HTTP status
    and headers for error responses, or a network error code
    (e.g. 'ECONNREFUSED', 'CERT_HAS_EXPIRED') when no response arrived.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        code: Optional[str] = None,
        body: Any = None
    ):
        super().__init__(message)
        self.status = status
        self.headers = headers or {}
        self.code = code
        self.body = body


class InvalidRemoteResponse(RemoteAPIError):
    """The remote answered 2xx but the body is not what the endpoint promises."""


@dataclass
class RemoteResponse:
    """A successful remote API response with its decoded JSON body."""
    status: int
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


class BaseStoreClient(ABC):
    """Base class for remote store API clients"""

    def __init__(self, name: str):
        self.name = name
        self.last_request_at: Optional[datetime] = None
        self.request_count = 0
        self.error_count = 0

    @abstractmethod
    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> RemoteResponse:
        """
        Send one request to the remote API.

        Raises:
            RemoteAPIError: on any HTTP error status or transport failure
        """
        pass

    async def close(self):
        """Release transport resources. No-op unless the client holds any."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> RemoteResponse:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Dict[str, Any]) -> RemoteResponse:
        return await self.request("POST", endpoint, json=data)

    async def put(self, endpoint: str, data: Dict[str, Any]) -> RemoteResponse:
        return await self.request("PUT", endpoint, json=data)

    async def delete(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> RemoteResponse:
        return await self.request("DELETE", endpoint, params=params)

    def _record_request(self, failed: bool = False):
        self.last_request_at = datetime.utcnow()
        self.request_count += 1
        if failed:
            self.error_count += 1

    def get_status(self) -> Dict[str, Any]:
        """Get client status"""
        return {
            "name": self.name,
            "last_request_at": self.last_request_at,
            "request_count": self.request_count,
            "error_count": self.error_count,
            "error_rate": self.error_count / max(self.request_count, 1),
        }
