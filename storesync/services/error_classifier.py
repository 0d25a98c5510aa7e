"""
Store Error Classification

Turns any transport or HTTP failure from a remote store call into a
ClassifiedError: a fixed category, a severity, a message a merchant can
act on, and an ordered list of remediation steps.

Precedence (first match wins):
  ssl_expired > ssl_invalid > dns_error > server_down > timeout
  > auth_error (401) > permission_error (403) > not_found (404)
  > server_error (5xx) > network_error > unknown
"""
import asyncio
import errno
import socket
import ssl
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from storesync.models.store import StoreConnection
from storesync.utils.logger import log


class ErrorType(str, Enum):
    SSL_EXPIRED = "ssl_expired"
    SSL_INVALID = "ssl_invalid"
    DNS_ERROR = "dns_error"
    SERVER_DOWN = "server_down"
    TIMEOUT = "timeout"
    AUTH_ERROR = "auth_error"
    PERMISSION_ERROR = "permission_error"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


RETRYABLE_TYPES = frozenset({
    ErrorType.TIMEOUT,
    ErrorType.SERVER_ERROR,
    ErrorType.NETWORK_ERROR,
})

SSL_EXPIRED_CODES = {"CERT_HAS_EXPIRED"}
SSL_INVALID_CODES = {"UNABLE_TO_VERIFY_LEAF_SIGNATURE", "CERT_UNTRUSTED", "SELF_SIGNED_CERT_IN_CHAIN"}
DNS_CODES = {"ENOTFOUND", "EAI_AGAIN"}
SERVER_DOWN_CODES = {"ECONNREFUSED", "ECONNRESET"}
TIMEOUT_CODES = {"ETIMEDOUT"}
NETWORK_CODES = {"ENETUNREACH", "EHOSTUNREACH"}


# Static per-category copy: severity, message, technical details, suggested actions.
# {store} and {url} are filled in at classification time.
CATEGORIES: Dict[ErrorType, Dict[str, Any]] = {
    ErrorType.SSL_EXPIRED: {
        "severity": "error",
        "message": "SSL Certificate Expired for {store}",
        "details": "The SSL certificate for {url} has expired and needs to be renewed.",
        "actions": [
            "Contact your hosting provider to renew the SSL certificate",
            "Check your domain registrar for certificate renewal options",
            "Consider using a free SSL service like Let's Encrypt",
            "Verify your website is accessible via HTTPS after renewal",
        ],
    },
    ErrorType.SSL_INVALID: {
        "severity": "error",
        "message": "SSL Certificate Issues for {store}",
        "details": "The SSL certificate for {url} is invalid or not trusted.",
        "actions": [
            "Install a valid SSL certificate from a trusted Certificate Authority",
            "Check if your SSL certificate is properly configured",
            "Verify your domain name matches the certificate",
            "Consider using a trusted SSL provider like Cloudflare or Let's Encrypt",
        ],
    },
    ErrorType.DNS_ERROR: {
        "severity": "error",
        "message": "Website Not Found for {store}",
        "details": (
            "Cannot resolve the domain name {url}. "
            "The website may be down or the domain may not exist."
        ),
        "actions": [
            "Check if your website is accessible in a web browser",
            "Verify your domain name is spelled correctly",
            "Contact your hosting provider to check server status",
            "Check your DNS settings with your domain registrar",
        ],
    },
    ErrorType.SERVER_DOWN: {
        "severity": "error",
        "message": "Server Unavailable for {store}",
        "details": "Cannot connect to {url}. The server may be down or not responding.",
        "actions": [
            "Check if your website is accessible in a web browser",
            "Contact your hosting provider to check server status",
            "Verify your server is running and accessible",
            "Check for any scheduled maintenance windows",
        ],
    },
    ErrorType.TIMEOUT: {
        "severity": "warning",
        "message": "Connection Timeout for {store}",
        "details": "Connection to {url} timed out. The server may be slow or overloaded.",
        "actions": [
            "Try again in a few minutes",
            "Check your internet connection",
            "Contact your hosting provider about server performance",
            "Consider upgrading your hosting plan if timeouts persist",
        ],
    },
    ErrorType.AUTH_ERROR: {
        "severity": "error",
        "message": "Authentication Failed for {store}",
        "details": "Invalid API credentials for {url}.",
        "actions": [
            "Verify your WooCommerce API Key and Secret are correct",
            "Check if your API keys have the necessary permissions",
            "Regenerate your API keys in WooCommerce admin",
            "Ensure your API keys are not expired or disabled",
        ],
    },
    ErrorType.PERMISSION_ERROR: {
        "severity": "error",
        "message": "Access Denied for {store}",
        "details": "Insufficient permissions to access {url}.",
        "actions": [
            "Check your API key permissions in WooCommerce",
            "Ensure your API keys have read/write access",
            "Verify your WooCommerce REST API is enabled",
            "Check if your user account has admin privileges",
        ],
    },
    ErrorType.NOT_FOUND: {
        "severity": "error",
        "message": "API Endpoint Not Found for {store}",
        "details": "The WooCommerce API endpoint is not accessible at {url}.",
        "actions": [
            "Verify your WooCommerce REST API is enabled",
            "Check if your website URL is correct",
            "Ensure WooCommerce plugin is installed and activated",
            "Check if your website has permalink issues",
        ],
    },
    ErrorType.SERVER_ERROR: {
        "severity": "error",
        "message": "Server Error for {store}",
        "details": "The server at {url} is experiencing internal errors.",
        "actions": [
            "Try again in a few minutes",
            "Contact your hosting provider about server issues",
            "Check your website's error logs",
            "Verify your WooCommerce installation is working",
        ],
    },
    ErrorType.NETWORK_ERROR: {
        "severity": "error",
        "message": "Network Error for {store}",
        "details": "Cannot reach the server at {url}.",
        "actions": [
            "Check your internet connection",
            "Try again in a few minutes",
            "Contact your hosting provider",
            "Verify the website URL is correct",
        ],
    },
    ErrorType.UNKNOWN: {
        "severity": "error",
        "message": "Connection Error for {store}",
        "details": None,  # Falls back to the raw error message
        "actions": [
            "Check if your website is accessible in a web browser",
            "Verify your store configuration settings",
            "Try again in a few minutes",
            "Contact support if the issue persists",
        ],
    },
}


@dataclass(frozen=True)
class ClassifiedError:
    """Structured, category-tagged description of one failure"""
    error_type: ErrorType
    severity: str
    user_friendly_message: str
    technical_details: str
    suggested_actions: List[str] = field(default_factory=list)
    retryable: bool = False
    operation: Optional[str] = None
    store_name: str = "Unknown Store"
    store_url: str = "Unknown"
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def user_message(self) -> str:
        """Message for display, e.g. 'Server Error for Shop during product sync'"""
        if self.operation:
            return f"{self.user_friendly_message} during {self.operation}"
        return self.user_friendly_message

    def to_payload(self) -> Dict[str, Any]:
        """Terminal error message for a job or push operation."""
        return {
            "status": "error",
            "message": self.user_message(),
            "errorType": self.error_type.value,
            "suggestions": list(self.suggested_actions),
            "technicalDetails": self.technical_details,
            "severity": self.severity,
            "retryable": self.retryable,
        }

    def to_log_dict(self) -> Dict[str, Any]:
        return {
            "message": self.user_friendly_message,
            "details": self.technical_details,
            "suggestions": list(self.suggested_actions),
            "type": self.error_type.value,
            "severity": self.severity,
            "storeUrl": self.store_url,
            "storeName": self.store_name,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
        }


def _ssl_verify_code(error: ssl.SSLCertVerificationError) -> str:
    message = (getattr(error, "verify_message", None) or str(error)).lower()
    if "expired" in message:
        return "CERT_HAS_EXPIRED"
    if "self-signed" in message or "self signed" in message:
        return "SELF_SIGNED_CERT_IN_CHAIN"
    if "unable to get local issuer" in message or "unable to verify" in message:
        return "UNABLE_TO_VERIFY_LEAF_SIGNATURE"
    return "CERT_UNTRUSTED"


def error_code(error: Optional[BaseException], _depth: int = 0) -> Optional[str]:
    """
    Derive a network error code ('ECONNREFUSED', 'CERT_HAS_EXPIRED', ...)
    from an exception, following wrapped causes.

    Returns None when the error carries no recognizable code (e.g. a plain
    HTTP error response).
    """
    if error is None or _depth > 5:
        return None

    code = getattr(error, "code", None)
    if isinstance(code, str) and code:
        return code

    # aiohttp certificate errors wrap the ssl error
    cert_error = getattr(error, "certificate_error", None)
    if isinstance(cert_error, BaseException):
        return error_code(cert_error, _depth + 1)

    if isinstance(error, ssl.SSLCertVerificationError):
        return _ssl_verify_code(error)

    if isinstance(error, socket.gaierror):
        if error.errno == getattr(socket, "EAI_AGAIN", None):
            return "EAI_AGAIN"
        return "ENOTFOUND"

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "ETIMEDOUT"

    # aiohttp connector errors wrap the underlying OSError
    os_error = getattr(error, "os_error", None)
    if isinstance(os_error, BaseException) and os_error is not error:
        nested = error_code(os_error, _depth + 1)
        if nested:
            return nested

    if isinstance(error, OSError) and isinstance(error.errno, int):
        name = errno.errorcode.get(error.errno)
        if name:
            return name

    cause = error.__cause__ or error.__context__
    if cause is not None and cause is not error:
        return error_code(cause, _depth + 1)

    return None


def http_status(error: BaseException) -> Optional[int]:
    """HTTP status carried by an error, if any."""
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    if response is not None:
        value = getattr(response, "status", None) or getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
    return None


def _categorize(code: Optional[str], status: Optional[int], message: str) -> ErrorType:
    if code in SSL_EXPIRED_CODES:
        return ErrorType.SSL_EXPIRED
    if code in SSL_INVALID_CODES:
        return ErrorType.SSL_INVALID
    if code in DNS_CODES:
        return ErrorType.DNS_ERROR
    if code in SERVER_DOWN_CODES:
        return ErrorType.SERVER_DOWN
    if code in TIMEOUT_CODES or "timeout" in message.lower():
        return ErrorType.TIMEOUT
    if status == 401:
        return ErrorType.AUTH_ERROR
    if status == 403:
        return ErrorType.PERMISSION_ERROR
    if status == 404:
        return ErrorType.NOT_FOUND
    if status is not None and status >= 500:
        return ErrorType.SERVER_ERROR
    if code in NETWORK_CODES:
        return ErrorType.NETWORK_ERROR
    return ErrorType.UNKNOWN


def classify_error(
    error: BaseException,
    store: Optional[StoreConnection] = None,
    operation: Optional[str] = None
) -> ClassifiedError:
    """
    Classify a failure from a remote store operation.

    Args:
        error: The exception raised by the client or transport
        store: Connection of the store being synced, used in messages
        operation: What was being done, e.g. 'product sync'

    Returns:
        ClassifiedError (never raises)
    """
    message = str(error) or type(error).__name__
    error_type = _categorize(error_code(error), http_status(error), message)
    category = CATEGORIES[error_type]

    store_name = store.name if store and store.name else "Unknown Store"
    store_url = store.url if store and store.url else "Unknown"

    details_template = category["details"]
    if details_template is None:
        technical_details = message or "An unknown error occurred while connecting to your store."
    else:
        technical_details = details_template.format(store=store_name, url=store_url)

    return ClassifiedError(
        error_type=error_type,
        severity=category["severity"],
        user_friendly_message=category["message"].format(store=store_name, url=store_url),
        technical_details=technical_details,
        suggested_actions=list(category["actions"]),
        retryable=error_type in RETRYABLE_TYPES,
        operation=operation,
        store_name=store_name,
        store_url=store_url,
    )


def is_retryable(classified: ClassifiedError) -> bool:
    return classified.error_type in RETRYABLE_TYPES


def log_classified_error(classified: ClassifiedError, context: str = ""):
    """Log at error or warning level according to severity."""
    details = classified.to_log_dict()
    details["context"] = context
    message = f"[STORE ERROR] {classified.user_friendly_message} {details}"
    if classified.severity == "error":
        log.error(message)
    else:
        log.warning(message)
