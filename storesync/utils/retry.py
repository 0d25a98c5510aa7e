"""
Rate-limit aware retry for remote store API calls.

Only HTTP 429 responses are retried. Every other failure propagates on the
first occurrence so the caller can classify it.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Mapping, Optional
from storesync.config import get_settings
from storesync.utils.cancellation import CancellationToken
from storesync.utils.logger import log

settings = get_settings()

RATE_LIMIT_STATUS = 429


@dataclass
class RetryStats:
    """Tracks retry statistics for a single operation."""
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    success: bool = False

    def record_attempt(self, error: Optional[Exception] = None, delay: float = 0.0):
        """Record a retry attempt."""
        self.attempts += 1
        self.total_delay_seconds += delay
        if error:
            error_str = f"{type(error).__name__}: {str(error)}"
            self.last_error = error_str
            self.errors.append(error_str)

    def mark_success(self):
        """Mark the operation as successful."""
        self.success = True

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/storage."""
        return {
            "attempts": self.attempts,
            "total_delay_seconds": round(self.total_delay_seconds, 2),
            "success": self.success,
            "last_error": self.last_error,
            "errors": self.errors[:5]  # Cap at 5 errors
        }


def is_rate_limited(error: Exception) -> bool:
    """True if the error carries an HTTP 429 status."""
    return getattr(error, "status", None) == RATE_LIMIT_STATUS


def _header(headers: Optional[Mapping[str, Any]], name: str) -> Optional[Any]:
    if not headers:
        return None
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if str(key).lower() == lowered:
            return val
    return None


def rate_limit_delay(
    error: Exception,
    max_delay: float = 60.0,
    default_retry_after: float = 60.0
) -> float:
    """
    Seconds to wait after a 429 response.

    Uses the Retry-After header (seconds) when present and numeric,
    otherwise `default_retry_after`. Always capped at `max_delay`.
    """
    raw = _header(getattr(error, "headers", None), "Retry-After")
    try:
        retry_after = float(raw) if raw is not None else default_retry_after
    except (TypeError, ValueError):
        retry_after = default_retry_after

    # min(retry_after * 1000, 60000) ms
    delay_ms = min(retry_after * 1000, max_delay * 1000)
    return max(delay_ms, 0) / 1000


class RateLimitedExecutor:
    """
    Executes one remote call with bounded retry on rate-limit responses.

    Usage:
        executor = RateLimitedExecutor()
        response = await executor.execute(client.get, "products", params)
        print(executor.stats.to_dict())
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        max_delay: Optional[float] = None,
        default_retry_after: Optional[float] = None,
        token: Optional[CancellationToken] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.max_attempts = max_attempts or settings.rate_limit_max_attempts
        self.max_delay = max_delay if max_delay is not None else settings.rate_limit_max_delay_seconds
        self.default_retry_after = (
            default_retry_after if default_retry_after is not None
            else settings.rate_limit_default_retry_after
        )
        self.token = token
        self._sleep = sleep
        self.stats = RetryStats()

    async def _wait(self, delay: float):
        if self._sleep is not None:
            await self._sleep(delay)
        elif self.token is not None:
            await self.token.sleep(delay)
        else:
            await asyncio.sleep(delay)

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Execute a coroutine function, retrying only on HTTP 429."""
        self.stats = RetryStats()
        name = getattr(func, "__name__", "remote call")

        for attempt in range(1, self.max_attempts + 1):
            if self.token is not None:
                self.token.raise_if_cancelled()
            try:
                result = await func(*args, **kwargs)
                self.stats.record_attempt()
                self.stats.mark_success()

                if attempt > 1:
                    log.info(
                        f"{name} succeeded on attempt {attempt} "
                        f"after {self.stats.total_delay_seconds:.1f}s rate-limit wait"
                    )

                return result

            except Exception as e:
                if not is_rate_limited(e) or attempt >= self.max_attempts:
                    self.stats.record_attempt(error=e)
                    raise

                delay = rate_limit_delay(e, self.max_delay, self.default_retry_after)
                self.stats.record_attempt(error=e, delay=delay)

                log.warning(
                    f"Rate limited, waiting {delay * 1000:.0f}ms before retry "
                    f"{attempt}/{self.max_attempts}"
                )

                await self._wait(delay)

        raise RuntimeError("Retry exhausted")  # pragma: no cover
