"""
Cooperative cancellation for sync jobs.

A token is created per job and threaded through the page fetch loop, the
record loop and the rate-limit wait. Cancelling never interrupts a request
already in flight; the job stops at the next checkpoint.
"""
import asyncio
from typing import Optional


class JobCancelled(Exception):
    """Raised at a checkpoint once the job's token has been cancelled."""


class CancellationToken:
    """Cancellation flag shared between a job and whoever started it."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled"):
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise JobCancelled(self.reason or "cancelled")

    async def sleep(self, seconds: float):
        """
        Sleep for `seconds`, waking early if the token is cancelled.

        Raises:
            JobCancelled: if the token is (or becomes) cancelled
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()
