"""Bounded exponential-backoff retry wrapped around single provider calls."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from typing import TypeVar

from .base import RETRYABLE_STATUS_CODES, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryCancelledError(ProviderError):
    """Raised when a backoff wait is interrupted by shutdown."""

    def __init__(self, message: str = "Retry wait cancelled by shutdown") -> None:
        super().__init__(message, transient=False)


@dataclass
class RetryPolicy:
    """Retry transient provider failures with capped exponential backoff.

    Attempt ``n`` (0-based) that fails transiently is followed by a wait of
    ``min(base_delay * 2**n, max_delay)`` seconds, up to ``max_retries``
    retries. The wait blocks on an event so ``cancel()`` wakes it early.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    retry_statuses: Collection[int] = RETRYABLE_STATUS_CODES
    _stop: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    @classmethod
    def from_config(cls, config) -> RetryPolicy:
        return cls(
            max_retries=int(config.get("RETRY_MAX_RETRIES", 3)),
            base_delay=float(config.get("RETRY_BASE_DELAY_SECONDS", 1.0)),
            max_delay=float(config.get("RETRY_MAX_DELAY_SECONDS", 30.0)),
        )

    def execute(self, operation: Callable[[], T], *, label: str = "provider call") -> T:
        attempt = 0
        while True:
            if self._stop.is_set():
                raise RetryCancelledError()
            try:
                return operation()
            except ProviderError as exc:
                if not self.is_retryable(exc) or attempt >= self.max_retries:
                    raise
                delay = self.compute_delay(attempt)
                attempt += 1
                logger.warning(
                    "%s failed (attempt %s/%s): %s. Retrying in %.2fs.",
                    label,
                    attempt,
                    self.max_retries + 1,
                    exc,
                    delay,
                )
                if self._stop.wait(delay):
                    raise RetryCancelledError() from exc

    def is_retryable(self, error: ProviderError) -> bool:
        if isinstance(error, RetryCancelledError):
            return False
        if error.status_code is not None:
            return error.status_code in self.retry_statuses
        return error.retryable

    def compute_delay(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt), self.max_delay)

    def cancel(self) -> None:
        """Abort in-flight and future waits; used during shutdown."""

        self._stop.set()

    def resume(self) -> None:
        self._stop.clear()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()
