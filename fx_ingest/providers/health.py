"""Rolling per-provider health bookkeeping for operational reporting."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime

from fx_ingest.utils.datetime import Clock, isoformat_or_none, utc_now

from .base import ProviderName

DEFAULT_MAX_CONSECUTIVE_FAILURES = 3


@dataclass
class ProviderHealth:
    provider: str
    is_healthy: bool = True
    last_check: datetime | None = None
    last_success: datetime | None = None
    error_count: int = 0
    consecutive_failures: int = 0
    configured: bool = True

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "is_healthy": self.is_healthy,
            "last_check": isoformat_or_none(self.last_check),
            "last_success": isoformat_or_none(self.last_success),
            "error_count": self.error_count,
            "consecutive_failures": self.consecutive_failures,
            "configured": self.configured,
        }


class HealthTracker:
    """Record attempt outcomes per provider; never used to gate calls."""

    def __init__(
        self,
        providers: Iterable[ProviderName] = tuple(ProviderName),
        *,
        max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        clock: Clock = utc_now,
    ) -> None:
        self.max_consecutive_failures = max_consecutive_failures
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[ProviderName, ProviderHealth] = {
            provider: ProviderHealth(provider=provider.value) for provider in providers
        }

    def record_attempt(self, provider: ProviderName, success: bool) -> None:
        now = self._clock()
        with self._lock:
            record = self._records[provider]
            record.last_check = now
            if success:
                record.last_success = now
                record.error_count = 0
                record.consecutive_failures = 0
            else:
                record.error_count += 1
                record.consecutive_failures += 1
            record.is_healthy = (
                record.configured and record.consecutive_failures < self.max_consecutive_failures
            )

    def mark_unconfigured(self, provider: ProviderName) -> None:
        """Flag a provider whose credentials are missing as permanently unhealthy."""

        with self._lock:
            record = self._records[provider]
            record.configured = False
            record.is_healthy = False

    def status(self) -> list[ProviderHealth]:
        with self._lock:
            return [replace(record) for record in self._records.values()]

    def any_unhealthy(self) -> bool:
        with self._lock:
            return any(not record.is_healthy for record in self._records.values())
