"""Last-known-good rates kept in memory for total provider outages."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from fx_ingest.logging import cycle_log_extra
from fx_ingest.utils.datetime import Clock, ensure_utc, utc_now

from .fx_conversion import normalize_currency
from .rate_store import RateStore, validate_rate

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=24)


@dataclass(frozen=True)
class FallbackEntry:
    code: str
    rate: Decimal
    source: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "rate": str(self.rate),
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
        }


class FallbackCache:
    """One entry per currency code, overwritten by every successful live fetch.

    Entries are never expired. ``apply`` skips entries older than its
    ``max_age`` but leaves them in place.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, FallbackEntry] = {}

    def put(self, code: str, rate: Decimal, source: str, timestamp: datetime | None = None) -> None:
        entry = FallbackEntry(
            code=normalize_currency(code),
            rate=validate_rate(rate),
            source=source,
            timestamp=ensure_utc(timestamp) if timestamp is not None else self._clock(),
        )
        with self._lock:
            self._entries[entry.code] = entry

    def get(self, code: str) -> FallbackEntry | None:
        with self._lock:
            return self._entries.get(normalize_currency(code))

    def get_all(self) -> list[FallbackEntry]:
        with self._lock:
            return sorted(self._entries.values(), key=lambda entry: entry.code)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def apply(self, rate_store: RateStore, max_age: timedelta = DEFAULT_MAX_AGE) -> int:
        """Write entries no older than ``max_age`` to ``rate_store``; return the count."""

        now = self._clock()
        applied = 0
        skipped: list[str] = []
        for entry in self.get_all():
            if now - entry.timestamp > max_age:
                skipped.append(entry.code)
                continue
            rate_store.set_rate(entry.code, entry.rate, now)
            applied += 1

        logger.log(
            logging.INFO if applied else logging.WARNING,
            "Fallback cache applied %d rate(s); %d stale entr%s skipped",
            applied,
            len(skipped),
            "y" if len(skipped) == 1 else "ies",
            extra=cycle_log_extra(
                event="fallback.apply",
                status="success" if applied else "empty",
                applied=applied,
                skipped=skipped or None,
            ),
        )
        return applied
