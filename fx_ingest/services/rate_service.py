"""Read and operator surface over the ingested rates and resilience state."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any

from fx_ingest.utils.datetime import Clock, isoformat_or_none, utc_now

from .fallback_cache import FallbackEntry
from .fx_conversion import cross_convert, normalize_currency
from .orchestrator import IngestionOrchestrator

DEFAULT_STALE_AFTER = timedelta(hours=1)

STATUS_HEALTHY = "healthy"
STATUS_DEGRADED = "degraded"
STATUS_UNHEALTHY = "unhealthy"


class RateService:
    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        *,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
        clock: Clock = utc_now,
    ) -> None:
        self.orchestrator = orchestrator
        self.stale_after = stale_after
        self._clock = clock

    @property
    def rate_store(self):
        return self.orchestrator.rate_store

    def get_current_rate(self, code: str) -> Decimal | None:
        record = self.rate_store.get_rate(code)
        return record.rate if record is not None else None

    def convert_currency(
        self, amount: Decimal | int | float | str, from_code: str, to_code: str
    ) -> Decimal | None:
        """Convert through the canonical base: ``amount * rate(to) / rate(from)``.

        ``None`` when either rate is unknown or the source rate is zero.
        """

        return cross_convert(
            amount,
            self.get_current_rate(normalize_currency(from_code)),
            self.get_current_rate(normalize_currency(to_code)),
        )

    def get_all_current_rates(self) -> dict[str, Decimal]:
        return {
            record.code: record.rate
            for record in self.rate_store.list_active()
            if record.rate is not None
        }

    def health_check(self) -> dict[str, Any]:
        """Summarize freshness and provider resilience state.

        ``unhealthy`` whenever the newest ``last_updated`` across active
        currencies is absent or older than ``stale_after``, whatever the
        providers report. Otherwise ``degraded`` if any breaker is open or
        any provider is unhealthy, else ``healthy``.
        """

        stamps = [
            record.last_updated
            for record in self.rate_store.list_active()
            if record.last_updated is not None
        ]
        last_update = max(stamps) if stamps else None

        breakers = self.orchestrator.breakers
        health = self.orchestrator.health
        if last_update is None or self._clock() - last_update > self.stale_after:
            status = STATUS_UNHEALTHY
        elif breakers.any_open() or health.any_unhealthy():
            status = STATUS_DEGRADED
        else:
            status = STATUS_HEALTHY

        last_cycle = self.orchestrator.last_result
        return {
            "status": status,
            "api_status": [record.to_dict() for record in health.status()],
            "circuit_breakers": [item.to_dict() for item in breakers.status()],
            "last_update": isoformat_or_none(last_update),
            "fallback_rates_count": len(self.orchestrator.fallback_cache),
            "mock_mode": self.orchestrator.mock_mode,
            "last_cycle": last_cycle.to_dict() if last_cycle is not None else None,
        }

    def get_api_health_status(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.orchestrator.health.status()]

    def get_circuit_breaker_status(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self.orchestrator.breakers.status()]

    def reset_circuit_breaker(self, provider: str) -> dict[str, Any]:
        breakers = self.orchestrator.breakers
        breakers.reset(provider)
        state = breakers.state(provider)
        return {
            "provider": state.provider.value,
            "is_open": state.is_open,
            "failures": state.consecutive_failures,
            "last_attempt": isoformat_or_none(state.last_attempt),
        }

    def get_fallback_rates(self) -> list[FallbackEntry]:
        return self.orchestrator.fallback_cache.get_all()


RATE_SERVICE_EXT_KEY = "fx_rate_service"


def init_rate_service(app, orchestrator: IngestionOrchestrator) -> RateService:
    service = RateService(
        orchestrator,
        stale_after=timedelta(seconds=float(app.config.get("RATES_STALE_AFTER_SECONDS", 3600))),
    )
    app.extensions[RATE_SERVICE_EXT_KEY] = service
    return service


def get_rate_service(app) -> RateService:
    service = app.extensions.get(RATE_SERVICE_EXT_KEY)
    if service is None:
        raise RuntimeError("Rate service not initialised")
    return service
