"""Per-provider circuit breakers gating whether a provider is called at all."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from fx_ingest.errors import NotFoundError
from fx_ingest.utils.datetime import Clock, utc_now

from .base import ProviderName

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 5
DEFAULT_TIMEOUT = timedelta(seconds=30)


@dataclass
class CircuitBreakerState:
    """Gating state for one provider.

    Closed while ``is_open`` is False. Open blocks calls until ``timeout``
    has passed since ``last_attempt``; after that one trial call is let
    through (half-open, derived rather than stored).
    """

    provider: ProviderName
    is_open: bool = False
    consecutive_failures: int = 0
    last_attempt: datetime | None = None


@dataclass(frozen=True)
class CircuitBreakerStatus:
    provider: str
    is_open: bool
    failures: int
    last_attempt: datetime | None

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "is_open": self.is_open,
            "failures": self.failures,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
        }


class CircuitBreakerRegistry:
    """Breakers for a fixed set of providers, created once at startup."""

    def __init__(
        self,
        providers: Iterable[ProviderName] = tuple(ProviderName),
        *,
        threshold: int = DEFAULT_THRESHOLD,
        timeout: timedelta = DEFAULT_TIMEOUT,
        clock: Clock = utc_now,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self.timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._states: dict[ProviderName, CircuitBreakerState] = {
            provider: CircuitBreakerState(provider=provider) for provider in providers
        }

    @classmethod
    def from_config(cls, config, *, clock: Clock = utc_now) -> CircuitBreakerRegistry:
        return cls(
            threshold=int(config.get("CIRCUIT_BREAKER_THRESHOLD", DEFAULT_THRESHOLD)),
            timeout=timedelta(seconds=float(config.get("CIRCUIT_BREAKER_TIMEOUT_SECONDS", 30))),
            clock=clock,
        )

    def allow(self, provider: ProviderName | str) -> bool:
        with self._lock:
            state = self._get(provider)
            if not state.is_open:
                return True
            if state.last_attempt is None:
                return True
            elapsed = self._clock() - state.last_attempt
            if elapsed > self.timeout:
                logger.info(
                    "Circuit breaker for %s half-open after %.1fs; allowing trial request",
                    state.provider.value,
                    elapsed.total_seconds(),
                )
                return True
            return False

    def record_result(self, provider: ProviderName | str, success: bool) -> None:
        with self._lock:
            state = self._get(provider)
            if success:
                if state.is_open:
                    logger.info("Circuit breaker for %s closed", state.provider.value)
                state.consecutive_failures = 0
                state.is_open = False
                return

            state.consecutive_failures += 1
            state.last_attempt = self._clock()
            if state.consecutive_failures >= self.threshold:
                if not state.is_open:
                    logger.warning(
                        "Circuit breaker OPEN for %s after %d consecutive failures",
                        state.provider.value,
                        state.consecutive_failures,
                    )
                state.is_open = True

    def reset(self, provider: ProviderName | str) -> None:
        with self._lock:
            state = self._get(provider)
            state.is_open = False
            state.consecutive_failures = 0
            state.last_attempt = None
        logger.info("Circuit breaker for %s reset by operator", state.provider.value)

    def state(self, provider: ProviderName | str) -> CircuitBreakerState:
        """Return a copy of one provider's breaker state."""

        with self._lock:
            return replace(self._get(provider))

    def status(self) -> list[CircuitBreakerStatus]:
        with self._lock:
            return [
                CircuitBreakerStatus(
                    provider=state.provider.value,
                    is_open=state.is_open,
                    failures=state.consecutive_failures,
                    last_attempt=state.last_attempt,
                )
                for state in self._states.values()
            ]

    def any_open(self) -> bool:
        with self._lock:
            return any(state.is_open for state in self._states.values())

    def _get(self, provider: ProviderName | str) -> CircuitBreakerState:
        resolved = provider if isinstance(provider, ProviderName) else ProviderName.lookup(provider)
        state = self._states.get(resolved) if resolved is not None else None
        if state is None:
            raise NotFoundError(
                f"Circuit breaker not found for provider '{getattr(provider, 'value', provider)}'",
                payload={"provider": str(getattr(provider, "value", provider))},
            )
        return state
