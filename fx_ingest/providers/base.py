"""Abstract interface and error type for exchange-rate provider clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from fx_ingest.models import CurrencyCategory

from .http_client import HTTPClient, HTTPClientError

RETRYABLE_STATUS_CODES = frozenset({408, 429, 502, 503, 504})


class ProviderName(str, Enum):
    """The fixed set of upstream rate providers known to the engine."""

    OPEN_EXCHANGE_RATES = "OpenExchangeRates"
    EXCHANGE_RATE_API = "ExchangeRateAPI"
    COINGECKO = "CoinGecko"

    @classmethod
    def lookup(cls, value: str) -> ProviderName | None:
        """Resolve a provider by name, ignoring case; ``None`` when unknown."""

        normalized = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == normalized or member.name.lower() == normalized:
                return member
        return None


class ProviderError(Exception):
    """Raised when an upstream provider cannot fulfil a request.

    ``status_code`` is the HTTP status when the provider answered; it is
    ``None`` for transport failures (connection errors, timeouts), which are
    always considered transient.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str | None = None,
        provider: str | None = None,
        transient: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint
        self.provider = provider
        self._transient = transient

    @property
    def retryable(self) -> bool:
        if self._transient is not None:
            return self._transient
        if self.status_code is None:
            return True
        return self.status_code in RETRYABLE_STATUS_CODES


class ProviderClient(ABC):
    """Defines the operations every rate provider client implements.

    A client serves one category; calling the other category's fetch raises
    ``NotImplementedError``.
    """

    name: ProviderName
    category: CurrencyCategory

    def fetch_fiat_rates(self, base_currency: str, symbols: Iterable[str]) -> dict[str, Decimal]:
        """Return units of each symbol per one ``base_currency``."""

        raise NotImplementedError(f"{self.name.value} does not serve fiat rates")

    def fetch_crypto_prices(self, ids: Iterable[str]) -> dict[str, Decimal]:
        """Return the price of each coin id expressed in the canonical base."""

        raise NotImplementedError(f"{self.name.value} does not serve crypto prices")

    @abstractmethod
    def validate(self) -> None:
        """Cheap reachability/credential probe; raises ``ProviderError`` on failure."""


def positive_rates(
    raw: Mapping[str, object], *, provider: ProviderName, endpoint: str
) -> dict[str, Decimal]:
    """Normalize a ``code -> number`` payload, rejecting malformed or non-positive values."""

    rates: dict[str, Decimal] = {}
    for code, value in raw.items():
        try:
            rate = Decimal(str(value))
        except ArithmeticError as exc:
            raise ProviderError(
                f"{provider.value} returned a non-numeric rate for {code}: {value!r}",
                endpoint=endpoint,
                provider=provider.value,
                transient=False,
            ) from exc
        if not rate.is_finite() or rate <= 0:
            raise ProviderError(
                f"{provider.value} returned a non-positive rate for {code}: {value!r}",
                endpoint=endpoint,
                provider=provider.value,
                transient=False,
            )
        rates[str(code).strip().upper()] = rate
    return rates


class HTTPProviderClient(ProviderClient):
    """Provider client issuing JSON GETs through a shared ``HTTPClient``."""

    def __init__(self, http: HTTPClient) -> None:
        self._http = http

    def _get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        try:
            return self._http.get(path, params=params)
        except HTTPClientError as exc:
            raise ProviderError(
                self._redact(f"{self.name.value}: {exc}"),
                status_code=exc.status_code,
                endpoint=self._redact(exc.url or self._http.build_url(path)),
                provider=self.name.value,
                transient=False if exc.malformed else None,
            ) from exc

    def _malformed(self, message: str, path: str) -> ProviderError:
        return ProviderError(
            f"{self.name.value}: {message}",
            endpoint=self._redact(self._http.build_url(path)),
            provider=self.name.value,
            transient=False,
        )

    def _redact(self, text: str) -> str:
        """Strip credentials that a provider embeds in URLs; identity by default."""

        return text
