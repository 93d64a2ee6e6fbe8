"""ExchangeRate-API (v6) client: secondary fiat source used when the primary fails."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from fx_ingest.models import CurrencyCategory

from .base import HTTPProviderClient, ProviderName, positive_rates
from .http_client import HTTPClient, HTTPClientConfig


class ExchangeRateAPIClient(HTTPProviderClient):
    name = ProviderName.EXCHANGE_RATE_API
    category = CurrencyCategory.FIAT
    credential_key = "EXCHANGERATE_API_KEY"

    def __init__(self, http: HTTPClient, api_key: str) -> None:
        super().__init__(http)
        self._api_key = api_key

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> ExchangeRateAPIClient:
        http = HTTPClient(
            HTTPClientConfig(
                base_url=str(config.get("EXCHANGERATE_API_BASE_URL")),
                timeout=float(config.get("REQUEST_TIMEOUT_SECONDS", 10)),
            )
        )
        return cls(http, api_key=str(config[cls.credential_key]))

    def fetch_fiat_rates(self, base_currency: str, symbols: Iterable[str]) -> dict[str, Decimal]:
        base = base_currency.strip().upper()
        wanted = {code.strip().upper() for code in symbols}
        path = f"/{self._api_key}/latest/{base}"
        payload = self._checked(path)

        raw = payload.get("conversion_rates")
        if not isinstance(raw, dict):
            raise self._malformed("response missing 'conversion_rates' object", path)
        wanted_raw = {code: value for code, value in raw.items() if str(code).upper() in wanted}
        return positive_rates(wanted_raw, provider=self.name, endpoint=self._redact(path))

    def validate(self) -> None:
        self._checked(f"/{self._api_key}/quota")

    def _checked(self, path: str) -> dict[str, Any]:
        payload = self._get(path)
        if payload.get("result") != "success":
            raise self._malformed(f"error result '{payload.get('error-type', 'unknown')}'", path)
        return payload

    def _redact(self, text: str) -> str:
        return text.replace(self._api_key, "***") if self._api_key else text
