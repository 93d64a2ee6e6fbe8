"""Open Exchange Rates client: primary source of fiat rates."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from fx_ingest.models import CurrencyCategory

from .base import HTTPProviderClient, ProviderName, positive_rates
from .http_client import HTTPClient, HTTPClientConfig

LATEST_PATH = "/latest.json"
USAGE_PATH = "/usage.json"


class OpenExchangeRatesClient(HTTPProviderClient):
    name = ProviderName.OPEN_EXCHANGE_RATES
    category = CurrencyCategory.FIAT
    credential_key = "OPENEXCHANGERATES_APP_ID"

    def __init__(self, http: HTTPClient, app_id: str) -> None:
        super().__init__(http)
        self._app_id = app_id

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> OpenExchangeRatesClient:
        http = HTTPClient(
            HTTPClientConfig(
                base_url=str(config.get("OPENEXCHANGERATES_BASE_URL")),
                timeout=float(config.get("REQUEST_TIMEOUT_SECONDS", 10)),
            )
        )
        return cls(http, app_id=str(config[cls.credential_key]))

    def fetch_fiat_rates(self, base_currency: str, symbols: Iterable[str]) -> dict[str, Decimal]:
        base = base_currency.strip().upper()
        wanted = sorted({code.strip().upper() for code in symbols})
        params = {"app_id": self._app_id, "base": base, "symbols": ",".join(wanted)}
        payload = self._get(LATEST_PATH, params=params)

        raw = payload.get("rates")
        if not isinstance(raw, dict):
            raise self._malformed("response missing 'rates' object", LATEST_PATH)
        wanted_raw = {code: value for code, value in raw.items() if str(code).upper() in wanted}
        rates = positive_rates(wanted_raw, provider=self.name, endpoint=LATEST_PATH)
        if base in wanted:
            rates.setdefault(base, Decimal("1"))
        return rates

    def validate(self) -> None:
        payload = self._get(USAGE_PATH, params={"app_id": self._app_id})
        if payload.get("error"):
            raise self._malformed(f"usage check rejected: {payload.get('description')}", USAGE_PATH)

    def _redact(self, text: str) -> str:
        return text.replace(self._app_id, "***") if self._app_id else text
