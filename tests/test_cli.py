from __future__ import annotations

import json

from sqlalchemy import delete

from fx_ingest.database import get_session
from fx_ingest.models import Currency


def test_seed_currencies_command_reports_existing(app, seeded_db):
    result = app.test_cli_runner().invoke(args=["seed-currencies"])

    assert result.exit_code == 0
    assert "All supported currencies already present." in result.output


def test_seed_currencies_command_inserts_missing(app, seeded_db):
    session = get_session()
    session.execute(delete(Currency).where(Currency.code == "USDT"))
    session.commit()

    result = app.test_cli_runner().invoke(args=["seed-currencies"])

    assert result.exit_code == 0
    assert "Seeded 1 currencies: USDT." in result.output


def test_refresh_rates_command_in_mock_mode(app, seeded_db):
    result = app.test_cli_runner().invoke(args=["refresh-rates"])

    assert result.exit_code == 0
    assert "Cycle status: mock" in result.output
    assert seeded_db.get_rate("EUR").last_updated is None


def test_rates_health_command_prints_json(app, seeded_db):
    result = app.test_cli_runner().invoke(args=["rates-health"])

    assert result.exit_code == 0
    report = json.loads(result.output)
    assert report["status"] == "unhealthy"
    assert report["mock_mode"] is True
    assert [item["provider"] for item in report["circuit_breakers"]] == [
        "OpenExchangeRates",
        "ExchangeRateAPI",
        "CoinGecko",
    ]
