"""Shared pytest fixtures."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import update

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from fx_ingest import create_app  # noqa: E402
from fx_ingest.database import SessionLocal, dispose_engine  # noqa: E402
from fx_ingest.models import Currency  # noqa: E402
from fx_ingest.services.orchestrator import (  # noqa: E402
    ORCHESTRATOR_EXT_KEY,
    IngestionOrchestrator,
)
from fx_ingest.services.rate_service import init_rate_service  # noqa: E402
from fx_ingest.services.rate_store import SqlRateStore  # noqa: E402
from fx_ingest.services.seed import SUPPORTED_CURRENCIES  # noqa: E402


@pytest.fixture(scope="session")
def alembic_config(tmp_path_factory: pytest.TempPathFactory) -> Config:
    db_dir = tmp_path_factory.mktemp("db")
    database_url = f"sqlite:///{db_dir / 'test.db'}"

    alembic_cfg = Config(str(ROOT_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    return alembic_cfg


@pytest.fixture(scope="session")
def app(alembic_config: Config) -> Iterator:
    """Session-wide Flask application configured with a temporary database."""

    database_url = alembic_config.get_main_option("sqlalchemy.url")
    command.upgrade(alembic_config, "head")

    dispose_engine()
    flask_app = create_app("testing", {"SQLALCHEMY_DATABASE_URI": database_url})

    yield flask_app

    dispose_engine()
    command.downgrade(alembic_config, "base")


@pytest.fixture()
def client(app):
    """Provide a Flask test client."""

    with app.test_client() as client:
        yield client


@pytest.fixture()
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def seeded_db(app_ctx) -> Iterator[SqlRateStore]:
    """Restore the seeded placeholder rates and clear timestamps around a test."""

    _reset_currencies()
    yield SqlRateStore()
    SessionLocal.rollback()
    _reset_currencies()


@pytest.fixture()
def install_orchestrator(app):
    """Swap the app's orchestrator (and the rate service over it) for a test."""

    previous = app.extensions[ORCHESTRATOR_EXT_KEY]
    refresh_state = app.extensions.pop("fx_refresh_state", None)

    def _install(orchestrator: IngestionOrchestrator) -> IngestionOrchestrator:
        app.extensions[ORCHESTRATOR_EXT_KEY] = orchestrator
        init_rate_service(app, orchestrator)
        return orchestrator

    yield _install

    app.extensions[ORCHESTRATOR_EXT_KEY] = previous
    init_rate_service(app, previous)
    app.extensions.pop("fx_refresh_state", None)
    if refresh_state is not None:
        app.extensions["fx_refresh_state"] = refresh_state


def _reset_currencies() -> None:
    session = SessionLocal()
    for code, _name, _category, rate in SUPPORTED_CURRENCIES:
        session.execute(
            update(Currency)
            .where(Currency.code == code)
            .values(rate=rate, last_updated=None, is_active=True)
        )
    session.commit()
