"""CLI entry points."""

from __future__ import annotations

from flask import Flask

from .rates import rates_health, refresh_rates
from .seed import seed_currencies_command


def register_cli(app: Flask) -> None:
    """Register CLI commands on the given Flask app."""

    app.cli.add_command(seed_currencies_command)
    app.cli.add_command(refresh_rates)
    app.cli.add_command(rates_health)
