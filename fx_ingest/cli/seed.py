"""CLI command for seeding the supported currency set."""

from __future__ import annotations

import click
from flask.cli import with_appcontext

from fx_ingest.services.seed import seed_currencies


@click.command("seed-currencies")
@with_appcontext
def seed_currencies_command() -> None:
    """Insert any supported currency missing from the database."""

    result = seed_currencies()
    if result.created:
        click.echo(f"Seeded {len(result.created)} currencies: {', '.join(result.created)}.")
    else:
        click.echo("All supported currencies already present.")
