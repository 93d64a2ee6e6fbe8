"""CLI commands for running and inspecting rate ingestion."""

from __future__ import annotations

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from fx_ingest.services.orchestrator import CycleStatus, get_orchestrator
from fx_ingest.services.rate_service import get_rate_service


@click.command("refresh-rates")
@with_appcontext
def refresh_rates() -> None:
    """Run one ingestion cycle and print its outcome."""

    result = get_orchestrator(current_app).run_cycle()
    click.echo(f"Cycle status: {result.status.value}")
    for category, outcome in result.categories.items():
        source = outcome.provider or "none"
        click.echo(f"  {category.value}: provider={source} updated={outcome.updated}")
        for error in outcome.errors:
            click.echo(f"    error: {error}")
    if result.fallback_applied:
        click.echo(f"  fallback entries applied: {result.fallback_applied}")

    if result.status is CycleStatus.FAILED:
        raise click.ClickException("No live or fallback rates were available.")


@click.command("rates-health")
@with_appcontext
def rates_health() -> None:
    """Print the ingestion health report as JSON."""

    report = get_rate_service(current_app).health_check()
    click.echo(json.dumps(report, indent=2, sort_keys=True))
