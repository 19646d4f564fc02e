"""
Management commands for reconciling snapshots from the command line
"""
import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .services.production_timeline import (
    ProductionTimelineService,
    SnapshotPayloadError,
    TimelineSettings,
    TimelineSnapshot,
)


def _load_snapshot(path):
    try:
        with open(path, encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}")
    try:
        return TimelineSnapshot.from_payload(payload)
    except SnapshotPayloadError as e:
        raise click.ClickException(f"{path} is not a valid snapshot: {e}")


@click.command('reconcile-snapshot')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--now', 'now', default=None, help='Reference time (ISO-8601); defaults to the current time.')
@click.option('--counts-only', is_flag=True, help='Print only the dashboard phase counts.')
@click.option('--summary', is_flag=True, help='Print the per-resource occupancy summary.')
@with_appcontext
def reconcile_snapshot_command(path, now, counts_only, summary):
    """Reconcile a snapshot JSON file and print the result"""
    snapshot = _load_snapshot(path)
    settings = TimelineSettings.from_config(current_app.config)
    try:
        if counts_only:
            output = ProductionTimelineService.aggregate_phase_counts(snapshot).to_dict()
        elif summary:
            rows = ProductionTimelineService.summarize_occupancy(snapshot, now=now, settings=settings)
            output = [row.to_dict() for row in rows]
        else:
            output = ProductionTimelineService.reconcile(snapshot, now=now, settings=settings).to_dict()
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"✅ Reconciled {len(snapshot.batches)} batches from {path}", err=True)
    click.echo(json.dumps(output, indent=2))


@click.command('timeline-config')
@with_appcontext
def timeline_config_command():
    """Show the active timeline settings and environment diagnostics"""
    settings = TimelineSettings.from_config(current_app.config)
    diagnostics = current_app.config.get("ENV_DIAGNOSTICS") or {}
    click.echo(f"Environment: {diagnostics.get('active', 'unknown')}")
    click.echo(f"Timezone: {settings.timezone}")
    click.echo(f"Reference hour: {settings.reference_hour:02d}:00")
    for phase, days in sorted(settings.durations.items()):
        click.echo(f"  {phase}: {days} day(s)")
    for warning in diagnostics.get("warnings", ()):
        click.echo(f"⚠️  {warning}")


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(reconcile_snapshot_command)
    app.cli.add_command(timeline_config_command)
