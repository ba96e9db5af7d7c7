# Overview: Flask CLI command groups for bootstrap, pre-booking sweeps, and legacy import.

# backend/apparel_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog inspection:
# - python -m flask products list [--low-stock]
#   List products with price, GST rate and stock.
#
# Orders and pre-bookings:
# - python -m flask orders sweep-overdue [--created-by emp-7]
#   Convert every pending pre-booking whose delivery time has passed.
# - python -m flask orders run-sweeper --interval 60
#   Run the sweep on a timer in the foreground until Ctrl+C.
# - python -m flask orders migrate-legacy export.json
#   Merge and import single-product orders from an older client's JSON export.

import json
import time

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .money import format_inr
from .services import catalog_service, stock_service
from .services.legacy_migration import import_legacy_orders
from .services.order_service import sweep_overdue
from .services.prebooking_sweeper import PreBookingSweeper


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    click.echo("BUILD  Creating missing tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('list')
@click.option('--low-stock', is_flag=True, help='Only products below their low-stock threshold')
@with_appcontext
def list_products_cli(low_stock):
    """List products."""
    products = stock_service.low_stock_products() if low_stock else catalog_service.list_products()

    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'SKU':<14} {'Name':<28} {'Price':>12} {'GST':>4} {'Stock':>6} {'Active'}")
    click.echo("="*80)

    for p in products:
        active_str = "Yes" if p.is_active else "No"
        click.echo(
            f"{p.id:<5} {p.sku:<14} {p.name[:28]:<28} {format_inr(p.base_price_paise):>12} "
            f"{p.gst_rate:>3}% {p.stock_qty:>6} {active_str}"
        )

    click.echo("="*80 + "\n")


@click.group('orders')
def orders_group():
    """Order lifecycle and migration commands."""


@orders_group.command('sweep-overdue')
@click.option('--created-by', default=None, help="Only this employee's pre-bookings")
@with_appcontext
def sweep_overdue_cli(created_by):
    """Convert overdue pre-bookings once."""
    result = sweep_overdue(created_by)
    click.echo(f"PASS Converted: {result.converted}  Failed: {result.failed}  Skipped: {result.skipped}")
    for error in result.errors:
        click.echo(f"FAIL Order {error['order_id']}: {error['error']}")


@orders_group.command('run-sweeper')
@click.option('--interval', type=float, default=None, help='Seconds between sweeps')
@click.option('--created-by', default=None, help="Only this employee's pre-bookings")
@with_appcontext
def run_sweeper_cli(interval, created_by):
    """Run the overdue sweep on a timer until interrupted."""
    app = current_app._get_current_object()
    interval = interval or app.config.get("PREBOOKING_SWEEP_INTERVAL_SECONDS", 60)
    sweeper = PreBookingSweeper(app, interval_seconds=interval, created_by=created_by)
    sweeper.start()
    click.echo(f"START Sweeping overdue pre-bookings every {interval}s (Ctrl+C to stop)")
    try:
        while sweeper.is_alive:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("\nSTOP Stopping sweeper...")
    finally:
        sweeper.stop()
    click.echo(f"DONE {sweeper.ticks} sweeps run, {sweeper.skipped_ticks} skipped")


@orders_group.command('migrate-legacy')
@click.argument('export_file', type=click.File('r', encoding='utf-8'))
@with_appcontext
def migrate_legacy_cli(export_file):
    """
    Import single-product orders from a JSON export.

    The file holds a list of order documents, or {"orders": [...]}.
    Stock and bills are not touched; re-running skips groups already imported.
    """
    payload = json.load(export_file)
    if isinstance(payload, dict):
        payload = payload.get("orders", [])
    if not isinstance(payload, list):
        raise click.ClickException("Export must be a list of orders or {\"orders\": [...]}")

    stats = import_legacy_orders(payload)
    click.echo(
        f"PASS Migrated {stats['migrated']} orders from {stats['merged_from']} documents "
        f"({stats['skipped']} already imported, {stats['invalid']} invalid)"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(orders_group)
