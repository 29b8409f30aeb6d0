# Overview: Flask CLI command group for seeding and inspecting the vending network.

# backend/vendnexus/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Set FLASK_APP to vendnexus (PowerShell: $env:FLASK_APP="vendnexus").
# - Use: python -m flask vend <command> [options]
#
# - python -m flask vend seed [--sales 50] [--seed 42]
#   Load the demo machines, products and mock sales into an empty database.
# - python -m flask vend summary [--machine-id m1]
#   Print revenue, profit and per-product revenue from the ledger.
# - python -m flask vend alerts
#   List low-stock, expired and near-expiry products.
#
# The default database is in-memory, so these are mostly useful against a
# file-backed DATABASE_URL (e.g. sqlite:///vendnexus.db).

import click
from flask.cli import with_appcontext

from .extensions import db
from .money import to_dollars
from .seed import seed_database
from .services import catalog_service, ledger_service
from .time_utils import to_utc_z


@click.group('vend')
def vend_group():
    """Vending network commands."""


@vend_group.command('seed')
@click.option('--sales', 'sales_count', type=int, default=50, show_default=True, help='Mock sales to generate')
@click.option('--seed', 'random_seed', type=int, default=None, help='Random seed for reproducible mock sales')
@with_appcontext
def seed_cli(sales_count, random_seed):
    """Seed the demo network."""
    db.create_all()
    try:
        counts = seed_database(sales_count=sales_count, random_seed=random_seed)
    except RuntimeError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(
        f"PASS Seeded {counts['machines']} machines, "
        f"{counts['products']} products, {counts['sales']} sales"
    )


@vend_group.command('summary')
@click.option('--machine-id', default=None, help='Only this machine')
@with_appcontext
def summary_cli(machine_id):
    """Print ledger totals."""
    summary = ledger_service.aggregate(machine_id=machine_id)

    click.echo("\n" + "="*60)
    click.echo(f"Sales:   {summary.sale_count}  ({summary.total_units} units)")
    click.echo(f"Revenue: ${to_dollars(summary.total_revenue_cents):.2f}")
    click.echo(f"Profit:  ${to_dollars(summary.total_profit_cents):.2f}  ({summary.margin_pct}% margin)")
    click.echo("="*60)

    if not summary.revenue_by_product:
        click.echo("No sales recorded.")
        return

    click.echo(f"{'Product':<30} {'Revenue':>10}")
    for name, cents in summary.revenue_by_product.items():
        click.echo(f"{name:<30} {to_dollars(cents):>10.2f}")
    click.echo("")


@vend_group.command('alerts')
@with_appcontext
def alerts_cli():
    """List stock and expiry alerts."""
    low = catalog_service.low_stock_products()
    alerts = catalog_service.expiry_alerts()

    click.echo(f"\nLOW STOCK ({len(low)})")
    for p in low:
        click.echo(f"   {p.id:<16} {p.name:<24} {p.machine_id:<6} qty {p.quantity} / min {p.min_quantity}")

    click.echo(f"\nEXPIRED ({len(alerts['expired'])})")
    for p in alerts["expired"]:
        click.echo(f"   {p.id:<16} {p.name:<24} {p.machine_id:<6} {to_utc_z(p.expiry_date)}")

    click.echo(f"\nNEAR EXPIRY ({len(alerts['near_expiry'])})")
    for p in alerts["near_expiry"]:
        click.echo(f"   {p.id:<16} {p.name:<24} {p.machine_id:<6} {to_utc_z(p.expiry_date)}")
    click.echo("")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(vend_group)
