# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/retail_inventory/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to retail_inventory (PowerShell: $env:FLASK_APP="retail_inventory").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (safe to re-run).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Product inspection:
# - python -m flask products list [--all] [--category SNACKS]
#   List products with quantity and threshold.
# - python -m flask products low-stock
#   List active products at or below their min_stock with a reorder suggestion.
# - python -m flask products restock 3 24 --reason "Weekly delivery"
#   Receive stock as DEFAULT_ACTOR_ID.
#
# Alerts:
# - python -m flask alerts list
#   List unresolved low-stock alerts.
# - python -m flask alerts scan
#   Raise alerts for every low product that has none open.
# - python -m flask alerts purge-resolved --yes
#   Delete resolved alerts.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .exceptions import InventoryError
from .services import alert_service, inventory_service, stock_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Schema ready.")


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
    """Product inspection commands."""


@products_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive products')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_products(include_inactive, category):
    """List products with stock levels."""
    products = inventory_service.list_products(include_inactive=include_inactive, category=category)

    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'SKU':<14} {'Name':<30} {'Category':<12} {'Qty':>6} {'Min':>6} {'Active':<6}")
    click.echo("="*90)

    for p in products:
        active_str = "Yes" if p.is_active else "No"
        click.echo(
            f"{p.id:<5} {(p.sku or '-'):<14} {p.name[:30]:<30} {p.category[:12]:<12} "
            f"{p.quantity:>6} {p.min_stock:>6} {active_str:<6}"
        )


@products_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products at or below their minimum stock."""
    products = inventory_service.list_low_stock_products()

    if not products:
        click.echo("PASS No low-stock products.")
        return

    click.echo(f"WARN {len(products)} product(s) low on stock:")
    for p in products:
        click.echo(
            f"  [{p.id}] {p.name}: {p.quantity} on hand, min {p.min_stock}, "
            f"reorder {alert_service.reorder_quantity(p)}"
        )


@products_group.command('restock')
@click.argument('product_id', type=int)
@click.argument('quantity', type=int)
@click.option('--reason', default=None, help='Reason recorded on the movement')
@click.option('--resolve-alerts/--keep-alerts', default=None,
              help='Override ALERT_AUTO_RESOLVE_ON_RESTOCK for this call')
@with_appcontext
def restock_product(product_id, quantity, reason, resolve_alerts):
    """Receive QUANTITY units of PRODUCT_ID."""
    try:
        change = stock_service.restock(
            product_id=product_id,
            quantity=quantity,
            actor_user_id=current_app.config["DEFAULT_ACTOR_ID"],
            reason=reason,
            resolve_alerts=resolve_alerts,
        )
    except InventoryError as e:
        raise click.ClickException(e.message)

    m = change.movement
    click.echo(f"PASS Product {product_id}: {m.previous_quantity} -> {m.new_quantity}")
    if change.resolved_alert is not None:
        click.echo(f"PASS Resolved alert {change.resolved_alert.id}")
    if change.alert is not None:
        click.echo(f"WARN Still low on stock, alert {change.alert.id} raised")


@click.group('alerts')
def alerts_group():
    """Low-stock alert commands."""


@alerts_group.command('list')
@with_appcontext
def list_alerts():
    """List unresolved alerts, newest first."""
    alerts = alert_service.list_unresolved()

    if not alerts:
        click.echo("No unresolved alerts.")
        return

    for a in alerts:
        name = a.product.name if a.product else f"product {a.product_id}"
        click.echo(
            f"  [{a.id}] {name}: {a.current_quantity} <= {a.min_stock_level} "
            f"(since {a.alert_date.isoformat()})"
        )


@alerts_group.command('scan')
@with_appcontext
def scan_alerts():
    """Raise alerts for low products that have none open."""
    try:
        created = alert_service.scan_all_products()
    except InventoryError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Scan complete: {len(created)} new alert(s)")


@alerts_group.command('purge-resolved')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def purge_resolved(yes):
    """Delete resolved alerts. Open alerts are never touched."""
    if not yes:
        click.confirm("WARN This will DELETE all resolved alerts. Are you sure?", abort=True)
    try:
        deleted = alert_service.purge_resolved()
    except InventoryError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Deleted {deleted} resolved alert(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(alerts_group)
