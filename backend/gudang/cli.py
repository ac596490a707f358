# Overview: Flask CLI command group for seeding and maintaining the stock ledger.

# backend/gudang/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to gudang (PowerShell: $env:FLASK_APP="gudang").
# - Use: python -m flask inventory <command> [options]
#
# - python -m flask inventory seed
#   Idempotent demo data: categories, units, two outlets, a few products with central stock.
# - python -m flask inventory rebuild-usage
#   Recount per-location usage counters from movement history.
# - python -m flask inventory low-stock [--location all] [--limit 5]
#   Print per-location low-stock alerts.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import analytics_service, master_data_service, prioritization_service


DEMO_CATEGORIES = ["Beverages", "Snacks", "Stationery"]
DEMO_UNITS = ["pcs", "box", "bottle"]
DEMO_OUTLETS = [
    {"name": "North Branch", "address": "Jl. Utara 1", "latitude": -6.2001, "longitude": 106.8166},
    {"name": "South Branch", "address": "Jl. Selatan 9", "latitude": -6.2615, "longitude": 106.8106},
]
DEMO_PRODUCTS = [
    ("Mineral Water 600ml", "Beverages", "bottle", 120, 24),
    ("Potato Chips", "Snacks", "pcs", 40, 10),
    ("Notebook A5", "Stationery", "pcs", 8, 10),
]


@click.group('inventory')
def inventory_group():
    """Stock ledger bootstrap and maintenance commands."""


@inventory_group.command('seed')
@with_appcontext
def seed_inventory():
    """
    Create demo master data with opening central stock.

    Skips everything when products already exist.
    """
    if db.session.query(Product).first() is not None:
        click.echo("SKIP Products already exist; nothing seeded.")
        return

    categories = {name: master_data_service.create_category({"name": name}) for name in DEMO_CATEGORIES}
    units = {name: master_data_service.create_unit({"name": name}) for name in DEMO_UNITS}
    click.echo(f"PASS Created {len(categories)} categories, {len(units)} units")

    for payload in DEMO_OUTLETS:
        outlet = master_data_service.create_outlet(dict(payload))
        click.echo(f"PASS Created outlet {outlet.label}")

    for name, category, unit, stock, minimum in DEMO_PRODUCTS:
        product = master_data_service.create_product({
            "name": name,
            "category_id": categories[category].id,
            "unit_id": units[unit].id,
            "minimum_low_stock": minimum,
            "initial_stock": stock,
        })
        click.echo(f"PASS Created product {product.sku} ({product.name}) stock={product.stock}")


@inventory_group.command('rebuild-usage')
@with_appcontext
def rebuild_usage():
    """Recount product usage counters from movement history."""
    written = prioritization_service.rebuild_usage_from_history()
    click.echo(f"PASS Rebuilt {written} usage counters")


@inventory_group.command('low-stock')
@click.option('--location', 'location_filter', default='all', help='all | central | outlet:<id>')
@click.option('--limit', default=20, type=int, help='Maximum rows to print')
@with_appcontext
def low_stock(location_filter, limit):
    """Print low-stock alerts per location."""
    result = analytics_service.low_stock_alerts(location_filter=location_filter, limit=limit)
    click.echo(f"Low stock items: {result['low_stock_count']} (as of {result['as_of']})")
    for item in result["low_stock_priorities"]:
        click.echo(
            f"  {item['location_label']:<28} {item['sku']:<16} {item['name']:<32} "
            f"stock={item['current_stock']} min={item['minimum_low_stock']} gap={item['gap']}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(inventory_group)
