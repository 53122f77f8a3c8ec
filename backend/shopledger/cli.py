# Overview: Flask CLI command group for bootstrap, demo data and ledger checks.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask shop <command> [options]
#
# - python -m flask shop init
#   Create all tables and the default shop settings (idempotent).
# - python -m flask shop seed-demo
#   Load the demo catalog (three categories, four products with opening stock).
# - python -m flask shop reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask shop replay-check [--product-id <id>]
#   Rebuild stock from movements and report products whose count disagrees.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services.ledger_service import replay_stock
from .services.seed_service import seed_demo_data
from .services.settings_service import get_settings
from .validation import NotFoundError


@click.group('shop')
def shop_group():
    """Shop bootstrap and maintenance commands."""


@shop_group.command('init')
@with_appcontext
def init_shop():
    """Create tables and the default settings record."""
    click.echo("BUILD  Creating tables...")
    db.create_all()

    settings = get_settings()
    click.echo(f"PASS Shop ready: {settings.shop_name} ({settings.currency}, {settings.timezone})")


@shop_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Load the demo catalog into an empty database."""
    db.create_all()
    if not seed_demo_data():
        click.echo("WARN Catalog is not empty, skipping demo data.")
        return

    count = db.session.query(Product).count()
    current_app.logger.info("Seeded demo catalog with %s products", count)
    click.echo(f"PASS Loaded {count} demo products.")


@shop_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the movement history!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask shop init' to initialize.")


@shop_group.command('replay-check')
@click.option('--product-id', default=None, help='Check a single product')
@with_appcontext
def replay_check(product_id):
    """
    Verify stored stock against a replay of each product's movements.

    Exits with status 1 when any product is inconsistent.
    """
    if product_id:
        product_ids = [product_id]
    else:
        product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.name.asc())]

    failures = 0
    for pid in product_ids:
        try:
            result = replay_stock(pid)
        except NotFoundError as e:
            failures += 1
            click.echo(f"FAIL {pid}: {e}")
            continue
        if result["consistent"]:
            click.echo(f"PASS {pid}: stock {result['current_stock']} ({result['movement_count']} movements)")
            continue
        failures += 1
        click.echo(
            f"FAIL {pid}: stored {result['current_stock']}, replayed {result['replayed_stock']}, "
            f"{len(result['breaks'])} chain break(s)"
        )

    click.echo(f"\n{len(product_ids) - failures}/{len(product_ids)} products consistent")
    if failures:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(shop_group)
