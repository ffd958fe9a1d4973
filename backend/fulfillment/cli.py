# Overview: Flask CLI command groups for bootstrap, catalog seeding, and ledger inspection.

# backend/fulfillment/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "fulfillment:create_app" (PowerShell: $env:FLASK_APP="fulfillment:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for managed schemas).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog seed
#   Create the default catalog with opening stock (skips existing codes).
# - python -m flask catalog receive --code DFT-P --quantity 5
#   Receive units into stock; mints serials.
# - python -m flask catalog list
#
# Users:
# - python -m flask users create --username alice --role buyer
#
# Ledger:
# - python -m flask ledger check
#   Verify available quantity matches unconsumed serials; exits 1 on mismatch.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import FulfillmentError
from .models import User, USER_ROLES
from .services import inventory_service, role_service


# (code, name, variant, price_cents, opening quantity)
DEFAULT_CATALOG = [
    ("DFT-P", "drafter", "premium_drafter", 40000, 15),
    ("DFT-S", "drafter", "standard_drafter", 35000, 25),
    ("DFT-B", "drafter", "budget_drafter", 30000, 30),
    ("WLC-S", "white_lab_coat", "S", 23000, 12),
    ("WLC-M", "white_lab_coat", "M", 23000, 20),
    ("WLC-L", "white_lab_coat", "L", 23000, 18),
    ("WLC-XL", "white_lab_coat", "XL", 23000, 10),
    ("WLC-XXL", "white_lab_coat", "XXL", 23000, 5),
    ("BLC-S", "brown_lab_coat", "S", 23000, 8),
    ("BLC-M", "brown_lab_coat", "M", 23000, 15),
    ("BLC-L", "brown_lab_coat", "L", 23000, 12),
    ("BLC-XL", "brown_lab_coat", "XL", 23000, 7),
    ("BLC-XXL", "brown_lab_coat", "XXL", 23000, 3),
    ("CALC-MS", "calculator", "MS", 95000, 20),
    ("CALC-ES", "calculator", "ES", 95000, 25),
    ("CALC-ESP", "calculator", "ES-Plus", 100000, 15),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask catalog seed' to load products.")


@click.group('catalog')
def catalog_group():
    """Catalog and stock commands."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Create the default catalog with opening stock. Idempotent per product code."""
    created = 0
    for code, name, variant, price_cents, quantity in DEFAULT_CATALOG:
        try:
            inventory_service.get_product_by_code(code)
            click.echo(f"WARN  {code} already exists, skipping...")
            continue
        except FulfillmentError:
            pass

        inventory_service.create_product(
            code=code,
            name=name,
            variant=variant,
            price_cents=price_cents,
            opening_quantity=quantity,
        )
        created += 1
        click.echo(f"PASS Created {code} ({name} / {variant}) with {quantity} units")

    click.echo(f"DONE {created} products created.")


@catalog_group.command('receive')
@click.option('--code', required=True, help='Product code, e.g. DFT-P')
@click.option('--quantity', type=int, required=True, help='Units to receive')
@with_appcontext
def receive_cli(code, quantity):
    """Receive units into stock and mint their serials."""
    try:
        product = inventory_service.get_product_by_code(code)
        serials = inventory_service.receive_stock(product.id, quantity)
    except FulfillmentError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Received {len(serials)} x {code}: {serials[0]} .. {serials[-1]}")


@catalog_group.command('list')
@with_appcontext
def list_catalog():
    """List products with available quantity."""
    products = inventory_service.list_products()
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Code':<12} {'Name':<18} {'Variant':<18} {'Price':>8} {'Avail':>6}")
    click.echo("="*72)
    for p in products:
        click.echo(
            f"{p.id:<5} {p.code:<12} {p.name:<18} {(p.variant or '-'):<18} "
            f"{p.price_cents / 100:>8.2f} {p.available_quantity:>6}"
        )
    click.echo("="*72 + "\n")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--role', type=click.Choice(USER_ROLES), default=None, help='Role (left unset if omitted)')
@with_appcontext
def create_user_cli(username, role):
    """Create a user. Buyers and sellers without a role get one on first checkout."""
    if db.session.query(User).filter_by(username=username).first():
        raise click.ClickException(f"User '{username}' already exists")
    try:
        user = role_service.create_user(username, role)
    except FulfillmentError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role or 'unset'})")


@click.group('ledger')
def ledger_group():
    """Serial ledger inspection."""


@ledger_group.command('check')
@with_appcontext
def check_ledger():
    """Verify available quantity equals unconsumed serials for every product."""
    problems = inventory_service.verify_quantity_conservation()
    if not problems:
        click.echo("PASS Serial ledger consistent with stock counters.")
        return

    for problem in problems:
        click.echo(f"FAIL {problem}")
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
