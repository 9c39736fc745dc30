# Overview: Flask CLI command groups for bootstrap, seeding, and PIN users.

# backend/barpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables (idempotent). Use migrations for schema changes.
# - python -m flask system seed
#   Insert demo users, menu items and a happy-hour rule when the tables are empty.
# - python -m flask system clear-sales --yes
#   Delete every sale record (void audit entries included).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List users with role and active status (PIN hashes are never printed).
# - python -m flask users create --name Sarah --role manager --pin 2222
#   Create a PIN user. Hash scheme follows PIN_HASH_SCHEME.

from datetime import time
from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import HappyHourRule, InventoryItem, User
from .models.auth import VALID_ROLES
from .repositories.sql import sql_repositories
from .services.auth_service import hash_pin
from .services.sale_service import clear_sales
from .time_utils import WEEKDAY_NAMES
from .validation import ValidationError

DEMO_USERS = [
    ("Jan", "admin", "1111"),
    ("Sarah", "manager", "2222"),
    ("Mike", "bartender", "3333"),
]

# (name, price, category, tier, stock_count)
DEMO_ITEMS = [
    ("Bud Light", "4.00", "beer", "domestic", 48),
    ("Busch Light", "4.00", "beer", "domestic", 48),
    ("White Claw", "5.00", "seltzer", None, 24),
    ("Titos", "6.00", "liquor", "call", None),
    ("Grey Goose", "9.00", "liquor", "premium", None),
    ("Well Vodka", "3.50", "liquor", "well", None),
]


@click.group('system')
def system_group():
    """System bootstrap and maintenance commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('seed')
@with_appcontext
def seed_system():
    """
    Insert demo data for a fresh install.

    Each table is only seeded while empty, so running twice is harmless.
    Demo PINs are public: change them before opening the bar.
    """
    scheme = current_app.config.get("PIN_HASH_SCHEME", "sha256")

    if db.session.query(User).count() == 0:
        for name, role, pin in DEMO_USERS:
            db.session.add(User(name=name, role=role, pin_hash=hash_pin(pin, scheme)))
        click.echo(f"PASS Created {len(DEMO_USERS)} users ({scheme} PINs)")
    else:
        click.echo("SKIP Users already present")

    if db.session.query(InventoryItem).count() == 0:
        for name, price, category, tier, stock_count in DEMO_ITEMS:
            db.session.add(InventoryItem(
                name=name,
                price=Decimal(price),
                category=category,
                tier=tier,
                stock_count=stock_count,
                is_available=True,
            ))
        click.echo(f"PASS Created {len(DEMO_ITEMS)} menu items")
    else:
        click.echo("SKIP Menu items already present")

    if db.session.query(HappyHourRule).count() == 0:
        db.session.add(HappyHourRule(
            name="Weekday Beer Happy Hour",
            start_time=time(16, 0),
            end_time=time(18, 0),
            category="beer",
            discount_amount=Decimal("1.00"),
            days=list(WEEKDAY_NAMES[:5]),
        ))
        click.echo("PASS Created happy-hour rule")
    else:
        click.echo("SKIP Happy-hour rules already present")

    db.session.commit()


@system_group.command('clear-sales')
@click.option('--yes', is_flag=True, help='Confirm deletion of all sales')
@with_appcontext
def clear_sales_cli(yes):
    """Delete all sale records."""
    if not yes:
        click.echo("FAIL Refusing to clear sales without --yes")
        return
    count = clear_sales(sql_repositories())
    click.echo(f"PASS Deleted {count} sale record(s)")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='4-digit PIN')
@with_appcontext
def create_user_cli(name, role, pin):
    """Create a PIN user. Only admin and manager PINs can authorize voids."""
    scheme = current_app.config.get("PIN_HASH_SCHEME", "sha256")
    try:
        pin_hash = hash_pin(pin, scheme)
    except ValidationError as e:
        click.echo(f"FAIL {e.message}")
        return

    user = User(name=name, role=role, pin_hash=pin_hash)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {name} with role '{role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<20} {'Role':<12} {'Active':<8}")
    click.echo("="*60)
    for user in users:
        click.echo(f"{user.id:<5} {user.name:<20} {user.role:<12} {str(user.is_active):<8}")
    click.echo("="*60 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
