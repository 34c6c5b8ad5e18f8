# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockpro/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@stockpro.local]
#   Idempotent bootstrap: creates tables and a default admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email staff@stockpro.local --password "Password123!" --role staff
# - python -m flask users set-role staff@stockpro.local admin
#
# Items:
# - python -m flask items seed
#   Add the starter supermarket items (skips names that already exist).
# - python -m flask items low-stock [--threshold 5]
#
# Permissions:
# - python -m flask perms list [--role staff] [--category SALES]
# - python -m flask perms show CHECKOUT
# - python -m flask perms events [--type PERMISSION_DENIED]
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired/revoked sessions older than 30 days.

import click
from flask import current_app
from flask.cli import with_appcontext

from .domain import Cashier
from .extensions import db
from .models import InventoryItem, User, ROLES, ROLE_ADMIN
from .permissions import (
    PERMISSION_DEFINITIONS,
    PermissionCategory,
    can,
    get_permission_definition,
    get_permissions_by_category,
    get_role_permissions,
)
from .services import auth_service, inventory_service, permission_service, session_service
from .services.auth_service import AuthError, PasswordValidationError
from .time_utils import to_display


DEFAULT_ADMIN_EMAIL = "admin@stockpro.local"
DEFAULT_PASSWORD = "Password123!"

CATEGORIES = [
    PermissionCategory.INVENTORY,
    PermissionCategory.SALES,
    PermissionCategory.REPORTS,
    PermissionCategory.USERS,
]

# (name, category, price in minor units, opening quantity, unit)
SEED_ITEMS = [
    ("Milo 500g", "Beverages", 50000, 10, "tin"),
    ("Peak Milk 400g", "Dairy", 180000, 24, "tin"),
    ("Golden Penny Sugar 1kg", "Groceries", 120000, 5, "bag"),
    ("Mama Gold Rice 5kg", "Groceries", 750000, 8, "bag"),
    ("Indomie Chicken 70g", "Noodles", 25000, 120, "pack"),
    ("Kings Vegetable Oil 1L", "Groceries", 220000, 3, "bottle"),
    ("Dettol Soap 110g", "Toiletries", 65000, 30, "pcs"),
    ("Coca-Cola 50cl", "Beverages", 30000, 48, "bottle"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default=DEFAULT_ADMIN_EMAIL, show_default=True, help='Email for the bootstrap admin')
@click.option('--admin-password', default=DEFAULT_PASSWORD, help='Password for the bootstrap admin')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Create tables and the first admin account.

    Skips the admin if any admin already exists.
    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing StockPro...")
    db.create_all()
    click.echo("PASS Tables ready")

    if db.session.query(User).filter_by(role=ROLE_ADMIN).first():
        click.echo("WARN  An admin already exists, skipping admin creation")
        return

    try:
        user = auth_service.create_user(admin_email, admin_password, role=ROLE_ADMIN)
    except (AuthError, PasswordValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created admin: {user.email}")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users_cli():
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return
    for u in users:
        status = "active" if u.is_active else "inactive"
        click.echo(f"{u.id:>4}  {u.email:<40} {u.role:<6} {status}")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='staff', show_default=True, help='Role')
@with_appcontext
def create_user_cli(email, password, role):
    """
    Create a new user.

    Password must be 8+ chars with uppercase, lowercase, digit and special char.
    """
    try:
        user = auth_service.create_user(email, password, role=role)
    except (AuthError, PasswordValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.email} with role '{user.role}'")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(list(ROLES)))
@with_appcontext
def set_role_cli(email, role):
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User {email} not found")
    try:
        auth_service.set_user_role(user.id, role)
    except AuthError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {user.email} is now '{role}'")


@click.group('items')
def items_group():
    """Inventory item commands."""


@items_group.command('seed')
@click.option('--actor-email', default=DEFAULT_ADMIN_EMAIL, show_default=True, help='User recorded on opening stock')
@with_appcontext
def seed_items(actor_email):
    """Add starter items with opening stock (idempotent by name)."""
    actor_user = db.session.query(User).filter_by(email=actor_email).first()
    actor = Cashier.from_user(actor_user) if actor_user else Cashier(user_id=None, email=actor_email)

    created = 0
    for name, category, price_cents, quantity, unit in SEED_ITEMS:
        if db.session.query(InventoryItem).filter_by(name=name).first():
            click.echo(f"WARN  '{name}' already exists, skipping...")
            continue
        inventory_service.create_item(
            patch={
                "name": name,
                "category": category,
                "price_cents": price_cents,
                "quantity": quantity,
                "unit": unit,
            },
            actor=actor,
        )
        created += 1
    click.echo(f"PASS Seeded {created} item(s)")


@items_group.command('low-stock')
@click.option('--threshold', type=int, default=None, help='Defaults to STOCKPRO_LOW_STOCK_THRESHOLD')
@with_appcontext
def low_stock_cli(threshold):
    if threshold is None:
        threshold = current_app.config["STOCKPRO_LOW_STOCK_THRESHOLD"]
    items = inventory_service.low_stock_items(threshold)
    if not items:
        click.echo(f"No items at or below {threshold}.")
        return
    for i in items:
        click.echo(f"{i.id:>4}  {i.name:<40} {i.quantity:>6} {i.unit}")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', type=click.Choice(list(ROLES)), default=None)
@click.option('--category', type=click.Choice(CATEGORIES), default=None)
@with_appcontext
def list_perms_cli(role, category):
    granted = set(get_role_permissions(role)) if role else None
    definitions = get_permissions_by_category(category) if category else PERMISSION_DEFINITIONS
    for code, name, _desc, cat in definitions:
        if granted is not None and code not in granted:
            continue
        click.echo(f"{cat:<10} {code:<24} {name}")


@perms_group.command('show')
@click.argument('code')
@with_appcontext
def show_perm_cli(code):
    perm = get_permission_definition(code.upper())
    if perm is None:
        raise click.ClickException(f"Unknown permission: {code}")
    roles = [r for r in ROLES if can(r, perm["code"])]
    click.echo(f"{perm['code']} ({perm['category']})")
    click.echo(f"  {perm['name']}: {perm['description']}")
    click.echo(f"  Granted to: {', '.join(roles)}")


@perms_group.command('events')
@click.option('--limit', type=int, default=20, show_default=True)
@click.option('--type', 'event_type', default=None, help='e.g. PERMISSION_DENIED, LOGIN_FAILED')
@with_appcontext
def security_events_cli(limit, event_type):
    """Show the most recent security events."""
    events = permission_service.recent_security_events(limit=limit, event_type=event_type)
    if not events:
        click.echo("No security events.")
        return
    for e in events:
        status = "PASS" if e.success else "FAIL"
        click.echo(f"{to_display(e.occurred_at)}  {status} {e.event_type:<18} {e.resource or '-'}  {e.reason or ''}")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired and revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired session(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(items_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(maintenance_group)
