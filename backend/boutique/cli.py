# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/boutique/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app boutique <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app boutique system init
#   Idempotent bootstrap: tables, business profile, default categories, admin account.
# - python -m flask --app boutique system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask --app boutique system cleanup-sessions
#   Delete expired/revoked session tokens older than 30 days.
#
# Admin account:
# - python -m flask --app boutique admin set-password --email admin@aleen.com
#   Reset the administrator password (prompts if --password is omitted).
#
# Inventory inspection:
# - python -m flask --app boutique inventory low-stock [--threshold 10]
#   List items below the low stock threshold.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import AdminAccount
from .services.auth_service import ensure_admin_account, set_password, PasswordValidationError
from .services import inventory_service, session_service, settings_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the store: tables, business profile, categories and admin login.

    The admin account uses ADMIN_EMAIL / ADMIN_PASSWORD from configuration.
    An existing account keeps its password.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing boutique backend...")

    db.create_all()
    click.echo("PASS Tables ready")

    profile = settings_service.get_profile()
    click.echo(f"PASS Business profile: {profile.business_name}")

    added = settings_service.ensure_default_categories()
    if added:
        click.echo(f"PASS Created {added} default categories")
    else:
        click.echo("PASS Using existing categories")

    email = current_app.config["ADMIN_EMAIL"]
    try:
        account, created = ensure_admin_account(email, current_app.config["ADMIN_PASSWORD"])
    except PasswordValidationError as e:
        raise click.ClickException(f"Admin password rejected: {e}")

    if created:
        click.echo(f"PASS Created admin account: {account.email}")
    else:
        click.echo(f"WARN  Admin account '{account.email}' already exists, skipping...")

    click.echo("\nDONE Initialization complete.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask --app boutique system init' to initialize.")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete old expired or revoked session tokens."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} session tokens")


@click.group('admin')
def admin_group():
    """Administrator account commands."""


@admin_group.command('set-password')
@click.option('--email', default=None, help='Account email (defaults to ADMIN_EMAIL)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def admin_set_password(email, password):
    """Reset an admin password and revoke its sessions."""
    email = (email or current_app.config["ADMIN_EMAIL"]).strip().lower()
    account = db.session.query(AdminAccount).filter(db.func.lower(AdminAccount.email) == email).first()
    if not account:
        raise click.ClickException(f"No admin account for {email}; run 'system init' first")

    try:
        revoked = set_password(account, password)
    except PasswordValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Password updated for {account.email} ({revoked} sessions revoked)")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@click.option('--threshold', type=int, default=None, help='Override LOW_STOCK_THRESHOLD')
@with_appcontext
def low_stock(threshold):
    """List items with quantity strictly below the threshold."""
    items = inventory_service.low_stock_items(threshold)
    if not items:
        click.echo("PASS No low stock items")
        return

    click.echo(f"{'ID':<6} {'Name':<32} {'Category':<16} {'Qty':>5}")
    click.echo("-" * 62)
    for item in items:
        click.echo(f"{item.id:<6} {item.name[:32]:<32} {(item.category or '-')[:16]:<16} {item.quantity:>5}")
    click.echo(f"\nWARN  {len(items)} item(s) below threshold")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(admin_group)
    app.cli.add_command(inventory_group)
