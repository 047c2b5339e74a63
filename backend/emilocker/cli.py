# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/emilocker/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --phone 9999999999 --password "admin123"
#   Create tables if missing and the superadmin account (idempotent).
#
# Shop inspection:
# - python -m flask shops list
#   List all shops with owner and statistics snapshot.
#
# Statistics:
# - python -m flask stats recompute [--shop-id 3]
#   Recompute one shop's statistics, or every shop's.
#
# Maintenance:
# - python -m flask maintenance reconcile-mirrors
#   Repair user device-status mirrors from the devices table, then recompute statistics.
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired or revoked session tokens older than the cutoff.

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import Shop, User
from .permissions import Role
from .services import maintenance_service, session_service, statistics_service
from .services.auth_service import create_superadmin


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--name', default='Super Admin', show_default=True, help='Superadmin display name')
@click.option('--phone', required=True, help='Superadmin phone (login identifier)')
@click.option('--email', default=None, help='Superadmin email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def init_system(name, phone, email, password):
    """
    Create tables and the superadmin account.

    Idempotent: an existing superadmin is left untouched.
    """
    click.echo("START Initializing EMI Locker...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(role=Role.SUPERADMIN.value).first()
    if existing:
        click.echo(f"WARN  Superadmin already exists (ID: {existing.id}, phone: {existing.phone}), skipping...")
        return

    try:
        user = create_superadmin(name=name, phone=phone, email=email, password=password)
    except ServiceError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"PASS Created superadmin: {user.name} ({user.phone})")


@click.group('shops')
def shops_group():
    """Shop inspection commands."""


@shops_group.command('list')
@with_appcontext
def list_shops():
    """List all shops."""
    shops = db.session.query(Shop).order_by(Shop.id).all()

    if not shops:
        click.echo("No shops found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'ID':<5} {'Shop ID':<16} {'Name':<28} {'Active':<8} {'Users':<7} {'Locked':<8} {'Revenue'}")
    click.echo("="*96)

    for shop in shops:
        active_str = "Yes" if shop.is_active else "No"
        revenue = f"{shop.stat_total_revenue_cents / 100:.2f}"
        click.echo(
            f"{shop.id:<5} {shop.shop_code:<16} {shop.name[:27]:<28} {active_str:<8} "
            f"{shop.stat_total_users:<7} {shop.stat_locked_devices:<8} {revenue}"
        )

    click.echo("="*96 + "\n")


@click.group('stats')
def stats_group():
    """Shop statistics commands."""


@stats_group.command('recompute')
@click.option('--shop-id', type=int, default=None, help='Only this shop')
@with_appcontext
def recompute_stats(shop_id):
    """Recompute denormalized shop statistics."""
    if shop_id is not None:
        stats = statistics_service.recompute(shop_id)
        if stats is None:
            raise click.ClickException(f"Shop {shop_id} not found")
        click.echo(f"Shop {shop_id}: {stats}")
        return

    count = statistics_service.recompute_all()
    click.echo(f"Recomputed statistics for {count} shop(s).")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('reconcile-mirrors')
@with_appcontext
def reconcile_mirrors_cli():
    """Repair user device-status mirrors from the devices table."""
    result = maintenance_service.reconcile_lock_mirrors()
    click.echo(
        f"Repaired {result['users_repaired']} user mirror(s); "
        f"recomputed {result['shops_recomputed']} shop(s)."
    )


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked session tokens."""
    deleted = session_service.cleanup_expired_sessions(older_than_days)
    click.echo(f"Deleted {deleted} session token(s) older than {older_than_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shops_group)
    app.cli.add_command(stats_group)
    app.cli.add_command(maintenance_group)
