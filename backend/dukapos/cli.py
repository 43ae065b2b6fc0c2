# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/dukapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Business (tenant) management:
# - python -m flask business list
#   List all businesses with their timezone and user count.
# - python -m flask business create --name "Duka One" --email owner@duka.local --password "Password123!" --timezone Africa/Nairobi
#   Create a business and its first admin user.
#
# User inspection/bootstrap:
# - python -m flask users list [--business-id 1]
#   List users with role and active status.
# - python -m flask users create --business-id 1 --email clerk@duka.local --password "Password123!" --role user
#   Create a user in an existing business (prompts if options are omitted).
#
# Maintenance:
# - python -m flask sessions cleanup --older-than-days 30
#   Delete expired or revoked session tokens older than the window.

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Business, User
from .models.auth import ROLE_ADMIN, VALID_ROLES
from .services import auth_service
from .services import session_service
from .services.tenant_service import TenantContext


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing tables and data are left untouched."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask business create' to add a tenant.")


@click.group('business')
def business_group():
    """Business (tenant) management commands."""


@business_group.command('list')
@with_appcontext
def list_businesses():
    """List all businesses."""
    businesses = db.session.query(Business).order_by(Business.id).all()
    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo(f"{'ID':<6} {'Name':<30} {'Timezone':<24} {'Active':<8} {'Users':<6}")
    click.echo("-" * 78)
    for b in businesses:
        user_count = db.session.query(User).filter_by(business_id=b.id).count()
        click.echo(f"{b.id:<6} {b.name:<30} {b.timezone:<24} {str(b.is_active):<8} {user_count:<6}")


@business_group.command('create')
@click.option('--name', prompt=True, help='Business name')
@click.option('--email', prompt=True, help='Admin email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--first-name', default='Admin', help='Admin first name')
@click.option('--last-name', default='', help='Admin last name')
@click.option('--timezone', 'tz_name', default='UTC', help='IANA timezone, e.g. Africa/Nairobi')
@with_appcontext
def create_business_cli(name, email, password, first_name, last_name, tz_name):
    """Create a business and its first admin user."""
    try:
        user = auth_service.signup(
            business_name=name,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            timezone=tz_name,
        )
    except PosError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created business ID {user.business_id} with admin {user.email} (user ID {user.id})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--business-id', type=int, default=None, help='Filter by business')
@with_appcontext
def list_users_cli(business_id):
    """List users with role and active status."""
    query = db.session.query(User).order_by(User.business_id, User.id)
    if business_id is not None:
        query = query.filter(User.business_id == business_id)
    users = query.all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<6} {'Business':<10} {'Email':<36} {'Role':<8} {'Active':<8}")
    click.echo("-" * 72)
    for u in users:
        click.echo(f"{u.id:<6} {u.business_id:<10} {u.email:<36} {u.role:<8} {str(u.is_active):<8}")


@users_group.command('create')
@click.option('--business-id', type=int, prompt=True, help='Business the user belongs to')
@click.option('--email', prompt=True, help='Email (login identifier)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(VALID_ROLES), default='user', help='Role')
@click.option('--first-name', default=None, help='First name')
@click.option('--last-name', default=None, help='Last name')
@with_appcontext
def create_user_cli(business_id, email, password, role, first_name, last_name):
    """Create a user in an existing business."""
    business = db.session.get(Business, business_id)
    if not business:
        raise click.ClickException(f"Business {business_id} not found")

    # CLI operators act with admin rights inside the target business
    ctx = TenantContext(business_id=business.id, role=ROLE_ADMIN, user_id=None)
    try:
        user = auth_service.create_user(
            ctx,
            email=email,
            password=password,
            role=role,
            first_name=first_name,
            last_name=last_name,
        )
    except PosError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created user {user.email} (ID {user.id}, role {user.role}) in business {business.id}")


@click.group('sessions')
def sessions_group():
    """Session token maintenance."""


@sessions_group.command('cleanup')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked session tokens older than the window."""
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"PASS Removed {deleted} session token(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(business_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
