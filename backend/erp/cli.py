# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/erp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management (MULTI-TENANT):
# - python -m flask companies list
#   List all companies with user counts.
# - python -m flask companies create --name "Acme Corp" --admin-email admin@acme.test --admin-password secret1
#   Create a company, optionally with its first admin user.
#
# User inspection/bootstrap:
# - python -m flask users list [--company-id 1]
#   List users with role and active status.
# - python -m flask users create-superadmin --name Root --email root@erp.local --password secret1
#   Create a cross-company superadmin (no company).

import click
from flask.cli import with_appcontext

from .errors import ERPError
from .extensions import db
from .models import Company, User
from .models.auth import ROLE_SUPERADMIN
from .services.company_service import create_company
from .services.user_service import build_user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create-superadmin' next.")


# =============================================================================
# COMPANY MANAGEMENT (MULTI-TENANT)
# =============================================================================

@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@with_appcontext
def list_companies_cli():
    """List all companies."""
    companies = db.session.query(Company).order_by(Company.id).all()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<35} {'Status':<10} {'Users'}")
    click.echo("="*70)

    for company in companies:
        user_count = db.session.query(User).filter_by(company_id=company.id).count()
        click.echo(f"{company.id:<5} {company.name:<35} {company.status:<10} {user_count}")

    click.echo("="*70 + "\n")


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--email', default=None, help='Company contact email')
@click.option('--admin-name', default='Administrator', help='Name of the first admin user')
@click.option('--admin-email', default=None, help='Email of the first admin user')
@click.option('--admin-password', default=None, help='Password of the first admin user')
@with_appcontext
def create_company_cli(name, email, admin_name, admin_email, admin_password):
    """Create a new company, optionally with its first admin."""
    admin_user = None
    if admin_email:
        if not admin_password:
            admin_password = click.prompt("Admin password", hide_input=True, confirmation_prompt=True)
        admin_user = {"name": admin_name, "email": admin_email, "password": admin_password}

    try:
        company = create_company({"name": name, "email": email}, admin_user=admin_user)
    except ERPError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created company: {company.name} (ID: {company.id})")
    if admin_user:
        click.echo(f"PASS Created admin user: {admin_email}")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create-superadmin')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_superadmin(name, email, password):
    """Create a superadmin that belongs to no company."""
    try:
        user = build_user(name=name, email=email, password=password, role=ROLE_SUPERADMIN, company_id=None)
        db.session.add(user)
        db.session.commit()
    except ERPError as e:
        db.session.rollback()
        raise click.ClickException(e.message)

    click.echo(f"PASS Created superadmin: {user.email} (ID: {user.id})")


@users_group.command('list')
@click.option('--company-id', type=int, help='Filter by company ID')
@with_appcontext
def list_users_cli(company_id):
    """List all users with their roles."""
    query = db.session.query(User)

    if company_id:
        query = query.filter_by(company_id=company_id)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*95)
    click.echo(f"{'ID':<5} {'Company':<8} {'Name':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*95)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        company_str = str(user.company_id) if user.company_id else "-"
        click.echo(f"{user.id:<5} {company_str:<8} {user.name:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*95 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)  # Multi-tenant company management
    app.cli.add_command(users_group)
