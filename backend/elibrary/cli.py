# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/elibrary/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role LIBRARY_ADMIN]
#   List users with role and last login.
# - python -m flask users create --name "Admin" --email admin@library.local --password "secret1" --role SUPER_ADMIN
#   Create a user (prompts if options are omitted).
# - python -m flask users set-role admin@library.local LIBRARY_ADMIN
#   Change a user's role and revoke their sessions.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired or revoked session tokens.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import ALL_ROLES
from .services import auth_service, maintenance_service
from .validation import ServiceError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice(sorted(ALL_ROLES)), default=None)
@with_appcontext
def list_users(role):
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.created_at).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        last_login = user.last_login.isoformat() if user.last_login else "never"
        click.echo(f"{user.user_id}  {user.email:<32} {user.role:<14} last login: {last_login}")


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(sorted(ALL_ROLES)), default='USER', show_default=True)
@with_appcontext
def create_user(name, email, password, role):
    try:
        user = auth_service.create_user(name=name, email=email, password=password, role=role)
    except ServiceError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.email} ({user.role}) id={user.user_id}")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(sorted(ALL_ROLES)))
@with_appcontext
def set_role(email, role):
    user = auth_service.get_user_by_email(email)
    if not user:
        click.echo(f"FAIL No user with email {email}")
        raise SystemExit(1)
    auth_service.update_user(user.user_id, role=role)
    click.echo(f"PASS {user.email} is now {role}")


@click.group('maintenance')
def maintenance_group():
    """Retention and cleanup commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    deleted = maintenance_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} session tokens")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', default=90, show_default=True, type=int)
@with_appcontext
def cleanup_security_events(retention_days):
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} security events older than {retention_days} days")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
