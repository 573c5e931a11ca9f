# Overview: Flask CLI command groups for bootstrap, user roles, and warehouse maintenance.

# backend/freshcorner/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create tables (if missing) and seed the default category tree.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role admin]
# - python -m flask users promote 01712345678
#   Grant the admin role to an existing user.
# - python -m flask users create-admin --phone 01712345678
#   Create an admin account (or promote the phone if it already exists).
# - python -m flask users demote 01712345678
#
# Warehouse maintenance:
# - python -m flask warehouse sync-alerts [--today 2025-01-31]
#   Refresh expiry alerts from current warehouse inventory.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, User
from .services import auth_service, warehouse_service
from .time_utils import parse_iso_date
from .validation import ServiceError

# (name_en, name_bn, [(child_en, child_bn), ...])
DEFAULT_CATEGORIES = [
    ("Vegetables", "সবজি", [("Leafy Greens", "শাক"), ("Root Vegetables", "মূল জাতীয় সবজি")]),
    ("Fruits", "ফল", [("Seasonal Fruits", "মৌসুমি ফল"), ("Imported Fruits", "আমদানি করা ফল")]),
    ("Fish & Meat", "মাছ ও মাংস", [("Fish", "মাছ"), ("Meat", "মাংস")]),
    ("Dairy & Eggs", "দুধ ও ডিম", []),
    ("Rice & Lentils", "চাল ও ডাল", []),
    ("Spices", "মসলা", []),
]


def seed_default_categories() -> int:
    """Insert the default category tree; existing slugs are left alone. Returns rows created."""
    from .services.catalog_service import slugify

    created = 0
    for order, (name_en, name_bn, children) in enumerate(DEFAULT_CATEGORIES, start=1):
        slug = slugify(name_en)
        parent = db.session.query(Category).filter_by(slug=slug).first()
        if parent is None:
            parent = Category(name_en=name_en, name_bn=name_bn, slug=slug, display_order=order)
            db.session.add(parent)
            db.session.flush()
            created += 1
        for child_order, (child_en, child_bn) in enumerate(children, start=1):
            child_slug = slugify(child_en)
            if db.session.query(Category.id).filter_by(slug=child_slug).first() is None:
                db.session.add(Category(
                    name_en=child_en,
                    name_bn=child_bn,
                    slug=child_slug,
                    parent_id=parent.id,
                    display_order=child_order,
                ))
                created += 1
    db.session.commit()
    return created


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and seed default categories. Safe to run repeatedly."""
    click.echo("START Initializing Fresh Corner...")
    db.create_all()
    created = seed_default_categories()
    click.echo(f"PASS Categories created: {created}")
    click.echo("DONE Use 'flask users create-admin --phone <phone>' to add an administrator.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping all data')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and role management."""


@users_group.command('list')
@click.option('--role', default=None, help='Filter by role (customer/admin)')
@with_appcontext
def list_users(role):
    query = db.session.query(User).order_by(User.id.asc())
    if role:
        query = query.filter(User.role == role)
    for user in query.all():
        state = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>5}  {user.phone:<15} {user.role:<9} {state:<8} {user.full_name or ''}")


@users_group.command('promote')
@click.argument('phone')
@with_appcontext
def promote_user(phone):
    user = db.session.query(User).filter_by(phone=phone.strip()).first()
    if user is None:
        click.echo(f"FAIL No user with phone {phone}")
        raise SystemExit(1)
    user = auth_service.promote_to_admin(phone)
    click.echo(f"PASS {user.phone} is now admin")


@users_group.command('create-admin')
@click.option('--phone', prompt=True, help='Admin phone number')
@with_appcontext
def create_admin(phone):
    try:
        user = auth_service.promote_to_admin(phone)
    except ServiceError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Admin ready: {user.phone} (ID: {user.id})")


@users_group.command('demote')
@click.argument('phone')
@with_appcontext
def demote_user(phone):
    try:
        user = auth_service.demote_to_customer(phone)
    except ServiceError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {user.phone} is now customer")


@click.group('warehouse')
def warehouse_group():
    """Warehouse maintenance commands."""


@warehouse_group.command('sync-alerts')
@click.option('--today', default=None, help='Evaluate as of this date (YYYY-MM-DD)')
@with_appcontext
def sync_alerts(today):
    try:
        as_of = parse_iso_date(today) if today else None
    except ValueError:
        click.echo("FAIL --today must be YYYY-MM-DD")
        raise SystemExit(1)
    result = warehouse_service.sync_expiry_alerts(as_of)
    click.echo(
        f"PASS Expiry alerts: {result['created']} created, "
        f"{result['updated']} updated, {result['closed']} closed"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(warehouse_group)
