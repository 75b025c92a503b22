# Overview: Flask CLI command groups for bootstrap, inspection, and stock maintenance.

# backend/branchstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--branch-code HQ --branch-name "Head Office"]
#   Idempotent bootstrap: creates tables, a default branch and a super_admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Branches:
# - python -m flask branches list
# - python -m flask branches create --code JKT --name "Jakarta"
#
# Users:
# - python -m flask users create --username kasir1 --name "Kasir 1" --role cashier --branch-code JKT
#
# Stock:
# - python -m flask stock low [--branch-code JKT]
#   List stock rows at or below their minimum.
# - python -m flask stock adjust --branch-code JKT --sku SKU-001 --quantity -3 --username admin --notes "Damaged"
#   Manual signed adjustment through the stock ledger.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import InventoryError
from .models import Branch, Product, User
from .permissions import ROLES
from .services import branch_service, stock_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--branch-code', default='HQ', help='Code of the default branch')
@click.option('--branch-name', default='Head Office', help='Name of the default branch')
@click.option('--admin-username', default='admin', help='Username of the super admin')
@with_appcontext
def init_system(branch_code, branch_name, admin_username):
    """
    Initialize the system: tables, a default branch and a super_admin user.

    Safe to run repeatedly; existing rows are reused.
    """
    click.echo("START Initializing BranchStock...")

    db.create_all()
    click.echo("PASS Tables ready")

    branch = db.session.query(Branch).filter_by(code=branch_code.upper()).first()
    if branch is None:
        branch = branch_service.create_branch(code=branch_code, name=branch_name)
        click.echo(f"PASS Created branch: {branch.code} - {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.code} (ID: {branch.id})")

    admin = db.session.query(User).filter_by(username=admin_username).first()
    if admin is None:
        admin = branch_service.create_user(
            username=admin_username,
            name="Super Admin",
            role="super_admin",
            branch_id=branch.id,
        )
        click.echo(f"PASS Created super admin: {admin.username} (ID: {admin.id})")
    else:
        click.echo(f"PASS Using existing user: {admin.username} (ID: {admin.id})")

    click.echo("DONE System initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the stock ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('branches')
def branches_group():
    """Branch management commands."""


@branches_group.command('list')
@with_appcontext
def list_branches_cli():
    """List all branches."""
    branches = branch_service.list_branches()
    if not branches:
        click.echo("No branches found. Run 'python -m flask system init' first.")
        return

    for branch in branches:
        status = "active" if branch.is_active else "inactive"
        click.echo(f"{branch.id:>4}  {branch.code:<10} {branch.name} ({status})")


@branches_group.command('create')
@click.option('--code', prompt=True, help='Branch code (used in document numbers)')
@click.option('--name', prompt=True, help='Branch name')
@click.option('--address', default=None, help='Address')
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def create_branch_cli(code, name, address, phone):
    """Create a new branch."""
    try:
        branch = branch_service.create_branch(code=code, name=name, address=address, phone=phone)
        click.echo(f"PASS Created branch: {branch.code} - {branch.name} (ID: {branch.id})")
    except InventoryError as e:
        click.echo(f"FAIL Failed to create branch: {e}")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--branch-code', default=None, help='Home branch code')
@click.option('--email', default=None, help='Email address')
@with_appcontext
def create_user_cli(username, name, role, branch_code, email):
    """
    Create a staff user.

    Credentials are managed by the authenticating gateway; this only
    registers the identity, role and home branch.
    """
    try:
        branch_id = None
        if branch_code:
            branch_id = branch_service.get_branch_by_code(branch_code.upper()).id

        user = branch_service.create_user(
            username=username,
            name=name,
            role=role,
            branch_id=branch_id,
            email=email,
        )
        click.echo(f"PASS Created user: {user.username} with role '{user.role}' (ID: {user.id})")
    except InventoryError as e:
        click.echo(f"FAIL Failed to create user: {e}")


@click.group('stock')
def stock_group():
    """Stock inspection and adjustment commands."""


@stock_group.command('low')
@click.option('--branch-code', default=None, help='Only this branch')
@with_appcontext
def low_stock_cli(branch_code):
    """List stock rows at or below their minimum level."""
    try:
        branch_id = branch_service.get_branch_by_code(branch_code.upper()).id if branch_code else None
    except InventoryError as e:
        click.echo(f"FAIL {e}")
        return

    rows = stock_service.list_low_stock(branch_id=branch_id)
    if not rows:
        click.echo("PASS No low stock")
        return

    for stock in rows:
        click.echo(
            f"{stock.branch.code:<10} {stock.product.sku:<20} "
            f"qty={stock.quantity:<6} min={stock.min_stock:<6} {stock.product.name}"
        )
    click.echo(f"WARN {len(rows)} row(s) at or below minimum")


@stock_group.command('adjust')
@click.option('--branch-code', required=True, help='Branch code')
@click.option('--sku', required=True, help='Product SKU')
@click.option('--quantity', type=int, required=True, help='Signed quantity (+ adds, - removes)')
@click.option('--username', required=True, help='User recorded as the author')
@click.option('--notes', default=None, help='Reason for the adjustment')
@with_appcontext
def adjust_stock_cli(branch_code, sku, quantity, username, notes):
    """Record a manual stock adjustment through the ledger."""
    try:
        branch = branch_service.get_branch_by_code(branch_code.upper())
        product = db.session.query(Product).filter_by(sku=sku).first()
        if product is None:
            click.echo(f"FAIL Product with SKU {sku} not found")
            return
        user = db.session.query(User).filter_by(username=username).first()
        if user is None:
            click.echo(f"FAIL User {username} not found")
            return

        movement = stock_service.adjust_stock(
            branch_id=branch.id,
            product_id=product.id,
            quantity=quantity,
            actor_id=user.id,
            notes=notes,
        )
        click.echo(
            f"PASS {branch.code} {product.sku}: {movement.stock_before} -> {movement.stock_after} "
            f"(movement ID: {movement.id})"
        )
    except InventoryError as e:
        click.echo(f"FAIL Adjustment refused: {e}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
