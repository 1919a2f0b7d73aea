# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Company Name"]
#   Idempotent bootstrap: creates default company, its default warehouse and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Companies / users:
# - python -m flask companies create --name "Acme Corp" [--warehouse-name "Main"]
# - python -m flask users create --company-id 1 --username admin --email admin@backoffice.local --password "Password123!"
#
# Warehouses:
# - python -m flask warehouses create --name "North" --address "1 North Rd" [--company-id 1]
# - python -m flask warehouses list [--company-id 1] [--all]
#
# Inventory / transfers:
# - python -m flask inventory show 42
#   Print the per-warehouse ledger of product 42.
# - python -m flask inventory reaggregate 7
#   Rebuild parent product 7's ledger from its variants.
# - python -m flask transfers list [--product-id 42] [--limit 20]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, User, Product
from .services.aggregation_service import has_variants, reaggregate_parent
from .services.auth_service import create_user, PasswordValidationError
from .services.stock_transfer_service import list_stock_transfers
from .services.warehouse_service import create_warehouse, list_warehouses
from .validation import ValidationError


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default='Default Company', help='Company name')
@click.option('--warehouse-name', default='Main Warehouse', help='Default warehouse name')
@with_appcontext
def init_system(company_name, warehouse_name):
    """
    Initialize the back office: default company, default warehouse, admin user.

    Admin password defaults to "Password123!".
    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing back office...")

    db.create_all()

    company = db.session.query(Company).first()
    if not company:
        company = Company(company_name=company_name, status="active")
        db.session.add(company)
        db.session.flush()
        click.echo(f"PASS Created company: {company.company_name} (ID: {company.id})")
    else:
        click.echo(f"PASS Using existing company: {company.company_name} (ID: {company.id})")

    if company.warehouse_id is None:
        warehouse = create_warehouse(
            warehouse_name=warehouse_name,
            warehouse_address="-",
            company_id=company.id,
        )
        company.warehouse_id = warehouse.id
        click.echo(f"PASS Created default warehouse: {warehouse.warehouse_name} (ID: {warehouse.id})")

    if not db.session.query(User).filter_by(username="admin").first():
        create_user("admin", "admin@backoffice.local", DEFAULT_PASSWORD, company.id)
        click.echo("PASS Created user: admin")

    db.session.commit()
    click.echo("DONE Back office initialized.")


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


@click.group('companies')
def companies_group():
    """Company (tenant) management."""


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--warehouse-name', default=None, help='Create a default warehouse with this name')
@with_appcontext
def create_company(name, warehouse_name):
    company = Company(company_name=name, status="active")
    db.session.add(company)
    db.session.flush()

    if warehouse_name:
        warehouse = create_warehouse(warehouse_name=warehouse_name, warehouse_address="-", company_id=company.id)
        company.warehouse_id = warehouse.id

    db.session.commit()
    click.echo(f"PASS Created company: {company.company_name} (ID: {company.id})")
    if company.warehouse_id:
        click.echo(f"     Default warehouse ID: {company.warehouse_id}")


@click.group('users')
def users_group():
    """User management."""


@users_group.command('create')
@click.option('--company-id', type=int, default=None, help='Company ID (omit for an unscoped operator)')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(company_id, username, email, password):
    """
    Create a new user.

    Password must be 8+ chars with uppercase, lowercase, digit and special char.
    """
    try:
        user = create_user(username=username, email=email, password=password, company_id=company_id)
        db.session.commit()
    except PasswordValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.username} ({user.email})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@click.group('warehouses')
def warehouses_group():
    """Warehouse directory."""


@warehouses_group.command('create')
@click.option('--name', required=True, help='Warehouse name')
@click.option('--address', required=True, help='Warehouse address')
@click.option('--company-id', type=int, default=None, help='Owning company (omit for a shared warehouse)')
@with_appcontext
def create_warehouse_cli(name, address, company_id):
    try:
        warehouse = create_warehouse(warehouse_name=name, warehouse_address=address, company_id=company_id)
        db.session.commit()
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {str(e)}")
        return
    click.echo(f"PASS Created warehouse: {warehouse.warehouse_name} (ID: {warehouse.id})")


@warehouses_group.command('list')
@click.option('--company-id', type=int, default=None, help='Company scope')
@click.option('--all', 'include_inactive', is_flag=True, help='Include nonactive warehouses')
@with_appcontext
def list_warehouses_cli(company_id, include_inactive):
    warehouses = list_warehouses(company_id, include_inactive=include_inactive)
    if not warehouses:
        click.echo("No warehouses found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Name':<30} {'Company':<10} {'Status'}")
    click.echo("="*72)
    for warehouse in warehouses:
        click.echo(
            f"{warehouse.id:<5} {warehouse.warehouse_name:<30} "
            f"{warehouse.company_id or 'shared':<10} {warehouse.status}"
        )
    click.echo("="*72 + "\n")


@click.group('inventory')
def inventory_group():
    """Inventory ledger inspection and repair."""


@inventory_group.command('show')
@click.argument('product_id', type=int)
@with_appcontext
def show_inventory(product_id):
    product = db.session.get(Product, product_id)
    if product is None:
        click.echo(f"FAIL Product ID {product_id} not found")
        return

    click.echo(f"{product.product_name} (ID: {product.id}, type: {product.product_type})")
    for entry in product.warehouse_inventory:
        name = entry.warehouse.warehouse_name if entry.warehouse else "Unknown Warehouse"
        click.echo(f"  {entry.warehouse_id:<5} {name:<30} {entry.quantity}")
    click.echo(f"  TOTAL {product.get_total_quantity()}")


@inventory_group.command('reaggregate')
@click.argument('parent_id', type=int)
@with_appcontext
def reaggregate_inventory(parent_id):
    """Rebuild a parent product's ledger from its live variants."""
    if not has_variants(parent_id):
        click.echo(f"FAIL Product ID {parent_id} is not a parent with live variants")
        return

    try:
        parent = reaggregate_parent(parent_id)
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {str(e)}")
        return
    if parent is None:
        click.echo(f"FAIL Product ID {parent_id} not found")
        return
    db.session.commit()
    click.echo(f"PASS Re-aggregated product {parent_id}: total {parent.get_total_quantity()}")


@click.group('transfers')
def transfers_group():
    """Stock transfer history."""


@transfers_group.command('list')
@click.option('--product-id', type=int, default=None)
@click.option('--company-id', type=int, default=None)
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_transfers_cli(product_id, company_id, limit):
    page = list_stock_transfers(company_id=company_id, product_id=product_id, limit=limit)
    if not page["records"]:
        click.echo("No stock transfers found.")
        return

    for record in page["records"]:
        click.echo(
            f"{record.reference_code:<22} product {record.product_id:<6} "
            f"{record.from_warehouse_id} -> {record.to_warehouse_id} qty {record.quantity:<6} "
            f"{record.transfer_status}"
        )
    click.echo(f"Showing {len(page['records'])} of {page['total']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(users_group)
    app.cli.add_command(warehouses_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(transfers_group)
