# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/retailpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to retailpos (PowerShell: $env:FLASK_APP="retailpos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin and worker users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username clerk --full-name "Front Desk" --role worker
#
# Items:
# - python -m flask items list
# - python -m flask items create --name "Refrigerator" --price-cash-cents 150000 --quantity 3 --installment
#
# Contracts and payments:
# - python -m flask contracts list --status pending
# - python -m flask payments overdue [--as-of 2024-06-30]

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import User
from .services import contract_service, inventory_service, payment_service
from .validation import coerce_date


DEFAULT_USERS = (
    ("admin", "Administrator", "admin"),
    ("worker", "Default Worker", "worker"),
)


def _fmt_cents(cents) -> str:
    if cents is None:
        return "-"
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the database and default users.

    Creates:
    - All tables (no-op for tables that already exist)
    - Users: admin (role admin), worker (role worker)
    """
    click.echo("START Initializing retailpos...")

    db.create_all()
    click.echo("PASS Tables ready")

    for username, full_name, role in DEFAULT_USERS:
        user = db.session.query(User).filter_by(username=username).first()
        if user:
            click.echo(f"PASS Using existing user: {username} (ID: {user.id})")
            continue
        user = User(username=username, full_name=full_name, role=role)
        db.session.add(user)
        db.session.commit()
        click.echo(f"PASS Created user: {username} (ID: {user.id}, role: {role})")

    click.echo("DONE System initialized")


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
    """Worker account commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--full-name', default=None, help='Full name')
@click.option('--phone', default=None, help='Phone number')
@click.option('--id-card', default=None, help='National ID-card number')
@click.option('--role', type=click.Choice(['admin', 'worker']), default='worker', show_default=True)
@with_appcontext
def create_user_cli(username, full_name, phone, id_card, role):
    """Create a worker account."""
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"FAIL Username already exists: {username}", err=True)
        raise SystemExit(1)

    user = User(username=username, full_name=full_name, phone=phone, id_card=id_card, role=role)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Full name':<30} {'Role':<10} {'Active'}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {(user.full_name or ''):<30} {user.role:<10} {active_str}")
    click.echo("="*80 + "\n")


@click.group('items')
def items_group():
    """Item catalog commands."""


@items_group.command('create')
@click.option('--name', required=True, help='Item name')
@click.option('--description', default=None)
@click.option('--price-cash-cents', type=int, required=True)
@click.option('--price-installment-total-cents', type=int, default=None)
@click.option('--installment-months', type=int, default=0, show_default=True)
@click.option('--installment-per-month-cents', type=int, default=None)
@click.option('--quantity', type=int, default=0, show_default=True)
@click.option('--installment', is_flag=True, help='Allow installment contracts for this item')
@with_appcontext
def create_item_cli(name, description, price_cash_cents, price_installment_total_cents,
                    installment_months, installment_per_month_cents, quantity, installment):
    """Create an item."""
    payload = {
        "name": name,
        "description": description,
        "price_cash_cents": price_cash_cents,
        "price_installment_total_cents": price_installment_total_cents,
        "installment_months": installment_months,
        "installment_per_month_cents": installment_per_month_cents,
        "quantity": quantity,
        "installment": installment,
    }
    try:
        item = inventory_service.create_item(db.session, {k: v for k, v in payload.items() if v is not None})
    except ServiceError as e:
        click.echo(f"FAIL {e.message}", err=True)
        raise SystemExit(1)
    click.echo(f"PASS Created item: {item.name} (ID: {item.id}, quantity: {item.quantity})")


@items_group.command('list')
@with_appcontext
def list_items_cli():
    """List items with reserved and available counts."""
    items = inventory_service.list_items(db.session)
    if not items:
        click.echo("No items found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Cash':>12} {'Qty':>5} {'Reserved':>9} {'Avail':>6} {'Inst'}")
    click.echo("="*90)
    for item in items:
        click.echo(
            f"{item['id']:<5} {item['name'][:30]:<30} {_fmt_cents(item['price_cash_cents']):>12} "
            f"{item['quantity']:>5} {item['reserved_count']:>9} {item['available_quantity']:>6} "
            f"{'Yes' if item['installment'] else 'No'}"
        )
    click.echo("="*90 + "\n")


@click.group('contracts')
def contracts_group():
    """Installment contract inspection."""


@contracts_group.command('list')
@click.option('--status', default=None, help='pending, active, completed or rejected')
@with_appcontext
def list_contracts_cli(status):
    """List contracts with schedule progress."""
    try:
        contracts = contract_service.get_all_contracts(db.session, status=status)
    except ServiceError as e:
        click.echo(f"FAIL {e.message}", err=True)
        raise SystemExit(1)

    if not contracts:
        click.echo("No contracts found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Status':<10} {'Customer':<25} {'Item':<25} {'Monthly':>12} {'Paid':>9}")
    click.echo("="*100)
    for c in contracts:
        click.echo(
            f"{c['id']:<5} {c['status']:<10} {(c['customer_name'] or '')[:25]:<25} "
            f"{(c['item_name'] or '')[:25]:<25} {_fmt_cents(c['monthly_payment_cents']):>12} "
            f"{c['paid_payments']:>4}/{c['total_payments']:<4}"
        )
    click.echo("="*100 + "\n")


@click.group('payments')
def payments_group():
    """Installment payment inspection."""


@payments_group.command('overdue')
@click.option('--as-of', default=None, help='YYYY-MM-DD (default today)')
@with_appcontext
def overdue_payments_cli(as_of):
    """List unsettled months of active contracts past their due date."""
    try:
        as_of_date = coerce_date(as_of, "as_of") if as_of else None
        rows = payment_service.get_overdue_payments(db.session, as_of=as_of_date)
    except ServiceError as e:
        click.echo(f"FAIL {e.message}", err=True)
        raise SystemExit(1)

    if not rows:
        click.echo("No overdue payments.")
        return

    for row in rows:
        click.echo(
            f"contract {row['contract_id']:<5} month {row['month_number']:<3} due {row['due_date']} "
            f"({row['days_overdue']} days)  owed {_fmt_cents(row['amount_due_cents']):>12}  "
            f"{row['customer_name']} / {row['item_name']}"
        )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(items_group)
    app.cli.add_command(contracts_group)
    app.cli.add_command(payments_group)
