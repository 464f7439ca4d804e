# Overview: Flask CLI command groups for schema setup, demo data, and ledger inspection.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db upgrade
#   Apply Alembic migrations (preferred for real databases).
# - python -m flask system init-db
#   Create any missing tables directly from the models (dev shortcut).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Demo data:
# - python -m flask demo seed
#   Create sample customers, products, aged credit sales and one payment.
#
# Ledger inspection:
# - python -m flask ledger outstanding [--search ali] [--aging overdue]
#   List customers who owe money, largest balance first.
# - python -m flask ledger report
#   Aging breakdown, risk analysis and top debtors.
# - python -m flask ledger pay --customer-id 1 --amount 5000 [--method cash]
#   Apply a payment (cents) to a customer's oldest sales first.
# - python -m flask ledger verify
#   Check balances and stock against the rows they summarize (exit 1 on mismatch).

from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .bridge import Bridge
from .extensions import db
from .time_utils import utcnow


def _bridge(clock=utcnow) -> Bridge:
    return Bridge(db.session, clock=clock, settings=current_app.config)


def _money(cents: int | None) -> str:
    if cents is None:
        return "-"
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def _require(result: dict) -> dict:
    """Abort the command with the bridge's message when a call failed."""
    if not result["success"]:
        raise click.ClickException(f"{result['error']}: {result['msg']}")
    return result["data"]


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """Schema setup commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables from the models."""
    db.create_all()
    click.echo("PASS Tables created (existing tables left untouched).")


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

    click.echo("PASS Database reset complete. Run 'python -m flask demo seed' for sample data.")


# =============================================================================
# DEMO DATA
# =============================================================================

@click.group('demo')
def demo_group():
    """Sample data for local development."""


@demo_group.command('seed')
@with_appcontext
def seed_demo():
    """
    Create sample data.

    Sales are back-dated so every aging bucket has at least one customer.
    """
    now = utcnow()

    products = []
    for name, price, qty, kind in [
        ("Rice 5kg", 1250, 80, "grocery"),
        ("Cooking Oil 1L", 899, 60, "grocery"),
        ("Sugar 1kg", 350, 120, "grocery"),
        ("Dish Soap", 275, 8, "household"),
    ]:
        products.append(_require(_bridge().call("products.create", {
            "name": name, "price": price, "quantity": qty, "type": kind,
        })))
    click.echo(f"PASS Created {len(products)} products")

    # (name, phone, credit limit, age of sale in days)
    customers = [
        ("Alice Mensah", "+233 20 111 2222", 50000, 5),
        ("Bongani Dlamini", "(011) 555-0101", 20000, 45),
        ("Chen Wei", "0205550199", None, 75),
        ("Dara Okafor", "+2348030000000", 5000, 120),
    ]
    for name, phone, limit, age in customers:
        customer = _require(_bridge().call("customers.create", {
            "name": name, "phone": phone, "creditLimit": limit,
        }))
        sale_time = now - timedelta(days=age)
        sale = _require(_bridge(clock=lambda t=sale_time: t).call("sales.create", {
            "customerId": customer["id"],
            "lineItems": [
                {"productId": products[0]["id"], "quantity": 2},
                {"productId": products[2]["id"], "quantity": 3},
            ],
            "amountPaid": 500,
        }))
        click.echo(
            f"PASS {name}: sale #{sale['id']} ({age} days ago), "
            f"outstanding {_money(sale['outstanding_amount_cents'])}"
        )

    first = _require(_bridge().call("customers.list", {"search": "Alice"}))[0]
    payment = _require(_bridge().call("payments.process", {
        "customerId": first["id"], "amount": 1000, "paymentMethod": "cash", "notes": "Demo payment",
    }))
    click.echo(f"PASS Payment #{payment['paymentId']} applied {_money(payment['amountApplied'])}")


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Outstanding balances, payments and integrity checks."""


@ledger_group.command('outstanding')
@click.option('--search', default=None, help='Match customer name or phone')
@click.option('--aging', default=None, help='current, 31-60, 61-90, 90+, overdue or all')
@with_appcontext
def list_outstanding(search, aging):
    """List customers with an outstanding balance."""
    data = _require(_bridge().call("payments.getOutstanding", {"searchTerm": search, "agingFilter": aging}))

    rows = data["outstandingPayments"]
    if not rows:
        click.echo("No outstanding balances.")
        return

    click.echo(f"{'ID':>4}  {'Customer':<24} {'Outstanding':>12} {'Sales':>5} {'Days':>5}  Bucket")
    for row in rows:
        click.echo(
            f"{row['customer_id']:>4}  {row['customer_name'][:24]:<24} "
            f"{_money(row['total_outstanding_cents']):>12} {row['outstanding_sales_count']:>5} "
            f"{row['days_outstanding']:>5}  {row['aging_bucket']}"
        )
    click.echo(f"\nTotal: {_money(data['totalAmount'])} across {data['totalCustomers']} customers")


@ledger_group.command('report')
@with_appcontext
def outstanding_report():
    """Aging breakdown, risk analysis and top debtors."""
    data = _require(_bridge().call("payments.getReport", {}))

    summary = data["summary"]
    click.echo(f"Customers owing:     {summary['totalCustomers']}")
    click.echo(f"Total outstanding:   {_money(summary['totalOutstanding'])}")
    click.echo(f"Average outstanding: {_money(summary['averageOutstanding'])}")

    click.echo("\nAging (customers):")
    for bucket, count in data["agingBreakdown"].items():
        click.echo(f"  {bucket:<8} {count}")

    click.echo("\nRisk:")
    for level, values in data["riskAnalysis"].items():
        click.echo(f"  {level:<11} {values['count']:>3}  {_money(values['amount'])}")

    if data["topDebtors"]:
        click.echo("\nTop debtors:")
        for debtor in data["topDebtors"]:
            click.echo(
                f"  {debtor['customerName']:<24} {_money(debtor['outstandingAmount']):>12} "
                f"{debtor['daysPastDue']:>4}d  {debtor['salesCount']} sales"
            )


@ledger_group.command('pay')
@click.option('--customer-id', type=int, required=True)
@click.option('--amount', type=int, required=True, help='Amount in cents')
@click.option('--method', default='cash', show_default=True)
@click.option('--notes', default=None)
@with_appcontext
def pay(customer_id, amount, method, notes):
    """Apply a payment to the customer's oldest sales first."""
    data = _require(_bridge().call("payments.process", {
        "customerId": customer_id, "amount": amount, "paymentMethod": method, "notes": notes,
    }))
    click.echo(f"PASS Payment #{data['paymentId']}: applied {_money(data['amountApplied'])}")
    for update in data["updatedSales"]:
        click.echo(
            f"  sale #{update['saleId']}: paid {_money(update['amountPaid'])}, "
            f"outstanding {_money(update['newOutstanding'])} ({update['paymentStatus']})"
        )
    if data["remainingCredit"]:
        click.echo(f"WARN {_money(data['remainingCredit'])} exceeds the balance and was not applied")


@ledger_group.command('verify')
@with_appcontext
def verify():
    """Check running balances against the rows they summarize."""
    data = _require(_bridge().call("ledger.verify"))
    if data["ok"]:
        click.echo("PASS Ledger is consistent")
        return

    for row in data["balanceMismatches"]:
        click.echo(
            f"FAIL customer {row['customerId']}: balance {_money(row['creditBalance'])} "
            f"!= outstanding {_money(row['outstandingTotal'])}"
        )
    for row in data["stockMismatches"]:
        click.echo(f"FAIL product {row['productId']}: quantity {row['quantity']} != movements {row['movementTotal']}")
    for row in data["saleMismatches"]:
        click.echo(
            f"FAIL sale {row['saleId']}: paid {_money(row['paid'])} + outstanding "
            f"{_money(row['outstanding'])} != total {_money(row['total'])}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(demo_group)
    app.cli.add_command(ledger_group)
