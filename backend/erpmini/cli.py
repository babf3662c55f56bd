# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/erpmini/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--branch "Main Branch"]
#   Idempotent bootstrap: creates tables, a default branch, a cash and a bank account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Branches:
# - python -m flask branches list
# - python -m flask branches create --name "Uptown" --code "UPT"
#
# Accounts:
# - python -m flask accounts list --branch-id 1
# - python -m flask accounts create --branch-id 1 --name "Petty Cash" --type cash --opening-balance 500

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Account, Branch
from .services import branch_service
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--branch', 'branch_name', default='Main Branch', help='Default branch name')
@click.option('--branch-code', default='MAIN', help='Default branch code')
@with_appcontext
def init_system(branch_name, branch_code):
    """
    Initialize the ERP: schema, default branch, a cash and a bank account.

    Safe to run repeatedly; existing rows are reused.
    """
    click.echo("START Initializing ERP Mini...")

    db.create_all()

    branch = db.session.query(Branch).filter_by(name=branch_name).first()
    if not branch:
        branch = branch_service.create_branch({"name": branch_name, "code": branch_code})
        click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    for account_type, name in (("cash", "Cash"), ("bank", "Bank")):
        exists = db.session.query(Account).filter_by(branch_id=branch.id, type=account_type).first()
        if exists:
            click.echo(f"PASS {account_type} account exists: {exists.name} (ID: {exists.id})")
            continue
        account = branch_service.create_account(branch.id, {"name": name, "type": account_type})
        click.echo(f"PASS Created {account_type} account: {account.name} (ID: {account.id})")

    click.echo("DONE ERP Mini initialized.")


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


@click.group('branches')
def branches_group():
    """Branch management."""


@branches_group.command('list')
@with_appcontext
def list_branches():
    branches = branch_service.list_branches()
    if not branches:
        click.echo("No branches found.")
        return
    for b in branches:
        click.echo(f"{b.id:>4}  {b.code or '-':<8}  {b.name}")


@branches_group.command('create')
@click.option('--name', required=True)
@click.option('--code', default=None)
@with_appcontext
def create_branch(name, code):
    try:
        branch = branch_service.create_branch({"name": name, "code": code})
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")


@click.group('accounts')
def accounts_group():
    """Cash/bank account management."""


@accounts_group.command('list')
@click.option('--branch-id', type=int, required=True)
@with_appcontext
def list_accounts(branch_id):
    accounts = branch_service.list_accounts(branch_id)
    if not accounts:
        click.echo("No accounts found.")
        return
    for a in accounts:
        click.echo(f"{a.id:>4}  {a.type:<5}  {Decimal(a.current_balance):>14.2f}  {a.name}")


@accounts_group.command('create')
@click.option('--branch-id', type=int, required=True)
@click.option('--name', required=True)
@click.option('--type', 'account_type', type=click.Choice(['cash', 'bank']), required=True)
@click.option('--opening-balance', default='0.00', help='Opening balance')
@with_appcontext
def create_account(branch_id, name, account_type, opening_balance):
    try:
        account = branch_service.create_account(
            branch_id,
            {"name": name, "type": account_type, "current_balance": opening_balance},
        )
    except (ValidationError, NotFoundError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created {account.type} account: {account.name} (ID: {account.id})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(accounts_group)
