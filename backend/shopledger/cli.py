# Overview: Flask CLI command group for bootstrap, settings, and ledger reconciliation.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger init-db
#   Create all tables (idempotent) and the default settings row.
# - python -m flask ledger reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask ledger settings [--allow-negative-stock | --no-allow-negative-stock]
#   Show settings, or change the negative-stock policy.
# - python -m flask ledger reconcile
#   Check invoice totals, party balances and stock against their history.
#   Exits with status 1 if anything drifted.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import reconcile_service, settings_service


@click.group('ledger')
def ledger_group():
    """Ledger bootstrap and maintenance commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables that do not exist yet."""
    db.create_all()
    settings = settings_service.get_settings()
    click.echo(f"PASS Tables ready (allow_negative_stock={settings.allow_negative_stock})")


@ledger_group.command('reset-db')
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
    settings_service.get_settings()

    click.echo("PASS Database reset complete.")


@ledger_group.command('settings')
@click.option('--allow-negative-stock/--no-allow-negative-stock', default=None,
              help='Allow sales to drive stock below zero')
@with_appcontext
def settings_cmd(allow_negative_stock):
    """Show or update system settings."""
    if allow_negative_stock is not None:
        settings = settings_service.update_settings(
            allow_negative_stock=allow_negative_stock, actor_id="cli",
        )
    else:
        settings = settings_service.get_settings()
    click.echo(f"allow_negative_stock: {settings.allow_negative_stock}")


@ledger_group.command('reconcile')
@with_appcontext
def reconcile():
    """Report ledger drift; non-zero exit if any check fails."""
    report = reconcile_service.run_reconciliation()

    for section in ("invoices", "parties", "stock"):
        problems = report[section]
        if not problems:
            click.echo(f"PASS {section}")
            continue
        click.echo(f"FAIL {section}: {len(problems)} mismatch(es)")
        for problem in problems:
            click.echo(f"  {problem}")

    if not report["ok"]:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
