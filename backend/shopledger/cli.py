# Overview: Flask CLI command groups for bootstrap, backup and ledger checks.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "Password123!"]
#   Idempotent bootstrap: creates tables, default settings and the admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Backups:
# - python -m flask backup export [--out backup.json]
#   Write a full snapshot (stdout when --out is omitted).
# - python -m flask backup import backup.json --yes
#   Replace every table with the snapshot and recompute all balances.
#
# Ledger checks:
# - python -m flask ledger check
#   Report customers/suppliers whose cached balance differs from their movement log.
# - python -m flask ledger recalc
#   Recompute every balance from the movement logs.

import json

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import select

from .errors import LedgerError
from .models import User
from .runtime import get_coordinator, get_store
from .services import auth_service, backup_service, balance_service, settings_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default='Password123!', help='Password for the default admin user')
@with_appcontext
def init_system(admin_password):
    """
    Initialize the shop ledger: schema, default settings and an admin user.

    SECURITY: Change the admin password immediately in production!
    """
    store = get_store()
    click.echo("START Initializing shopledger...")

    store.create_schema()
    click.echo("PASS Schema ready")

    added = settings_service.seed_defaults(store)
    click.echo(f"PASS Default settings added: {added}")

    existing = store.session.execute(select(User.id).filter_by(username="admin")).scalar_one_or_none()
    if existing is not None:
        click.echo("WARN  User 'admin' already exists, skipping...")
    else:
        try:
            user = auth_service.register_user(
                store,
                {"username": "admin", "password": admin_password, "role": "admin"},
                rounds=current_app.config["BCRYPT_ROUNDS"],
            )
            click.echo(f"PASS Created user: admin (ID: {user.id}) with role 'admin'")
        except LedgerError as e:
            raise click.ClickException(f"Failed to create admin user: {e.message}")

    click.echo("DONE shopledger initialized")


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

    store = get_store()
    click.echo("DELETE  Dropping all tables...")
    store.drop_schema()
    click.echo("BUILD Creating all tables...")
    store.create_schema()
    click.echo("PASS Database reset complete")


@click.group('backup')
def backup_group():
    """Full-store snapshot export and restore."""


@backup_group.command('export')
@click.option('--out', 'out_path', type=click.Path(dir_okay=False, writable=True), default=None,
              help='Write to this file instead of stdout')
@with_appcontext
def export_backup(out_path):
    with get_store().unit_of_work("export_backup") as session:
        snapshot = backup_service.export_snapshot(session)

    payload = json.dumps(snapshot, indent=2)
    if out_path is None:
        click.echo(payload)
        return
    with open(out_path, "w", encoding="utf-8") as handle:
        handle.write(payload)
    total = sum(len(rows) for rows in snapshot.values())
    click.echo(f"PASS Exported {total} rows from {len(snapshot)} tables to {out_path}", err=True)


@backup_group.command('import')
@click.argument('snapshot_file', type=click.File('r', encoding='utf-8'))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def import_backup(snapshot_file, yes):
    """Replace ALL data with the snapshot in SNAPSHOT_FILE."""
    try:
        snapshot = json.load(snapshot_file)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Snapshot is not valid JSON: {e}")

    if not yes:
        click.confirm("WARN This will REPLACE ALL DATA. Are you sure?", abort=True)

    try:
        counts = get_coordinator().restore_backup(snapshot)
    except LedgerError as e:
        raise click.ClickException(f"Restore failed: {e.message}")

    for table, count in counts.items():
        click.echo(f"  {table}: {count}")
    click.echo("PASS Restore complete")


@click.group('ledger')
def ledger_group():
    """Balance consistency checks."""


@ledger_group.command('check')
@with_appcontext
def check_balances():
    drift = balance_service.find_balance_drift(get_store().session)
    if not drift:
        click.echo("PASS All balances match their movement logs")
        return
    for item in drift:
        click.echo(
            f"FAIL {item.party} {item.party_id}: cached {item.cached_cents}, derived {item.derived_cents}"
        )
    raise SystemExit(1)


@ledger_group.command('recalc')
@with_appcontext
def recalc_balances():
    with get_store().unit_of_work("recalculate_balances") as session:
        counts = balance_service.recalculate_all_balances(session)
    click.echo(f"PASS Recomputed {counts['customers']} customer and {counts['suppliers']} supplier balances")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(backup_group)
    app.cli.add_command(ledger_group)
