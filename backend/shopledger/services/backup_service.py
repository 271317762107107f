# Overview: Backup Codec; exports the whole store to a snapshot and validates/applies restores.

"""
Backup Snapshot Format

A snapshot is one JSON object with exactly one key per table in SNAPSHOT_TABLES,
each holding the complete list of that table's rows:

    {"users": [{"id": 1, "username": "admin", ...}], "settings": [...], ...}

- Rows carry every column, including primary keys, so references survive.
- Datetimes are ISO-8601 strings with a trailing 'Z'.
- No schema version negotiation: a snapshot from an incompatible schema fails
  validation or is undefined behavior (caller's responsibility).

Restore contract:
- The snapshot is validated against the statically declared per-table schema
  (derived from the ORM models) before anything is deleted.
- A table's column set is the key set of its first row; every other row must
  carry exactly the same keys.
- An empty list empties the table.
- Missing tables (partial snapshot) or unknown keys are rejected.
- Applying it is a single unit of work (see TransactionCoordinator.restore_backup).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import String, Text, select
from sqlalchemy.orm import Session

from ..errors import SnapshotError, ValidationError
from ..models import (
    User,
    Setting,
    Warehouse,
    Product,
    Customer,
    Supplier,
    Sale,
    SaleItem,
    Purchase,
    PurchaseItem,
    CustomerTransaction,
    SupplierTransaction,
    GeneralLedgerEntry,
    StockAdjustment,
    MaintenanceJob,
)
from ..validation import coerce_column_value
from shopledger.time_utils import to_utc_z


# Fixed order: parents before children. Deletes run in reverse.
SNAPSHOT_TABLES: tuple[tuple[str, Any], ...] = (
    ("users", User),
    ("settings", Setting),
    ("warehouses", Warehouse),
    ("products", Product),
    ("customers", Customer),
    ("suppliers", Supplier),
    ("sales", Sale),
    ("sale_items", SaleItem),
    ("purchases", Purchase),
    ("purchase_items", PurchaseItem),
    ("transactions", CustomerTransaction),
    ("supplier_transactions", SupplierTransaction),
    ("general_ledger", GeneralLedgerEntry),
    ("stock_adjustments", StockAdjustment),
    ("maintenance", MaintenanceJob),
)

TABLE_NAMES = tuple(name for name, _ in SNAPSHOT_TABLES)


@dataclass(frozen=True)
class TableSchema:
    name: str
    model: Any
    columns: dict[str, Any]
    required: frozenset[str]

    @property
    def table(self):
        return self.model.__table__


def _schema_for(name: str, model) -> TableSchema:
    columns = {c.name: c for c in model.__table__.columns}
    required = frozenset(
        c.name
        for c in columns.values()
        if c.primary_key
        or (not c.nullable and c.default is None and c.server_default is None)
    )
    return TableSchema(name=name, model=model, columns=columns, required=required)


TABLE_SCHEMAS: dict[str, TableSchema] = {name: _schema_for(name, model) for name, model in SNAPSHOT_TABLES}


# =============================================================================
# EXPORT
# =============================================================================


def _export_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_utc_z(value)
    return value


def export_table(session: Session, schema: TableSchema) -> list[dict]:
    table = schema.table
    primary_key = list(table.primary_key.columns)
    rows = session.execute(select(table).order_by(*primary_key)).mappings().all()
    return [{key: _export_value(value) for key, value in row.items()} for row in rows]


def export_snapshot(session: Session) -> dict[str, list[dict]]:
    """Complete, unfiltered copy of every table, in SNAPSHOT_TABLES order."""
    session.flush()
    return {name: export_table(session, TABLE_SCHEMAS[name]) for name in TABLE_NAMES}


# =============================================================================
# VALIDATION
# =============================================================================


def _coerce_snapshot_value(column, value: Any):
    # Text is restored byte-for-byte; trimming only happens on API input
    if isinstance(column.type, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{column.key} must be a string")
        return value if isinstance(value, str) else str(value)
    return coerce_column_value(column, value)


def _validate_rows(schema: TableSchema, rows: Any) -> list[dict]:
    if not isinstance(rows, list):
        raise SnapshotError(f"Table {schema.name} must be a list of rows", details={"table": schema.name})
    if not rows:
        return []

    first = rows[0]
    if not isinstance(first, dict):
        raise SnapshotError(f"Table {schema.name} row 0 must be an object", details={"table": schema.name, "row": 0})

    column_set = set(first.keys())
    unknown = sorted(column_set - set(schema.columns))
    if unknown:
        raise SnapshotError(
            f"Table {schema.name} has undeclared columns: {', '.join(unknown)}",
            details={"table": schema.name, "columns": unknown},
        )
    missing = sorted(schema.required - column_set)
    if missing:
        raise SnapshotError(
            f"Table {schema.name} is missing required columns: {', '.join(missing)}",
            details={"table": schema.name, "columns": missing},
        )

    normalized = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict) or set(row.keys()) != column_set:
            raise SnapshotError(
                f"Table {schema.name} row {index} does not match the column set of row 0",
                details={"table": schema.name, "row": index},
            )
        clean = {}
        for key, raw in row.items():
            column = schema.columns[key]
            if raw is None:
                if not column.nullable:
                    raise SnapshotError(
                        f"Table {schema.name} row {index}: {key} cannot be null",
                        details={"table": schema.name, "row": index, "column": key},
                    )
                clean[key] = None
                continue
            try:
                clean[key] = _coerce_snapshot_value(column, raw)
            except ValidationError as exc:
                raise SnapshotError(
                    f"Table {schema.name} row {index}: {exc.message}",
                    details={"table": schema.name, "row": index, "column": key},
                ) from exc
        normalized.append(clean)
    return normalized


def validate_snapshot(snapshot: Any) -> dict[str, list[dict]]:
    """
    Check a snapshot against the static per-table schema.

    Returns normalized rows per table (datetimes parsed, integers coerced).
    Raises SnapshotError without touching the store.
    """
    if not isinstance(snapshot, dict):
        raise SnapshotError("Snapshot must be a JSON object keyed by table name")

    missing = [name for name in TABLE_NAMES if name not in snapshot]
    if missing:
        raise SnapshotError(
            "Partial snapshot: missing tables " + ", ".join(missing),
            details={"missing_tables": missing},
        )
    unknown = sorted(set(snapshot) - set(TABLE_NAMES))
    if unknown:
        raise SnapshotError(
            "Snapshot has unknown tables " + ", ".join(unknown),
            details={"unknown_tables": unknown},
        )

    return {name: _validate_rows(TABLE_SCHEMAS[name], snapshot[name]) for name in TABLE_NAMES}


# =============================================================================
# APPLY
# =============================================================================


def replace_all(session: Session, normalized: dict[str, list[dict]]) -> dict[str, int]:
    """
    Delete every table's rows, then bulk-insert the snapshot rows.

    Must run inside a unit of work; it does not commit.
    """
    for name in reversed(TABLE_NAMES):
        session.execute(TABLE_SCHEMAS[name].table.delete())

    counts = {}
    for name in TABLE_NAMES:
        rows = normalized.get(name) or []
        if rows:
            session.execute(TABLE_SCHEMAS[name].table.insert(), rows)
        counts[name] = len(rows)

    # ORM state loaded before the restore no longer matches the tables
    session.expire_all()
    return counts
