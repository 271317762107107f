# Overview: Balance Recalculator; derives customer/supplier balances from their movement logs.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from ..models import Customer, CustomerTransaction, Supplier, SupplierTransaction
"""
Balance Invariants (authoritative)

- customer.balance_cents == SUM(amount_cents WHERE kind='sale')
                            - SUM(amount_cents WHERE kind='payment')
  over every `transactions` row of that customer.
- supplier.balance_cents: same rule over `supplier_transactions` with
  'purchase' / 'payment'.
- Always recomputed from the full history, never incrementally, so the cached
  column heals itself after a restore or a direct edit of movement rows.
- A party with no movement rows (or no row at all) has balance 0.
"""


@dataclass(frozen=True)
class BalanceDrift:
    party: str
    party_id: int
    cached_cents: int
    derived_cents: int


def _aggregate(session: Session, movement_model, party_column, party_id: int, increase_kind: str) -> int:
    session.flush()
    increases = func.coalesce(
        func.sum(case((movement_model.kind == increase_kind, movement_model.amount_cents), else_=0)),
        0,
    )
    payments = func.coalesce(
        func.sum(case((movement_model.kind == "payment", movement_model.amount_cents), else_=0)),
        0,
    )
    row = session.execute(
        select(increases.label("increases"), payments.label("payments")).where(party_column == party_id)
    ).one()
    return int(row.increases or 0) - int(row.payments or 0)


def customer_balance_cents(session: Session, customer_id: int) -> int:
    return _aggregate(session, CustomerTransaction, CustomerTransaction.customer_id, customer_id, "sale")


def supplier_balance_cents(session: Session, supplier_id: int) -> int:
    return _aggregate(session, SupplierTransaction, SupplierTransaction.supplier_id, supplier_id, "purchase")


def recalculate_customer_balance(session: Session, customer_id: int) -> int:
    """Recompute and persist the cached balance. Returns the new balance."""
    balance = customer_balance_cents(session, customer_id)
    session.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(balance_cents=balance)
        .execution_options(synchronize_session="evaluate")
    )
    return balance


def recalculate_supplier_balance(session: Session, supplier_id: int) -> int:
    balance = supplier_balance_cents(session, supplier_id)
    session.execute(
        update(Supplier)
        .where(Supplier.id == supplier_id)
        .values(balance_cents=balance)
        .execution_options(synchronize_session="evaluate")
    )
    return balance


def recalculate_all_balances(session: Session) -> dict[str, int]:
    """
    Recompute every customer and supplier balance.

    Mandatory after a restore: the snapshot's cached columns are not trusted.
    Returns how many parties of each kind were recomputed.
    """
    customer_ids = session.execute(select(Customer.id).order_by(Customer.id)).scalars().all()
    for customer_id in customer_ids:
        recalculate_customer_balance(session, customer_id)

    supplier_ids = session.execute(select(Supplier.id).order_by(Supplier.id)).scalars().all()
    for supplier_id in supplier_ids:
        recalculate_supplier_balance(session, supplier_id)

    return {"customers": len(customer_ids), "suppliers": len(supplier_ids)}


def find_balance_drift(session: Session) -> list[BalanceDrift]:
    """Read-only check: parties whose cached balance differs from their log."""
    drift: list[BalanceDrift] = []
    for customer in session.execute(select(Customer).order_by(Customer.id)).scalars():
        derived = customer_balance_cents(session, customer.id)
        if derived != customer.balance_cents:
            drift.append(BalanceDrift("customer", customer.id, customer.balance_cents, derived))
    for supplier in session.execute(select(Supplier).order_by(Supplier.id)).scalars():
        derived = supplier_balance_cents(session, supplier.id)
        if derived != supplier.balance_cents:
            drift.append(BalanceDrift("supplier", supplier.id, supplier.balance_cents, derived))
    return drift
