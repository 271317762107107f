# Overview: Read models; listings, statements, dashboard stats and low-stock reports.

"""
Reporting is read-only: nothing here opens a unit of work, so reads never wait
on a writer and only ever see committed rows.

All money values stay in integer cents.
"""

from __future__ import annotations

from sqlalchemy import func, select

from ..errors import NotFoundError
from ..models import (
    Customer,
    CustomerTransaction,
    GeneralLedgerEntry,
    Product,
    Purchase,
    Sale,
    StockAdjustment,
    Supplier,
    SupplierTransaction,
    Warehouse,
)
from .ledger_store import LedgerStore


RECENT_SALES_LIMIT = 5


def _sale_row(sale: Sale, customer_name: str | None) -> dict:
    return {**sale.to_dict(), "customer_name": customer_name}


def _sales_query():
    return (
        select(Sale, Customer.name)
        .outerjoin(Customer, Sale.customer_id == Customer.id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
    )


# =============================================================================
# SALES / PURCHASES
# =============================================================================


def list_sales(store: LedgerStore, *, limit: int | None = None) -> list[dict]:
    query = _sales_query()
    if limit is not None:
        query = query.limit(limit)
    return [_sale_row(sale, name) for sale, name in store.session.execute(query)]


def get_sale(store: LedgerStore, sale_id: int) -> dict:
    sale = store.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    body = _sale_row(sale, sale.customer.name if sale.customer else None)
    body["items"] = [
        {**item.to_dict(), "product_name": item.product.name if item.product else None}
        for item in sale.items
    ]
    return body


def list_purchases(store: LedgerStore) -> list[dict]:
    query = (
        select(Purchase, Supplier.name)
        .outerjoin(Supplier, Purchase.supplier_id == Supplier.id)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
    )
    return [{**purchase.to_dict(), "supplier_name": name} for purchase, name in store.session.execute(query)]


def get_purchase(store: LedgerStore, purchase_id: int) -> dict:
    purchase = store.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError("Purchase not found", details={"purchase_id": purchase_id})
    body = {**purchase.to_dict(), "supplier_name": purchase.supplier.name if purchase.supplier else None}
    body["items"] = [
        {**item.to_dict(), "product_name": item.product.name if item.product else None}
        for item in purchase.items
    ]
    return body


# =============================================================================
# INVENTORY / LEDGER
# =============================================================================


def list_products(store: LedgerStore) -> list[dict]:
    products = store.session.execute(select(Product).order_by(Product.id)).scalars()
    return [p.to_dict() for p in products]


def low_stock_products(store: LedgerStore) -> list[dict]:
    query = (
        select(Product)
        .where(Product.stock_quantity <= Product.min_stock_level)
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
    )
    return [p.to_dict() for p in store.session.execute(query).scalars()]


def list_stock_adjustments(store: LedgerStore) -> list[dict]:
    query = (
        select(StockAdjustment, Product.name)
        .join(Product, StockAdjustment.product_id == Product.id)
        .order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
    )
    return [{**adj.to_dict(), "product_name": name} for adj, name in store.session.execute(query)]


def list_ledger_entries(store: LedgerStore, *, kind: str | None = None) -> list[dict]:
    query = select(GeneralLedgerEntry).order_by(GeneralLedgerEntry.created_at.desc(), GeneralLedgerEntry.id.desc())
    if kind:
        query = query.where(GeneralLedgerEntry.kind == kind)
    return [e.to_dict() for e in store.session.execute(query).scalars()]


def list_warehouses(store: LedgerStore) -> list[dict]:
    return [w.to_dict() for w in store.session.execute(select(Warehouse).order_by(Warehouse.id)).scalars()]


# =============================================================================
# PARTIES
# =============================================================================


def list_customers(store: LedgerStore) -> list[dict]:
    return [c.to_dict() for c in store.session.execute(select(Customer).order_by(Customer.id)).scalars()]


def list_suppliers(store: LedgerStore) -> list[dict]:
    return [s.to_dict() for s in store.session.execute(select(Supplier).order_by(Supplier.id)).scalars()]


def customer_statement(store: LedgerStore, customer_id: int) -> list[dict]:
    """Movement log of one customer, newest first."""
    if store.session.get(Customer, customer_id) is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    query = (
        select(CustomerTransaction)
        .where(CustomerTransaction.customer_id == customer_id)
        .order_by(CustomerTransaction.created_at.desc(), CustomerTransaction.id.desc())
    )
    return [t.to_dict() for t in store.session.execute(query).scalars()]


def supplier_statement(store: LedgerStore, supplier_id: int) -> list[dict]:
    if store.session.get(Supplier, supplier_id) is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
    query = (
        select(SupplierTransaction)
        .where(SupplierTransaction.supplier_id == supplier_id)
        .order_by(SupplierTransaction.created_at.desc(), SupplierTransaction.id.desc())
    )
    return [t.to_dict() for t in store.session.execute(query).scalars()]


# =============================================================================
# DASHBOARD
# =============================================================================


def _scalar_sum(store: LedgerStore, column, *where) -> int:
    query = select(func.coalesce(func.sum(column), 0))
    if where:
        query = query.where(*where)
    return int(store.session.execute(query).scalar_one() or 0)


def dashboard_stats(store: LedgerStore) -> dict:
    session = store.session
    total_products = session.execute(select(func.count(Product.id))).scalar_one()
    low_stock = session.execute(
        select(func.count(Product.id)).where(Product.stock_quantity <= Product.min_stock_level)
    ).scalar_one()

    return {
        "total_sales_cents": _scalar_sum(store, Sale.total_amount_cents),
        "total_purchases_cents": _scalar_sum(store, Purchase.total_amount_cents),
        "total_products": int(total_products or 0),
        "low_stock": int(low_stock or 0),
        "total_revenue_cents": _scalar_sum(store, GeneralLedgerEntry.amount_cents, GeneralLedgerEntry.kind == "revenue"),
        "total_expenses_cents": _scalar_sum(store, GeneralLedgerEntry.amount_cents, GeneralLedgerEntry.kind == "expense"),
        "recent_sales": list_sales(store, limit=RECENT_SALES_LIMIT),
    }
