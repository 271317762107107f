# Overview: Master data writes (products, customers, suppliers, warehouses).

"""
Catalog Invariants (authoritative)

- Master rows are created explicitly and never deleted.
- products.opening_stock is fixed at creation and equals the initial
  stock_quantity. Product edits can never touch either stock column; stock
  moves only through sales, purchases and adjustments.
- SKU is unique; a duplicate is a ConflictError.
- Customers are created through the TransactionCoordinator because an opening
  balance writes a movement row as well.
"""

from __future__ import annotations

from sqlalchemy import select

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Customer, Product, Supplier, Warehouse
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_customer,
    enforce_rules_product,
    validate_payload,
)
from .ledger_store import LedgerStore
from .transaction_coordinator import TransactionCoordinator


PRODUCT_FIELDS = {
    "name", "category", "brand", "model", "sku",
    "price_cents", "unit_cost_cents", "min_stock_level",
    "unit", "notes", "warehouse_id", "location",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_FIELDS | {"stock_quantity"},
    required_on_create={"name", "sku"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(writable_fields=PRODUCT_FIELDS)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "opening_balance_cents", "notes"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "phone", "email", "notes"},
    required_on_create={"name"},
)

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "location", "notes"},
    required_on_create={"name"},
)


def _check_warehouse(session, patch: dict) -> None:
    warehouse_id = patch.get("warehouse_id")
    if warehouse_id is not None and session.get(Warehouse, warehouse_id) is None:
        raise ValidationError(f"Warehouse {warehouse_id} not found", details={"warehouse_id": warehouse_id})


def _check_sku_free(session, sku: str, *, exclude_id: int | None = None) -> None:
    query = select(Product.id).filter_by(sku=sku)
    if exclude_id is not None:
        query = query.where(Product.id != exclude_id)
    if session.execute(query).first() is not None:
        raise ConflictError("SKU already exists", details={"sku": sku})


def create_product(store: LedgerStore, payload: dict | None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)

    with store.unit_of_work("create_product") as session:
        _check_warehouse(session, patch)
        _check_sku_free(session, patch["sku"])
        stock = patch.pop("stock_quantity", None) or 0
        product = Product(**patch, stock_quantity=stock, opening_stock=stock)
        session.add(product)
        session.flush()
        return product


def update_product(store: LedgerStore, product_id: int, payload: dict | None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)

    with store.unit_of_work("update_product") as session:
        product = session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        _check_warehouse(session, patch)
        if "sku" in patch:
            _check_sku_free(session, patch["sku"], exclude_id=product.id)
        for key, value in patch.items():
            setattr(product, key, value)
        session.flush()
        return product


def create_customer(coordinator: TransactionCoordinator, payload: dict | None) -> int:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)
    return coordinator.add_customer(patch).id


def create_supplier(store: LedgerStore, payload: dict | None) -> Supplier:
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    with store.unit_of_work("create_supplier") as session:
        supplier = Supplier(**patch, balance_cents=0)
        session.add(supplier)
        session.flush()
        return supplier


def create_warehouse(store: LedgerStore, payload: dict | None) -> Warehouse:
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
    with store.unit_of_work("create_warehouse") as session:
        warehouse = Warehouse(**patch)
        session.add(warehouse)
        session.flush()
        return warehouse
