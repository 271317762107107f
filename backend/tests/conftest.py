"""
Pytest fixtures for shopledger backend tests.

Every test gets a fresh app on an in-memory SQLite database, so there is no
shared state between tests.
"""

import pytest

from shopledger import create_app
from shopledger.runtime import get_coordinator, get_store
from shopledger.validation import (
    parse_payment_command,
    parse_purchase_command,
    parse_sale_command,
)


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'AUTO_CREATE_SCHEMA': True,
    'BCRYPT_ROUNDS': 4,
    'LOG_LEVEL': 'DEBUG',
}


@pytest.fixture
def make_app():
    """Factory for apps with config overrides (e.g. a different stock policy)."""
    def _make(**overrides):
        return create_app({**TEST_CONFIG, **overrides})
    return _make


@pytest.fixture
def app(make_app):
    app = make_app()
    yield app
    with app.app_context():
        get_store().dispose()


@pytest.fixture
def client(app):
    """Create test client. Do not hold an app context open while using it."""
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Service-level tests run inside one app context."""
    with app.app_context():
        yield app


@pytest.fixture
def store(ctx):
    return get_store()


@pytest.fixture
def coordinator(ctx):
    return get_coordinator()


# =============================================================================
# DATA HELPERS (service level)
# =============================================================================


@pytest.fixture
def make_product(store):
    from shopledger.services import catalog_service

    counter = {"n": 0}

    def _make(stock=10, cost=500, price=1000, min_stock_level=5, **extra):
        counter["n"] += 1
        payload = {
            "name": extra.pop("name", f"Phone {counter['n']}"),
            "sku": extra.pop("sku", f"SKU-{counter['n']:03d}"),
            "stock_quantity": stock,
            "unit_cost_cents": cost,
            "price_cents": price,
            "min_stock_level": min_stock_level,
            **extra,
        }
        return catalog_service.create_product(store, payload)
    return _make


@pytest.fixture
def make_customer(coordinator):
    from shopledger.services import catalog_service

    def _make(name="Ali", opening_balance_cents=0):
        return catalog_service.create_customer(
            coordinator, {"name": name, "opening_balance_cents": opening_balance_cents}
        )
    return _make


@pytest.fixture
def make_supplier(store):
    from shopledger.services import catalog_service

    def _make(name="Gulf Wholesale"):
        return catalog_service.create_supplier(store, {"name": name}).id
    return _make


@pytest.fixture
def sell(coordinator):
    """Record a sale of (product_id, quantity, unit_price_cents) lines."""
    def _sell(lines, *, customer_id=None, payment_status="unpaid", discount_cents=0):
        items = [
            {"product_id": pid, "quantity": qty, "unit_price_cents": price}
            for pid, qty, price in lines
        ]
        total = sum(qty * price for _, qty, price in lines) - discount_cents
        command = parse_sale_command({
            "customer_id": customer_id,
            "items": items,
            "total_amount_cents": total,
            "discount_cents": discount_cents,
            "payment_status": payment_status,
        })
        return coordinator.record_sale(command)
    return _sell


@pytest.fixture
def buy(coordinator):
    """Record a purchase of (product_id, quantity, unit_cost_cents) lines."""
    def _buy(supplier_id, lines, *, payment_status="unpaid"):
        items = [
            {"product_id": pid, "quantity": qty, "unit_cost_cents": cost}
            for pid, qty, cost in lines
        ]
        command = parse_purchase_command({
            "supplier_id": supplier_id,
            "items": items,
            "total_amount_cents": sum(qty * cost for _, qty, cost in lines),
            "payment_status": payment_status,
        })
        return coordinator.record_purchase(command)
    return _buy


@pytest.fixture
def pay_customer(coordinator):
    def _pay(customer_id, amount_cents, description=None):
        command = parse_payment_command(
            {"customer_id": customer_id, "amount_cents": amount_cents, "description": description},
            "customer_id",
        )
        return coordinator.record_customer_payment(command)
    return _pay
