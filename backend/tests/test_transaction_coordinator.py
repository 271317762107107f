"""
Transaction Coordinator tests.

Each operation is one unit: either every row it writes is visible afterwards
or none is, and touched balances always match the movement log.
"""

import pytest

from shopledger.errors import ConflictError, InsufficientStockError, ValidationError
from shopledger.models import (
    Customer,
    CustomerTransaction,
    GeneralLedgerEntry,
    Product,
    Purchase,
    PurchaseItem,
    Sale,
    SaleItem,
    StockAdjustment,
    Supplier,
    SupplierTransaction,
)
from shopledger.runtime import get_coordinator, get_store
from shopledger.services.balance_service import find_balance_drift
from shopledger.validation import (
    parse_ledger_entry_command,
    parse_payment_command,
    parse_sale_command,
    parse_stock_adjustment_command,
)


def _movements(session, model, **filters):
    return [(m.kind, m.amount_cents, m.description) for m in session.query(model).filter_by(**filters).order_by(model.id)]


# =============================================================================
# SALES
# =============================================================================


def test_unpaid_sale_to_customer(store, make_customer, make_product, sell):
    customer_id = make_customer()
    product = make_product(stock=10)

    result = sell([(product.id, 3, 1500)], customer_id=customer_id)

    session = store.session
    sale = session.get(Sale, result.id)
    assert sale.total_amount_cents == 4500
    assert [(i.product_id, i.quantity, i.subtotal_cents) for i in sale.items] == [(product.id, 3, 4500)]
    assert session.get(Product, product.id).stock_quantity == 7
    assert _movements(session, CustomerTransaction, customer_id=customer_id) == [
        ("sale", 4500, f"Sale #{result.id}"),
    ]
    assert session.get(Customer, customer_id).balance_cents == 4500
    assert result.warnings == []


def test_paid_sale_writes_offsetting_payment(store, make_customer, make_product, sell):
    customer_id = make_customer()
    product = make_product(stock=10)

    result = sell([(product.id, 1, 2000)], customer_id=customer_id, payment_status="paid")

    assert _movements(store.session, CustomerTransaction, customer_id=customer_id) == [
        ("sale", 2000, f"Sale #{result.id}"),
        ("payment", 2000, f"Payment for Sale #{result.id}"),
    ]
    assert store.session.get(Customer, customer_id).balance_cents == 0


def test_partial_sale_only_writes_the_sale_movement(store, make_customer, make_product, sell):
    customer_id = make_customer()
    product = make_product()

    sell([(product.id, 1, 2000)], customer_id=customer_id, payment_status="partial")

    assert [m[0] for m in _movements(store.session, CustomerTransaction, customer_id=customer_id)] == ["sale"]
    assert store.session.get(Customer, customer_id).balance_cents == 2000


def test_walk_in_sale_touches_no_customer(store, make_product, sell):
    product = make_product(stock=2)
    result = sell([(product.id, 2, 999)], payment_status="paid")

    assert store.session.get(Sale, result.id).customer_id is None
    assert store.session.query(CustomerTransaction).count() == 0
    assert store.session.get(Product, product.id).stock_quantity == 0


def test_sale_with_discount(store, make_customer, make_product, sell):
    customer_id = make_customer()
    product = make_product()

    result = sell([(product.id, 2, 1000)], customer_id=customer_id, discount_cents=300)

    sale = store.session.get(Sale, result.id)
    assert (sale.total_amount_cents, sale.discount_cents) == (1700, 300)
    assert store.session.get(Customer, customer_id).balance_cents == 1700


def test_oversell_is_flagged_under_allow_policy(store, make_product, sell):
    product = make_product(stock=1)

    result = sell([(product.id, 3, 100)])

    assert store.session.get(Product, product.id).stock_quantity == -2
    assert result.warnings == [{"code": "negative_stock", "product_id": product.id, "before": 1, "after": -2}]


def test_oversell_rolls_back_everything_under_reject_policy(make_app):
    app = make_app(NEGATIVE_STOCK_POLICY="reject")
    with app.app_context():
        from shopledger.services import catalog_service

        store = get_store()
        customer_id = catalog_service.create_customer(get_coordinator(), {"name": "Sara"})
        plenty = catalog_service.create_product(store, {"name": "Case", "sku": "C-1", "stock_quantity": 50})
        scarce = catalog_service.create_product(store, {"name": "Phone", "sku": "P-1", "stock_quantity": 1})

        command = parse_sale_command({
            "customer_id": customer_id,
            "items": [
                {"product_id": plenty.id, "quantity": 5, "unit_price_cents": 100},
                {"product_id": scarce.id, "quantity": 2, "unit_price_cents": 1000},
            ],
            "total_amount_cents": 2500,
            "payment_status": "unpaid",
        })
        with pytest.raises(InsufficientStockError):
            get_coordinator().record_sale(command)

        session = store.session
        assert session.query(Sale).count() == 0
        assert session.query(SaleItem).count() == 0
        assert session.query(CustomerTransaction).count() == 0
        assert session.get(Product, plenty.id).stock_quantity == 50
        assert session.get(Product, scarce.id).stock_quantity == 1
        store.dispose()


def test_unknown_product_aborts_sale(store, coordinator, make_customer, make_product):
    customer_id = make_customer()
    product = make_product(stock=10)
    command = parse_sale_command({
        "customer_id": customer_id,
        "items": [
            {"product_id": product.id, "quantity": 1, "unit_price_cents": 100},
            {"product_id": 9999, "quantity": 1, "unit_price_cents": 100},
        ],
        "total_amount_cents": 200,
        "payment_status": "unpaid",
    })

    with pytest.raises(ValidationError):
        coordinator.record_sale(command)

    assert store.session.query(Sale).count() == 0
    assert store.session.get(Product, product.id).stock_quantity == 10
    assert store.session.get(Customer, customer_id).balance_cents == 0


def test_unknown_customer_aborts_sale(store, coordinator, make_product):
    product = make_product(stock=10)
    command = parse_sale_command({
        "customer_id": 77,
        "items": [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
        "total_amount_cents": 100,
        "payment_status": "unpaid",
    })
    with pytest.raises(ValidationError):
        coordinator.record_sale(command)
    assert store.session.get(Product, product.id).stock_quantity == 10


def test_sale_item_can_reference_sku(store, make_product, coordinator):
    product = make_product(stock=3, sku="GLX-S24")
    command = parse_sale_command({
        "items": [{"sku": "GLX-S24", "quantity": 1, "unit_price_cents": 100}],
        "total_amount_cents": 100,
        "payment_status": "paid",
    })
    coordinator.record_sale(command)
    assert store.session.get(Product, product.id).stock_quantity == 2


# =============================================================================
# PURCHASES
# =============================================================================


def test_unpaid_purchase(store, make_supplier, make_product, buy):
    supplier_id = make_supplier()
    product = make_product(stock=2, cost=800)

    result = buy(supplier_id, [(product.id, 5, 900)])

    session = store.session
    purchase = session.get(Purchase, result.id)
    assert purchase.total_amount_cents == 4500
    assert [(i.quantity, i.unit_cost_cents) for i in purchase.items] == [(5, 900)]
    assert _movements(session, SupplierTransaction, supplier_id=supplier_id) == [
        ("purchase", 4500, f"Purchase #{result.id}"),
    ]
    assert session.get(Supplier, supplier_id).balance_cents == 4500
    refreshed = session.get(Product, product.id)
    assert refreshed.stock_quantity == 7
    # Last cost wins by default
    assert refreshed.unit_cost_cents == 900


def test_paid_purchase_nets_to_zero(store, make_supplier, make_product, buy):
    supplier_id = make_supplier()
    product = make_product()

    result = buy(supplier_id, [(product.id, 1, 100)], payment_status="paid")

    assert _movements(store.session, SupplierTransaction, supplier_id=supplier_id) == [
        ("purchase", 100, f"Purchase #{result.id}"),
        ("payment", 100, f"Payment for Purchase #{result.id}"),
    ]
    assert store.session.get(Supplier, supplier_id).balance_cents == 0


def test_purchase_with_weighted_average_cost(make_app):
    app = make_app(COST_BASIS_POLICY="weighted_average")
    with app.app_context():
        from shopledger.services import catalog_service
        from shopledger.validation import parse_purchase_command

        store = get_store()
        supplier = catalog_service.create_supplier(store, {"name": "Acme"})
        product = catalog_service.create_product(
            store, {"name": "Charger", "sku": "CH-1", "stock_quantity": 10, "unit_cost_cents": 100}
        )
        get_coordinator().record_purchase(parse_purchase_command({
            "supplier_id": supplier.id,
            "items": [{"product_id": product.id, "quantity": 10, "unit_cost_cents": 200}],
            "total_amount_cents": 2000,
            "payment_status": "paid",
        }))

        refreshed = store.session.get(Product, product.id)
        assert refreshed.stock_quantity == 20
        assert refreshed.unit_cost_cents == 150
        store.dispose()


def test_purchase_from_unknown_supplier_writes_nothing(store, buy, make_product):
    product = make_product(stock=1)
    with pytest.raises(ValidationError):
        buy(404, [(product.id, 1, 100)])
    assert store.session.query(Purchase).count() == 0
    assert store.session.query(PurchaseItem).count() == 0
    assert store.session.get(Product, product.id).stock_quantity == 1


def test_purchase_with_unknown_product_rolls_back_supplier_movements(store, make_supplier, buy):
    supplier_id = make_supplier()
    with pytest.raises(ValidationError):
        buy(supplier_id, [(4242, 1, 100)])
    assert store.session.query(SupplierTransaction).count() == 0
    assert store.session.get(Supplier, supplier_id).balance_cents == 0


# =============================================================================
# PAYMENTS / ADJUSTMENTS / LEDGER
# =============================================================================


def test_customer_payment(store, make_customer, pay_customer):
    customer_id = make_customer(opening_balance_cents=5000)

    result = pay_customer(customer_id, 1200, "Cash")

    movement = store.session.get(CustomerTransaction, result.id)
    assert (movement.kind, movement.amount_cents, movement.description) == ("payment", 1200, "Cash")
    assert store.session.get(Customer, customer_id).balance_cents == 3800


def test_overpayment_leaves_a_credit(store, make_customer, pay_customer):
    customer_id = make_customer()
    pay_customer(customer_id, 500)
    assert store.session.get(Customer, customer_id).balance_cents == -500


def test_payment_for_unknown_customer(store, pay_customer):
    with pytest.raises(ValidationError):
        pay_customer(31337, 100)
    assert store.session.query(CustomerTransaction).count() == 0


def test_supplier_payment_default_description(store, coordinator, make_supplier, buy, make_product):
    supplier_id = make_supplier()
    buy(supplier_id, [(make_product().id, 2, 1000)])

    result = coordinator.record_supplier_payment(
        parse_payment_command({"supplier_id": supplier_id, "amount_cents": 1500}, "supplier_id")
    )

    movement = store.session.get(SupplierTransaction, result.id)
    assert movement.description == "Payment to supplier"
    assert store.session.get(Supplier, supplier_id).balance_cents == 500


@pytest.mark.parametrize("kind", ["damaged", "lost", "correction"])
def test_stock_adjustment_always_subtracts(store, coordinator, make_product, kind):
    product = make_product(stock=10)

    result = coordinator.record_stock_adjustment(parse_stock_adjustment_command({
        "product_id": product.id, "kind": kind, "quantity": 3, "reason": "Shelf check",
    }))

    adjustment = store.session.get(StockAdjustment, result.id)
    assert (adjustment.kind, adjustment.quantity) == (kind, 3)
    assert store.session.get(Product, product.id).stock_quantity == 7


def test_stock_adjustment_below_zero_is_flagged_under_allow_policy(store, coordinator, make_product):
    product = make_product(stock=2)

    result = coordinator.record_stock_adjustment(parse_stock_adjustment_command({
        "product_id": product.id, "kind": "lost", "quantity": 5, "reason": "Stolen display units",
    }))

    assert store.session.get(StockAdjustment, result.id).quantity == 5
    assert store.session.get(Product, product.id).stock_quantity == -3
    assert result.warnings == [{"code": "negative_stock", "product_id": product.id, "before": 2, "after": -3}]


def test_stock_adjustment_below_zero_is_rejected_under_reject_policy(make_app):
    app = make_app(NEGATIVE_STOCK_POLICY="reject")
    with app.app_context():
        from shopledger.services import catalog_service

        store = get_store()
        product = catalog_service.create_product(store, {"name": "Charger", "sku": "CH-1", "stock_quantity": 2})

        with pytest.raises(InsufficientStockError):
            get_coordinator().record_stock_adjustment(parse_stock_adjustment_command({
                "product_id": product.id, "kind": "damaged", "quantity": 5, "reason": "Water damage",
            }))

        assert store.session.query(StockAdjustment).count() == 0
        assert store.session.get(Product, product.id).stock_quantity == 2
        store.dispose()


def test_ledger_entry_has_no_side_effects(store, coordinator, make_customer):
    customer_id = make_customer(opening_balance_cents=100)

    result = coordinator.record_ledger_entry(parse_ledger_entry_command({
        "kind": "expense", "category": "rent", "amount_cents": 250000, "description": "March rent",
    }))

    entry = store.session.get(GeneralLedgerEntry, result.id)
    assert (entry.kind, entry.category, entry.amount_cents) == ("expense", "rent", 250000)
    assert store.session.get(Customer, customer_id).balance_cents == 100


# =============================================================================
# CROSS-CUTTING
# =============================================================================


def test_balances_match_logs_after_mixed_activity(store, make_customer, make_supplier, make_product, sell, buy, pay_customer):
    ali = make_customer("Ali", opening_balance_cents=1000)
    mona = make_customer("Mona")
    supplier_id = make_supplier()
    phone = make_product(stock=5)
    case = make_product(stock=20)

    sell([(phone.id, 1, 30000), (case.id, 2, 1500)], customer_id=ali)
    sell([(case.id, 1, 1500)], customer_id=mona, payment_status="paid")
    pay_customer(ali, 10000)
    buy(supplier_id, [(phone.id, 3, 25000)], payment_status="partial")

    assert find_balance_drift(store.session) == []
    assert store.session.get(Customer, ali).balance_cents == 1000 + 33000 - 10000
    assert store.session.get(Customer, mona).balance_cents == 0
    assert store.session.get(Supplier, supplier_id).balance_cents == 75000


def test_duplicate_sku_is_a_conflict(store, make_product):
    make_product(sku="DUP")
    with pytest.raises(ConflictError):
        make_product(sku="DUP")
    assert store.session.query(Product).count() == 1
