"""
HTTP contract tests: status codes and response bodies of the JSON API.

These go through the Flask test client only; no app context is held open
across requests.
"""

import pytest

from shopledger.services.backup_service import TABLE_NAMES


@pytest.fixture
def seeded(client):
    customer = client.post("/api/customers", json={"name": "Ali", "opening_balance_cents": 1000})
    supplier = client.post("/api/suppliers", json={"name": "Gulf Wholesale"})
    product = client.post("/api/products", json={
        "name": "Galaxy A15", "sku": "GA15", "category": "phone",
        "price_cents": 20000, "unit_cost_cents": 15000, "stock_quantity": 3, "min_stock_level": 2,
    })
    assert customer.status_code == 201
    assert supplier.status_code == 201
    assert product.status_code == 201
    return {
        "customer_id": customer.get_json()["id"],
        "supplier_id": supplier.get_json()["id"],
        "product_id": product.get_json()["id"],
    }


def _sale_payload(seeded, quantity=1, payment_status="unpaid"):
    return {
        "customer_id": seeded["customer_id"],
        "items": [{"product_id": seeded["product_id"], "quantity": quantity, "unit_price_cents": 20000}],
        "total_amount_cents": 20000 * quantity,
        "payment_status": payment_status,
        "payment_method": "cash",
    }


def _customer(client, customer_id):
    return next(c for c in client.get("/api/customers").get_json() if c["id"] == customer_id)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


# =============================================================================
# SALES
# =============================================================================


def test_record_sale(client, seeded):
    response = client.post("/api/sales", json=_sale_payload(seeded))
    assert response.status_code == 201
    body = response.get_json()
    assert body["warnings"] == []

    detail = client.get(f"/api/sales/{body['id']}").get_json()
    assert detail["customer_name"] == "Ali"
    assert detail["items"][0]["product_name"] == "Galaxy A15"
    assert detail["created_at"].endswith("Z")

    listing = client.get("/api/sales").get_json()
    assert [s["id"] for s in listing] == [body["id"]]
    assert _customer(client, seeded["customer_id"])["balance_cents"] == 21000


def test_oversell_reports_warning(client, seeded):
    response = client.post("/api/sales", json=_sale_payload(seeded, quantity=5))
    assert response.status_code == 201
    assert response.get_json()["warnings"] == [
        {"code": "negative_stock", "product_id": seeded["product_id"], "before": 3, "after": -2}
    ]


def test_oversell_conflict_under_reject_policy(make_app):
    app = make_app(NEGATIVE_STOCK_POLICY="reject")
    client = app.test_client()
    product_id = client.post("/api/products", json={"name": "Cable", "sku": "CB", "stock_quantity": 1}).get_json()["id"]

    response = client.post("/api/sales", json={
        "items": [{"product_id": product_id, "quantity": 2, "unit_price_cents": 100}],
        "total_amount_cents": 200,
        "payment_status": "paid",
    })

    assert response.status_code == 409
    assert response.get_json()["details"]["product_id"] == product_id
    assert client.get("/api/sales").get_json() == []


def test_invalid_sale_is_400_and_writes_nothing(client, seeded):
    payload = _sale_payload(seeded)
    payload["total_amount_cents"] = 1

    response = client.post("/api/sales", json=payload)

    assert response.status_code == 400
    assert set(response.get_json()) == {"error", "details"}
    assert client.get("/api/sales").get_json() == []


def test_sale_with_unknown_product_is_400(client, seeded):
    payload = _sale_payload(seeded)
    payload["items"][0]["product_id"] = 999
    assert client.post("/api/sales", json=payload).status_code == 400
    assert _customer(client, seeded["customer_id"])["balance_cents"] == 1000


def test_missing_sale_is_404(client):
    response = client.get("/api/sales/12345")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Sale not found"


# =============================================================================
# PURCHASES / PAYMENTS
# =============================================================================


def test_purchase_and_supplier_payment(client, seeded):
    response = client.post("/api/purchases", json={
        "supplier_id": seeded["supplier_id"],
        "items": [{"product_id": seeded["product_id"], "quantity": 2, "unit_cost_cents": 14000}],
        "total_amount_cents": 28000,
        "payment_status": "unpaid",
    })
    assert response.status_code == 201
    purchase_id = response.get_json()["id"]

    assert client.get("/api/purchases").get_json()[0]["supplier_name"] == "Gulf Wholesale"
    assert client.get(f"/api/purchases/{purchase_id}").get_json()["items"][0]["quantity"] == 2

    payment = client.post("/api/supplier-payments", json={"supplier_id": seeded["supplier_id"], "amount_cents": 8000})
    assert payment.status_code == 201
    assert payment.get_json()["success"] is True

    statement = client.get(f"/api/suppliers/{seeded['supplier_id']}/statement").get_json()
    assert [(row["kind"], row["amount_cents"]) for row in reversed(statement)] == [("purchase", 28000), ("payment", 8000)]

    supplier = client.get("/api/suppliers").get_json()[0]
    assert supplier["balance_cents"] == 20000

    products = client.get("/api/products").get_json()
    assert products[0]["stock_quantity"] == 5
    assert products[0]["unit_cost_cents"] == 14000


def test_customer_payment_and_statement(client, seeded):
    response = client.post("/api/payments", json={
        "customer_id": seeded["customer_id"], "amount_cents": 400, "description": "Cash",
    })
    assert response.status_code == 201
    assert response.get_json()["success"] is True

    statement = client.get(f"/api/customers/{seeded['customer_id']}/statement").get_json()
    assert [row["description"] for row in reversed(statement)] == ["Opening balance", "Cash"]
    assert _customer(client, seeded["customer_id"])["balance_cents"] == 600


def test_payment_validation(client, seeded):
    assert client.post("/api/payments", json={"customer_id": seeded["customer_id"], "amount_cents": 0}).status_code == 400
    assert client.post("/api/payments", json={"customer_id": 999, "amount_cents": 10}).status_code == 400
    assert client.get("/api/customers/999/statement").status_code == 404


# =============================================================================
# INVENTORY / LEDGER / STATS
# =============================================================================


def test_stock_adjustment_and_low_stock(client, seeded):
    response = client.post("/api/stock-adjustments", json={
        "product_id": seeded["product_id"], "kind": "damaged", "quantity": 2, "reason": "Cracked screen",
    })
    assert response.status_code == 201
    assert response.get_json()["success"] is True

    adjustments = client.get("/api/stock-adjustments").get_json()
    assert adjustments[0]["product_name"] == "Galaxy A15"

    low = client.get("/api/products/low-stock").get_json()
    assert [p["sku"] for p in low] == ["GA15"]


def test_product_update_rejects_stock_fields(client, seeded):
    url = f"/api/products/{seeded['product_id']}"
    assert client.put(url, json={"stock_quantity": 99}).status_code == 400
    response = client.put(url, json={"price_cents": 21000, "location": "Shelf B"})
    assert response.status_code == 200
    assert response.get_json()["product"]["price_cents"] == 21000
    assert response.get_json()["product"]["stock_quantity"] == 3
    assert client.put("/api/products/999", json={"price_cents": 1}).status_code == 404


def test_duplicate_sku_is_409(client, seeded):
    response = client.post("/api/products", json={"name": "Clone", "sku": "GA15"})
    assert response.status_code == 409


def test_ledger_and_stats(client, seeded):
    assert client.post("/api/ledger", json={"kind": "revenue", "category": "repairs", "amount_cents": 5000}).status_code == 201
    assert client.post("/api/ledger", json={"kind": "expense", "category": "rent", "amount_cents": 3000}).status_code == 201
    assert client.post("/api/ledger", json={"kind": "gift", "amount_cents": 1}).status_code == 400
    client.post("/api/sales", json=_sale_payload(seeded))

    assert len(client.get("/api/ledger").get_json()) == 2
    assert len(client.get("/api/ledger?kind=expense").get_json()) == 1

    stats = client.get("/api/stats").get_json()
    assert stats["total_sales_cents"] == 20000
    assert stats["total_revenue_cents"] == 5000
    assert stats["total_expenses_cents"] == 3000
    assert stats["total_products"] == 1
    assert stats["low_stock"] == 1
    assert len(stats["recent_sales"]) == 1


def test_warehouses(client):
    assert client.post("/api/warehouses", json={"name": "Main", "location": "Sana'a"}).status_code == 201
    assert client.post("/api/warehouses", json={}).status_code == 400
    assert [w["name"] for w in client.get("/api/warehouses").get_json()] == ["Main"]


def test_maintenance_lifecycle(client):
    response = client.post("/api/maintenance", json={
        "customer_name": "Omar", "device_model": "iPhone 12", "maintenance_type": "screen", "cost_cents": 4500,
    })
    assert response.status_code == 201
    job_id = response.get_json()["id"]

    updated = client.put(f"/api/maintenance/{job_id}", json={"status": "completed"})
    assert updated.status_code == 200
    assert updated.get_json()["job"]["completed_at"].endswith("Z")

    assert client.put(f"/api/maintenance/{job_id}", json={"status": "lost"}).status_code == 400
    assert client.put("/api/maintenance/999", json={"status": "delivered"}).status_code == 404
    assert client.get("/api/maintenance").get_json()[0]["status"] == "completed"


# =============================================================================
# AUTH / SETTINGS
# =============================================================================


def test_register_and_login(client):
    response = client.post("/api/register", json={"username": "huda", "password": "Secret123!", "role": "accountant"})
    assert response.status_code == 201

    duplicate = client.post("/api/register", json={"username": "huda", "password": "Secret123!"})
    assert duplicate.status_code == 409

    login = client.post("/api/login", json={"username": "huda", "password": "Secret123!"})
    assert login.status_code == 200
    assert login.get_json()["role"] == "accountant"
    assert "password_hash" not in login.get_json()

    assert client.post("/api/login", json={"username": "huda", "password": "wrong"}).status_code == 401
    assert client.post("/api/login", json={}).status_code == 401
    assert client.post("/api/login", json={"username": 123, "password": "Secret123!"}).status_code == 401
    assert client.post("/api/register", json={"username": 123, "password": "Secret123!"}).status_code == 400


def test_settings_defaults_and_update(client):
    assert client.get("/api/settings").get_json() == {"currency": "USD", "rate_yer": "530", "rate_sar": "3.75"}

    response = client.post("/api/settings", json={"currency": "YER", "rate_yer": 535})
    assert response.status_code == 200
    assert client.get("/api/settings").get_json()["rate_yer"] == "535"
    assert client.post("/api/settings", json=[]).status_code == 400


# =============================================================================
# BACKUP
# =============================================================================


def test_backup_export_and_import(client, seeded):
    client.post("/api/sales", json=_sale_payload(seeded))
    snapshot = client.get("/api/backup/export").get_json()
    assert set(snapshot) == set(TABLE_NAMES)

    client.post("/api/payments", json={"customer_id": seeded["customer_id"], "amount_cents": 500})

    response = client.post("/api/backup/import", json=snapshot)
    assert response.status_code == 200
    assert response.get_json()["success"] is True
    assert _customer(client, seeded["customer_id"])["balance_cents"] == 21000


def test_backup_import_rejects_partial_snapshot(client, seeded):
    snapshot = client.get("/api/backup/export").get_json()
    del snapshot["users"]

    response = client.post("/api/backup/import", json=snapshot)

    assert response.status_code == 400
    assert response.get_json()["details"]["missing_tables"] == ["users"]
    assert len(client.get("/api/products").get_json()) == 1


def test_backup_import_rejects_non_json(client, seeded):
    response = client.post("/api/backup/import", data="not json", content_type="text/plain")
    assert response.status_code == 400
    assert len(client.get("/api/customers").get_json()) == 1


def test_unknown_route_is_json_404(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert "error" in response.get_json()
