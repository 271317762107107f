"""
Backup export/restore tests.

Restore is all-or-nothing: a rejected snapshot (malformed, partial, or one
that violates a constraint) leaves every table exactly as it was.
"""

import copy

import pytest

from shopledger.errors import ConflictError, SnapshotError
from shopledger.models import Customer, CustomerTransaction, Product, Sale
from shopledger.services.backup_service import TABLE_NAMES, export_snapshot, validate_snapshot
from shopledger.services.balance_service import find_balance_drift


@pytest.fixture
def populated(store, make_customer, make_supplier, make_product, sell, buy, pay_customer):
    customer_id = make_customer("Ali", opening_balance_cents=2000)
    supplier_id = make_supplier()
    phone = make_product(stock=5, sku="PH-1")
    case = make_product(stock=30, sku="CS-1")
    sell([(phone.id, 1, 40000), (case.id, 2, 1000)], customer_id=customer_id)
    buy(supplier_id, [(case.id, 10, 400)], payment_status="paid")
    pay_customer(customer_id, 5000)
    return {"customer_id": customer_id, "supplier_id": supplier_id, "phone": phone.id, "case": case.id}


def _export(store):
    with store.unit_of_work("export") as session:
        return export_snapshot(session)


def test_export_contains_every_table_in_order(store, populated):
    snapshot = _export(store)

    assert tuple(snapshot) == TABLE_NAMES
    assert len(snapshot["products"]) == 2
    assert len(snapshot["transactions"]) == 3  # opening balance, sale, payment
    assert snapshot["customers"][0]["balance_cents"] == 2000 + 42000 - 5000
    assert snapshot["sales"][0]["created_at"].endswith("Z")
    assert [row["id"] for row in snapshot["sale_items"]] == sorted(row["id"] for row in snapshot["sale_items"])


def test_round_trip_restores_identical_state(store, coordinator, populated, sell):
    before = _export(store)

    # Diverge from the snapshot, then restore it
    sell([(populated["case"], 1, 1000)], customer_id=populated["customer_id"])
    coordinator.restore_backup(copy.deepcopy(before))

    assert _export(store) == before
    assert find_balance_drift(store.session) == []


def test_round_trip_keeps_surrounding_whitespace(store, coordinator, populated):
    from shopledger.services import settings_service

    settings_service.update_settings(store, {"currency_symbol": " $ "})
    before = _export(store)

    coordinator.restore_backup(copy.deepcopy(before))

    after = _export(store)
    assert after == before
    assert {"key": "currency_symbol", "value": " $ "} in after["settings"]


def test_restore_recomputes_cached_balances(store, coordinator, populated):
    snapshot = _export(store)
    snapshot["customers"][0]["balance_cents"] = 1
    snapshot["suppliers"][0]["balance_cents"] = 999999

    coordinator.restore_backup(snapshot)

    assert store.session.get(Customer, populated["customer_id"]).balance_cents == 39000
    assert find_balance_drift(store.session) == []


def test_restore_with_empty_customers_empties_the_table(store, coordinator, populated):
    snapshot = _export(store)
    snapshot["customers"] = []
    snapshot["transactions"] = []
    for sale in snapshot["sales"]:
        sale["customer_id"] = None

    coordinator.restore_backup(snapshot)

    assert store.session.query(Customer).count() == 0
    assert store.session.query(CustomerTransaction).count() == 0
    assert store.session.query(Sale).count() == 1


def test_restore_empty_snapshot_clears_everything(store, coordinator, populated):
    counts = coordinator.restore_backup({name: [] for name in TABLE_NAMES})

    assert set(counts.values()) == {0}
    assert store.session.query(Product).count() == 0


def test_partial_snapshot_is_rejected_before_any_delete(store, coordinator, populated):
    before = _export(store)
    snapshot = copy.deepcopy(before)
    del snapshot["maintenance"]

    with pytest.raises(SnapshotError) as exc_info:
        coordinator.restore_backup(snapshot)

    assert exc_info.value.details["missing_tables"] == ["maintenance"]
    assert _export(store) == before


def test_constraint_violation_rolls_back_the_whole_restore(store, coordinator, populated):
    before = _export(store)
    snapshot = copy.deepcopy(before)
    duplicate = dict(snapshot["products"][0], id=99)
    snapshot["products"].append(duplicate)

    with pytest.raises(ConflictError):
        coordinator.restore_backup(snapshot)

    assert _export(store) == before


class TestValidateSnapshot:
    def _empty(self):
        return {name: [] for name in TABLE_NAMES}

    def test_not_an_object(self):
        with pytest.raises(SnapshotError):
            validate_snapshot([])

    def test_unknown_table(self):
        snapshot = self._empty()
        snapshot["audit_log"] = []
        with pytest.raises(SnapshotError) as exc_info:
            validate_snapshot(snapshot)
        assert exc_info.value.details["unknown_tables"] == ["audit_log"]

    def test_table_must_be_a_list(self):
        snapshot = self._empty()
        snapshot["settings"] = {"currency": "USD"}
        with pytest.raises(SnapshotError):
            validate_snapshot(snapshot)

    def test_undeclared_column(self):
        snapshot = self._empty()
        snapshot["settings"] = [{"key": "currency", "value": "USD", "evil": "1; DROP TABLE users"}]
        with pytest.raises(SnapshotError) as exc_info:
            validate_snapshot(snapshot)
        assert exc_info.value.details["columns"] == ["evil"]

    def test_rows_must_share_the_first_rows_columns(self):
        snapshot = self._empty()
        snapshot["settings"] = [
            {"key": "currency", "value": "USD"},
            {"key": "rate_sar"},
        ]
        with pytest.raises(SnapshotError) as exc_info:
            validate_snapshot(snapshot)
        assert exc_info.value.details["row"] == 1

    def test_missing_required_column(self):
        snapshot = self._empty()
        snapshot["warehouses"] = [{"id": 1, "location": "Back room"}]
        with pytest.raises(SnapshotError) as exc_info:
            validate_snapshot(snapshot)
        assert exc_info.value.details["columns"] == ["name"]

    def test_bad_value_type(self):
        snapshot = self._empty()
        snapshot["warehouses"] = [{"id": "one", "name": "Main"}]
        with pytest.raises(SnapshotError):
            validate_snapshot(snapshot)

    def test_normalizes_values(self):
        snapshot = self._empty()
        snapshot["general_ledger"] = [{
            "id": "7", "kind": "revenue", "category": None, "amount_cents": 1000,
            "description": "Repair", "created_at": "2025-03-01T10:00:00Z",
        }]
        normalized = validate_snapshot(snapshot)
        row = normalized["general_ledger"][0]
        assert row["id"] == 7
        assert row["created_at"].isoformat() == "2025-03-01T10:00:00"
