# Overview: Transaction Coordinator; runs every money- or stock-moving event as one atomic unit.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import (
    Customer,
    CustomerTransaction,
    GeneralLedgerEntry,
    Purchase,
    PurchaseItem,
    Sale,
    SaleItem,
    StockAdjustment,
    Supplier,
    SupplierTransaction,
)
from ..validation import (
    LedgerEntryCommand,
    PaymentCommand,
    PurchaseCommand,
    SaleCommand,
    StockAdjustmentCommand,
)
from .backup_service import replace_all, validate_snapshot
from .balance_service import (
    recalculate_all_balances,
    recalculate_customer_balance,
    recalculate_supplier_balance,
)
from .ledger_store import LedgerStore
from .stock_service import (
    CostBasisPolicy,
    LastCostBasis,
    NegativeStockPolicy,
    StockChange,
    apply_stock_delta,
    get_product,
    replenish,
)
"""
Coordinator Invariants (authoritative)

- Each public operation is exactly one unit of work: every row it writes
  commits together or none do.
- After every unit, each touched customer/supplier balance equals the full
  aggregation of its movement log (recomputed, never incremented).
- Movement rows are only ever inserted.
- A referenced customer, supplier or product that does not exist aborts the
  unit with ValidationError.
"""


@dataclass(frozen=True)
class UnitResult:
    id: int
    stock_changes: tuple[StockChange, ...] = ()

    @property
    def warnings(self) -> list[dict]:
        return [
            {"code": "negative_stock", **change.to_dict()}
            for change in self.stock_changes
            if change.went_negative
        ]


def _require_customer(session: Session, customer_id: int) -> Customer:
    customer = session.get(Customer, customer_id)
    if customer is None:
        raise ValidationError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def _require_supplier(session: Session, supplier_id: int) -> Supplier:
    supplier = session.get(Supplier, supplier_id)
    if supplier is None:
        raise ValidationError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


class TransactionCoordinator:
    """
    Entry point for every multi-row write.

    The store is injected; policies are chosen at construction time:
        coordinator = TransactionCoordinator(store, cost_basis=WeightedAverageCostBasis(),
                                             negative_stock=NegativeStockPolicy.REJECT)
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        cost_basis: CostBasisPolicy | None = None,
        negative_stock: NegativeStockPolicy = NegativeStockPolicy.ALLOW,
    ):
        self.store = store
        self.cost_basis = cost_basis or LastCostBasis()
        self.negative_stock = negative_stock

    # ------------------------------------------------------------------
    # sales / purchases
    # ------------------------------------------------------------------

    def record_sale(self, command: SaleCommand) -> UnitResult:
        with self.store.unit_of_work("record_sale") as session:
            customer = None
            if command.customer_id is not None:
                customer = _require_customer(session, command.customer_id)

            sale = Sale(
                customer_id=command.customer_id,
                user_id=command.user_id,
                total_amount_cents=command.total_amount_cents,
                discount_cents=command.discount_cents,
                payment_status=command.payment_status,
                payment_method=command.payment_method,
            )
            session.add(sale)
            session.flush()

            changes = []
            for item in command.items:
                product = get_product(session, item.product_id, sku=item.sku)
                session.add(SaleItem(
                    sale_id=sale.id,
                    product_id=product.id,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_amount_cents,
                    subtotal_cents=item.subtotal_cents,
                ))
                changes.append(apply_stock_delta(session, product, -item.quantity, policy=self.negative_stock))

            if customer is not None:
                session.add(CustomerTransaction(
                    customer_id=customer.id,
                    kind="sale",
                    amount_cents=command.total_amount_cents,
                    description=f"Sale #{sale.id}",
                ))
                if command.payment_status == "paid":
                    session.add(CustomerTransaction(
                        customer_id=customer.id,
                        kind="payment",
                        amount_cents=command.total_amount_cents,
                        description=f"Payment for Sale #{sale.id}",
                    ))
                recalculate_customer_balance(session, customer.id)

            current_app.logger.info(
                "Recorded sale %s (%s items, total %s cents, customer %s)",
                sale.id, len(command.items), command.total_amount_cents, command.customer_id,
            )
            return UnitResult(id=sale.id, stock_changes=tuple(changes))

    def record_purchase(self, command: PurchaseCommand) -> UnitResult:
        with self.store.unit_of_work("record_purchase") as session:
            supplier = _require_supplier(session, command.supplier_id)

            purchase = Purchase(
                supplier_id=supplier.id,
                user_id=command.user_id,
                total_amount_cents=command.total_amount_cents,
                payment_status=command.payment_status,
            )
            session.add(purchase)
            session.flush()

            session.add(SupplierTransaction(
                supplier_id=supplier.id,
                kind="purchase",
                amount_cents=command.total_amount_cents,
                description=f"Purchase #{purchase.id}",
            ))
            if command.payment_status == "paid":
                session.add(SupplierTransaction(
                    supplier_id=supplier.id,
                    kind="payment",
                    amount_cents=command.total_amount_cents,
                    description=f"Payment for Purchase #{purchase.id}",
                ))
            recalculate_supplier_balance(session, supplier.id)

            changes = []
            for item in command.items:
                product = get_product(session, item.product_id, sku=item.sku)
                session.add(PurchaseItem(
                    purchase_id=purchase.id,
                    product_id=product.id,
                    quantity=item.quantity,
                    unit_cost_cents=item.unit_amount_cents,
                    subtotal_cents=item.subtotal_cents,
                ))
                changes.append(replenish(
                    session,
                    product,
                    item.quantity,
                    item.unit_amount_cents,
                    cost_basis=self.cost_basis,
                    policy=self.negative_stock,
                ))

            current_app.logger.info(
                "Recorded purchase %s from supplier %s (total %s cents)",
                purchase.id, supplier.id, command.total_amount_cents,
            )
            return UnitResult(id=purchase.id, stock_changes=tuple(changes))

    # ------------------------------------------------------------------
    # payments
    # ------------------------------------------------------------------

    def record_customer_payment(self, command: PaymentCommand) -> UnitResult:
        with self.store.unit_of_work("record_customer_payment") as session:
            customer = _require_customer(session, command.party_id)
            movement = CustomerTransaction(
                customer_id=customer.id,
                kind="payment",
                amount_cents=command.amount_cents,
                description=command.description,
            )
            session.add(movement)
            session.flush()
            recalculate_customer_balance(session, customer.id)
            return UnitResult(id=movement.id)

    def record_supplier_payment(self, command: PaymentCommand) -> UnitResult:
        with self.store.unit_of_work("record_supplier_payment") as session:
            supplier = _require_supplier(session, command.party_id)
            movement = SupplierTransaction(
                supplier_id=supplier.id,
                kind="payment",
                amount_cents=command.amount_cents,
                description=command.description or "Payment to supplier",
            )
            session.add(movement)
            session.flush()
            recalculate_supplier_balance(session, supplier.id)
            return UnitResult(id=movement.id)

    # ------------------------------------------------------------------
    # stock / ledger
    # ------------------------------------------------------------------

    def record_stock_adjustment(self, command: StockAdjustmentCommand) -> UnitResult:
        with self.store.unit_of_work("record_stock_adjustment") as session:
            product = get_product(session, command.product_id)
            adjustment = StockAdjustment(
                product_id=product.id,
                kind=command.kind,
                quantity=command.quantity,
                reason=command.reason,
            )
            session.add(adjustment)
            session.flush()
            # Every kind removes stock, including "correction"
            change = apply_stock_delta(session, product, -command.quantity, policy=self.negative_stock)
            return UnitResult(id=adjustment.id, stock_changes=(change,))

    def record_ledger_entry(self, command: LedgerEntryCommand) -> UnitResult:
        with self.store.unit_of_work("record_ledger_entry") as session:
            entry = GeneralLedgerEntry(
                kind=command.kind,
                category=command.category,
                amount_cents=command.amount_cents,
                description=command.description,
            )
            session.add(entry)
            session.flush()
            return UnitResult(id=entry.id)

    # ------------------------------------------------------------------
    # master data with derived effects
    # ------------------------------------------------------------------

    def add_customer(self, fields: dict) -> UnitResult:
        """
        Create a customer from an already validated field dict.

        A non-zero opening balance is written as the first movement row so the
        cached balance is derivable from the log like any other.
        """
        with self.store.unit_of_work("add_customer") as session:
            opening = fields.get("opening_balance_cents") or 0
            customer = Customer(**{**fields, "opening_balance_cents": opening, "balance_cents": 0})
            session.add(customer)
            session.flush()

            if opening:
                session.add(CustomerTransaction(
                    customer_id=customer.id,
                    kind="sale" if opening > 0 else "payment",
                    amount_cents=abs(opening),
                    description="Opening balance",
                ))
            recalculate_customer_balance(session, customer.id)
            return UnitResult(id=customer.id)

    # ------------------------------------------------------------------
    # restore
    # ------------------------------------------------------------------

    def restore_backup(self, snapshot) -> dict[str, int]:
        """
        Replace the whole store with `snapshot`.

        Validation runs before the unit opens, so a malformed or partial
        snapshot never deletes anything. Returns row counts per table.
        """
        normalized = validate_snapshot(snapshot)
        with self.store.unit_of_work("restore_backup") as session:
            counts = replace_all(session, normalized)
            recomputed = recalculate_all_balances(session)
            current_app.logger.info(
                "Restored snapshot (%s rows); recomputed %s customer and %s supplier balances",
                sum(counts.values()), recomputed["customers"], recomputed["suppliers"],
            )
            return counts
