# Overview: Stock Mutator; applies signed stock deltas and maintains the product cost basis.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import InsufficientStockError, ValidationError
from ..models import Product
"""
Stock Invariants (authoritative)

- stock_quantity changes only by a signed delta applied inside a unit of work.
- Sales and stock adjustments subtract; purchases add. Adjustment kind never
  changes the sign.
- Stock is NOT clamped at zero. NegativeStockPolicy decides what happens when
  a decrement ends below zero:
    ALLOW  -> apply it, flag the change, log a warning (default; overselling is
              reconciled later)
    REJECT -> abort the unit with InsufficientStockError
- Cost basis is only touched by replenishment, through a CostBasisPolicy.
  Default is LastCostBasis (each purchase overwrites unit_cost_cents).
- min_stock_level is never recomputed here; "low stock" is a read-time check.
"""


class NegativeStockPolicy(str, Enum):
    ALLOW = "allow"
    REJECT = "reject"


@dataclass(frozen=True)
class StockChange:
    product_id: int
    before: int
    after: int

    @property
    def delta(self) -> int:
        return self.after - self.before

    @property
    def went_negative(self) -> bool:
        return self.after < 0 and self.delta < 0

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "before": self.before,
            "after": self.after,
        }


# =============================================================================
# COST BASIS POLICIES
# =============================================================================


class CostBasisPolicy:
    """Decides a product's unit cost after `quantity` units arrive at `incoming_cents`."""

    name = "abstract"

    def next_unit_cost(self, *, on_hand: int, current_cost_cents: int, quantity: int, incoming_cost_cents: int) -> int:
        raise NotImplementedError


class LastCostBasis(CostBasisPolicy):
    """Last cost wins: the incoming unit cost replaces the current one."""

    name = "last"

    def next_unit_cost(self, *, on_hand, current_cost_cents, quantity, incoming_cost_cents):
        return incoming_cost_cents


class WeightedAverageCostBasis(CostBasisPolicy):
    """
    Blend the stock on hand with the incoming units:
        (on_hand * current + quantity * incoming) / (on_hand + quantity)
    with nearest-cent rounding (half-up). Stock at or below zero carries no
    value, so the incoming cost is used as-is.
    """

    name = "weighted_average"

    def next_unit_cost(self, *, on_hand, current_cost_cents, quantity, incoming_cost_cents):
        if on_hand <= 0:
            return incoming_cost_cents
        total_units = on_hand + quantity
        total_cost = on_hand * current_cost_cents + quantity * incoming_cost_cents
        return (total_cost + (total_units // 2)) // total_units


COST_BASIS_POLICIES: dict[str, type[CostBasisPolicy]] = {
    LastCostBasis.name: LastCostBasis,
    WeightedAverageCostBasis.name: WeightedAverageCostBasis,
}


def cost_basis_from_name(name: str) -> CostBasisPolicy:
    try:
        return COST_BASIS_POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown cost basis policy {name!r}. Must be one of: {', '.join(COST_BASIS_POLICIES)}"
        )


def negative_stock_policy_from_name(name: str) -> NegativeStockPolicy:
    try:
        return NegativeStockPolicy(name)
    except ValueError:
        raise ValueError(
            f"Unknown negative stock policy {name!r}. Must be one of: "
            f"{', '.join(p.value for p in NegativeStockPolicy)}"
        )


# =============================================================================
# MUTATIONS
# =============================================================================


def get_product(session: Session, product_id: int | None = None, *, sku: str | None = None) -> Product:
    """Resolve a product by id, or by SKU when no id is given."""
    if product_id is not None:
        product = session.get(Product, product_id)
        if product is None:
            raise ValidationError(f"Product {product_id} not found", details={"product_id": product_id})
        if sku is not None and product.sku != sku:
            raise ValidationError(
                f"Product {product_id} does not have SKU {sku!r}",
                details={"product_id": product_id, "sku": sku},
            )
        return product

    product = session.execute(select(Product).filter_by(sku=sku)).scalar_one_or_none()
    if product is None:
        raise ValidationError(f"No product with SKU {sku!r}", details={"sku": sku})
    return product


def apply_stock_delta(
    session: Session,
    product: Product | int,
    delta: int,
    *,
    policy: NegativeStockPolicy = NegativeStockPolicy.ALLOW,
) -> StockChange:
    """
    Add a signed delta to the product's stock level.

    `product` may be a loaded Product or its id.

    Raises InsufficientStockError under the REJECT policy when a decrement
    would leave stock below zero.
    """
    if not isinstance(product, Product):
        product = get_product(session, product)

    before = product.stock_quantity or 0
    change = StockChange(product_id=product.id, before=before, after=before + delta)

    if change.went_negative:
        if policy == NegativeStockPolicy.REJECT:
            raise InsufficientStockError(
                f"Insufficient stock for product {product.id}",
                details={"product_id": product.id, "on_hand": before, "requested": -delta},
            )
        current_app.logger.warning(
            "Stock for product %s (%s) driven negative: %s -> %s",
            product.id, product.sku, change.before, change.after,
        )

    product.stock_quantity = change.after
    session.flush()
    return change


def replenish(
    session: Session,
    product: Product,
    quantity: int,
    unit_cost_cents: int,
    *,
    cost_basis: CostBasisPolicy,
    policy: NegativeStockPolicy = NegativeStockPolicy.ALLOW,
) -> StockChange:
    """Receive `quantity` units at `unit_cost_cents`: update cost basis, then stock."""
    product.unit_cost_cents = cost_basis.next_unit_cost(
        on_hand=product.stock_quantity or 0,
        current_cost_cents=product.unit_cost_cents or 0,
        quantity=quantity,
        incoming_cost_cents=unit_cost_cents,
    )
    return apply_stock_delta(session, product, quantity, policy=policy)
