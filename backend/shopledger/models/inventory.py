from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


PRODUCT_CATEGORIES = ("phone", "accessory")
ADJUSTMENT_KINDS = ("damaged", "lost", "correction")


class Warehouse(db.Model):
    __tablename__ = "warehouses"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "notes": self.notes,
        }


class Product(db.Model):
    """
    Product master data with its cached stock level and cost basis.

    STOCK: stock_quantity is mutated only by the stock mutator, inside a unit
    of work (sale, purchase, adjustment). It is not clamped at zero; the
    negative stock policy decides whether such a unit is allowed.

    opening_stock is the stock_quantity at creation and is never changed.
    min_stock_level is a static threshold; "low stock" is evaluated at read time.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("category IN ('phone', 'accessory')", name="ck_products_category"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(16), nullable=False, default="phone")
    brand = db.Column(db.String(128), nullable=True)
    model = db.Column(db.String(128), nullable=True)
    sku = db.Column(db.String(64), nullable=False)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    opening_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=5)

    unit = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)
    location = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    warehouse = db.relationship("Warehouse", backref=db.backref("products", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_level

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "brand": self.brand,
            "model": self.model,
            "sku": self.sku,
            "price_cents": self.price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "stock_quantity": self.stock_quantity,
            "opening_stock": self.opening_stock,
            "min_stock_level": self.min_stock_level,
            "unit": self.unit,
            "notes": self.notes,
            "warehouse_id": self.warehouse_id,
            "location": self.location,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
        }


class StockAdjustment(db.Model):
    """
    Append-only record of stock removed outside of a sale.

    Every kind (damaged, lost, correction) removes `quantity` units.
    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.CheckConstraint("kind IN ('damaged', 'lost', 'correction')", name="ck_stock_adjustments_kind"),
        db.CheckConstraint("quantity > 0", name="ck_stock_adjustments_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "kind": self.kind,
            "quantity": self.quantity,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
