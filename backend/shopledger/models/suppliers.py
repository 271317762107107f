from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


SUPPLIER_MOVEMENT_KINDS = ("purchase", "payment")


class Supplier(db.Model):
    """
    Supplier master data.

    balance_cents is what the shop owes the supplier, derived from
    `supplier_transactions` the same way customer balances are.
    """
    __tablename__ = "suppliers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "balance_cents": self.balance_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class SupplierTransaction(db.Model):
    """
    Append-only supplier movement log.

    - purchase: increases what the shop owes
    - payment: decreases it
    """
    __tablename__ = "supplier_transactions"
    __table_args__ = (
        db.CheckConstraint("kind IN ('purchase', 'payment')", name="ck_supplier_transactions_kind"),
        db.Index("ix_supplier_transactions_supplier_created", "supplier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "kind": self.kind,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
