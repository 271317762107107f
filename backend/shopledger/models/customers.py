from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


CUSTOMER_MOVEMENT_KINDS = ("sale", "payment")


class Customer(db.Model):
    """
    Customer master data with a cached credit balance.

    BALANCE: balance_cents is derived, never edited directly. It always equals
    SUM(sale movements) - SUM(payment movements) over this customer's rows in
    `transactions`, recomputed in full after every unit that touches them.

    opening_balance_cents is informational and fixed at creation; the opening
    amount itself lives in the movement log as the first row.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "opening_balance_cents": self.opening_balance_cents,
            "balance_cents": self.balance_cents,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class CustomerTransaction(db.Model):
    """
    Append-only customer movement log (the source of truth for balance).

    amount_cents is always positive; the sign is implied by kind:
    - sale: increases what the customer owes
    - payment: decreases it

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("kind IN ('sale', 'payment')", name="ck_transactions_kind"),
        db.Index("ix_transactions_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "kind": self.kind,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
