from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


LEDGER_KINDS = ("revenue", "expense")


class GeneralLedgerEntry(db.Model):
    """
    Free-standing revenue/expense entry (rent, salaries, repair income...).

    Independent of customer and supplier balances.
    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "general_ledger"
    __table_args__ = (
        db.CheckConstraint("kind IN ('revenue', 'expense')", name="ck_general_ledger_kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, index=True)
    category = db.Column(db.String(64), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
