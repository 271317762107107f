from __future__ import annotations

from ..extensions import db


class Setting(db.Model):
    """
    Display settings stored as plain key/value text.

    Only consumed for currency formatting; no ledger invariant depends on them.
    """
    __tablename__ = "settings"

    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value}
