from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


USER_ROLES = ("admin", "accountant", "engineer")


class User(db.Model):
    """
    Shop staff account used for the credential check.

    The password is only ever stored as a bcrypt hash.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
        db.CheckConstraint("role IN ('admin', 'accountant', 'engineer')", name="ck_users_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="engineer")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }
