from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


MAINTENANCE_TYPES = ("screen", "battery", "software", "other")
MAINTENANCE_STATUSES = ("received", "in_progress", "completed", "delivered")


class MaintenanceJob(db.Model):
    """
    Device repair job. Not part of the ledger; only its status moves.
    """
    __tablename__ = "maintenance"
    __table_args__ = (
        db.Index("ix_maintenance_received", "received_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    device_model = db.Column(db.String(128), nullable=True)
    imei = db.Column(db.String(32), nullable=True)
    device_condition = db.Column(db.Text, nullable=True)
    fault_description = db.Column(db.Text, nullable=True)
    symptoms = db.Column(db.Text, nullable=True)
    maintenance_type = db.Column(db.String(16), nullable=False, default="other")
    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="received", index=True)
    notes = db.Column(db.Text, nullable=True)
    next_maintenance_date = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "device_model": self.device_model,
            "imei": self.imei,
            "device_condition": self.device_condition,
            "fault_description": self.fault_description,
            "symptoms": self.symptoms,
            "maintenance_type": self.maintenance_type,
            "cost_cents": self.cost_cents,
            "status": self.status,
            "notes": self.notes,
            "next_maintenance_date": to_utc_z(self.next_maintenance_date),
            "received_at": to_utc_z(self.received_at),
            "completed_at": to_utc_z(self.completed_at),
            "user_id": self.user_id,
        }
