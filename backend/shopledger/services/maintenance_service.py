# Overview: Repair job intake and status tracking.

from __future__ import annotations

from sqlalchemy import select

from ..errors import NotFoundError, ValidationError
from ..models import MaintenanceJob, User
from ..models.maintenance import MAINTENANCE_STATUSES, MAINTENANCE_TYPES
from ..validation import ModelValidationPolicy, validate_payload
from shopledger.time_utils import utcnow
from .ledger_store import LedgerStore


JOB_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name", "customer_phone", "device_model", "imei",
        "device_condition", "fault_description", "symptoms",
        "maintenance_type", "cost_cents", "notes", "next_maintenance_date", "user_id",
    },
    required_on_create={"device_model"},
)

JOB_STATUS_POLICY = ModelValidationPolicy(
    writable_fields={"status", "completed_at", "notes", "cost_cents"},
    required_on_create={"status"},
)


def list_jobs(store: LedgerStore) -> list[MaintenanceJob]:
    query = select(MaintenanceJob).order_by(MaintenanceJob.received_at.desc(), MaintenanceJob.id.desc())
    return list(store.session.execute(query).scalars())


def create_job(store: LedgerStore, payload: dict | None) -> MaintenanceJob:
    patch = validate_payload(model=MaintenanceJob, payload=payload, policy=JOB_CREATE_POLICY, partial=False)
    if patch.get("maintenance_type") is not None and patch["maintenance_type"] not in MAINTENANCE_TYPES:
        raise ValidationError(f"maintenance_type must be one of: {', '.join(MAINTENANCE_TYPES)}")
    if patch.get("cost_cents") is not None and patch["cost_cents"] < 0:
        raise ValidationError("cost_cents must be >= 0")

    with store.unit_of_work("create_maintenance_job") as session:
        if patch.get("user_id") is not None and session.get(User, patch["user_id"]) is None:
            raise ValidationError(f"User {patch['user_id']} not found", details={"user_id": patch["user_id"]})
        job = MaintenanceJob(**patch, status="received")
        session.add(job)
        session.flush()
        return job


def update_job_status(store: LedgerStore, job_id: int, payload: dict | None) -> MaintenanceJob:
    """
    Move a job to a new status. Reaching 'completed' stamps completed_at
    unless the client sent one.
    """
    patch = validate_payload(model=MaintenanceJob, payload=payload, policy=JOB_STATUS_POLICY, partial=False)
    if patch["status"] not in MAINTENANCE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(MAINTENANCE_STATUSES)}")
    if patch.get("cost_cents") is not None and patch["cost_cents"] < 0:
        raise ValidationError("cost_cents must be >= 0")

    with store.unit_of_work("update_maintenance_job") as session:
        job = session.get(MaintenanceJob, job_id)
        if job is None:
            raise NotFoundError("Maintenance job not found", details={"job_id": job_id})
        if patch["status"] == "completed" and patch.get("completed_at") is None:
            patch["completed_at"] = utcnow()
        for key, value in patch.items():
            setattr(job, key, value)
        session.flush()
        return job
