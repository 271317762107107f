# Overview: Error taxonomy shared by services, routes and the CLI.

"""
Every failure aborts the enclosing unit of work in full; there is no partial
commit. The status_code is what the JSON boundary answers with.
"""


class LedgerError(Exception):
    """Base class for failures surfaced to callers."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError, ValueError):
    """400-level input problem (missing field, bad enum, bad quantity)."""

    status_code = 400


class SnapshotError(ValidationError):
    """Malformed or partial backup snapshot. Detected before any delete."""


class NotFoundError(LedgerError):
    """404-level lookup of a missing entity."""

    status_code = 404


class ConflictError(LedgerError):
    """409-level constraint conflict (e.g., duplicate SKU or username)."""

    status_code = 409


class InsufficientStockError(ConflictError):
    """Raised when the reject policy forbids driving stock below zero."""


class AuthenticationError(LedgerError):
    status_code = 401


class InfrastructureError(LedgerError):
    """Store unreachable or I/O failure mid-unit. Not retried."""

    status_code = 500
