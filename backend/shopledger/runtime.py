# Overview: Accessors for the per-app LedgerStore and TransactionCoordinator.

from __future__ import annotations

from flask import current_app

STORE_KEY = "shopledger.store"
COORDINATOR_KEY = "shopledger.coordinator"


def get_store():
    return current_app.extensions[STORE_KEY]


def get_coordinator():
    return current_app.extensions[COORDINATOR_KEY]
