# Overview: Display settings (currency and exchange rates) stored as key/value text.

from __future__ import annotations

from sqlalchemy import select

from ..errors import ValidationError
from ..models import Setting
from .ledger_store import LedgerStore


DEFAULT_SETTINGS = {
    "currency": "USD",
    "rate_yer": "530",
    "rate_sar": "3.75",
}

MAX_KEY_LENGTH = 128


def get_settings(store: LedgerStore) -> dict[str, str]:
    """Stored values layered over DEFAULT_SETTINGS."""
    values = dict(DEFAULT_SETTINGS)
    for row in store.session.execute(select(Setting).order_by(Setting.key)).scalars():
        values[row.key] = row.value
    return values


def update_settings(store: LedgerStore, payload: dict | None) -> dict[str, str]:
    """Upsert every key in `payload`. Values are stored as text."""
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("Settings payload must be a non-empty object")

    updates = {}
    for key, value in payload.items():
        if not isinstance(key, str) or not key.strip() or len(key) > MAX_KEY_LENGTH:
            raise ValidationError(f"Invalid setting key: {key!r}")
        if isinstance(value, (dict, list)):
            raise ValidationError(f"Setting {key} must be a scalar value")
        updates[key.strip()] = None if value is None else str(value)

    with store.unit_of_work("update_settings") as session:
        for key, value in updates.items():
            row = session.get(Setting, key)
            if row is None:
                session.add(Setting(key=key, value=value))
            else:
                row.value = value

    return get_settings(store)


def seed_defaults(store: LedgerStore) -> int:
    """Insert any missing default keys. Returns how many were added."""
    added = 0
    with store.unit_of_work("seed_settings") as session:
        for key, value in DEFAULT_SETTINGS.items():
            if session.get(Setting, key) is None:
                session.add(Setting(key=key, value=value))
                added += 1
    return added
