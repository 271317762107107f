from __future__ import annotations
from datetime import datetime
from shopledger.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models.inventory import PRODUCT_CATEGORIES, ADJUSTMENT_KINDS
from .models.ledger import LEDGER_KINDS
from .models.sales import PAYMENT_STATUSES


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(name: str, value: Any) -> int:
    """Strict integer coercion: rejects floats, booleans and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def coerce_column_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = coerce_column_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(name: str, value: int, *, allow_zero: bool = True) -> None:
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{name} must be {'>= 0' if allow_zero else '> 0'}")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{name} cannot exceed {MAX_AMOUNT_CENTS} ({MAX_AMOUNT_CENTS / 100:,.2f})")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "category" in patch and patch["category"] not in PRODUCT_CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(PRODUCT_CATEGORIES)}")
    for name in ("price_cents", "unit_cost_cents"):
        if patch.get(name) is not None:
            _check_amount(name, patch[name])
    if patch.get("min_stock_level") is not None and patch["min_stock_level"] < 0:
        raise ValidationError("min_stock_level must be >= 0")
    if patch.get("stock_quantity") is not None and patch["stock_quantity"] < 0:
        raise ValidationError("stock_quantity must be >= 0 at creation")


def enforce_rules_customer(patch: dict) -> None:
    opening = patch.get("opening_balance_cents")
    if opening is not None and abs(opening) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"opening_balance_cents cannot exceed {MAX_AMOUNT_CENTS} in magnitude")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================
#
# Commands are parsed and fully validated before a unit of work starts, so an
# invalid request never reaches the store.


@dataclass(frozen=True)
class LineItem:
    quantity: int
    unit_amount_cents: int
    product_id: int | None = None
    sku: str | None = None

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_amount_cents


@dataclass(frozen=True)
class SaleCommand:
    items: tuple[LineItem, ...]
    total_amount_cents: int
    payment_status: str
    discount_cents: int = 0
    payment_method: str | None = None
    customer_id: int | None = None
    user_id: int | None = None


@dataclass(frozen=True)
class PurchaseCommand:
    supplier_id: int
    items: tuple[LineItem, ...]
    total_amount_cents: int
    payment_status: str
    user_id: int | None = None


@dataclass(frozen=True)
class PaymentCommand:
    party_id: int
    amount_cents: int
    description: str | None = None


@dataclass(frozen=True)
class StockAdjustmentCommand:
    product_id: int
    kind: str
    quantity: int
    reason: str | None = None


@dataclass(frozen=True)
class LedgerEntryCommand:
    kind: str
    amount_cents: int
    category: str | None = None
    description: str | None = None


def _as_dict(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _require_int(payload: dict, key: str) -> int:
    if payload.get(key) in (None, ""):
        raise ValidationError(f"{key} is required")
    return coerce_int(key, payload[key])


def _optional_id(payload: dict, key: str) -> int | None:
    # 0 is what the client sends for "no customer selected"
    raw = payload.get(key)
    if raw in (None, "", 0, "0"):
        return None
    value = coerce_int(key, raw)
    if value < 0:
        raise ValidationError(f"{key} must be a positive id")
    return value


def _require_choice(payload: dict, key: str, choices: tuple[str, ...]) -> str:
    value = payload.get(key)
    if value in (None, ""):
        raise ValidationError(f"{key} is required")
    if value not in choices:
        raise ValidationError(f"{key} must be one of: {', '.join(choices)}")
    return value


def _optional_str(payload: dict, key: str, max_length: int = 255) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    if len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value or None


def _parse_items(payload: dict, unit_key: str) -> tuple[LineItem, ...]:
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = _optional_id(raw, "product_id")
        sku = _optional_str(raw, "sku", max_length=64)
        if product_id is None and sku is None:
            raise ValidationError(f"items[{index}] requires product_id or sku")

        quantity = _require_int(raw, "quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")

        unit_amount = _require_int(raw, unit_key)
        _check_amount(f"items[{index}].{unit_key}", unit_amount)

        item = LineItem(
            quantity=quantity,
            unit_amount_cents=unit_amount,
            product_id=product_id,
            sku=sku,
        )
        # A client-computed subtotal, when sent, must agree with quantity x unit
        if raw.get("subtotal_cents") is not None:
            if coerce_int("subtotal_cents", raw["subtotal_cents"]) != item.subtotal_cents:
                raise ValidationError(
                    f"items[{index}].subtotal_cents must equal quantity x {unit_key}",
                    details={"expected": item.subtotal_cents},
                )
        items.append(item)
    return tuple(items)


def parse_sale_command(payload: Any) -> SaleCommand:
    payload = _as_dict(payload)
    items = _parse_items(payload, "unit_price_cents")
    payment_status = _require_choice(payload, "payment_status", PAYMENT_STATUSES)
    total = _require_int(payload, "total_amount_cents")
    _check_amount("total_amount_cents", total)

    discount = coerce_int("discount_cents", payload.get("discount_cents") or 0)
    _check_amount("discount_cents", discount)

    expected = sum(item.subtotal_cents for item in items) - discount
    if total != expected:
        raise ValidationError(
            "total_amount_cents must equal the sum of item subtotals minus discount",
            details={"expected": expected, "received": total},
        )

    return SaleCommand(
        items=items,
        total_amount_cents=total,
        payment_status=payment_status,
        discount_cents=discount,
        payment_method=_optional_str(payload, "payment_method", max_length=32),
        customer_id=_optional_id(payload, "customer_id"),
        user_id=_optional_id(payload, "user_id"),
    )


def parse_purchase_command(payload: Any) -> PurchaseCommand:
    payload = _as_dict(payload)
    supplier_id = _optional_id(payload, "supplier_id")
    if supplier_id is None:
        raise ValidationError("supplier_id is required")
    items = _parse_items(payload, "unit_cost_cents")
    payment_status = _require_choice(payload, "payment_status", PAYMENT_STATUSES)
    total = _require_int(payload, "total_amount_cents")
    _check_amount("total_amount_cents", total)

    expected = sum(item.subtotal_cents for item in items)
    if total != expected:
        raise ValidationError(
            "total_amount_cents must equal the sum of item subtotals",
            details={"expected": expected, "received": total},
        )

    return PurchaseCommand(
        supplier_id=supplier_id,
        items=items,
        total_amount_cents=total,
        payment_status=payment_status,
        user_id=_optional_id(payload, "user_id"),
    )


def parse_payment_command(payload: Any, party_key: str) -> PaymentCommand:
    payload = _as_dict(payload)
    party_id = _optional_id(payload, party_key)
    if party_id is None:
        raise ValidationError(f"{party_key} is required")
    amount = _require_int(payload, "amount_cents")
    _check_amount("amount_cents", amount, allow_zero=False)
    return PaymentCommand(
        party_id=party_id,
        amount_cents=amount,
        description=_optional_str(payload, "description"),
    )


def parse_stock_adjustment_command(payload: Any) -> StockAdjustmentCommand:
    payload = _as_dict(payload)
    product_id = _optional_id(payload, "product_id")
    if product_id is None:
        raise ValidationError("product_id is required")
    kind = _require_choice(payload, "kind", ADJUSTMENT_KINDS)
    quantity = _require_int(payload, "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    return StockAdjustmentCommand(
        product_id=product_id,
        kind=kind,
        quantity=quantity,
        reason=_optional_str(payload, "reason"),
    )


def parse_ledger_entry_command(payload: Any) -> LedgerEntryCommand:
    payload = _as_dict(payload)
    kind = _require_choice(payload, "kind", LEDGER_KINDS)
    amount = _require_int(payload, "amount_cents")
    _check_amount("amount_cents", amount, allow_zero=False)
    return LedgerEntryCommand(
        kind=kind,
        amount_cents=amount,
        category=_optional_str(payload, "category", max_length=64),
        description=_optional_str(payload, "description"),
    )
