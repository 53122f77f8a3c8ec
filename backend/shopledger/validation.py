from __future__ import annotations
from datetime import datetime, timezone
from shopledger.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

PAYMENT_METHODS = ("cash", "upi", "card")
MOVEMENT_TYPES = ("sale", "purchase", "adjustment", "return")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate barcode)."""


class NotFoundError(ValueError):
    """404-level unknown product/transaction/category reference."""


class InsufficientStockError(ConflictError):
    """Raised when a cart asks for more units than are in stock."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                return value.astimezone(timezone.utc).replace(tzinfo=None)
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

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
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

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_cents(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        value = patch[key]
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        if value > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_cents(patch, "price_cents")
    _check_cents(patch, "cost_price_cents")

    for key in ("stock", "min_stock", "max_stock"):
        if key in patch and patch[key] is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")

    min_stock = patch.get("min_stock")
    max_stock = patch.get("max_stock")
    if min_stock is not None and max_stock is not None and min_stock > max_stock:
        raise ValidationError("min_stock cannot exceed max_stock")

    if "barcode" in patch and patch["barcode"] == "":
        # Empty barcode means no barcode
        patch["barcode"] = None


def enforce_rules_stock_adjustment(payload: dict) -> dict:
    """Validate a manual stock correction: {quantity, type?, reason?}."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    if "quantity" not in payload:
        raise ValidationError("quantity is required")

    delta = _coerce_int("quantity", payload["quantity"])
    if delta == 0:
        raise ValidationError("quantity must be non-zero")

    movement_type = payload.get("type")
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MOVEMENT_TYPES)}")

    reason = payload.get("reason")
    if reason is not None:
        reason = str(reason).strip() or None
        if reason and len(reason) > 255:
            raise ValidationError("reason exceeds max length 255")

    return {"delta": delta, "movement_type": movement_type, "reason": reason}


def enforce_rules_cart(payload: dict) -> dict:
    """
    Normalize a checkout payload.

    Shape: {items: [{product_id, quantity, unit_price_cents?}], payment_method,
            discount_cents?, tax_cents?, customer_name?, customer_phone?}
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cleaned_items = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"item {index} must be an object")
        product_id = item.get("product_id")
        if product_id is None or str(product_id).strip() == "":
            raise ValidationError(f"item {index}: product_id is required")
        if "quantity" not in item:
            raise ValidationError(f"item {index}: quantity is required")
        quantity = _coerce_int("quantity", item["quantity"])
        if quantity <= 0:
            raise ValidationError(f"item {index}: quantity must be > 0")

        cleaned = {"product_id": str(product_id).strip(), "quantity": quantity}
        if item.get("unit_price_cents") is not None:
            price = _coerce_int("unit_price_cents", item["unit_price_cents"])
            _check_cents({"unit_price_cents": price}, "unit_price_cents")
            cleaned["unit_price_cents"] = price
        cleaned_items.append(cleaned)

    payment_method = payload.get("payment_method")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    amounts = {}
    for key in ("discount_cents", "tax_cents"):
        raw = payload.get(key)
        value = 0 if raw is None else _coerce_int(key, raw)
        _check_cents({key: value}, key)
        amounts[key] = value

    def _text(key: str, limit: int) -> str | None:
        raw = payload.get(key)
        if raw is None:
            return None
        value = str(raw).strip()
        if len(value) > limit:
            raise ValidationError(f"{key} exceeds max length {limit}")
        return value or None

    return {
        "items": cleaned_items,
        "payment_method": payment_method,
        "discount_cents": amounts["discount_cents"],
        "tax_cents": amounts["tax_cents"],
        "customer_name": _text("customer_name", 255),
        "customer_phone": _text("customer_phone", 32),
    }


def enforce_rules_settings(patch: dict) -> None:
    if patch.get("currency") is not None:
        currency = patch["currency"].upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError("currency must be a 3-letter ISO code")
        patch["currency"] = currency

    if patch.get("email") and "@" not in patch["email"]:
        raise ValidationError("email is not a valid address")
