from __future__ import annotations
from datetime import date, datetime
from freshcorner.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 minor units)
MAX_PRICE_CENTS = 999_999_999
MAX_STOCK_QUANTITY = 1_000_000


class ServiceError(Exception):
    """Base for errors a route maps onto a single JSON response."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(ServiceError, ValueError):
    """400-level input problem."""


class ConflictError(ServiceError, ValueError):
    """Business rule conflict (insufficient stock, no-op transition, duplicate email)."""


class NotFoundError(ServiceError, LookupError):
    """Referenced entity is absent, soft-deleted, or not owned by the caller."""
    status_code = 404


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
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    # DateTime must be checked before Date (DateTime is not a Date subclass, but keep the order explicit)
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

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, (String, Text)):
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

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

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

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Optional text fields: blank means "unset"
        if isinstance(col.type, (String, Text)) and col.nullable and val == "":
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def parse_positive_int(value: Any, field: str, *, minimum: int = 1) -> int:
    """Strict integer parsing for non-model inputs (quantities, ids)."""
    if value is None:
        raise ValidationError(f"{field} is required")
    number = _coerce_int(field, value)
    if number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return number


def enforce_rules_product(patch: dict, *, current_price_cents: int | None = None) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    price = patch.get("price_cents", current_price_cents)
    if "price_cents" in patch:
        if patch["price_cents"] is None:
            raise ValidationError("price_cents is required")
        if patch["price_cents"] <= 0:
            raise ValidationError("price_cents must be > 0")
        if patch["price_cents"] > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")

    discount = patch.get("discount_price_cents")
    if discount is not None:
        if discount <= 0:
            raise ValidationError("discount_price_cents must be > 0")
        if price is not None and discount >= price:
            raise ValidationError("discount_price_cents must be lower than price_cents")

    if "stock_quantity" in patch and patch["stock_quantity"] is not None:
        stock = patch["stock_quantity"]
        if stock < 0:
            raise ValidationError("stock_quantity must be >= 0")
        if stock > MAX_STOCK_QUANTITY:
            raise ValidationError(f"stock_quantity cannot exceed {MAX_STOCK_QUANTITY}")


def enforce_rules_address(patch: dict) -> None:
    lat = patch.get("latitude")
    if lat is not None and not -90.0 <= lat <= 90.0:
        raise ValidationError("latitude must be between -90 and 90")
    lng = patch.get("longitude")
    if lng is not None and not -180.0 <= lng <= 180.0:
        raise ValidationError("longitude must be between -180 and 180")
    label = patch.get("label")
    if label is not None and label not in {"home", "office", "other"}:
        raise ValidationError("label must be one of: home, office, other")


class AuthError(ServiceError):
    """Missing, invalid or expired credentials, or an unusable account."""
    status_code = 401
