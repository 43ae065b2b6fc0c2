from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from dukapos.time_utils import parse_iso_date, parse_iso_datetime
from dukapos.money import to_money

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models.sales import PAYMENT_METHODS


# Maximum money value that fits Numeric(12, 2)
MAX_MONEY = Decimal("9999999999.99")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "size", "stock_quantity", "buying_price"},
    required_on_create={"name", "description", "buying_price"},
)

SALE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "selling_price", "payment_method", "sale_date", "description"},
    required_on_create={"product_id", "quantity", "selling_price", "payment_method"},
)

# Not Sale columns; carried alongside a sale payload to open its credit account
CREDIT_SALE_FIELDS = ("customer_name", "due_date")


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer", details={"field": col.key})
            if 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer", details={"field": col.key})
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer", details={"field": col.key})
        raise ValidationError(f"{col.key} must be an integer", details={"field": col.key})

    # Money (Numeric) - exact Decimal, never float arithmetic
    if isinstance(coltype, Numeric):
        try:
            return to_money(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be a decimal amount", details={"field": col.key})

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", details={"field": col.key})
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", details={"field": col.key})
            return dt
        raise ValidationError(f"{col.key} must be a datetime", details={"field": col.key})

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
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", details={"missing": missing})

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", details={"field": k})
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", details={"field": k})

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", details={"field": k})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", details={"field": k})

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", details={"field": k})

        patch[k] = val

    return patch


def split_credit_fields(payload: dict | None) -> tuple[dict, dict]:
    """Separate customer_name/due_date from a sale payload."""
    payload = dict(payload or {})
    credit = {k: payload.pop(k) for k in CREDIT_SALE_FIELDS if k in payload}
    return payload, credit


def _enforce_money_range(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        value = patch[key]
        if value < 0:
            raise ValidationError(f"{key} must be >= 0", details={"field": key})
        if value > MAX_MONEY:
            raise ValidationError(f"{key} cannot exceed {MAX_MONEY:,}", details={"field": key})


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _enforce_money_range(patch, "buying_price")
    if "stock_quantity" in patch and patch["stock_quantity"] is not None:
        if patch["stock_quantity"] < 0:
            raise ValidationError("stock_quantity must be >= 0", details={"field": "stock_quantity"})


def enforce_rules_sale(patch: dict) -> None:
    _enforce_money_range(patch, "selling_price")
    if "quantity" in patch and patch["quantity"] is not None:
        if patch["quantity"] < 1:
            raise ValidationError("quantity must be >= 1", details={"field": "quantity"})
    if "payment_method" in patch:
        method = (patch["payment_method"] or "").lower()
        if method not in PAYMENT_METHODS:
            raise ValidationError(
                f"payment_method must be one of {', '.join(PAYMENT_METHODS)}",
                details={"field": "payment_method", "value": patch["payment_method"]},
            )
        patch["payment_method"] = method


def parse_date_param(name: str, value: str | None):
    """Query-string date ("YYYY-MM-DD"); None when absent."""
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)", details={"field": name, "value": value})
