from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .exceptions import ValidationError
from .time_utils import parse_iso_datetime


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999
MAX_MOVEMENT_QUANTITY = 1_000_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

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

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business rules that are not captured by SQLAlchemy metadata alone."""
    if "price_cents" in patch:
        price = patch["price_cents"]
        if price is None or price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if "min_stock" in patch:
        if patch["min_stock"] is None or patch["min_stock"] < 0:
            raise ValidationError("min_stock must be >= 0")


def enforce_rules_restock(payload: dict) -> dict:
    # RESTOCK requires product_id and qty > 0
    if "product_id" not in payload or "quantity" not in payload:
        raise ValidationError("product_id and quantity required")
    quantity = coerce_int(payload["quantity"], "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be > 0 for RESTOCK")
    if quantity > MAX_MOVEMENT_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_MOVEMENT_QUANTITY}")

    resolve_alerts = payload.get("resolve_alerts")
    if resolve_alerts is not None and not isinstance(resolve_alerts, bool):
        raise ValidationError("resolve_alerts must be true or false")

    supplier_id = payload.get("supplier_id")
    return {
        "product_id": coerce_int(payload["product_id"], "product_id"),
        "quantity": quantity,
        "reason": (payload.get("reason") or "").strip() or None,
        "supplier_id": coerce_int(supplier_id, "supplier_id") if supplier_id is not None else None,
        "resolve_alerts": resolve_alerts,
    }


def enforce_rules_adjust(payload: dict) -> dict:
    # ADJUSTMENT requires qty != 0 and a reason
    if "product_id" not in payload or "quantity_delta" not in payload:
        raise ValidationError("product_id and quantity_delta required")
    delta = coerce_int(payload["quantity_delta"], "quantity_delta")
    if delta == 0:
        raise ValidationError("quantity_delta must be non-zero for ADJUSTMENT")
    if abs(delta) > MAX_MOVEMENT_QUANTITY:
        raise ValidationError(f"quantity_delta cannot exceed {MAX_MOVEMENT_QUANTITY}")
    reason = (payload.get("reason") or "").strip()
    if not reason:
        raise ValidationError("reason is required for ADJUSTMENT")
    return {
        "product_id": coerce_int(payload["product_id"], "product_id"),
        "quantity_delta": delta,
        "reason": reason,
    }


def parse_datetime_arg(value: str | None, field: str) -> datetime | None:
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_date_arg(value: str | None, field: str, default: date) -> date:
    if value is None or not value.strip():
        return default
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
