from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .amounts import THREEPLACES, TWOPLACES, money, quantity
from .errors import ValidationError


# Largest amount / quantity the Numeric(14, x) columns can hold comfortably
MAX_AMOUNT = Decimal("999999999999")

PRODUCT_UNITS = ("BAG", "KG", "TON", "PIECE", "METER", "SQFT", "CUFT")
PAYMENT_MODES = ("CASH", "BANK", "ONLINE")
ADJUSTMENT_TYPES = ("IN", "OUT")


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


def parse_decimal(value: Any, field: str) -> Decimal:
    """Strict decimal parsing for JSON input (numbers or numeric strings)."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} must be a number")
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(dec) > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    return dec


def _exact(dec: Decimal, step: Decimal, field: str) -> Decimal:
    """Reject values with more decimal places than the column stores."""
    if dec != dec.quantize(step):
        places = -step.as_tuple().exponent
        raise ValidationError(f"{field} cannot have more than {places} decimal places")
    return dec


def parse_money(value: Any, field: str) -> Decimal:
    return money(_exact(parse_decimal(value, field), TWOPLACES, field))


def parse_quantity(value: Any, field: str) -> Decimal:
    return quantity(_exact(parse_decimal(value, field), THREEPLACES, field))


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Numeric):
        return parse_decimal(value, col.key)

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Strings / Text
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

    patch: dict = {}

    for k, raw in payload.items():
        col = cols.get(k)
        if col is None:
            # Writable but not a column (e.g. opening_balance); caller validates it.
            patch[k] = raw
            continue

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


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "unit" in patch:
        unit = (patch["unit"] or "").upper()
        if unit not in PRODUCT_UNITS:
            raise ValidationError(f"unit must be one of {', '.join(PRODUCT_UNITS)}")
        patch["unit"] = unit

    if "minimum_stock_level" in patch and patch["minimum_stock_level"] is not None:
        if patch["minimum_stock_level"] < 0:
            raise ValidationError("Minimum stock level must be 0 or greater")
        patch["minimum_stock_level"] = quantity(patch["minimum_stock_level"])


def enforce_rules_party(patch: dict) -> None:
    for key in ("phone", "address"):
        if key in patch and patch[key] == "":
            patch[key] = None

    if patch.get("opening_balance") is not None:
        ob = parse_money(patch["opening_balance"], "opening_balance")
        if ob < 0:
            raise ValidationError("opening_balance cannot be negative")
        patch["opening_balance"] = ob


def require_positive_quantity(value: Any, field: str = "quantity") -> Decimal:
    qty = parse_quantity(value, field)
    if qty <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return qty


def require_positive_amount(value: Any, field: str = "amount") -> Decimal:
    amt = parse_money(value, field)
    if amt <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return amt


def optional_non_negative_amount(value: Any, field: str) -> Decimal:
    if value is None or value == "":
        return money(0)
    amt = parse_money(value, field)
    if amt < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amt


def normalize_payment_mode(value: Any) -> str:
    """Unknown or missing modes fall back to CASH."""
    if isinstance(value, str) and value.strip().upper() in PAYMENT_MODES:
        return value.strip().upper()
    return "CASH"


def parse_line_items(raw: Any) -> list[dict]:
    """
    Validate invoice lines: [{product_id, quantity > 0, rate > 0}, ...].

    Returns normalized dicts with Decimal quantity and rate.
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationError("At least one item is required")

    lines = []
    for idx, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {idx} must be an object")

        product_id = item.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            if isinstance(product_id, str) and product_id.strip().isdigit():
                product_id = int(product_id.strip())
            else:
                raise ValidationError(f"Item {idx}: product_id is required")

        rate = item.get("rate", item.get("unit_price"))
        lines.append({
            "product_id": product_id,
            "quantity": require_positive_quantity(item.get("quantity"), f"Item {idx} quantity"),
            "rate": require_positive_amount(rate, f"Item {idx} rate"),
        })
    return lines
