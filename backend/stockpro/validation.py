from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from stockpro.money import parse_amount_to_cents


# Maximum price: 9,999,999.99 in major units
MAX_PRICE_CENTS = 999_999_999

# Largest quantity accepted in a single request
MAX_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate barcode)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    What a route lets clients write:
    - writable_fields: allowlist (security boundary)
    - required_on_create: fields required when partial=False
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion for quantities and minor-unit amounts.

    Rejects bools, floats, decimals and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
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
        return coerce_int(col.key, value)

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
    Validate and normalize incoming JSON against the model's columns.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
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
            if val == "" and k in policy.required_on_create:
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def normalize_price_field(payload: dict) -> dict:
    """
    Accept "price" in major units (as the add-product form sends it) and
    translate it to price_cents. Sending both is rejected.
    """
    if not isinstance(payload, dict) or "price" not in payload:
        return payload
    if "price_cents" in payload:
        raise ValidationError("Send either price or price_cents, not both")

    out = dict(payload)
    raw = out.pop("price")
    if raw is None:
        raise ValidationError("price cannot be null")
    try:
        out["price_cents"] = parse_amount_to_cents(raw)
    except ValueError as e:
        raise ValidationError(f"price: {e}")
    return out


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """LIKE pattern matching term as a literal substring; use with escape=LIKE_ESCAPE."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def parse_quantity(value: Any, *, key: str = "quantity", allow_zero: bool = False) -> int:
    """Positive (or non-negative) integer quantity from a request body."""
    if value is None:
        raise ValidationError(f"{key} is required")
    qty = coerce_int(key, value)
    if allow_zero:
        if qty < 0:
            raise ValidationError(f"{key} must be >= 0")
    elif qty <= 0:
        raise ValidationError(f"{key} must be > 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{key} cannot exceed {MAX_QUANTITY}")
    return qty


def enforce_rules_item(patch: dict) -> None:
    """
    Item rules that column metadata alone does not capture.
    """
    if "price_cents" in patch:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")

    if "quantity" in patch:
        qty = patch["quantity"]
        if qty < 0:
            raise ValidationError("quantity must be >= 0")
        if qty > MAX_QUANTITY:
            raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY}")

    if "barcode" in patch and patch["barcode"] == "":
        # Blank barcode means "no barcode"
        patch["barcode"] = None

    for key in ("name", "category", "unit"):
        if key in patch and patch[key] == "":
            raise ValidationError(f"{key} cannot be blank")
