from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Enum, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_date_ms


# Maximum price: $9,999.99 (999,999 cents). Nothing in a vending slot costs more.
MAX_PRICE_CENTS = 999_999

# Epoch-millis columns accept ISO-8601 dates as well as integers
EPOCH_MS_FIELDS = {"expiry_date"}


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set
    - required_on_create: fields required when creating a new row
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

    # Epoch millis may arrive as an ISO date from a date picker
    if col.key in EPOCH_MS_FIELDS and isinstance(value, str) and not value.strip().lstrip("-").isdigit():
        try:
            parsed = parse_date_ms(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be epoch milliseconds or an ISO-8601 date")
        if parsed is None:
            raise ValidationError(f"{col.key} must be epoch milliseconds or an ISO-8601 date")
        return parsed

    # Integers (BigInteger included) - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    # Enums accept the member name or its value
    if isinstance(coltype, Enum) and coltype.enum_class is not None:
        enum_class = coltype.enum_class
        if isinstance(value, enum_class):
            return value
        for member in enum_class:
            if value in (member.name, member.value):
                return member
        raise ValidationError(f"{col.key} must be one of: {', '.join(m.name for m in enum_class)}")

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
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create
    Returns a cleaned patch dict with only writable fields.

    Every write is a create or a full replace, so required fields are always
    enforced.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    missing = sorted(f for f in required if payload.get(f) in (None, ""))
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
            if not col.nullable and not col.primary_key:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "" and k in required:
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

    quantity is not range-checked here: the catalog clamps it at zero.
    """
    for field in ("price_cents", "cost_cents"):
        if field in patch and patch[field] is not None:
            amount = patch[field]
            if amount < 0:
                raise ValidationError(f"{field} must be >= 0")
            if amount > MAX_PRICE_CENTS:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if "min_quantity" in patch and patch["min_quantity"] is not None:
        if patch["min_quantity"] < 0:
            raise ValidationError("min_quantity must be >= 0")
