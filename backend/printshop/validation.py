from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from printshop.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime, Date, JSON
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99
# This prevents database overflow issues and nonsensical prices
MAX_PRICE = Decimal("9999999.99")

# Maximum weight accepted for a tier bound (kg)
MAX_WEIGHT = Decimal("99999.999")

# Largest quoted or invoiced weight (kg); matches the Numeric(10, 3) weight columns
MAX_TOTAL_WEIGHT = Decimal("9999999.999")

# Largest invoice amount; matches the Numeric(12, 2) total columns
MAX_AMOUNT = Decimal("9999999999.99")

# Maximum units on a single priced or invoiced line
MAX_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate product code)."""


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


def _coerce_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be a number")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    return result


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
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Money, weights and rates
    if isinstance(coltype, Numeric):
        return _coerce_decimal(col.key, value)

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

    if isinstance(coltype, JSON):
        if not isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be an object")
        return value

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


def _check_money(patch: dict, field: str, *, allow_zero: bool = True) -> None:
    value = patch.get(field)
    if value is None:
        return
    if value < 0 or (not allow_zero and value == 0):
        raise ValidationError(f"{field} must be {'>=' if allow_zero else '>'} 0")
    if value > MAX_PRICE:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE:,}")


def _check_choice(patch: dict, field: str, choices) -> None:
    value = patch.get(field)
    if value is not None and value not in choices:
        raise ValidationError(f"Invalid {field}: {value}. Must be one of {list(choices)}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    from .pricing import VALID_WEIGHT_UNITS

    _check_money(patch, "base_price")
    _check_choice(patch, "weight_unit", VALID_WEIGHT_UNITS)
    _check_choice(patch, "status", ("active", "inactive"))

    weight = patch.get("weight_per_unit")
    if weight is not None and weight < 0:
        raise ValidationError("weight_per_unit must be >= 0")
    if weight is not None and weight > MAX_TOTAL_WEIGHT:
        raise ValidationError(f"weight_per_unit cannot exceed {MAX_TOTAL_WEIGHT}")

    rate = patch.get("tax_rate")
    if rate is not None and not (0 <= rate <= 100):
        raise ValidationError("tax_rate must be between 0 and 100")

    min_qty = patch.get("minimum_quantity")
    max_qty = patch.get("maximum_quantity")
    if min_qty is not None and min_qty < 1:
        raise ValidationError("minimum_quantity must be >= 1")
    if max_qty is not None and max_qty > MAX_QUANTITY:
        raise ValidationError(f"maximum_quantity cannot exceed {MAX_QUANTITY:,}")
    if min_qty is not None and max_qty is not None and max_qty < min_qty:
        raise ValidationError("maximum_quantity must be >= minimum_quantity")


def enforce_rules_category(patch: dict) -> None:
    _check_choice(patch, "status", ("active", "inactive"))

    sort_order = patch.get("sort_order")
    if sort_order is not None and not (0 <= sort_order <= 9999):
        raise ValidationError("sort_order must be between 0 and 9999")


def enforce_rules_weight_tier(patch: dict) -> None:
    _check_money(patch, "base_price")
    _check_money(patch, "per_kg_rate")
    _check_choice(patch, "status", ("active", "inactive"))

    min_weight = patch.get("min_weight")
    max_weight = patch.get("max_weight")
    if min_weight is not None:
        if min_weight < 0:
            raise ValidationError("min_weight must be >= 0")
        if min_weight > MAX_WEIGHT:
            raise ValidationError(f"min_weight cannot exceed {MAX_WEIGHT}")
    if max_weight is not None:
        if max_weight > MAX_WEIGHT:
            raise ValidationError(f"max_weight cannot exceed {MAX_WEIGHT}")
        if min_weight is not None and max_weight <= min_weight:
            raise ValidationError("max_weight must be greater than min_weight")


def enforce_rules_company(patch: dict) -> None:
    rate = patch.get("tax_rate")
    if rate is not None and not (0 <= rate <= 100):
        raise ValidationError("tax_rate must be between 0 and 100")
