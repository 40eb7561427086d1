"""
Value normalization and typed parameter binding for snapshot data.

Collectors emit loosely shaped JSON: a field may be one object or a list of
objects, dates come in several textual forms, numbers may be strings, and
booleans may be text. These helpers coerce such values into the shapes the
target tables expect. Coercion never raises; a value that cannot be coerced
is replaced by a null (or ``False``) sentinel and the fallback is logged.
"""

import ipaddress
import logging
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import dateutil.parser
from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Table, bindparam
from sqlalchemy.sql.elements import BindParameter

from .exceptions import CoercionFallback

logger = logging.getLogger(__name__)

# Windows PowerShell 5.1 ConvertTo-Json renders DateTime as "\/Date(1695038400000)\/"
_PS_JSON_DATE = re.compile(r"^/Date\((-?\d+)(?:[+-]\d{4})?\)/$")
_CIDR_PREFIX = re.compile(r"^/?(\d{1,2})$")

LIST_DELIMITER = ", "


def _log_fallback(field: str, value: Any, target: str, sentinel: Any = None) -> None:
    logger.warning(
        f"Coercion fallback: {field}={value!r} is not a valid {target}; using {sentinel!r}",
        extra={"category": CoercionFallback.__name__},
    )


# ============================================================================
# SHAPE NORMALIZATION
# ============================================================================


def as_list(value: Any) -> List[Any]:
    """Return a singleton-or-sequence field as a list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return [value]


def first_or_none(value: Any, field: str = "value") -> Any:
    """
    Return the first element of a singleton-or-sequence field.

    Extra elements are discarded; the discard is logged so multi-GPU
    machines are visible in the import log.
    """
    items = as_list(value)
    if not items:
        return None
    if len(items) > 1:
        logger.warning(
            f"{field}: {len(items)} entries supplied, keeping the first and discarding {len(items) - 1}"
        )
    return items[0]


# ============================================================================
# SCALAR COERCION
# ============================================================================


def blank_to_none(value: Any) -> Optional[str]:
    """Strip a string, collapsing empty/whitespace-only strings to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def join_list(value: Any, delimiter: str = LIST_DELIMITER) -> Optional[str]:
    """Flatten a list-valued field (e.g. DNS servers) into one delimited string."""
    if isinstance(value, (list, tuple)):
        parts = [blank_to_none(item) for item in value]
        parts = [p for p in parts if p]
        return delimiter.join(parts) if parts else None
    return blank_to_none(value)


def to_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    return join_list(value)


def parse_datetime(value: Any, field: str = "value") -> Optional[datetime]:
    """
    Best-effort timestamp parsing.

    Accepts datetime objects, ISO and locale-style strings, compact
    ``yyyyMMdd`` registry dates, PowerShell ``/Date(ms)/`` values and the
    ``{"value": ..., "DateTime": ...}`` objects PowerShell emits for
    extended DateTime properties. Returns None when parsing fails.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, dict):
        value = value.get("value") or value.get("DateTime")

    text = blank_to_none(value)
    if text is None:
        return None

    match = _PS_JSON_DATE.match(text)
    if match:
        try:
            return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            _log_fallback(field, value, "timestamp")
            return None

    try:
        return dateutil.parser.parse(text)
    except (ValueError, OverflowError, TypeError):
        _log_fallback(field, value, "timestamp")
        return None


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_decimal(value: Any, precision: int = 10, scale: int = 2,
               field: str = "value") -> Optional[Decimal]:
    """
    Coerce a value to a Decimal quantized to ``scale`` places.

    Values that are not numeric, not finite, or that overflow
    ``decimal(precision, scale)`` fall back to None.
    """
    if value is None or isinstance(value, bool):
        if isinstance(value, bool):
            _log_fallback(field, value, f"decimal({precision},{scale})")
        return None
    if isinstance(value, str) and not value.strip():
        return None

    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        _log_fallback(field, value, f"decimal({precision},{scale})")
        return None

    if not number.is_finite():
        _log_fallback(field, value, f"decimal({precision},{scale})")
        return None

    quantized = number.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)
    if abs(quantized) >= Decimal(10) ** (precision - scale):
        _log_fallback(field, value, f"decimal({precision},{scale})")
        return None
    return quantized


def to_int(value: Any, field: str = "value") -> Optional[int]:
    if value is None or isinstance(value, bool):
        if isinstance(value, bool):
            _log_fallback(field, value, "integer")
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and not value.strip():
        return None

    try:
        number = Decimal(str(value).strip())
        if not number.is_finite():
            raise ValueError(value)
        return int(number.to_integral_value(rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        _log_fallback(field, value, "integer")
        return None


def to_bool(value: Any) -> bool:
    """Native booleans or case-insensitive "true"/"false"; anything else is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def cidr_to_netmask(value: Any) -> Optional[str]:
    """
    Convert a CIDR prefix ("24" or "/24") to dotted-decimal form.

    Anything that is not a prefix, or fails conversion, is returned as-is.
    """
    text = blank_to_none(value)
    if text is None:
        return None

    match = _CIDR_PREFIX.match(text)
    if not match:
        return text

    try:
        return str(ipaddress.IPv4Network(f"0.0.0.0/{match.group(1)}").netmask)
    except ValueError:
        logger.debug(f"Could not convert subnet prefix {text!r}; keeping it as-is")
        return text


# ============================================================================
# SAFE BINDING
# ============================================================================


def _fit_value(table: Table, name: str, value: Any) -> Any:
    """Coerce a value to the declared type of ``table.c[name]``."""
    column_type = table.c[name].type
    field = f"{table.name}.{name}"

    if value is None:
        return None
    if isinstance(column_type, Boolean):
        return to_bool(value)
    if isinstance(column_type, Numeric):
        return to_decimal(value, column_type.precision or 18, column_type.scale or 0, field)
    if isinstance(column_type, Integer):
        return to_int(value, field)
    if isinstance(column_type, DateTime):
        return to_naive_utc(parse_datetime(value, field))
    if isinstance(column_type, String):
        text = to_text(value)
        if text is not None and column_type.length and len(text) > column_type.length:
            logger.warning(
                f"Truncating {field} from {len(text)} to {column_type.length} characters"
            )
            text = text[:column_type.length]
        return text
    return value


def bind_row(table: Table, row: Dict[str, Any]) -> List[BindParameter]:
    """
    Bind each value in ``row`` to a parameter typed from the table catalog.

    Decimal columns carry explicit precision/scale and strings carry their
    length, so nothing reaches the database with an ambiguous type.
    """
    return [
        bindparam(name, _fit_value(table, name, value), type_=table.c[name].type)
        for name, value in row.items()
    ]
