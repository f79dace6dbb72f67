"""Value helpers for converting domain values to and from stored documents."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a timestamp to UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def dt_to_doc(dt: Optional[datetime]) -> Optional[str]:
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None


def dt_from_doc(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value)))


def dec_to_doc(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def dec_from_doc(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    # str() first so floats keep their printed value instead of binary noise
    return Decimal(str(value))


def quantize_money(value: Decimal) -> Decimal:
    """Round to the smallest currency unit, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
