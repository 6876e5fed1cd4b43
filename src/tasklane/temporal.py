"""Normalization of heterogeneous timestamp values and day arithmetic.

Upstream records carry start dates in several shapes: native datetimes,
Firestore-style ``Timestamp`` objects with a conversion method, serialized
``{"_seconds": ...}`` mappings, ISO strings, epoch milliseconds, or nothing.
Every shape is classified once here and converted to a naive local datetime.
"""

from __future__ import annotations

import enum
import logging
from datetime import date, datetime, time, timedelta

logger = logging.getLogger(__name__)

# Zero-argument conversion methods, in lookup order.
CONVERSION_METHODS = ("to_datetime", "ToDatetime", "to_pydatetime", "toDate")
SECONDS_FIELDS = ("seconds", "_seconds")
NANOS_FIELDS = ("nanoseconds", "_nanoseconds", "nanos")


class TimestampShape(enum.Enum):
    ABSENT = "absent"
    NATIVE = "native"
    CONVERTIBLE = "convertible"
    EPOCH_SECONDS = "epoch_seconds"
    TEXT = "text"
    EPOCH_MILLIS = "epoch_millis"
    UNKNOWN = "unknown"


def _field(raw: object, names: tuple[str, ...]) -> object:
    for name in names:
        if isinstance(raw, dict):
            if name in raw:
                return raw[name]
        elif hasattr(raw, name):
            return getattr(raw, name)
    return None


def detect_shape(raw: object) -> TimestampShape:
    """Classify *raw* into exactly one timestamp shape."""
    if raw is None or raw == "":
        return TimestampShape.ABSENT
    if isinstance(raw, (datetime, date)):
        return TimestampShape.NATIVE
    if any(callable(getattr(raw, m, None)) for m in CONVERSION_METHODS):
        return TimestampShape.CONVERTIBLE
    if isinstance(_field(raw, SECONDS_FIELDS), (int, float)):
        return TimestampShape.EPOCH_SECONDS
    if isinstance(raw, str):
        return TimestampShape.TEXT
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return TimestampShape.EPOCH_MILLIS
    return TimestampShape.UNKNOWN


def _to_local_naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


def _from_native(value: date) -> datetime:
    if isinstance(value, datetime):
        return _to_local_naive(value)
    return datetime.combine(value, time.min)


def _from_epoch_millis(millis: float) -> datetime:
    return datetime.fromtimestamp(millis / 1000)


def _parse_text(text: str) -> datetime:
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return _to_local_naive(datetime.fromisoformat(text))


def try_normalize(raw: object) -> datetime | None:
    """Convert *raw* to a naive local datetime, or return None if it cannot be read."""
    shape = detect_shape(raw)
    try:
        if shape is TimestampShape.NATIVE:
            return _from_native(raw)
        if shape is TimestampShape.CONVERTIBLE:
            method = next(getattr(raw, m) for m in CONVERSION_METHODS if callable(getattr(raw, m, None)))
            try:
                converted = method()
            except Exception as exc:
                logger.debug("Conversion of %r failed: %s", raw, exc)
                return None
            if isinstance(converted, (datetime, date)):
                return _from_native(converted)
            return None
        if shape is TimestampShape.EPOCH_SECONDS:
            seconds = _field(raw, SECONDS_FIELDS)
            nanos = _field(raw, NANOS_FIELDS)
            millis = seconds * 1000
            if isinstance(nanos, (int, float)):
                millis += nanos / 1_000_000
            return _from_epoch_millis(millis)
        if shape is TimestampShape.TEXT:
            return _parse_text(raw)
        if shape is TimestampShape.EPOCH_MILLIS:
            return _from_epoch_millis(raw)
    except (ValueError, OverflowError, OSError, TypeError) as exc:
        logger.debug("Could not read %s timestamp %r: %s", shape.value, raw, exc)
    return None


def normalize(raw: object, now: datetime | None = None) -> datetime:
    """Convert *raw* to a naive local datetime, falling back to *now*.

    Never raises on malformed input. Callers that must tell a real value
    from the fallback should use :func:`try_normalize` instead.
    """
    value = try_normalize(raw)
    if value is None:
        fallback = now or datetime.now()
        if raw is not None:
            logger.debug("Unreadable timestamp %r, using %s", raw, fallback.isoformat())
        return fallback
    return value


# ---------------------------------------------------------------------------
# Day arithmetic
# ---------------------------------------------------------------------------


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def add_days(dt: datetime, days: int) -> datetime:
    """``dt`` moved by *days*, saturating at ``datetime.min``/``datetime.max``."""
    try:
        return dt + timedelta(days=days)
    except OverflowError:
        return datetime.max if days > 0 else datetime.min


def days_between(start: datetime, end: datetime) -> int:
    """Calendar days from *start* to *end*, ignoring the time of day."""
    return (end.date() - start.date()).days


def same_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()
