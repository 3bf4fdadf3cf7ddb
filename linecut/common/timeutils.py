"""
Timestamp helpers for order records.

Rules:
- Naive `datetime` (no tzinfo) is assumed to be **UTC**.
- ISO8601 strings ending with 'Z' are treated as UTC.
- Numeric epoch: values >= 1e12 are treated as milliseconds, otherwise seconds.
- Business dates are displayed as `dd MMMM yyyy` with pt-BR month names in
  the configured display timezone (default `America/Sao_Paulo`).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from linecut.common.config import DEFAULT_DISPLAY_TZ

UTC = ZoneInfo("UTC")

UNAVAILABLE_DATE_LABEL = "Data indisponível"

_PT_BR_MONTHS = (
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse the timestamp shapes found in order records into a tz-aware UTC datetime.

    Supported input shapes:
    - ISO8601 strings (e.g. '2025-10-18T22:48:02Z', '...-03:00')
    - `datetime` (naive or tz-aware)
    - epoch seconds or milliseconds (int/float)
    """
    if value is None:
        raise TypeError("timestamp value is None")

    if isinstance(value, bool):
        raise TypeError("unsupported timestamp type: bool")

    if isinstance(value, datetime):
        dt = value
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    if isinstance(value, (int, float)):
        v = float(value)
        seconds = (v / 1000.0) if abs(v) >= 1e12 else v
        return datetime.fromtimestamp(seconds, tz=UTC)

    if isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValueError("timestamp string is empty")
        if s.endswith("Z") or s.endswith("z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError as e:
            raise ValueError(f"unparseable timestamp string: {value!r}") from e
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    raise TypeError(f"unsupported timestamp type: {type(value).__name__}")


def parse_timestamp_or_none(value: Any) -> Optional[datetime]:
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def format_business_date(value: Optional[datetime], *, tz: str = DEFAULT_DISPLAY_TZ) -> str:
    """
    Format like `18 outubro 2025`; `Data indisponível` when there is no date.
    """
    if value is None:
        return UNAVAILABLE_DATE_LABEL
    try:
        local = value.astimezone(ZoneInfo(tz))
    except Exception:
        return UNAVAILABLE_DATE_LABEL
    return f"{local.day:02d} {_PT_BR_MONTHS[local.month - 1]} {local.year:04d}"


def utc_now() -> datetime:
    """Return tz-aware current time in UTC."""

    return datetime.now(tz=UTC)


def utc_iso_seconds(value: Optional[datetime] = None) -> str:
    """`YYYY-MM-DDTHH:MM:SSZ`, the timestamp shape written into rating records."""

    dt = (value or utc_now()).astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")
