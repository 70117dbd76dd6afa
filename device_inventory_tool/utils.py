"""
Shared utility functions for Device Inventory Tool.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def odata_literal(value: str) -> str:
    """
    Quote a value as an OData string literal.

    Single quotes are escaped by doubling them.

    Examples:
        >>> odata_literal("PC-01")
        "'PC-01'"
        >>> odata_literal("O'Brien-PC")
        "'O''Brien-PC'"
    """
    return "'" + value.replace("'", "''") + "'"


def parse_graph_datetime(date_str: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO8601 timestamp from Graph into an aware UTC datetime.

    Graph returns seven fractional digits ("2024-05-01T10:22:33.1234567Z"),
    which fromisoformat rejects on older interpreters, so the fraction is
    trimmed to microseconds first.

    Returns:
        datetime with UTC timezone, or None if the value is empty or unparseable.
        Graph's "never synced" sentinel (0001-01-01) is returned as None.
    """
    if not date_str:
        return None
    value = date_str.strip().replace("Z", "+00:00")
    if "." in value:
        head, _, rest = value.partition(".")
        digits = ""
        for char in rest:
            if not char.isdigit():
                break
            digits += char
        value = f"{head}.{digits[:6].ljust(6, '0')}{rest[len(digits):]}"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if dt.year <= 1:
        return None
    return dt


def days_since(date_str: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days elapsed since a Graph timestamp, or None when it cannot be parsed."""
    dt = parse_graph_datetime(date_str)
    if dt is None:
        return None
    current = now or datetime.now(timezone.utc)
    return (current - dt).days


def timestamped_filename(prefix: str, extension: str = "csv", now: Optional[datetime] = None) -> str:
    """
    Build a report filename that includes the local timestamp.

    Examples:
        >>> timestamped_filename("DeviceLookup", now=datetime(2024, 11, 22, 9, 5, 0))
        'DeviceLookup_20241122_090500.csv'
    """
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{stamp}.{extension}"
