"""General utility helpers shared across modules."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (or a full ISO timestamp) into a date."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None
