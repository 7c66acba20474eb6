"""Display helpers for dashboard values."""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from src.stats.engine import parse_created_at

logger = logging.getLogger(__name__)

DATE_FORMAT = "%b %d, %Y %H:%M"


def format_date(value: Any, fmt: str = DATE_FORMAT) -> str:
    """Format a created_at value; "N/A" when empty, "Invalid date" when unparsable."""
    if not value:
        return "N/A"
    dt = parse_created_at(value)
    if dt is None:
        return "Invalid date"
    try:
        return dt.strftime(fmt)
    except ValueError:
        logger.debug("Could not format date %r with %r", value, fmt)
        return "Invalid date"


def format_number(value: Any) -> str:
    """Thousands-separated number, "0" for anything that is not a finite number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return "0"
    if not math.isfinite(value):
        return "0"
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,}"
    return f"{int(value):,}"


def safe_json_parse(text: str | bytes | None, fallback: Any = None) -> Any:
    if text is None:
        return fallback
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return fallback
