# Helpers for coercing loosely-typed values coming back from portals and the LLM

import math
import re
from typing import Any, Optional

__all__ = ["safe_number", "parse_percent", "truncate", "format_currency", "format_number"]

_PERCENT_CHARS = re.compile(r"[%,\s]")


def safe_number(val: Any) -> Optional[float]:
    """Return val as a float, or None for empty / non-numeric input."""
    if val is None or val == "" or isinstance(val, bool):
        return None
    try:
        n = float(val)
    except (TypeError, ValueError):
        return None
    if math.isnan(n):
        return None
    return n


def parse_percent(value: Any) -> Optional[float]:
    """Parse display values like '14.8%' or '1,234' into floats; 'N/A' gives None."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, str):
        return None
    return safe_number(_PERCENT_CHARS.sub("", value))


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut text to limit characters, appending suffix only when something was cut."""
    if len(text) > limit:
        return text[:limit] + suffix
    return text


def format_currency(val: float) -> str:
    """Compact dollar amount: $1.2T, $3.4B, $560M, else $1,234."""
    if val >= 1e12:
        return f"${val / 1e12:.1f}T"
    if val >= 1e9:
        return f"${val / 1e9:.1f}B"
    if val >= 1e6:
        return f"${val / 1e6:.0f}M"
    return f"${val:,.0f}"


def format_number(val: float) -> str:
    """Shortest plain rendering of a number: 12.0 -> '12', 12.5 -> '12.5'."""
    if float(val).is_integer():
        return str(int(val))
    return str(val)
