"""
Reporting-period helpers.

Regulatory data arrives with dates in several shapes (FDIC REPDTE "20251231",
file names like "UBPR_2025-12-31.pdf"); the dashboard shows them as "Q4 2025".
"""

import math
import re
from datetime import datetime, timezone
from typing import Optional, Any

ISO_DATE_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
US_DATE_PATTERN = re.compile(r"(\d{2})-(\d{2})-(\d{4})")
QUARTER_PATTERN = re.compile(r"Q([1-4])\s+(\d{4})")


def quarter_label(year: str, month: int) -> str:
    """Format a year and month as 'Qn YYYY'."""
    return f"Q{math.ceil(month / 3)} {year}"


def format_fdic_period(repdte: Any) -> Optional[str]:
    """Convert an FDIC report date (YYYYMMDD) to 'Qn YYYY'.

    Values that are not 8 characters long are returned unchanged as strings.

    Examples:
        >>> format_fdic_period("20250630")
        'Q2 2025'
        >>> format_fdic_period(None) is None
        True
    """
    if not repdte:
        return None
    s = str(repdte)
    if len(s) == 8:
        return quarter_label(s[:4], int(s[4:6]))
    return s


def extract_period_from_filename(filename: str) -> Optional[str]:
    """Derive a reporting period from a file name.

    Matches YYYY-MM-DD first, then MM-DD-YYYY.

    Examples:
        >>> extract_period_from_filename("UBPR_2025-12-31.pdf")
        'Q4 2025'
        >>> extract_period_from_filename("call_03-31-2024.csv")
        'Q1 2024'
    """
    if not filename:
        return None

    iso_match = ISO_DATE_PATTERN.search(filename)
    if iso_match:
        year, month, _ = iso_match.groups()
        return quarter_label(year, int(month))

    us_match = US_DATE_PATTERN.search(filename)
    if us_match:
        month, _, year = us_match.groups()
        return quarter_label(year, int(month))

    return None


def period_sort_key(period: Optional[str]) -> tuple:
    """Sort key placing 'Qn YYYY' periods chronologically; unknown periods sort first."""
    if period:
        m = QUARTER_PATTERN.search(period)
        if m:
            return (int(m.group(2)), int(m.group(1)))
    return (0, 0)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a trailing Z."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
