"""
Market Calendar Utility

Handles IST timezone, F&O expiries and day counts.
"""

import math
from datetime import datetime, date, time, timedelta
from typing import Optional
import pytz

IST = pytz.timezone("Asia/Kolkata")

# F&O contracts expire at market close (IST)
EXPIRY_CUTOFF = time(15, 30)

DAYS_PER_YEAR = 365

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}


def get_ist_now() -> datetime:
    """Get current time in IST."""
    return datetime.now(IST)


def get_monthly_expiry(year: int, month: int) -> date:
    """Get the monthly F&O expiry: last Thursday of the month."""
    if month == 12:
        last_day = date(year, 12, 31)
    else:
        last_day = date(year, month + 1, 1) - timedelta(days=1)

    # Thursday = 3
    return last_day - timedelta(days=(last_day.weekday() - 3) % 7)


def expiry_close(expiry: date) -> datetime:
    """Expiry date at market close in IST."""
    return IST.localize(datetime.combine(expiry, EXPIRY_CUTOFF))


def days_to_expiry(expiry: date, now: Optional[datetime] = None) -> int:
    """Whole days until expiry close, rounded up, never negative."""
    if now is None:
        now = get_ist_now()
    elif now.tzinfo is None:
        now = IST.localize(now)

    seconds = (expiry_close(expiry) - now).total_seconds()
    return max(math.ceil(seconds / 86400), 0)


def days_to_years(days: float) -> float:
    """Convert calendar days to years for option pricing."""
    return days / DAYS_PER_YEAR
