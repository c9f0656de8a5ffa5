"""
Common date/time utility functions for consistent date handling across the application

Storage: timestamps are stored in UTC; calendar fields (prescription_date,
start_date, end_date, follow_up_date) are plain dates.
Display: patient-facing documents use the en-IN day/month/year format.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC datetime.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return utc_now().date()


def add_calendar_days(start: date, days: int) -> date:
    """Calendar-day arithmetic (weekends and holidays count)."""
    return start + timedelta(days=days)


def calculate_age(dob: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Calculate age in whole years from date of birth."""
    if not dob:
        return None
    today = today or today_utc()
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


def format_display_date(value: Optional[date]) -> str:
    """en-IN style: 15/11/2025."""
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")
