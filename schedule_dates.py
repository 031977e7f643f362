"""
Date helpers shared by the periodization resolver and the program importer.

Weeks follow the Monday-start convention used everywhere in the schedule:
weekday offsets run Mon=0 .. Sun=6, matching date.weekday().
"""
from datetime import date, datetime, timedelta
from typing import Optional, Union


WEEKDAY_OFFSETS = {
    'Mon': 0,
    'Tue': 1,
    'Wed': 2,
    'Thu': 3,
    'Fri': 4,
    'Sat': 5,
    'Sun': 6,
}


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse a stored date or timestamp into a date. Returns None for empty values."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if len(text) == 10:
        return datetime.strptime(text, '%Y-%m-%d').date()

    # Supabase timestamps come back as ISO strings, sometimes with a Z suffix
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text).date()


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative when end is before start)."""
    return (end - start).days


def weekday_offset(code: Optional[str]) -> int:
    """Map a weekday code like 'Wed' to its offset from Monday. Unknown codes map to Monday."""
    if not code:
        return 0
    return WEEKDAY_OFFSETS.get(str(code).strip()[:3].title(), 0)


def next_monday(today: date) -> date:
    """The upcoming Monday, or today when today is already a Monday."""
    return today + timedelta(days=(7 - today.weekday()) % 7)


def program_end_date(start_date: Optional[date], total_weeks: int) -> Optional[date]:
    """Date the program finishes, i.e. the day after its last scheduled week."""
    if start_date is None:
        return None
    return start_date + timedelta(weeks=total_weeks)
