import calendar
from datetime import date, datetime, timedelta


def month_bounds(year, month):
    """First and last calendar day (inclusive) of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def previous_month(day):
    first = day.replace(day=1)
    prior = first - timedelta(days=1)
    return prior.month, prior.year


def parse_date(value, field="date"):
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {field} format, use YYYY-MM-DD")


def validate_period(month, year):
    if month is None or year is None:
        raise ValueError("Provide month and year (e.g. ?month=7&year=2025)")
    if not 1 <= int(month) <= 12:
        raise ValueError("month must be between 1 and 12")
    if not 2000 <= int(year) <= 9999:
        raise ValueError("year is out of range")
    return int(month), int(year)
