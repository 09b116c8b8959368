"""
Date helpers for the clinic's timezone and the month-indexed periods used by
settlements and dashboards.

Months are zero-based everywhere a (month, year) pair appears: 0 is January
and 11 is December.
"""
import calendar
from datetime import date

from django.utils import timezone

MONTH_NAMES = [
    'Enero', 'Febrero', 'Marzo', 'Abril', 'Mayo', 'Junio',
    'Julio', 'Agosto', 'Septiembre', 'Octubre', 'Noviembre', 'Diciembre'
]


def get_clinic_now():
    """
    Get current datetime in the clinic's timezone (settings.TIME_ZONE).

    Returns:
        datetime: Current datetime localized to America/Guatemala
    """
    return timezone.localtime(timezone.now())


def get_clinic_today():
    """
    Get today's date in the clinic's timezone.

    Returns:
        date: Today's date in America/Guatemala
    """
    return get_clinic_now().date()


def validate_period(month, year):
    """
    Coerce a (month, year) pair to ints, raising ValueError when out of range.
    """
    month = int(month)
    year = int(year)
    if not 0 <= month <= 11:
        raise ValueError(f"Month must be between 0 and 11, got {month}")
    if not 1 <= year <= 9999:
        raise ValueError(f"Invalid year {year}")
    return month, year


def days_in_month(month, year):
    """Number of days in a zero-based month"""
    return calendar.monthrange(year, month + 1)[1]


def month_bounds(month, year):
    """
    First and last calendar day of a zero-based month.

    Returns:
        tuple: (first_day, last_day), both inclusive
    """
    return date(year, month + 1, 1), date(year, month + 1, days_in_month(month, year))


def previous_period(month, year):
    """The (month, year) pair immediately before the given one"""
    if month == 0:
        return 11, year - 1
    return month - 1, year


def period_of(day):
    """Zero-based (month, year) pair a date falls in"""
    return day.month - 1, day.year


def month_name(month):
    """Spanish display name of a zero-based month"""
    return MONTH_NAMES[month]
