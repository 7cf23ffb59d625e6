"""
Core — Date Helpers

Calendar dates from query strings become half-open datetime bounds in
the hospital's local time zone.

@file core/timeutils.py
"""

from datetime import date, datetime, time, timedelta

from django.utils import timezone


def start_of_day(day: date) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min))


def end_of_day_exclusive(day: date) -> datetime:
    """Midnight after ``day``: the exclusive upper bound for an inclusive date."""
    return start_of_day(day + timedelta(days=1))
