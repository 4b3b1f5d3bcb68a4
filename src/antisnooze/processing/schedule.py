"""Compute the next time an alarm goes off."""

import datetime
from typing import Optional

from antisnooze.core import models


def weekday_index(day: datetime.date) -> int:
    """Index of the weekday in the Sunday-first repeat_days flags."""
    return (day.weekday() + 1) % models.DAYS_PER_WEEK


def next_alarm_date(
    settings: models.AlarmSettings, now: datetime.datetime
) -> Optional[datetime.datetime]:
    """Find the next occurrence of the alarm.

    Without repeat days the alarm rings at the next occurrence of the wake up
    time: today if it is still ahead of now, else tomorrow. With repeat days it
    rings on the nearest day, today included, whose weekday flag is set and whose
    wake up time is not before now.

    Args:
        settings: The alarm settings snapshot.
        now: The reference time. Naive or aware; the result carries the same
            tzinfo.

    Returns:
        The next alarm time, or None if the alarm is not active.
    """
    if not settings.is_active:
        return None

    today_alarm = datetime.datetime.combine(
        now.date(), settings.wake_up_time, tzinfo=now.tzinfo
    )

    if not settings.repeats:
        if today_alarm <= now:
            return today_alarm + datetime.timedelta(days=1)
        return today_alarm

    for days_ahead in range(models.DAYS_PER_WEEK + 1):
        candidate = today_alarm + datetime.timedelta(days=days_ahead)
        if candidate < now:
            continue
        if settings.repeat_days[weekday_index(candidate.date())]:
            return candidate
    return None
