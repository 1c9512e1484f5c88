# ledger/daykey.py
from __future__ import annotations

from datetime import datetime, time, timedelta, timezone as dt_timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from django.utils import timezone

from .constants import TASK_DAY_TIMEZONE


@lru_cache(maxsize=None)
def reference_zone(name: str = TASK_DAY_TIMEZONE) -> ZoneInfo:
    return ZoneInfo(name)


def _aware(instant: datetime) -> datetime:
    # Naive datetimes are taken as UTC so the mapping stays total.
    if timezone.is_naive(instant):
        return timezone.make_aware(instant, dt_timezone.utc)
    return instant


def day_key(instant: datetime) -> str:
    """
    Calendar date of `instant` in the reference zone, as YYYY-MM-DD.
    Two instants share a key iff they fall on the same local date there.
    """
    local = timezone.localtime(_aware(instant), reference_zone())
    return local.date().isoformat()


def today_key() -> str:
    return day_key(timezone.now())


def next_reset_at(instant: datetime) -> datetime:
    """Local midnight that ends the day `instant` belongs to."""
    zone = reference_zone()
    local = timezone.localtime(_aware(instant), zone)
    return datetime.combine(local.date() + timedelta(days=1), time.min, tzinfo=zone)


def seconds_until_reset(instant: datetime) -> int:
    return max(0, int((next_reset_at(instant) - _aware(instant)).total_seconds()))
