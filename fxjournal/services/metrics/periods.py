"""Period keys for the performance rollups."""

from datetime import datetime, timezone, tzinfo
from enum import Enum


class PeriodType(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    TOTAL = "total"


TOTAL_KEY = "total"


def period_keys(instant: datetime, tz: tzinfo) -> dict[PeriodType, str]:
    """Rollup keys for every resolution, from calendar fields in ``tz``.

    2025-06-13 14:05 local gives ``2025-06-13T14``, ``2025-06-13``,
    ``2025-W24`` (ISO week), ``2025-06``, ``2025`` and ``total``. Naive
    instants are taken to be UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    local = instant.astimezone(tz)
    iso_year, iso_week, _ = local.isocalendar()
    return {
        PeriodType.HOURLY: local.strftime("%Y-%m-%dT%H"),
        PeriodType.DAILY: local.strftime("%Y-%m-%d"),
        PeriodType.WEEKLY: f"{iso_year}-W{iso_week:02d}",
        PeriodType.MONTHLY: local.strftime("%Y-%m"),
        PeriodType.YEARLY: f"{local.year:04d}",
        PeriodType.TOTAL: TOTAL_KEY,
    }
