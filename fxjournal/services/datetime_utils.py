"""Datetime normalization for broker exports and split date/time storage.

Broker CSVs carry local wall-clock strings such as ``2025/06/13 2:05:00 午後``.
Storage keeps UTC date and time-of-day as separate strings, so most callers
go broker string -> aware UTC datetime -> (date, time) and back.

Two interpretations of the broker wall clock exist and are selectable with
``TimezonePolicy``: Japan time (UTC+9, what the server-side importer does)
or the process's own local timezone (what the browser-side importer did).
They only agree when the process itself runs in JST.
"""

import logging
import math
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum

logger = logging.getLogger(__name__)

JST = timezone(timedelta(hours=9), "JST")

AM_MARKER = "午前"
PM_MARKER = "午後"

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"
LOCAL_INPUT_FORMAT = "%Y-%m-%dT%H:%M:%S"


class TimezonePolicy(str, Enum):
    """How naive broker wall-clock components are anchored to UTC."""

    JST = "jst"
    SYSTEM_LOCAL = "system_local"


def parse_broker_datetime(
    text: str | None,
    policy: TimezonePolicy = TimezonePolicy.JST,
) -> datetime:
    """Parse ``YYYY/MM/DD HH:MM[:SS] [午前|午後]`` into an aware UTC datetime.

    Never raises. Input with fewer than two tokens, or with components that
    do not form a valid datetime, is replaced by the current instant and a
    warning is logged. Callers must tolerate that fallback: it mirrors what
    production imports have always done, and it can silently put a trade on
    the wrong day.
    """
    parts = (text or "").split()
    if len(parts) < 2:
        logger.warning("Broker datetime %r has no time component, using current time", text)
        return datetime.now(timezone.utc)

    try:
        year, month, day = (int(p) for p in parts[0].split("/"))
        clock = parts[1].split(":")
        if len(clock) < 2:
            raise ValueError(f"missing minutes in {parts[1]!r}")
        hour = int(clock[0])
        minute = int(clock[1])
        second = int(clock[2]) if len(clock) > 2 and clock[2] else 0
        hour = _apply_meridiem(hour, parts[2] if len(parts) > 2 else None)
        wall_clock = datetime(year, month, day, hour, minute, second)
    except ValueError as e:
        logger.warning("Unparseable broker datetime %r (%s), using current time", text, e)
        return datetime.now(timezone.utc)

    if policy == TimezonePolicy.JST:
        return wall_clock.replace(tzinfo=JST).astimezone(timezone.utc)
    # Naive datetimes are interpreted in the system timezone by astimezone()
    return wall_clock.astimezone(timezone.utc)


def _apply_meridiem(hour: int, marker: str | None) -> int:
    if marker == PM_MARKER and hour != 12:
        return hour + 12
    if marker == AM_MARKER and hour == 12:
        return 0
    return hour


def split_utc(instant: datetime) -> tuple[str, str]:
    """Split an instant into UTC ``("YYYY-MM-DD", "HH:MM:SS")``.

    Naive datetimes are taken to be UTC already.
    """
    utc = _as_utc(instant)
    return utc.strftime(DATE_FORMAT), utc.strftime(TIME_FORMAT)


def join_utc(date_str: str | None, time_str: str | None) -> datetime | None:
    """Rebuild an aware UTC datetime from stored date and time columns.

    Returns None without a date. A missing time means midnight. Raises
    ValueError for malformed strings.
    """
    if not date_str:
        return None
    clock = (time_str or "").strip() or "00:00:00"
    if len(clock) == 5:
        clock += ":00"
    joined = datetime.strptime(f"{date_str.strip()}T{clock[:8]}", LOCAL_INPUT_FORMAT)
    return joined.replace(tzinfo=timezone.utc)


def to_local_input(instant: datetime | None, tz: tzinfo | None = None) -> str:
    """Format an instant as ``YYYY-MM-DDTHH:MM:SS`` for form prefill.

    Uses ``tz`` when given, otherwise the system timezone. Display only,
    never persisted.
    """
    if instant is None:
        return ""
    return _as_utc(instant).astimezone(tz).strftime(LOCAL_INPUT_FORMAT)


def hold_seconds(entry: datetime, exit: datetime) -> int:
    """Whole seconds between entry and exit, never negative."""
    return max(0, math.floor((exit - entry).total_seconds()))


def format_hold_time(seconds: int | float | None) -> str:
    """Human readable holding time, e.g. ``1日2時間3分4秒``."""
    if not seconds or seconds <= 0:
        return "0分"
    total = int(seconds)
    days, rest = divmod(total, 24 * 60 * 60)
    hours, rest = divmod(rest, 60 * 60)
    minutes, secs = divmod(rest, 60)

    result = ""
    if days:
        result += f"{days}日"
    if hours:
        result += f"{hours}時間"
    if minutes:
        result += f"{minutes}分"
    if secs:
        result += f"{secs}秒"
    return result or "0分"


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)
