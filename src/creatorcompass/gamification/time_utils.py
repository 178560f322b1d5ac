"""Day and rolling-window boundaries. All boundaries are UTC."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_today(now: datetime | None = None) -> date:
    """The UTC calendar day containing now."""
    return as_utc(now or utcnow()).date()


def start_of_day(day: date) -> datetime:
    """Midnight UTC at the start of day."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def window_start(timeframe: str, now: datetime | None = None) -> datetime | None:
    """Lower bound of a rolling leaderboard window, None for all-time.

    daily: since UTC midnight today. weekly: last 7 days.
    monthly: last 30 days.
    """
    now = as_utc(now or utcnow())
    if timeframe == "daily":
        return start_of_day(now.date())
    if timeframe == "weekly":
        return now - timedelta(days=7)
    if timeframe == "monthly":
        return now - timedelta(days=30)
    if timeframe == "all-time":
        return None
    raise ValueError(f"Unknown timeframe: {timeframe}")


def period_key(timeframe: str, now: datetime | None = None) -> str:
    """Snapshot bucket for a timeframe, e.g. '2026-10-19', '2026-W43', '2026-10'."""
    now = as_utc(now or utcnow())
    if timeframe == "daily":
        return now.strftime("%Y-%m-%d")
    if timeframe == "weekly":
        return now.strftime("%G-W%V")
    if timeframe == "monthly":
        return now.strftime("%Y-%m")
    if timeframe == "all-time":
        return "all"
    raise ValueError(f"Unknown timeframe: {timeframe}")
