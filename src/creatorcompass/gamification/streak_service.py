"""Daily activity streaks."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import ColumnElement, case, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.db.models import UserStats
from creatorcompass.gamification.stats_service import get_or_create_stats
from creatorcompass.gamification.time_utils import as_utc, utcnow

logger = logging.getLogger(__name__)


def _longest_after(new_streak: ColumnElement[int] | int) -> ColumnElement[int]:
    return case(
        (UserStats.longest_streak < new_streak, new_streak),
        else_=UserStats.longest_streak,
    )


async def record_activity(db: AsyncSession, user_id: int, now: datetime | None = None) -> int:
    """Mark the user active on the UTC day of now and return the current streak.

    Active yesterday: streak + 1. Already active today: unchanged.
    Otherwise the streak restarts at 1. longest_streak never decreases.
    """
    today = as_utc(now or utcnow()).date()
    yesterday = today - timedelta(days=1)
    await get_or_create_stats(db, user_id)

    # Continue
    result = await db.execute(
        update(UserStats)
        .where(UserStats.user_id == user_id, UserStats.last_active_date == yesterday)
        .values(
            streak_days=UserStats.streak_days + 1,
            longest_streak=_longest_after(UserStats.streak_days + 1),
            last_active_date=today,
        )
        .returning(UserStats.streak_days)
        .execution_options(synchronize_session=False)
    )
    streak = result.scalar_one_or_none()
    if streak is not None:
        logger.debug("User %s streak continued: %s days", user_id, streak)
        return streak

    # Restart
    result = await db.execute(
        update(UserStats)
        .where(
            UserStats.user_id == user_id,
            or_(UserStats.last_active_date.is_(None), UserStats.last_active_date < yesterday),
        )
        .values(
            streak_days=1,
            longest_streak=_longest_after(1),
            last_active_date=today,
        )
        .returning(UserStats.streak_days)
        .execution_options(synchronize_session=False)
    )
    streak = result.scalar_one_or_none()
    if streak is not None:
        return streak

    # Same day
    stats = await get_or_create_stats(db, user_id)
    return stats.streak_days
