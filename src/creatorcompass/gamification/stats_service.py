"""Denormalized per-user counters (user_stats, user_platform_stats)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from creatorcompass.db.models import User, UserPlatformStats, UserStats
from creatorcompass.errors import PersistenceError, UserNotFoundError
from creatorcompass.gamification.time_utils import utcnow

logger = logging.getLogger(__name__)

# Counter columns that may be incremented through increment_counters()
COUNTER_COLUMNS = frozenset({
    "tasks_completed",
    "content_published",
    "templates_created",
    "ai_interactions",
    "creators_helped",
    "challenges_completed",
})


async def get_stats(db: AsyncSession, user_id: int) -> UserStats | None:
    """Load the stats row, refreshing any stale copy in the identity map."""
    result = await db.execute(
        select(UserStats)
        .where(UserStats.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_stats(db: AsyncSession, user_id: int) -> UserStats:
    """Get or create the denormalized stats row for a user.

    Raises UserNotFoundError when there is no such user.
    """
    stats = await get_stats(db, user_id)
    if stats is not None:
        return stats

    user = await db.execute(select(User.id).where(User.id == user_id))
    if user.scalar_one_or_none() is None:
        raise UserNotFoundError(user_id)

    try:
        async with db.begin_nested():
            await db.execute(
                insert(UserStats).values(user_id=user_id, updated_at=utcnow())
            )
    except IntegrityError:
        # Concurrent creator won the insert
        logger.debug("user_stats row for %s created concurrently", user_id)

    stats = await get_stats(db, user_id)
    if stats is None:
        raise PersistenceError(f"Could not create stats row for user {user_id}")
    return stats


async def increment_counters(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
    **deltas: int,
) -> None:
    """Atomically add deltas to counter columns, e.g. tasks_completed=1."""
    unknown = set(deltas) - COUNTER_COLUMNS
    if unknown:
        raise ValueError(f"Unknown stat counters: {sorted(unknown)}")
    if not deltas:
        return

    await get_or_create_stats(db, user_id)
    values = {name: getattr(UserStats, name) + amount for name, amount in deltas.items()}
    values["updated_at"] = now or utcnow()
    await db.execute(
        update(UserStats)
        .where(UserStats.user_id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


async def increment_platform_content(db: AsyncSession, user_id: int, platform: str, amount: int = 1) -> None:
    """Atomically bump the per-platform content counter."""
    platform = platform.lower()
    result = await db.execute(
        update(UserPlatformStats)
        .where(UserPlatformStats.user_id == user_id, UserPlatformStats.platform == platform)
        .values(content_published=UserPlatformStats.content_published + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    try:
        async with db.begin_nested():
            await db.execute(
                insert(UserPlatformStats).values(user_id=user_id, platform=platform, content_published=amount)
            )
    except IntegrityError:
        result = await db.execute(
            update(UserPlatformStats)
            .where(UserPlatformStats.user_id == user_id, UserPlatformStats.platform == platform)
            .values(content_published=UserPlatformStats.content_published + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise PersistenceError(f"Could not update {platform} stats for user {user_id}") from None


async def get_platform_content(db: AsyncSession, user_id: int) -> dict[str, int]:
    """Platform -> published content count."""
    result = await db.execute(
        select(UserPlatformStats.platform, UserPlatformStats.content_published)
        .where(UserPlatformStats.user_id == user_id)
    )
    return {row.platform: row.content_published for row in result}


# Requirement types answered straight from a user_stats column
STAT_REQUIREMENTS = COUNTER_COLUMNS | {"streak_days", "level", "total_xp"}


def requirement_value(
    stats: UserStats,
    requirement_type: str,
    platform: str | None = None,
    platform_content: Mapping[str, int] | None = None,
) -> int:
    """Current value of a badge/achievement requirement metric."""
    if requirement_type == "platform_content":
        if platform is None:
            raise ValueError("platform_content requirement needs a platform")
        return (platform_content or {}).get(platform.lower(), 0)
    if requirement_type in STAT_REQUIREMENTS:
        return getattr(stats, requirement_type)
    raise ValueError(f"Unknown requirement type: {requirement_type}")
